import enum


class POStatus(str, enum.Enum):
    pending_approval = "pending_approval"
    pending_receive = "pending_receive"
    received = "received"
    rejected = "rejected"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").upper()


class OrderAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    mark_received = "mark_received"
    edit_lots = "edit_lots"


class LotState(str, enum.Enum):
    no_lots = "no_lots"
    complete = "complete"
    mismatch = "mismatch"
