"""
Typed exceptions for the stockroom core.

Every error carries a machine ``code``, a human ``message`` and the
structured fields a caller needs to render it (which item mismatched, by
how much, which status blocked a transition). ``status_code`` is only
read by the API layer.

    StockroomError
    +-- ValidationError          VALIDATION_ERROR        400
    +-- NotFoundError            NOT_FOUND               404
    +-- ConflictError            CONFLICT                409
    +-- InvalidTransitionError   INVALID_TRANSITION      409
    +-- ReconciliationError      RECONCILIATION_FAILED   409
    +-- StorageError             STORAGE_ERROR           503
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class StockroomError(Exception):
    code = "STOCKROOM_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        payload.update({k: _plain(v) for k, v in self.details().items()})
        return payload


class ValidationError(StockroomError):
    """Malformed input: missing field, non-positive quantity, foreign item id."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, errors: Iterable[dict[str, Any]] = ()):
        super().__init__(message)
        self.errors = list(errors)

    def details(self) -> dict[str, Any]:
        return {"errors": self.errors}


class NotFoundError(StockroomError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "entity_id": self.entity_id}


class ConflictError(StockroomError):
    code = "CONFLICT"
    status_code = 409

    def __init__(self, unique_id: str):
        super().__init__(f"Purchase order {unique_id} already exists")
        self.unique_id = unique_id

    def details(self) -> dict[str, Any]:
        return {"unique_id": self.unique_id}


class InvalidTransitionError(StockroomError):
    """The order is not in the status the requested action starts from."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, action: Any, current_status: Any, required_status: Any):
        super().__init__(
            f"Cannot {_plain(action)} a purchase order in status {_plain(current_status)} "
            f"(requires {_plain(required_status)})"
        )
        self.action = action
        self.current_status = current_status
        self.required_status = required_status

    def details(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "current_status": self.current_status,
            "required_status": self.required_status,
        }


class ReconciliationError(StockroomError):
    """
    Lots do not cover the order.

    ``reason`` is ``no_lots`` when nothing was entered at all, otherwise
    ``mismatch`` with the first offending item in ``item_name`` / ``total`` /
    ``expected`` and every offending item in ``mismatches``.
    """

    code = "RECONCILIATION_FAILED"
    status_code = 409

    NO_LOTS = "no_lots"
    MISMATCH = "mismatch"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        item_name: str | None = None,
        total: int | None = None,
        expected: int | None = None,
        mismatches: Iterable[dict[str, Any]] = (),
    ):
        super().__init__(message)
        self.reason = reason
        self.item_name = item_name
        self.total = total
        self.expected = expected
        self.mismatches = list(mismatches)

    @classmethod
    def no_lots(cls) -> "ReconciliationError":
        return cls(
            "No lot numbers have been entered yet. Enter lot numbers before marking as received.",
            reason=cls.NO_LOTS,
        )

    @classmethod
    def mismatch(
        cls,
        item_name: str,
        total: int,
        expected: int,
        mismatches: Iterable[dict[str, Any]] = (),
    ) -> "ReconciliationError":
        return cls(
            f'Item "{item_name}" lot quantities ({total}) don\'t match the purchase order '
            f"quantity ({expected}). Enter the correct lot numbers first.",
            reason=cls.MISMATCH,
            item_name=item_name,
            total=total,
            expected=expected,
            mismatches=mismatches,
        )

    def details(self) -> dict[str, Any]:
        data: dict[str, Any] = {"reason": self.reason}
        if self.reason == self.MISMATCH:
            data.update(
                {
                    "item_name": self.item_name,
                    "total": self.total,
                    "expected": self.expected,
                    "mismatches": self.mismatches,
                }
            )
        return data


class StorageError(StockroomError):
    """Database failure, opaque to the caller."""

    code = "STORAGE_ERROR"
    status_code = 503

    def __init__(self, operation: str):
        super().__init__(f"Storage failure during {operation}")
        self.operation = operation

    def details(self) -> dict[str, Any]:
        return {"operation": self.operation}
