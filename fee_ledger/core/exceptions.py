"""Service-layer error taxonomy. Routers translate these into HTTP responses."""

from typing import Dict, List, Optional

from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    retryable = False

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"detail": self.message, "retryable": self.retryable}


# --- Validation (client-correctable, never retried) ---
class ValidationError(ServiceError):
    """Malformed or out-of-range request fields. Carries field-level detail."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class EmptyAllocationSet(ValidationError):
    def __init__(self) -> None:
        super().__init__(
            "Payment must contain at least one allocation",
            [{"field": "allocations", "message": "at least one allocation is required"}],
        )


# --- Consistency (request rejected whole, no partial commit) ---
class ConsistencyError(ServiceError):
    def __init__(self, message: str, status_code: int = status.HTTP_409_CONFLICT) -> None:
        super().__init__(message, status_code)


class InvalidAllocation(ConsistencyError):
    """Allocation exceeds the due's remaining balance or targets a retired due."""

    def __init__(self, message: str, due_id=None) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
        self.due_id = due_id


class DuplicateImportKey(ConsistencyError):
    def __init__(self, transaction_key: str) -> None:
        super().__init__(f"Transaction already imported: {transaction_key}")
        self.transaction_key = transaction_key


class InvalidTransition(ConsistencyError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Payment is {current}; cannot move to {target}")
        self.current = current
        self.target = target


# --- Concurrency (retryable: re-fetch balances and resubmit) ---
class ConcurrencyError(ServiceError):
    retryable = True

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConcurrentModification(ConcurrencyError):
    def __init__(self, due_id) -> None:
        super().__init__(f"Due {due_id} was modified by another request; re-fetch balances and resubmit")
        self.due_id = due_id


# --- Not found ---
class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UnknownStudent(NotFoundError):
    def __init__(self, student_id) -> None:
        super().__init__(f"Student not found: {student_id}")
        self.student_id = student_id


class UnknownDue(NotFoundError):
    def __init__(self, due_id) -> None:
        super().__init__(f"Due not found: {due_id}")
        self.due_id = due_id


class UnknownPayment(NotFoundError):
    def __init__(self, payment_id) -> None:
        super().__init__(f"Payment not found: {payment_id}")


class UnknownAcademicYear(NotFoundError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Academic year not found: {code}")


def to_http_exception(e: ServiceError) -> HTTPException:
    """Translate a service error for the router layer. Field errors and retryability stay visible."""
    detail = e.message
    if isinstance(e, ValidationError) and e.errors:
        detail = {"message": e.message, "errors": e.errors}
    elif e.retryable:
        detail = {"message": e.message, "retryable": True}
    return HTTPException(status_code=e.status_code, detail=detail)
