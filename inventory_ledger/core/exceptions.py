from typing import Optional
from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class ValidationError(BaseAppException):
    """Bad input or illegal state transition, raised before any mutation."""
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class InsufficientStockError(BaseAppException):
    def __init__(self, detail: str = "Insufficient stock available"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class StockConflictError(BaseAppException):
    """Another writer changed the same stock record first."""
    def __init__(self, detail: str = "Stock record was modified concurrently, retry the operation"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class StoreError(BaseAppException):
    """Read/write failure against the backing store. The step was not applied."""
    def __init__(self, detail: str = "Backing store unavailable", status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE):
        super().__init__(status_code=status_code, detail=detail)

class PartialFailureError(BaseAppException):
    """Some steps of a multi-step operation succeeded and a later one failed."""
    def __init__(
        self,
        detail: str = "Operation partially completed",
        completed: int = 0,
        failed: int = 0,
        errors: Optional[list] = None,
    ):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
        self.completed = completed
        self.failed = failed
        self.errors = errors or []

class DuplicateTransactionError(StockConflictError):
    """A transaction with this client_txn_id is already in the log."""
    def __init__(self, client_txn_id: str):
        super().__init__(detail=f"Transaction {client_txn_id} was already recorded")
        self.client_txn_id = client_txn_id
