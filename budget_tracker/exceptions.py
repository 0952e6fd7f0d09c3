class AppError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} '{resource_id}' not found", code="NOT_FOUND")


class ValidationError(AppError):
    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code)


class ConflictError(AppError):
    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, code=code)


class UnauthorizedError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="UNAUTHORIZED")


class InvalidWindowError(ValidationError):
    def __init__(self, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"End date {end_date} must be after start date {start_date}",
            code="INVALID_WINDOW",
        )


class DegenerateAmountError(ValidationError):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Budget amount must be positive, got {amount}", code="DEGENERATE_AMOUNT")


class PersistenceConflictError(ConflictError):
    def __init__(self, aggregate_id: str, expected_version: int, actual_version: int):
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"'{aggregate_id}' was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            code="PERSISTENCE_CONFLICT",
        )


class LedgerTimeoutError(AppError):
    def __init__(self, budget_id: str, timeout: float):
        super().__init__(
            f"Ledger query for budget '{budget_id}' exceeded {timeout}s",
            code="LEDGER_TIMEOUT",
        )
