"""Error taxonomy shared by the services and the HTTP layer.

Each error carries the status code the API answers with. Errors whose
``public`` flag is off are reported to clients as a generic failure; their
message is only logged.
"""


class TrackerError(Exception):
    status_code = 500
    public = True

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError, ValueError):
    status_code = 400


class CategoryNotFound(ValidationError):
    def __init__(self, message: str = "Category not found or invalid") -> None:
        super().__init__(message)


class AccountExists(ValidationError):
    def __init__(self, message: str = "An account with this email already exists") -> None:
        super().__init__(message)


class Unauthenticated(TrackerError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class Forbidden(TrackerError):
    status_code = 403


class NotFound(TrackerError):
    status_code = 404


class DuplicateBudget(TrackerError):
    status_code = 409

    def __init__(
        self, message: str = "Budget already exists for this category in this month"
    ) -> None:
        super().__init__(message)


class StoreError(TrackerError):
    public = False


class DivisionUndefined(TrackerError, ArithmeticError):
    public = False
