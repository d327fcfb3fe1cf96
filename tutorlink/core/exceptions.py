"""Custom exception classes for the application.

Provides a hierarchy of exceptions for consistent error handling
across the application with appropriate HTTP status codes.
"""


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found exception.

    Raised when a requested resource does not exist.
    """

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id {identifier} not found"
        super().__init__(message=message, status_code=404)
        self.resource = resource
        self.identifier = identifier


class ConflictError(AppException):
    """Resource conflict exception.

    Raised when an operation would create a duplicate entry, such as a
    second contact for the same student/tutor pair. State is not mutated.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=400)


class ValidationError(AppException):
    """Input validation failed exception.

    Raised when input data fails validation rules.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=400)


class UnauthorizedError(AppException):
    """Caller identity missing, invalid, or not the owner of a resource."""

    def __init__(self, message: str = "Not authorized to access this route") -> None:
        super().__init__(message=message, status_code=401)


class ForbiddenError(AppException):
    """Caller role is not allowed to perform the operation."""

    def __init__(self, role: str | None) -> None:
        super().__init__(
            message=f"User role {role or 'undefined'} is not authorized to access this route",
            status_code=403,
        )
        self.role = role


class InsufficientFundsError(AppException):
    """Insufficient wallet balance exception.

    Raised when a debit cannot be completed because the wallet
    balance is lower than the required amount. No coins are moved.
    """

    def __init__(
        self,
        user_id: str,
        required: int,
        available: int,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message=message or (
                f"Insufficient coins in wallet of user {user_id}: "
                f"required {required}, available {available}"
            ),
            status_code=400,
        )
        self.user_id = user_id
        self.required = required
        self.available = available


class ConcurrencyError(AppException):
    """Concurrent modification detected exception.

    Raised when optimistic locking detects that a resource was modified
    by another transaction between read and update operations.
    The caller should implement retry logic to handle this error.
    """

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            message=(
                f"{resource} {identifier} was modified by another transaction. "
                "Please retry."
            ),
            status_code=409,
        )
        self.resource = resource
        self.identifier = identifier


class ExternalServiceError(AppException):
    """An external collaborator (payment gateway, blob storage) failed."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(
            message=f"{service} request failed: {detail}",
            status_code=502,
        )
        self.service = service
        self.detail = detail


class PaymentNotCompletedError(AppException):
    """The gateway did not confirm the capture; the wallet is untouched."""

    def __init__(self, order_id: str, gateway_status: str | None) -> None:
        super().__init__(message="Payment not completed", status_code=400)
        self.order_id = order_id
        self.gateway_status = gateway_status


class NotApprovedError(AppException):
    """The tutor profile has not been approved by an admin."""

    def __init__(self, message: str = "This teacher profile is not approved yet") -> None:
        super().__init__(message=message, status_code=400)


class NotYetAcceptedError(AppException):
    """The application is not in a state that unlocks contact details."""

    def __init__(self, message: str = "Application not yet accepted by student") -> None:
        super().__init__(message=message, status_code=400)
