from fastapi import status


class WorkflowError(Exception):
    """Base class for failures reported by the credential workflow."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidInputError(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class AlreadyRegisteredError(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email already registered"


class NotFoundError(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class InvalidCredentialsError(WorkflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid password"


class NoPendingRequestError(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No pending OTP request for this email"


class InvalidCodeError(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid OTP"


class CodeExpiredError(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "OTP expired"


class TooManyAttemptsError(WorkflowError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many attempts"


class DeliveryFailedError(WorkflowError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to send OTP"


class ConflictError(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Account was created by a concurrent request"


class InternalError(WorkflowError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"
