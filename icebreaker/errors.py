class IcebreakerError(Exception):
    """Base error carrying the message shown to the user."""

    status_code = 400
    user_message = "Something went wrong"

    def __init__(self, user_message: str | None = None) -> None:
        if user_message is not None:
            self.user_message = user_message
        super().__init__(self.user_message)


class AuthError(IcebreakerError):
    status_code = 401
    user_message = "Authentication failed"


class PermissionDeniedError(IcebreakerError):
    status_code = 403
    user_message = "Permission denied"


class NotFoundError(IcebreakerError):
    status_code = 404
    user_message = "Not found"


class InvalidStateError(IcebreakerError):
    status_code = 409
    user_message = "Operation not allowed in the current state"


class QuotaExceededError(IcebreakerError):
    status_code = 429
    user_message = "Daily limit reached. Try again tomorrow."


class NetworkError(IcebreakerError):
    status_code = 503
    user_message = "Network error. Please check your connection."


class AIServiceError(IcebreakerError):
    status_code = 502
    user_message = "AI service is unavailable right now"
