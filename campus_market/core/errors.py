NOT_LOGGED_IN = "Unauthorized: Not logged in"
ADMIN_REQUIRED = "Unauthorized: Admin access required"


class AdminAuthorizationError(Exception):
    """Raised by the admin gate; rendered as 401 or 403 at the request boundary."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @classmethod
    def not_logged_in(cls) -> "AdminAuthorizationError":
        return cls(NOT_LOGGED_IN, 401)

    @classmethod
    def admin_required(cls) -> "AdminAuthorizationError":
        return cls(ADMIN_REQUIRED, 403)


class AuthProviderError(Exception):
    def __init__(self, message: str, status_code: int = 400, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
