"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``filevault.main`` turns them into JSON responses of
the form ``{"message": ...}`` with the matching status code.
"""


class FileVaultError(Exception):
    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(FileVaultError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(ValidationError):
    default_message = "Already exists"


class Unauthorized(FileVaultError):
    status_code = 401
    default_message = "Not authorized"


class Forbidden(FileVaultError):
    status_code = 403
    default_message = "Not authorized to access this file"


class NotFound(FileVaultError):
    status_code = 404
    default_message = "File not found"


class PayloadTooLarge(FileVaultError):
    status_code = 413
    default_message = "File too large"


class StorageError(FileVaultError):
    status_code = 500
    default_message = "Failed to save file information"
