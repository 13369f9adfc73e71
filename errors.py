class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Missing or malformed input."""
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class DuplicateError(AppError):
    """A user tried to review the same product twice."""
    status_code = 400


class UploadError(AppError):
    """The image host returned no URL."""
    status_code = 400


class StorageError(AppError):
    status_code = 500
