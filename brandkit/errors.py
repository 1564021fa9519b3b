from typing import Optional


class BrandkitError(Exception):
    """
    Base class for errors raised by the brandkit pipeline.

    `code` is a stable machine-readable identifier and `status_code` the HTTP
    status the API layer should answer with.
    """

    code = "BRANDKIT_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(BrandkitError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class UploadError(BrandkitError):
    code = "FILE_UPLOAD_ERROR"
    status_code = 400


class JobNotFound(BrandkitError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job with id {job_id} not found")
        self.job_id = job_id


class RemoteError(BrandkitError):
    """The external image service failed or returned an unusable payload."""

    code = "REMOTE_ERROR"
    status_code = 502


class JobCancelled(BrandkitError):
    code = "CANCELLED"
    status_code = 409

    def __init__(self, message: str = "Job cancelled") -> None:
        super().__init__(message)


class InvalidTransition(BrandkitError):
    code = "INVALID_TRANSITION"
    status_code = 409


def error_message(error: BaseException) -> str:
    message = str(error)
    return message or error.__class__.__name__
