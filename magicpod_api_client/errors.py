"""Errors raised by the Magic Pod API client."""


class MagicPodError(Exception):
    """Base error carrying the process exit code it maps to."""

    exit_code = 1


class SettingMismatchError(MagicPodError):
    """Raised when the settings selector disagrees with the JSON setting."""


class ApiError(MagicPodError):
    """Raised when the API answers with a non-success status."""

    def __init__(self, status: str, body: str) -> None:
        super().__init__(f"{status}: {body}")
        self.status = status
        self.body = body


class BatchRunNotFoundError(MagicPodError):
    """Raised when the project has no batch run yet."""


class UploadError(MagicPodError):
    """Raised when a file cannot be prepared for upload."""


class WaitLimitExceededError(MagicPodError):
    """Raised when batch runs do not finish within the wait limit."""
