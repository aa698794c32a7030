from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for errors raised by the application workflow."""


class ApplicationValidationError(GatekeeperError):
    """A required field is missing or invalid; nothing has been written."""


class DuplicateApplicationError(ApplicationValidationError):
    def __init__(self, message: str = "You have already applied for this position with this email."):
        super().__init__(message)


class CapturePermissionError(GatekeeperError):
    def __init__(self, message: str = "Could not access camera. Please allow permissions."):
        super().__init__(message)


class UploadError(GatekeeperError):
    def __init__(self, asset: str, message: str):
        super().__init__(f"{asset} upload failed: {message}")
        self.asset = asset


class ScreeningFailure(GatekeeperError):
    """Screening could not produce a usable score."""


class InvalidTransition(GatekeeperError):
    pass


class RecordShapeError(GatekeeperError):
    pass
