from enum import Enum


class ScanError(Exception):
    """
    Base class for every typed scan failure.

    ``reason`` is a stable machine-readable tag, ``message`` is what the
    front desk sees.
    """
    reason = "scan_error"
    default_message = "Failed to scan the QR code. Please try again."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CameraFailure(Enum):
    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    DEVICE_BUSY = "device_busy"


_CAMERA_MESSAGES = {
    CameraFailure.PERMISSION_DENIED: "Failed to access camera. Please ensure camera permissions are granted.",
    CameraFailure.NO_DEVICE: "No cameras found",
    CameraFailure.DEVICE_BUSY: "Failed to start scanner. The camera may be in use by another application.",
}


class CameraUnavailable(ScanError):
    reason = "camera_unavailable"

    def __init__(self, cause: CameraFailure, message: str = None):
        self.cause = cause
        super().__init__(message or _CAMERA_MESSAGES[cause])


class UnsupportedEnvironment(ScanError):
    reason = "unsupported_environment"
    default_message = "Camera capture is not available in this environment."


class InvalidUpload(ScanError):
    reason = "invalid_upload"
    default_message = "Please select a valid image file"


class NoSymbolFound(ScanError):
    reason = "no_symbol_found"
    default_message = (
        "No QR code detected in this image. Please try a different image "
        "with a clear, visible QR code."
    )


class Rejected(ScanError):
    reason = "rejected"
    default_message = (
        "This QR code does not appear to be a valid Barbaros client code. "
        "Please scan a client's QR code or try the manual search."
    )
