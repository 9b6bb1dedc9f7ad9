class PosError(Exception):
    """Base register error."""


class ConfigError(PosError):
    pass


class CameraUnavailable(PosError):
    """
    Raised when the camera cannot be opened (no device, no permission, busy).
    Carries the steps shown to the operator under the error message.
    """

    REMEDIATION = (
        "Allow camera access for this terminal when prompted",
        "Check that a camera is connected and POS_CAMERA_INDEX points at it",
        "Make sure no other app is using the camera",
        "Close and reopen the camera scanner",
    )

    def __init__(self, message: str = "Camera unavailable."):
        super().__init__(message)
        self.remediation = list(self.REMEDIATION)


class CheckoutValidationError(PosError):
    """Local checkout guard failed, no request was sent."""


class ServiceError(PosError):
    """Backend call failed; the message is safe to show to the operator."""
