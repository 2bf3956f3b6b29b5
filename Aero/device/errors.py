class DeviceError(Exception):
    message = "Something went wrong."

    def __init__(self, message=None):
        super().__init__(message or self.message)


class NotAuthenticated(DeviceError):
    message = "Please sign in to share your location"


class NoContactsSelected(DeviceError):
    message = "Please select at least one contact"


class LocationUnavailable(DeviceError):
    message = "Could not get your current location"


class GeolocationError(DeviceError):
    """Raised by a geolocator (permission denied, no signal...)."""
    message = "Location error"


class SharingStartFailed(DeviceError):
    message = "Failed to start location sharing"


class ApiError(DeviceError):
    """Non-2xx answer from the backend, or no answer at all (status 0)."""

    def __init__(self, status, message=None, code=None):
        self.status = status
        self.code = code
        super().__init__(message or f"HTTP {status}")


class SessionClosed(ApiError):
    """The backend refused a write because the session ended or expired."""

    @property
    def reason(self):
        return "expired" if self.code == "expired" else "ended"
