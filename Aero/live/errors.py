"""Errors raised by the live-sharing services; views map them to JSON envelopes."""


class SharingError(Exception):
    status = 400
    code = "sharing_error"
    message = "Location sharing failed."

    def __init__(self, message=None):
        super().__init__(message or self.message)

    @property
    def detail(self):
        return str(self)


class NoContactsSelected(SharingError):
    code = "no_contacts_selected"
    message = "Select at least one contact."


class UnknownContacts(SharingError):
    code = "unknown_contacts"
    message = "One or more contacts do not exist."


class InvalidDuration(SharingError):
    code = "invalid_duration"
    message = "Invalid sharing duration."


class SharingStartFailed(SharingError):
    status = 500
    code = "sharing_start_failed"
    message = "Failed to start location sharing."


class SessionNotFound(SharingError):
    status = 404
    code = "not_found"
    message = "Sharing session not found."


class SessionEnded(SharingError):
    status = 409
    code = "ended"
    message = "Location sharing has ended."


class SessionExpired(SharingError):
    status = 410
    code = "expired"
    message = "Location sharing has expired."


class TrackingUnavailable(SharingError):
    """A token could not be resolved to a live session. `reason` is safe to show."""

    REASONS = {
        "not_found": (404, "Tracking link not found."),
        "ended": (410, "Location sharing has ended."),
        "expired": (410, "Location sharing has expired."),
    }

    def __init__(self, reason):
        if reason not in self.REASONS:
            raise ValueError(f"unknown tracking outcome {reason!r}")
        self.reason = reason
        self.status, message = self.REASONS[reason]
        super().__init__(message)

    @property
    def code(self):
        return self.reason


class ChannelDeliveryFailed(Exception):
    """One (contact, channel) send failed. Never aborts a batch."""

    def __init__(self, channel, message):
        self.channel = channel
        super().__init__(message)
