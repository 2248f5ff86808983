class GuruSpeaksError(Exception):
    """Base class for errors raised by the service."""


class ConfigurationError(GuruSpeaksError):
    """Required configuration is missing at startup."""


class ReplyUnavailableError(GuruSpeaksError):
    """The reply model could not produce a reply for this turn."""


class RelayTransportError(GuruSpeaksError):
    """The backend API could not be reached."""
