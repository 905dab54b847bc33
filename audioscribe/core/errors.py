"""Error kinds surfaced by the service, each carrying its HTTP status."""


class AudioScribeError(Exception):
    """Base class for errors rendered to the caller as ``{"detail": message}``."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(AudioScribeError):
    status_code = 400


class UnsupportedMediaType(AudioScribeError):
    status_code = 400


class PayloadTooLarge(AudioScribeError):
    status_code = 400


class NotFound(AudioScribeError):
    status_code = 404


class UpstreamConfigError(AudioScribeError):
    """A provider credential required for the request is not configured."""
    status_code = 500


class UpstreamFailure(AudioScribeError):
    """A provider call was rejected, timed out or failed on the network."""
    status_code = 500


class PersistenceFailure(AudioScribeError):
    status_code = 500


class InvalidStatusTransition(AudioScribeError):
    status_code = 500
