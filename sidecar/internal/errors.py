from typing import Optional


class SidecarError(Exception):
    """Base class for errors that abort a single sync cycle."""


class FetchError(SidecarError):
    """The routing snapshot could not be retrieved from the Traefik API."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class SnapshotTransportError(FetchError):
    pass


class SnapshotStatusError(FetchError):
    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message, url=url)
        self.status_code = status_code
        self.body = body


class SnapshotDecodeError(FetchError):
    pass


class SnapshotSchemaError(FetchError):
    # reason is "missing" or "wrong_type"
    def __init__(self, message: str, url: Optional[str] = None, reason: str = "missing"):
        super().__init__(message, url=url)
        self.reason = reason


class SerializationError(SidecarError):
    """The publish document could not be encoded to JSON."""


class PublishError(SidecarError):
    """Consul rejected the write or could not be reached."""

    def __init__(self, message: str, key: Optional[str] = None, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.key = key
        self.status_code = status_code
        self.body = body
