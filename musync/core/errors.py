"""Error taxonomy shared by the adapters, the engines and storage.

Every error carries an HTTP-class ``status_code`` so the route layer can map
it to a response without knowing the concrete type.
"""

from typing import Any


class MusyncError(Exception):
    """Base class for all musync errors. Raise a subclass, not this."""

    status_code = 500

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class InvalidSyncRequest(MusyncError):
    """Bad or missing platform selection. Never retried."""

    status_code = 400


class NotFound(MusyncError):
    """A user, platform or song lookup missed."""

    status_code = 404

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class AuthExpired(MusyncError):
    """Provider credentials are no longer valid and refreshing did not help."""

    status_code = 401

    def __init__(self, platform_type: str, message: str | None = None) -> None:
        super().__init__(message or f"{platform_type} authorization expired - reconnect required")
        self.platform_type = platform_type


class DuplicateRecordError(MusyncError):
    """A write hit a storage uniqueness constraint."""

    status_code = 409


class ProviderError(MusyncError):
    """The provider rejected a request for a reason other than authorization."""

    status_code = 502

    def __init__(
        self, platform_type: str, message: str, http_status: int | None = None
    ) -> None:
        super().__init__(f"{platform_type}: {message}")
        self.platform_type = platform_type
        self.http_status = http_status


class ProviderUnavailable(ProviderError):
    """Network failure or 5xx/429 from the provider."""

    status_code = 503


class ProviderTimeout(ProviderError):
    """A provider call did not complete within the configured timeout."""

    status_code = 504


class StorageError(MusyncError):
    """A write failed in the database for a reason other than uniqueness."""

    status_code = 500
