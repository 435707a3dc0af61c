"""
Error taxonomy shared by the dispatcher, workers, providers and storage.
"""


class InvalidRequest(ValueError):
    """Bad or missing input; raised before any report is created."""


class ProviderError(Exception):
    """One provider call failed. Scoped to a single sub-analysis."""

    kind = "provider_error"

    def __init__(self, provider_id: str, message: str):
        super().__init__(message)
        self.provider_id = provider_id
        self.message = message

    def __str__(self) -> str:
        return f"{self.provider_id}: {self.message}"


class NotConfigured(ProviderError):
    kind = "not_configured"


class Unreachable(ProviderError):
    kind = "unreachable"


class Rejected(ProviderError):
    kind = "rejected"

    def __init__(self, provider_id: str, message: str, status_code: int = 0):
        super().__init__(provider_id, message)
        self.status_code = status_code


class Malformed(ProviderError):
    kind = "malformed"


class FetchError(Exception):
    """The structure probe could not fetch the primary page."""


class StoreError(Exception):
    """A read or write against the report store failed."""
