"""Identity provider adapters consumed by the refresh coordinator."""

from authguard.adapters.auth_provider.base import (
    AbstractRefreshProvider,
    ProviderRefreshResponse,
    Session,
)
from authguard.adapters.auth_provider.callable_provider import CallableRefreshProvider

__all__ = [
    "AbstractRefreshProvider",
    "CallableRefreshProvider",
    "ProviderRefreshResponse",
    "Session",
]
