"""Identity provider refresh interface.

The refresh coordinator treats the provider's network protocol as a black box:
it only needs an awaitable "perform refresh" operation that yields either a
new session or an error message it can classify.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Session:
    """Authenticated session returned by the identity provider.

    Attributes:
        access_token: Opaque credential presented to resource servers.
        expires_at: UNIX time (seconds) at which the access token expires.
        refresh_token: Opaque credential used for the next refresh, if any.
        metadata: Provider-specific extras (user id, scopes, ...).
    """

    access_token: str = field(repr=False)
    expires_at: float
    refresh_token: str | None = field(default=None, repr=False)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderRefreshResponse:
    """Raw outcome of one provider call.

    Exactly one of ``session`` / ``error`` is normally set. A response with
    neither is treated by the coordinator as a failed refresh.
    """

    session: Session | None = None
    error: str | None = None


class AbstractRefreshProvider(ABC):
    """Interface for identity providers able to refresh a session."""

    @abstractmethod
    async def perform_refresh(self) -> ProviderRefreshResponse:
        """Exchange the current refresh credential for a new session.

        Returns:
            ProviderRefreshResponse with the new session or an error message.

        Raises:
            Exception: Transport failures may propagate; the coordinator
                classifies any raised exception as a network error.
        """
        ...
