"""Adapter turning an async callable into an ``AbstractRefreshProvider``."""

from __future__ import annotations

from typing import Awaitable, Callable

from authguard.adapters.auth_provider.base import AbstractRefreshProvider, ProviderRefreshResponse

RefreshCallable = Callable[[], Awaitable[ProviderRefreshResponse]]


class CallableRefreshProvider(AbstractRefreshProvider):
    """Provider backed by a plain coroutine function.

    Lets applications plug an existing SDK call (``client.auth.refresh_session``
    and friends) into the coordinator without writing a provider class.

    Example:
        >>> async def refresh() -> ProviderRefreshResponse:
        ...     data = await sdk.refresh_session()
        ...     return ProviderRefreshResponse(session=to_session(data))
        >>> provider = CallableRefreshProvider(refresh)
    """

    def __init__(self, refresh: RefreshCallable) -> None:
        self._refresh = refresh

    async def perform_refresh(self) -> ProviderRefreshResponse:
        return await self._refresh()
