"""Identity provider contract consumed by the session state machine.

A provider bundles three things behind one client: the current-session lookup,
the push channel of session changes, and a small record store with filtered
select/insert/update. Both the Supabase adapter and the in-process provider
implement this protocol; the state machine never touches either library directly.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from use_cases.session_models import AuthSession, AuthUser

SessionCallback = Callable[[Optional[AuthSession]], None]


class IdentityProviderError(Exception):
    """Provider-defined failure (rejected credentials, network, constraint)."""


class Subscription:
    """Disposal handle for a push-channel registration. Unsubscribing twice is a no-op."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._unsubscribe()


class IdentityProvider(Protocol):
    async def get_session(self) -> Optional[AuthSession]: ...

    async def on_session_change(self, callback: SessionCallback) -> Subscription: ...

    async def sign_up(self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None) -> AuthUser: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_out(self) -> None: ...

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]: ...

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[dict]: ...

    async def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> Optional[dict]: ...
