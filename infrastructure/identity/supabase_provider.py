from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from supabase import AsyncClient, acreate_client

from infrastructure.identity.base import IdentityProviderError, SessionCallback, Subscription
from use_cases.session_models import AuthSession, AuthUser

log = logging.getLogger(__name__)


def _to_user(user: Any) -> AuthUser:
    return AuthUser(id=str(user.id), email=getattr(user, "email", None))


def _to_session(session: Any) -> Optional[AuthSession]:
    if session is None or getattr(session, "user", None) is None:
        return None
    return AuthSession(
        access_token=session.access_token,
        user=_to_user(session.user),
        expires_at=getattr(session, "expires_at", None),
    )


class SupabaseIdentityProvider:
    """Supabase Auth + PostgREST behind the identity provider contract.

    One instance per browser session: the async client keeps that session's
    tokens, so it must never be shared between users.
    """

    def __init__(self, url: str, key: str) -> None:
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required")
        self.url = url
        self.key = key
        self._client: AsyncClient | None = None

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await acreate_client(self.url, self.key)
        return self._client

    # --- auth ---

    async def get_session(self) -> Optional[AuthSession]:
        client = await self._get_client()
        try:
            session = await client.auth.get_session()
        except Exception as exc:  # pragma: no cover - network path
            raise IdentityProviderError(f"Session lookup failed: {exc}") from exc
        return _to_session(session)

    async def on_session_change(self, callback: SessionCallback) -> Subscription:
        client = await self._get_client()

        def _forward(event, session):
            log.debug("Supabase auth event %s", event)
            callback(_to_session(session))

        handle = client.auth.on_auth_state_change(_forward)
        return Subscription(handle.unsubscribe)

    async def sign_up(self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None) -> AuthUser:
        client = await self._get_client()
        try:
            res = await client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": dict(metadata or {})}}
            )
        except Exception as exc:
            raise IdentityProviderError(str(exc)) from exc
        if res is None or res.user is None:
            raise IdentityProviderError("Sign-up returned no user")
        return _to_user(res.user)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        client = await self._get_client()
        try:
            res = await client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            raise IdentityProviderError(str(exc)) from exc
        session = _to_session(getattr(res, "session", None))
        if session is None:
            raise IdentityProviderError("Sign-in returned no session")
        return session

    async def sign_out(self) -> None:
        client = await self._get_client()
        try:
            await client.auth.sign_out()
        except Exception as exc:
            raise IdentityProviderError(str(exc)) from exc

    # --- record store ---

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list:
        client = await self._get_client()
        query = client.table(table).select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        try:
            res = await query.execute()
        except Exception as exc:
            raise IdentityProviderError(f"Select from {table} failed: {exc}") from exc
        return list(res.data or [])

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list:
        client = await self._get_client()
        try:
            res = await client.table(table).insert([dict(r) for r in rows]).execute()
        except Exception as exc:
            raise IdentityProviderError(f"Insert into {table} failed: {exc}") from exc
        return list(res.data or [])

    async def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> Optional[dict]:
        client = await self._get_client()
        try:
            res = await client.table(table).update(dict(fields)).eq("id", row_id).execute()
        except Exception as exc:
            raise IdentityProviderError(f"Update of {table} failed: {exc}") from exc
        rows = list(res.data or [])
        return rows[0] if rows else None
