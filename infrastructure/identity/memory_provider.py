"""In-process identity provider used when Supabase is disabled (local runs, tests)."""

from __future__ import annotations

import asyncio
import copy
import hashlib
import hmac
import itertools
import logging
import os
import secrets
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from infrastructure.identity.base import IdentityProviderError, SessionCallback, Subscription
from use_cases.session_models import AuthSession, AuthUser

log = logging.getLogger(__name__)

PASSWORD_ITERATIONS = 200_000
SESSION_TTL_HOURS = 1
MIN_PASSWORD_LENGTH = 6


def _hash_password(password, salt_hex):
    salt = bytes.fromhex(salt_hex)
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PASSWORD_ITERATIONS).hex()


def _make_password(password):
    salt_hex = os.urandom(16).hex()
    return salt_hex, _hash_password(password, salt_hex)


def _verify_password(password, salt_hex, expected_hash):
    candidate = _hash_password(password, salt_hex)
    return hmac.compare_digest(candidate, expected_hash)


class InMemoryStore:
    """Credentials and tables shared by every provider client of one process."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.credentials: Dict[str, Dict[str, str]] = {}
        self.tables: Dict[str, list] = {}

    def rows(self, table: str) -> list:
        return self.tables.setdefault(table, [])


class InMemoryIdentityProvider:
    """Mirrors the Supabase client contract: one signed-in session per client,
    push notifications to subscribers on sign-in, sign-out and token refresh."""

    def __init__(self, store: Optional[InMemoryStore] = None, latency: float = 0.0) -> None:
        self.store = store if store is not None else InMemoryStore()
        self.latency = latency
        self._session: Optional[AuthSession] = None
        self._listeners: Dict[int, SessionCallback] = {}
        self._ids = itertools.count(1)

    async def _roundtrip(self) -> None:
        await asyncio.sleep(self.latency)

    def _issue_session(self, user: AuthUser) -> AuthSession:
        expires = datetime.now(timezone.utc) + timedelta(hours=SESSION_TTL_HOURS)
        return AuthSession(
            access_token=secrets.token_urlsafe(32),
            user=user,
            expires_at=int(expires.timestamp()),
        )

    def _notify(self, event: str, session: Optional[AuthSession]) -> None:
        self._session = session
        log.debug("In-memory auth event %s (listeners=%d)", event, len(self._listeners))
        for callback in list(self._listeners.values()):
            callback(session)

    # --- auth ---

    async def get_session(self) -> Optional[AuthSession]:
        await self._roundtrip()
        session = self._session
        if session is not None and session.expires_at is not None:
            if session.expires_at < int(datetime.now(timezone.utc).timestamp()):
                self._session = None
                return None
        return session

    async def on_session_change(self, callback: SessionCallback) -> Subscription:
        key = next(self._ids)
        self._listeners[key] = callback
        return Subscription(lambda: self._listeners.pop(key, None))

    async def sign_up(self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None) -> AuthUser:
        await self._roundtrip()
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise IdentityProviderError("Unable to validate email address: invalid format")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise IdentityProviderError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        # pbkdf2 is slow; keep it off the event loop.
        salt_hex, pw_hash = await asyncio.to_thread(_make_password, password)
        with self.store.lock:
            if email in self.store.credentials:
                raise IdentityProviderError("User already registered")
            user_id = str(uuid.uuid4())
            self.store.credentials[email] = {
                "id": user_id,
                "password_salt": salt_hex,
                "password_hash": pw_hash,
            }
        user = AuthUser(id=user_id, email=email)
        # Auto-confirm: a fresh sign-up is signed in straight away.
        self._notify("SIGNED_IN", self._issue_session(user))
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        await self._roundtrip()
        email = (email or "").strip().lower()
        record = self.store.credentials.get(email)
        valid = record is not None and await asyncio.to_thread(
            _verify_password, password or "", record["password_salt"], record["password_hash"]
        )
        if not valid:
            raise IdentityProviderError("Invalid login credentials")
        session = self._issue_session(AuthUser(id=record["id"], email=email))
        self._notify("SIGNED_IN", session)
        return session

    async def sign_out(self) -> None:
        await self._roundtrip()
        self._notify("SIGNED_OUT", None)

    async def refresh_session(self) -> Optional[AuthSession]:
        await self._roundtrip()
        if self._session is None:
            return None
        session = self._issue_session(self._session.user)
        self._notify("TOKEN_REFRESHED", session)
        return session

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
        await self._roundtrip()
        with self.store.lock:
            rows = [
                copy.deepcopy(row)
                for row in self.store.rows(table)
                if all(row.get(k) == v for k, v in (filters or {}).items())
            ]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list:
        await self._roundtrip()
        inserted = []
        with self.store.lock:
            existing = self.store.rows(table)
            known_ids = {row.get("id") for row in existing}
            for row in rows:
                record = dict(row)
                record.setdefault("id", str(uuid.uuid4()))
                record.setdefault("created_at", datetime.now(timezone.utc).isoformat())
                if record["id"] in known_ids:
                    raise IdentityProviderError(
                        f'duplicate key value violates unique constraint "{table}_pkey"'
                    )
                known_ids.add(record["id"])
                inserted.append(record)
            existing.extend(inserted)
        return copy.deepcopy(inserted)

    async def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> Optional[dict]:
        await self._roundtrip()
        with self.store.lock:
            for row in self.store.rows(table):
                if row.get("id") == row_id:
                    row.update({k: v for k, v in fields.items() if k != "id"})
                    return copy.deepcopy(row)
        return None
