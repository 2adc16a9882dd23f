import asyncio
import copy
from typing import Dict, Optional

import pytest

from infrastructure.identity.base import IdentityProviderError, Subscription
from use_cases.session_machine import SessionStateMachine
from use_cases.session_models import AuthSession, AuthUser

PROFILE_TABLE = "users"


def session_for(user_id, email=None, token="token"):
    return AuthSession(access_token=f"{token}-{user_id}", user=AuthUser(id=user_id, email=email))


def student_row(user_id, name="Stu", school_class="9"):
    return {"id": user_id, "email": f"{user_id}@school.test", "name": name, "role": "student", "class": school_class}


def teacher_row(user_id, name="Tea", subject="Math"):
    return {"id": user_id, "email": f"{user_id}@school.test", "name": name, "role": "teacher", "subject": subject}


class FakeProvider:
    """Scriptable identity provider.

    Profile lookups for a user can be held with ``hold(user_id)`` and let go with
    ``release(user_id)`` to force any completion order. ``fail[method] = exc``
    makes that method raise.
    """

    def __init__(self, session: Optional[AuthSession] = None, profiles=None) -> None:
        self.session = session
        self.profiles: Dict[str, dict] = {row["id"]: dict(row) for row in (profiles or [])}
        self.accounts: Dict[str, tuple] = {}
        self.callbacks = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.fail: Dict[str, Exception] = {}
        self.select_calls = []
        self.sign_up_calls = []
        self.inserted = []

    def _maybe_fail(self, name):
        if name in self.fail:
            raise self.fail[name]

    def hold(self, user_id):
        self.gates[user_id] = asyncio.Event()

    def release(self, user_id):
        self.gates[user_id].set()

    def emit(self, session):
        self.session = session
        for callback in list(self.callbacks):
            callback(session)

    async def get_session(self):
        self._maybe_fail("get_session")
        return self.session

    async def on_session_change(self, callback):
        self._maybe_fail("on_session_change")
        self.callbacks.append(callback)
        return Subscription(lambda: self.callbacks.remove(callback))

    async def sign_up(self, email, password, metadata=None):
        self.sign_up_calls.append((email, dict(metadata or {})))
        self._maybe_fail("sign_up")
        user = AuthUser(id=f"u-{email}", email=email)
        self.accounts[email] = (password, user.id)
        self.emit(session_for(user.id, email))
        return user

    async def sign_in(self, email, password):
        self._maybe_fail("sign_in")
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise IdentityProviderError("Invalid login credentials")
        session = session_for(account[1], email)
        self.emit(session)
        return session

    async def sign_out(self):
        self._maybe_fail("sign_out")
        self.emit(None)

    async def select(self, table, filters=None, *, order_by=None, descending=False, limit=None):
        filters = dict(filters or {})
        self.select_calls.append((table, filters))
        user_id = filters.get("id")
        gate = self.gates.get(user_id)
        if gate is not None:
            await gate.wait()
        self._maybe_fail("select")
        row = self.profiles.get(user_id)
        return [copy.deepcopy(row)] if row else []

    async def insert(self, table, rows):
        self._maybe_fail("insert")
        out = []
        for row in rows:
            self.profiles[row["id"]] = dict(row)
            self.inserted.append((table, dict(row)))
            out.append(dict(row))
        return out

    async def update(self, table, row_id, fields):
        self._maybe_fail("update")
        if row_id not in self.profiles:
            return None
        self.profiles[row_id].update(fields)
        return dict(self.profiles[row_id])


async def wait_for(predicate, rounds=100):
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def machine(provider):
    return SessionStateMachine(provider, profile_table=PROFILE_TABLE)
