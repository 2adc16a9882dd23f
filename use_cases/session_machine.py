"""Session/identity state machine.

Owns the authoritative (session, user, profile, loading) tuple for one client
and keeps it in sync with the identity provider:

* ``initialize()`` opens the provider's push channel and resolves the stored
  session once; ``loading`` stays true only for this first resolution.
* Every auth event replaces the user immediately and starts a profile lookup.
  Lookups are not cancelled. Each one is fenced with the user id (and an epoch
  counter) it was issued for, and its result is dropped on completion if a newer
  transition has happened meanwhile. The last completed transition wins no
  matter in which order the lookups finish.
* Snapshots are frozen and replaced wholesale, so readers never see a
  half-applied transition.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

import auth
from use_cases.profile_resolver import profile_from_row, resolve_profile
from use_cases.session_models import AuthSession, Profile, Role, SessionState, Snapshot

log = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]


class SessionStateMachine:
    def __init__(self, provider, profile_table: Optional[str] = None) -> None:
        self.provider = provider
        self.profile_table = profile_table or auth.profile_table()
        self._snapshot = Snapshot()
        self._session: Optional[AuthSession] = None
        self._epoch = 0
        self._initialized = False
        self._initializing = False
        self._disposed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._subscription = None
        self._lookups: Set[asyncio.Task] = set()
        self._listeners: List[SnapshotListener] = []

    # --- read side ---

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        if not self._initialized:
            return "UNINITIALIZED"
        if self._snapshot.loading:
            return "LOADING"
        return "AUTHENTICATED" if self._snapshot.user is not None else "ANONYMOUS"

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _publish(self, **changes: Any) -> None:
        self._snapshot = replace(self._snapshot, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                log.exception("Snapshot listener failed")

    def _finish_initialization(self, user, profile: Optional[Profile]) -> None:
        self._initializing = False
        self._publish(user=user, profile=profile, loading=False)
        log.info("Session initialized (%s)", self.state)

    def _apply_profile(self, profile: Optional[Profile]) -> None:
        # While the first resolution is open, profile and loading=False land together.
        if self._initializing:
            self._finish_initialization(self._snapshot.user, profile)
        else:
            self._publish(profile=profile)

    def _is_current(self, user_id: str, epoch: int) -> bool:
        user = self._snapshot.user
        return not self._disposed and epoch == self._epoch and user is not None and user.id == user_id

    # --- lifecycle ---

    async def initialize(self) -> Snapshot:
        if self._disposed:
            raise RuntimeError("Session state machine has been torn down")
        if self._initialized:
            raise RuntimeError("Session state machine is already initialized")
        self._initialized = True
        self._initializing = True
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._publish(loading=True)

        try:
            self._subscription = await self.provider.on_session_change(self._enqueue)
        except Exception as exc:
            log.warning("Could not subscribe to auth events, continuing anonymous: %s", exc)
            self._finish_initialization(None, None)
            return self._snapshot
        self._pump_task = self._loop.create_task(self._drain_events())

        epoch = self._epoch
        try:
            session = await self.provider.get_session()
        except Exception as exc:
            log.warning("Initial session fetch failed, continuing anonymous: %s", exc)
            session = None

        if epoch != self._epoch or self._disposed:
            # A live auth event superseded the startup fetch and owns the transition now.
            return self._snapshot

        self._session = session
        if session is None:
            self._finish_initialization(None, None)
            return self._snapshot

        user = session.user
        self._publish(user=user)
        profile, error = await self._lookup(user.id)
        if not self._is_current(user.id, epoch):
            log.debug("Discarding startup profile lookup for %s", user.id)
            return self._snapshot
        if error is not None:
            log.warning("Profile lookup failed, continuing without role: %s", error)
        self._finish_initialization(user, profile)
        return self._snapshot

    def teardown(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
        if self._pump_task is not None:
            self._pump_task.cancel()
        for task in list(self._lookups):
            task.cancel()
        self._listeners.clear()
        log.info("Session state machine torn down")

    async def wait_idle(self) -> Snapshot:
        """Wait until queued auth events are applied and no lookup is in flight."""
        if self._events is not None and not self._disposed:
            await self._events.join()
        while self._lookups and not self._disposed:
            await asyncio.gather(*list(self._lookups), return_exceptions=True)
        return self._snapshot

    # --- push channel ---

    def _enqueue(self, session: Optional[AuthSession]) -> None:
        if self._disposed or self._events is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._events.put_nowait(session)
        else:
            self._loop.call_soon_threadsafe(self._events.put_nowait, session)

    async def _drain_events(self) -> None:
        while True:
            session = await self._events.get()
            try:
                self.on_auth_event(session)
            except Exception:
                log.exception("Failed to apply auth event")
            finally:
                self._events.task_done()

    def on_auth_event(self, session: Optional[AuthSession]) -> None:
        if self._disposed:
            return
        self._epoch += 1
        self._session = session
        user = session.user if session is not None else None

        if user is None:
            log.info("Auth event: signed out")
            if self._initializing:
                self._finish_initialization(None, None)
            else:
                self._publish(user=None, profile=None)
            return

        previous = self._snapshot.user
        same_user = previous is not None and previous.id == user.id
        # A token refresh keeps the current profile; a different user never inherits it.
        self._publish(user=user, profile=self._snapshot.profile if same_user else None)
        log.info("Auth event: user %s (%s)", user.id, "refresh" if same_user else "switch")

        task = asyncio.get_running_loop().create_task(self._resolve_for_event(user.id, self._epoch))
        self._lookups.add(task)
        task.add_done_callback(self._lookups.discard)

    async def _lookup(self, user_id: str):
        try:
            return await resolve_profile(self.provider, user_id, self.profile_table), None
        except auth.ProfileReadError as exc:
            return None, exc

    async def _resolve_for_event(self, user_id: str, epoch: int) -> None:
        profile, error = await self._lookup(user_id)
        if not self._is_current(user_id, epoch):
            log.debug("Discarding stale profile lookup for %s", user_id)
            return
        if error is not None:
            log.warning("Profile lookup failed, continuing without role: %s", error)
        self._apply_profile(profile)

    # --- commands ---

    @staticmethod
    def _profile_fields(profile_fields: Mapping[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {k: v for k, v in dict(profile_fields or {}).items() if k not in ("id", "email")}
        fields["role"] = Role.parse(fields.get("role")).value
        return fields

    async def _insert_profile(self, user_id: str, email: Optional[str], fields: Mapping[str, Any]) -> Profile:
        row = {"id": user_id, "email": email, **fields}
        try:
            inserted = await self.provider.insert(self.profile_table, [row])
        except Exception as exc:
            log.error("Profile insert failed for user %s; credential has no profile", user_id)
            raise auth.ProfileWriteError(f"Account created but profile could not be saved: {exc}") from exc
        try:
            return profile_from_row(inserted[0] if inserted else row)
        except auth.ProfileReadError as exc:
            raise auth.ProfileWriteError(str(exc)) from exc

    def _publish_written(self, user_id: str, profile: Profile) -> None:
        # A row we just wrote is authoritative; older lookups must not overwrite it.
        current = self._snapshot.user
        if not self._disposed and current is not None and current.id == user_id:
            self._epoch += 1
            self._apply_profile(profile)

    async def sign_up(self, email: str, password: str, profile_fields: Mapping[str, Any]) -> Profile:
        fields = self._profile_fields(profile_fields)

        try:
            user = await self.provider.sign_up(email, password, fields)
        except Exception as exc:
            raise auth.AuthError(str(exc)) from exc

        profile = await self._insert_profile(user.id, email, fields)
        self._publish_written(user.id, profile)
        log.info("Signed up user %s as %s", user.id, profile.role.value)
        return profile

    async def create_profile(self, profile_fields: Mapping[str, Any]) -> Profile:
        """Create the missing profile row for the signed-in user.

        Recovers an account whose sign-up left a credential without a profile.
        """
        user = self._snapshot.user
        if user is None:
            raise auth.AuthError("Not signed in")
        fields = self._profile_fields(profile_fields)
        profile = await self._insert_profile(user.id, user.email, fields)
        self._publish_written(user.id, profile)
        log.info("Created missing profile for user %s as %s", user.id, profile.role.value)
        return profile

    async def sign_in(self, email: str, password: str) -> None:
        try:
            await self.provider.sign_in(email, password)
        except Exception as exc:
            raise auth.AuthError(str(exc)) from exc

    async def sign_out(self) -> None:
        try:
            await self.provider.sign_out()
        except Exception as exc:
            raise auth.AuthError(str(exc)) from exc
        # Clear eagerly; the provider's own event confirms it later.
        self.on_auth_event(None)

    async def update_profile(self, updates: Mapping[str, Any]) -> Profile:
        user = self._snapshot.user
        if user is None:
            raise auth.AuthError("Not signed in")
        fields = {k: v for k, v in dict(updates).items() if k != "id"}
        if "role" in fields:
            fields["role"] = Role.parse(fields["role"]).value

        try:
            row = await self.provider.update(self.profile_table, user.id, fields)
        except Exception as exc:
            raise auth.ProfileWriteError(f"Profile update failed: {exc}") from exc
        if row is None:
            raise auth.ProfileWriteError(f"No profile row for user {user.id}")
        try:
            profile = profile_from_row(row)
        except auth.ProfileReadError as exc:
            raise auth.ProfileWriteError(str(exc)) from exc

        self._publish_written(user.id, profile)
        return profile
