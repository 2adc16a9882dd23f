import asyncio

import pytest

import auth
from conftest import FakeProvider, PROFILE_TABLE, session_for, student_row, teacher_row, wait_for
from infrastructure.identity.base import IdentityProviderError
from use_cases.session_machine import SessionStateMachine
from use_cases.session_models import Role


def _machine(provider):
    return SessionStateMachine(provider, profile_table=PROFILE_TABLE)


@pytest.mark.asyncio
async def test_initialize_without_session_is_anonymous(machine):
    assert machine.state == "UNINITIALIZED"
    assert machine.snapshot.loading is True

    snapshot = await machine.initialize()

    assert snapshot.loading is False
    assert snapshot.user is None
    assert snapshot.profile is None
    assert machine.state == "ANONYMOUS"


@pytest.mark.asyncio
async def test_initialize_never_exposes_profile_while_loading():
    provider = FakeProvider(session=session_for("s1"), profiles=[student_row("s1")])
    machine = _machine(provider)
    seen = []
    machine.add_listener(seen.append)

    await machine.initialize()

    assert seen, "listener never called"
    assert all(s.profile is None for s in seen if s.loading)
    final = machine.snapshot
    assert final.loading is False
    assert final.user.id == "s1"
    assert final.role is Role.STUDENT
    assert machine.state == "AUTHENTICATED"


@pytest.mark.asyncio
async def test_initialize_twice_raises(machine):
    await machine.initialize()
    with pytest.raises(RuntimeError):
        await machine.initialize()


@pytest.mark.asyncio
async def test_initialize_after_teardown_raises(machine):
    machine.teardown()
    with pytest.raises(RuntimeError):
        await machine.initialize()


@pytest.mark.asyncio
async def test_subscribe_failure_fails_open_to_anonymous(provider, machine):
    provider.fail["on_session_change"] = IdentityProviderError("offline")

    snapshot = await machine.initialize()

    assert snapshot.loading is False
    assert snapshot.user is None


@pytest.mark.asyncio
async def test_session_fetch_failure_fails_open_to_anonymous(provider, machine):
    provider.fail["get_session"] = IdentityProviderError("offline")

    snapshot = await machine.initialize()

    assert snapshot.loading is False
    assert snapshot.user is None


@pytest.mark.asyncio
async def test_invalid_role_row_leaves_user_without_profile():
    bad = dict(student_row("s1"), role="admin")
    provider = FakeProvider(session=session_for("s1"), profiles=[bad])
    machine = _machine(provider)

    snapshot = await machine.initialize()

    assert snapshot.loading is False
    assert snapshot.user.id == "s1"
    assert snapshot.profile is None


@pytest.mark.asyncio
async def test_lookup_failure_leaves_user_without_profile():
    provider = FakeProvider(session=session_for("s1"), profiles=[student_row("s1")])
    provider.fail["select"] = IdentityProviderError("timeout")
    machine = _machine(provider)

    snapshot = await machine.initialize()

    assert snapshot.loading is False
    assert snapshot.user.id == "s1"
    assert snapshot.profile is None


@pytest.mark.asyncio
async def test_latest_transition_wins_when_older_lookup_finishes_last(provider, machine):
    provider.profiles.update({"a": student_row("a"), "b": teacher_row("b")})
    await machine.initialize()
    provider.hold("a")

    machine.on_auth_event(session_for("a"))
    machine.on_auth_event(session_for("b"))
    await wait_for(lambda: machine.snapshot.profile is not None)
    provider.release("a")
    await machine.wait_idle()

    assert machine.snapshot.user.id == "b"
    assert machine.snapshot.profile.id == "b"
    assert machine.snapshot.role is Role.TEACHER


@pytest.mark.asyncio
async def test_latest_transition_wins_when_newer_lookup_finishes_last(provider, machine):
    provider.profiles.update({"a": student_row("a"), "b": teacher_row("b")})
    await machine.initialize()
    provider.hold("a")
    provider.hold("b")

    machine.on_auth_event(session_for("a"))
    machine.on_auth_event(session_for("b"))
    await wait_for(lambda: len(provider.select_calls) == 2)
    provider.release("a")
    await asyncio.sleep(0)
    assert machine.snapshot.profile is None
    provider.release("b")
    await machine.wait_idle()

    assert machine.snapshot.profile.id == "b"


@pytest.mark.asyncio
async def test_profile_always_belongs_to_current_user(provider, machine):
    provider.profiles.update({"a": student_row("a"), "b": teacher_row("b")})
    await machine.initialize()
    mismatches = []
    machine.add_listener(
        lambda s: mismatches.append(s) if s.profile is not None and s.profile.id != s.user.id else None
    )
    provider.hold("a")

    machine.on_auth_event(session_for("a"))
    machine.on_auth_event(session_for("b"))
    provider.release("a")
    await machine.wait_idle()

    assert mismatches == []


@pytest.mark.asyncio
async def test_sign_out_while_lookup_in_flight_stays_signed_out(provider, machine):
    provider.profiles["a"] = student_row("a")
    await machine.initialize()
    provider.hold("a")

    machine.on_auth_event(session_for("a"))
    machine.on_auth_event(None)
    provider.release("a")
    await machine.wait_idle()

    assert machine.snapshot.user is None
    assert machine.snapshot.profile is None


@pytest.mark.asyncio
async def test_sign_out_during_initial_loading():
    provider = FakeProvider(session=session_for("a"), profiles=[student_row("a")])
    provider.hold("a")
    machine = _machine(provider)

    init = asyncio.ensure_future(machine.initialize())
    await wait_for(lambda: provider.select_calls)
    assert machine.snapshot.loading is True

    machine.on_auth_event(None)
    assert machine.snapshot.loading is False
    assert machine.snapshot.user is None

    provider.release("a")
    await init
    assert machine.snapshot.user is None
    assert machine.snapshot.profile is None
    assert machine.snapshot.loading is False


@pytest.mark.asyncio
async def test_token_refresh_keeps_profile_while_re_resolving():
    provider = FakeProvider(session=session_for("a"), profiles=[student_row("a")])
    machine = _machine(provider)
    await machine.initialize()
    provider.hold("a")

    machine.on_auth_event(session_for("a", token="refreshed"))

    assert machine.snapshot.profile.id == "a"
    assert machine.session.access_token == "refreshed-a"
    provider.release("a")
    await machine.wait_idle()
    assert machine.snapshot.profile.id == "a"


@pytest.mark.asyncio
async def test_user_switch_drops_previous_profile_immediately():
    provider = FakeProvider(session=session_for("a"), profiles=[student_row("a"), teacher_row("b")])
    machine = _machine(provider)
    await machine.initialize()
    provider.hold("b")

    machine.on_auth_event(session_for("b"))

    assert machine.snapshot.user.id == "b"
    assert machine.snapshot.profile is None
    provider.release("b")
    await machine.wait_idle()


@pytest.mark.asyncio
async def test_events_through_push_channel(provider, machine):
    provider.profiles["a"] = teacher_row("a")
    await machine.initialize()

    provider.emit(session_for("a"))
    await machine.wait_idle()

    assert machine.snapshot.user.id == "a"
    assert machine.snapshot.role is Role.TEACHER


@pytest.mark.asyncio
async def test_sign_up_creates_profile_and_publishes_it(provider, machine):
    await machine.initialize()

    profile = await machine.sign_up("t@school.test", "secret1", {"name": "Ms T", "role": "Teacher", "subject": "Physics"})
    await machine.wait_idle()

    assert profile.role is Role.TEACHER
    assert profile.subject == "Physics"
    table, row = provider.inserted[0]
    assert table == PROFILE_TABLE
    assert row["id"] == "u-t@school.test"
    assert row["role"] == "teacher"
    snapshot = machine.snapshot
    assert snapshot.user.id == "u-t@school.test"
    assert snapshot.profile == profile


@pytest.mark.asyncio
async def test_sign_up_rejects_unknown_role_before_creating_credential(provider, machine):
    await machine.initialize()
    with pytest.raises(ValueError):
        await machine.sign_up("x@school.test", "secret1", {"name": "X", "role": "admin"})
    assert provider.sign_up_calls == []


@pytest.mark.asyncio
async def test_sign_up_credential_failure_is_auth_error(provider, machine):
    await machine.initialize()
    provider.fail["sign_up"] = IdentityProviderError("User already registered")

    with pytest.raises(auth.AuthError):
        await machine.sign_up("x@school.test", "secret1", {"name": "X", "role": "student"})
    assert provider.inserted == []


@pytest.mark.asyncio
async def test_sign_up_profile_insert_failure_is_profile_write_error(provider, machine):
    await machine.initialize()
    provider.fail["insert"] = IdentityProviderError("permission denied")

    with pytest.raises(auth.ProfileWriteError):
        await machine.sign_up("x@school.test", "secret1", {"name": "X", "role": "student"})
    await machine.wait_idle()

    # Credential exists but has no profile.
    assert machine.snapshot.user.id == "u-x@school.test"
    assert machine.snapshot.profile is None


@pytest.mark.asyncio
async def test_create_profile_recovers_account_after_failed_sign_up_insert(provider, machine):
    await machine.initialize()
    provider.fail["insert"] = IdentityProviderError("permission denied")
    with pytest.raises(auth.ProfileWriteError):
        await machine.sign_up("x@school.test", "secret1", {"name": "X", "role": "student", "class": "7"})
    await machine.wait_idle()
    assert machine.snapshot.profile is None

    del provider.fail["insert"]
    profile = await machine.create_profile({"name": "X", "role": "Student", "class": "7"})
    await machine.wait_idle()

    assert profile.role is Role.STUDENT
    assert profile.school_class == "7"
    table, row = provider.inserted[-1]
    assert table == PROFILE_TABLE
    assert row["id"] == "u-x@school.test"
    assert row["email"] == "x@school.test"
    assert machine.snapshot.profile == profile


@pytest.mark.asyncio
async def test_create_profile_wins_over_older_empty_lookup(provider, machine):
    await machine.initialize()
    provider.hold("u1")
    provider.emit(session_for("u1"))
    await wait_for(lambda: provider.select_calls)

    profile = await machine.create_profile({"name": "Ms T", "role": "teacher", "subject": "Physics"})
    provider.profiles.pop("u1")
    provider.release("u1")
    await machine.wait_idle()

    assert machine.snapshot.profile == profile


@pytest.mark.asyncio
async def test_create_profile_requires_user(machine):
    await machine.initialize()
    with pytest.raises(auth.AuthError):
        await machine.create_profile({"name": "X", "role": "student"})


@pytest.mark.asyncio
async def test_create_profile_insert_failure_is_profile_write_error(provider, machine):
    await machine.initialize()
    provider.emit(session_for("u1"))
    await machine.wait_idle()
    provider.fail["insert"] = IdentityProviderError("permission denied")

    with pytest.raises(auth.ProfileWriteError):
        await machine.create_profile({"name": "X", "role": "student"})
    assert machine.snapshot.profile is None


@pytest.mark.asyncio
async def test_sign_in_and_bad_password(provider, machine):
    provider.accounts["s@school.test"] = ("secret1", "s1")
    provider.profiles["s1"] = student_row("s1")
    await machine.initialize()

    with pytest.raises(auth.AuthError):
        await machine.sign_in("s@school.test", "wrong")
    assert machine.snapshot.user is None

    await machine.sign_in("s@school.test", "secret1")
    await machine.wait_idle()
    assert machine.snapshot.profile.id == "s1"


@pytest.mark.asyncio
async def test_sign_out_clears_identity(provider):
    provider.session = session_for("s1")
    provider.profiles["s1"] = student_row("s1")
    machine = _machine(provider)
    await machine.initialize()

    await machine.sign_out()

    assert machine.snapshot.user is None
    assert machine.snapshot.profile is None
    await machine.wait_idle()
    assert machine.state == "ANONYMOUS"


@pytest.mark.asyncio
async def test_sign_out_failure_is_auth_error_and_keeps_user(provider):
    provider.session = session_for("s1")
    provider.profiles["s1"] = student_row("s1")
    machine = _machine(provider)
    await machine.initialize()
    provider.fail["sign_out"] = IdentityProviderError("network")

    with pytest.raises(auth.AuthError):
        await machine.sign_out()
    assert machine.snapshot.user.id == "s1"


@pytest.mark.asyncio
async def test_update_profile_applies_server_row(provider):
    provider.session = session_for("s1")
    provider.profiles["s1"] = student_row("s1", name="Old")
    machine = _machine(provider)
    await machine.initialize()

    profile = await machine.update_profile({"name": "New", "class": "10"})

    assert profile.name == "New"
    assert profile.school_class == "10"
    assert machine.snapshot.profile == profile


@pytest.mark.asyncio
async def test_update_profile_requires_user(machine):
    await machine.initialize()
    with pytest.raises(auth.AuthError):
        await machine.update_profile({"name": "Nobody"})


@pytest.mark.asyncio
async def test_update_profile_missing_row_is_write_error(provider):
    provider.session = session_for("s1")
    machine = _machine(provider)
    await machine.initialize()

    with pytest.raises(auth.ProfileWriteError):
        await machine.update_profile({"name": "New"})


@pytest.mark.asyncio
async def test_teardown_unsubscribes_and_ignores_later_events(provider, machine):
    await machine.initialize()
    assert len(provider.callbacks) == 1

    machine.teardown()
    machine.teardown()

    assert provider.callbacks == []
    assert machine.disposed is True
    machine.on_auth_event(session_for("late"))
    assert machine.snapshot.user is None


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_publishing(provider, machine):
    def broken(_snapshot):
        raise RuntimeError("boom")

    seen = []
    machine.add_listener(broken)
    machine.add_listener(seen.append)

    await machine.initialize()

    assert seen[-1].loading is False


@pytest.mark.asyncio
async def test_remove_listener(machine):
    seen = []
    remove = machine.add_listener(seen.append)
    remove()
    remove()

    await machine.initialize()

    assert seen == []
