import logging
import os

import streamlit as st
from streamlit.errors import StreamlitAPIException

from infrastructure.identity.memory_provider import InMemoryIdentityProvider, InMemoryStore
from infrastructure.identity.supabase_provider import SupabaseIdentityProvider

log = logging.getLogger(__name__)


class SessionError(Exception):
    """Base class for identity/session failures surfaced to screens."""


class AuthError(SessionError):
    """Credential rejected or provider unreachable during sign-in/up/out."""


class ProfileWriteError(SessionError):
    """Profile row could not be created/updated after a credential operation."""


class ProfileReadError(SessionError):
    """Profile lookup failed or returned a row with an unknown role."""


DEFAULT_PROFILE_TABLE = "users"


def get_secret(key, default=None):
    try:
        value = st.secrets.get(key)
    except (FileNotFoundError, StreamlitAPIException):
        value = None
    if value is None:
        value = os.getenv(key, default)
    return value


def supabase_disabled() -> bool:
    if str(get_secret("SUPABASE_DISABLED", "0")) == "1":
        return True
    return not (get_secret("SUPABASE_URL") and get_secret("SUPABASE_ANON_KEY"))


def profile_table() -> str:
    return get_secret("PROFILE_TABLE") or DEFAULT_PROFILE_TABLE


@st.cache_resource
def get_memory_store() -> InMemoryStore:
    # Shared across browser sessions of one server process so sign-ups survive reruns.
    return InMemoryStore()


def create_identity_provider():
    """Build a fresh provider client for one browser session."""
    if supabase_disabled():
        log.info("Supabase disabled or not configured; using in-process identity provider")
        return InMemoryIdentityProvider(get_memory_store())
    return SupabaseIdentityProvider(get_secret("SUPABASE_URL"), get_secret("SUPABASE_ANON_KEY"))
