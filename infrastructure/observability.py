"""
Centralized observability setup.
Structured logging plus optional Sentry reporting, governed by configuration
(st.secrets or environment, see auth.get_secret).
"""

import logging
import re
from typing import Any, Dict, Optional

import sentry_sdk

import auth

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Access tokens, refresh tokens and API keys must never leave the process.
SENSITIVE_PATTERNS = [
    re.compile(r"eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+"),  # JWTs
    re.compile(r"([a-zA-Z0-9_\-]{30,})"),  # long opaque tokens / keys
]
SENSITIVE_KEYS = {"password", "access_token", "refresh_token", "apikey", "api_key", "authorization"}

_configured = False


def mask_string(val: str) -> str:
    for pattern in SENSITIVE_PATTERNS:
        val = pattern.sub("[REDACTED]", val)
    return val


def scrub(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_KEYS else scrub(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [scrub(i) for i in obj]
    if isinstance(obj, str):
        return mask_string(obj)
    return obj


def scrub_event(event: Dict[str, Any], hint: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Sentry before_send hook: scrubs stack-frame locals and breadcrumbs."""
    for exc in event.get("exception", {}).get("values", []):
        for frame in exc.get("stacktrace", {}).get("frames", []):
            if "vars" in frame:
                frame["vars"] = scrub(frame["vars"])
    breadcrumbs = event.get("breadcrumbs")
    if isinstance(breadcrumbs, dict) and "values" in breadcrumbs:
        breadcrumbs["values"] = scrub(breadcrumbs["values"])
    return event


def setup_observability() -> None:
    """
    Initializes logging and Sentry (if SENTRY_DSN is configured).
    Streamlit reruns the entry script on every interaction; only the first call does work.
    """
    global _configured
    if _configured:
        return
    _configured = True

    log_level_str = str(auth.get_secret("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

    sentry_dsn = auth.get_secret("SENTRY_DSN")
    if sentry_dsn:
        sentry_env = auth.get_secret("SENTRY_ENV", "development")
        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=sentry_env,
            traces_sample_rate=float(auth.get_secret("SENTRY_TRACES_SAMPLE_RATE", "0.2")),
            send_default_pii=False,
            before_send=scrub_event,
        )
        log.info("Sentry SDK initialized (env: %s)", sentry_env)
    else:
        log.info("SENTRY_DSN not provided. Running without Sentry.")

    # Supabase talks through httpx; its request logs would carry tokens in URLs.
    for noisy in ("httpx", "httpcore", "hpack", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def bind_user_context(snapshot) -> None:
    """Attach the signed-in user (id and role only) to subsequent Sentry events."""
    if snapshot.user is None:
        sentry_sdk.set_user(None)
        return
    sentry_sdk.set_user({
        "id": snapshot.user.id,
        "role": snapshot.role.value if snapshot.role else None,
    })
