"""Authentication and stored credentials for hotwills.

The CLI runs one process per command, so the Supabase session is persisted
to ``{data_dir}/credentials.json`` after sign-in and restored onto the client
on the next run.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from hotwills.config import Settings
from hotwills.types import CallerIdentity
from hotwills.utils import get_hotwills_home

logger = logging.getLogger(__name__)


def get_credentials_path(data_dir: Optional[Path] = None) -> Path:
    """Get the path to the credentials file."""
    base = Path(data_dir).expanduser() if data_dir else get_hotwills_home()
    return base / "credentials.json"


def load_credentials(data_dir: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    creds_path = get_credentials_path(data_dir)
    if not creds_path.exists():
        return None
    try:
        with open(creds_path) as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError):
        return None


def save_credentials(credentials: Dict[str, Any], data_dir: Optional[Path] = None) -> Path:
    creds_path = get_credentials_path(data_dir)
    creds_path.parent.mkdir(parents=True, exist_ok=True)
    with open(creds_path, "w") as f:
        json.dump(credentials, f, indent=2)
    # Owner read/write only
    creds_path.chmod(0o600)
    return creds_path


def clear_credentials(data_dir: Optional[Path] = None) -> bool:
    creds_path = get_credentials_path(data_dir)
    if creds_path.exists():
        creds_path.unlink()
        return True
    return False


def caller_from_credentials(credentials: Optional[Dict[str, Any]]) -> Optional[CallerIdentity]:
    if not credentials or not credentials.get("user_id"):
        return None
    return CallerIdentity(id=credentials["user_id"], email=credentials.get("email"))


def _session_credentials(user, session) -> Dict[str, Any]:
    return {
        "user_id": str(user.id),
        "email": user.email,
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
    }


def sign_in(client, email: str, password: str) -> Dict[str, Any]:
    """Password sign-in; returns the credentials dict to persist.

    Raises:
        ValueError: If the server returned no session.
    """
    response = client.auth.sign_in_with_password({"email": email, "password": password})
    session = getattr(response, "session", None)
    user = getattr(response, "user", None) or getattr(session, "user", None)
    if session is None or user is None:
        raise ValueError("Sign-in returned no session (is email confirmation pending?)")
    logger.info(f"Signed in as {user.email or user.id}")
    return _session_credentials(user, session)


@dataclass
class SignUpResult:
    """Outcome of an account sign-up.

    ``credentials`` is None when the project requires email confirmation
    before the first sign-in.
    """

    user_id: str
    email: Optional[str]
    credentials: Optional[Dict[str, Any]] = None

    @property
    def confirmation_pending(self) -> bool:
        return self.credentials is None


def sign_up(client, email: str, password: str) -> SignUpResult:
    """Create an email/password account.

    Raises:
        ValueError: If the server returned no user.
    """
    response = client.auth.sign_up({"email": email, "password": password})
    session = getattr(response, "session", None)
    user = getattr(response, "user", None) or getattr(session, "user", None)
    if user is None:
        raise ValueError("Sign-up returned no user")
    if session is None:
        logger.info(f"Signed up {user.email or user.id}, confirmation pending")
        return SignUpResult(user_id=str(user.id), email=user.email)
    logger.info(f"Signed up and signed in as {user.email or user.id}")
    return SignUpResult(
        user_id=str(user.id), email=user.email, credentials=_session_credentials(user, session)
    )


def sign_out(client) -> None:
    client.auth.sign_out()


def fetch_auth_settings(settings: Settings, timeout: float = 5.0) -> Dict[str, Any]:
    """Public auth settings of the project (enabled providers etc.).

    Raises:
        httpx.HTTPError: On network failure or a non-2xx response.
    """
    response = httpx.get(
        f"{settings.supabase_url.rstrip('/')}/auth/v1/settings",
        headers={"apikey": settings.supabase_anon_key},
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()


def google_sign_in_enabled(auth_settings: Dict[str, Any]) -> bool:
    external = auth_settings.get("external") or {}
    return bool(external.get("google"))
