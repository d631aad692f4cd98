"""Anmeldung am Supabase-Auth-Dienst (GoTrue) und lokale Sitzungsablage."""

import json
import logging
import time
from pathlib import Path
from typing import Optional

import requests
from pydantic import BaseModel, ValidationError

from config.schema import BackendConfig

logger = logging.getLogger(__name__)

# Sitzung gilt als abgelaufen, wenn sie in weniger als 60 s endet
_EXPIRY_MARGIN = 60


class AuthError(Exception):
    """Anmeldung oder Token-Erneuerung fehlgeschlagen."""


class AuthSession(BaseModel):
    """Angemeldete Sitzung: Tokens + stabile Nutzer-ID."""

    access_token: str
    refresh_token: Optional[str] = None
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[float] = None   # Unix-Zeit

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return self.expires_at - _EXPIRY_MARGIN <= now


class SupabaseAuth:
    """Dünner Client für /auth/v1."""

    def __init__(self, backend: BackendConfig, http: Optional[requests.Session] = None):
        self.backend = backend
        self.http = http or requests.Session()

    def _headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        headers = {"apikey": self.backend.anon_key or "",
                   "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _token(self, grant_type: str, body: dict) -> AuthSession:
        if not self.backend.is_configured:
            raise AuthError("Cloud-Sync nicht konfiguriert")
        url = f"{self.backend.base_url}/auth/v1/token"
        try:
            response = self.http.post(
                url, params={"grant_type": grant_type}, json=body,
                headers=self._headers(), timeout=self.backend.timeout_seconds,
            )
        except requests.RequestException as e:
            raise AuthError(f"Auth-Dienst nicht erreichbar: {e}") from e
        if response.status_code >= 400:
            raise AuthError(_error_message(response))
        return _session_from_payload(_json_body(response))

    def sign_in(self, email: str, password: str) -> AuthSession:
        """Anmeldung mit E-Mail + Passwort."""
        session = self._token("password", {"email": email, "password": password})
        logger.info("Angemeldet als %s", session.email or session.user_id)
        return session

    def refresh(self, session: AuthSession) -> AuthSession:
        if not session.refresh_token:
            raise AuthError("Sitzung abgelaufen, kein Refresh-Token vorhanden.")
        return self._token("refresh_token", {"refresh_token": session.refresh_token})

    def get_user(self, session: AuthSession) -> Optional[str]:
        """Nutzer-ID laut Server oder None, wenn das Token nicht (mehr) gilt."""
        if not self.backend.is_configured:
            return None
        try:
            response = self.http.get(
                f"{self.backend.base_url}/auth/v1/user",
                headers=self._headers(session.access_token),
                timeout=self.backend.timeout_seconds,
            )
        except requests.RequestException as e:
            raise AuthError(f"Auth-Dienst nicht erreichbar: {e}") from e
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            raise AuthError(_error_message(response))
        payload = _json_body(response)
        if not isinstance(payload, dict):
            raise AuthError("Unerwartete Antwort des Auth-Dienstes: kein JSON-Objekt")
        return payload.get("id")


def _json_body(response: requests.Response):
    try:
        return response.json()
    except ValueError as e:
        raise AuthError(f"Unerwartete Antwort des Auth-Dienstes "
                        f"(HTTP {response.status_code}, kein JSON)") from e


def _session_from_payload(payload) -> AuthSession:
    if not isinstance(payload, dict):
        raise AuthError("Unerwartete Antwort des Auth-Dienstes: kein JSON-Objekt")
    user = payload.get("user")
    if not isinstance(user, dict):
        user = {}
    expires_at = payload.get("expires_at")
    try:
        if expires_at is None and payload.get("expires_in") is not None:
            expires_at = time.time() + float(payload["expires_in"])
        return AuthSession(
            access_token=payload.get("access_token"),
            refresh_token=payload.get("refresh_token"),
            user_id=user.get("id"),
            email=user.get("email"),
            expires_at=expires_at,
        )
    except (ValueError, TypeError) as e:
        raise AuthError(f"Unerwartete Antwort des Auth-Dienstes: {e}") from e


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    detail = (body.get("error_description") or body.get("msg")
              or body.get("message") or response.text)
    return f"HTTP {response.status_code}: {detail}"


# ─── Sitzungsablage ───────────────────────────────────────────────────────────

class SessionStore:
    """Speichert die Sitzung als JSON-Datei (neben der Konfiguration)."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[AuthSession]:
        if not self.path.exists():
            return None
        try:
            return AuthSession.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning("Sitzungsdatei ungültig, wird ignoriert: %s", e)
            return None

    def save(self, session: AuthSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.model_dump(), indent=2), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class SessionProvider:
    """Liefert eine gültige Sitzung oder None (erneuert abgelaufene Tokens)."""

    def __init__(self, store: SessionStore, auth: SupabaseAuth):
        self.store = store
        self.auth = auth

    def __call__(self) -> Optional[AuthSession]:
        session = self.store.load()
        if session is None:
            return None
        if not session.is_expired():
            return session
        try:
            session = self.auth.refresh(session)
        except AuthError as e:
            logger.warning("Sitzung konnte nicht erneuert werden: %s", e)
            return None
        self.store.save(session)
        return session
