import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
import msal
from ..config import config

# access tokens this close to expiry are refreshed before use
REFRESH_MARGIN = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TenantToken:
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: str
    scope: Any = None

    @classmethod
    def from_msal(
        cls, result: Dict[str, Any], previous: Optional["TenantToken"] = None
    ) -> "TenantToken":
        expires_in = int(result.get("expires_in") or 3600)
        return cls(
            access_token=result.get("access_token"),
            # refresh responses do not always rotate the refresh token
            refresh_token=result.get("refresh_token")
            or (previous.refresh_token if previous else None),
            expires_at=(_utcnow() + timedelta(seconds=expires_in)).isoformat(),
            scope=result.get("scope"),
        )

    def is_usable(self) -> bool:
        if not self.access_token:
            return False
        try:
            expires_at = datetime.fromisoformat(self.expires_at)
        except (TypeError, ValueError):
            return False
        return _utcnow() < expires_at - REFRESH_MARGIN


class TokenStore:
    """Administrator tokens keyed by tenant id, persisted as one JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._tokens: Dict[str, TenantToken] = self._read()

    def _read(self) -> Dict[str, TenantToken]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
            return {tenant: TenantToken(**entry) for tenant, entry in raw.items()}
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Ignoring unreadable token file {self.path}: {e}")
            return {}

    def _write(self):
        try:
            with open(self.path, "w") as f:
                json.dump(
                    {tenant: asdict(t) for tenant, t in self._tokens.items()}, f, indent=2
                )
        except OSError as e:
            logging.error(f"Error saving token file {self.path}: {e}")

    def get(self, tenant_id: str) -> Optional[TenantToken]:
        return self._tokens.get(tenant_id)

    def put(self, tenant_id: str, token: TenantToken):
        with self._lock:
            self._tokens[tenant_id] = token
            self._write()

    def discard(self, tenant_id: str) -> bool:
        with self._lock:
            if self._tokens.pop(tenant_id, None) is None:
                return False
            self._write()
            return True

    def clear(self) -> bool:
        with self._lock:
            self._tokens = {}
            try:
                if os.path.exists(self.path):
                    os.remove(self.path)
                return True
            except OSError as e:
                logging.error(f"Error removing token file {self.path}: {e}")
                return False


class AzureAuthHandler:
    """
    Delegated sign-in for console administrators.

    The authorization-code flow yields a token bundle whose id token names the
    tenant; the console then works against that tenant with the stored access
    token, refreshing it shortly before it expires. A refresh that fails drops
    the tenant, so the administrator is sent back through /login.
    """

    def __init__(self, token_file: Optional[str] = None, app=None):
        self.store = TokenStore(token_file or config.TOKEN_FILE)
        self.app = app or msal.ConfidentialClientApplication(
            client_id=config.CLIENT_ID,
            authority=config.AUTHORITY,
            client_credential=config.CLIENT_SECRET,
        )

    def get_auth_url(self, state: Optional[str] = None) -> str:
        return self.app.get_authorization_request_url(
            scopes=config.SCOPES,
            redirect_uri=config.REDIRECT_URI,
            state=state,
            prompt="select_account",
        )

    def acquire_token_by_authorization_code(
        self, code: str
    ) -> Tuple[str, Dict[str, Any]]:
        result = self.app.acquire_token_by_authorization_code(
            code=code,
            scopes=config.SCOPES,
            redirect_uri=config.REDIRECT_URI,
        )
        if "error" in result:
            raise RuntimeError(result.get("error_description") or result["error"])

        tenant_id = (result.get("id_token_claims") or {}).get("tid")
        if not tenant_id:
            raise RuntimeError("Sign-in response carries no tenant id")

        self.store.put(tenant_id, TenantToken.from_msal(result))
        logging.info(f"Administrator signed in for tenant {tenant_id}")
        return tenant_id, result

    def get_valid_access_token(self, tenant_id: str) -> Optional[str]:
        token = self.store.get(tenant_id)
        if token is None:
            return None
        if token.is_usable():
            return token.access_token
        if not token.refresh_token:
            return None

        result = self.app.acquire_token_by_refresh_token(
            token.refresh_token, scopes=config.SCOPES
        )
        if not result or "access_token" not in result:
            reason = (result or {}).get("error_description") or (result or {}).get("error")
            logging.warning(f"Token refresh failed for tenant {tenant_id}: {reason}")
            self.store.discard(tenant_id)
            return None

        refreshed = TenantToken.from_msal(result, previous=token)
        self.store.put(tenant_id, refreshed)
        logging.info(f"Refreshed access token for tenant {tenant_id}")
        return refreshed.access_token

    def logout_tenant(self, tenant_id: str) -> bool:
        return self.store.discard(tenant_id)

    def logout_all(self) -> bool:
        return self.store.clear()
