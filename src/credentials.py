"""
Bearer token acquisition and expiry bookkeeping.
"""

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest

from errors import CredentialError, DecodeError, HTTPStatusError, TransportError
from templates import TOKEN_INFO, RequestRenderer
from transport import HttpExecutor

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
GCLOUD_TOKEN_COMMAND = ["gcloud", "auth", "application-default", "print-access-token"]

CredentialProvider = Callable[[], str]


@dataclass
class TokenInfo:
    """Metadata returned by the oauth2 tokeninfo endpoint."""

    expires_in: int
    issued_to: str = ""
    audience: str = ""
    user_id: str = ""
    scope: str = ""
    email: str = ""
    verified_email: bool = False
    access_type: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "TokenInfo":
        return cls(
            expires_in=int(data["expires_in"]),
            issued_to=data.get("issued_to", ""),
            audience=data.get("audience", ""),
            user_id=data.get("user_id", ""),
            scope=data.get("scope", ""),
            email=data.get("email", ""),
            verified_email=bool(data.get("verified_email", False)),
            access_type=data.get("access_type", ""),
        )


class Credential:
    """
    A bearer token together with its expiry.

    The token and expiry may be replaced by a refresh on one thread while
    another thread reads them, so both are guarded by a lock.
    """

    def __init__(
        self,
        token: str,
        expires_at: float,
        info: Optional[TokenInfo] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not token:
            raise CredentialError("Credential token must not be empty")
        self._lock = threading.Lock()
        self._token = token
        self._expires_at = expires_at
        self._clock = clock
        self.info = info

    @property
    def token(self) -> str:
        with self._lock:
            return self._token

    @property
    def expires_at(self) -> float:
        with self._lock:
            return self._expires_at

    def is_expired(self) -> bool:
        return self._clock() >= self.expires_at

    def refresh(
        self, token: str, info: TokenInfo, issued_at: Optional[float] = None
    ) -> None:
        """Replace the token and recompute the expiry from ``info.expires_in``."""
        if not token:
            raise CredentialError("Credential token must not be empty")
        issued = self._clock() if issued_at is None else issued_at
        with self._lock:
            self._token = token
            self._expires_at = issued + info.expires_in
            self.info = info

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def __repr__(self) -> str:
        email = self.info.email if self.info else ""
        return f"Credential(email={email!r}, expires_at={self.expires_at!r})"


def google_auth_token_provider(
    scopes: Optional[List[str]] = None,
) -> CredentialProvider:
    """Provider backed by Application Default Credentials."""
    scopes = scopes or [CLOUD_PLATFORM_SCOPE]

    def provide() -> str:
        creds, _ = google.auth.default(scopes=scopes)
        creds.refresh(GoogleAuthRequest())
        return creds.token

    return provide


def gcloud_token_provider(command: Optional[List[str]] = None) -> CredentialProvider:
    """Provider that shells out to the gcloud CLI."""
    command = command or GCLOUD_TOKEN_COMMAND

    def provide() -> str:
        result = subprocess.run(command, capture_output=True, text=True, check=True)
        return result.stdout.strip()

    return provide


def fetch_token(provider: CredentialProvider) -> str:
    """
    Call the provider and validate its result.

    Raises:
        CredentialError: If the provider fails or returns an empty token
    """
    try:
        token = provider()
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise CredentialError(f"Failed to get gcloud access token: {stderr or e}") from e
    except google.auth.exceptions.GoogleAuthError as e:
        raise CredentialError(f"Application Default Credentials failed: {e}") from e
    except CredentialError:
        raise
    except Exception as e:
        raise CredentialError(f"Failed to get access token: {e}") from e

    if not token:
        raise CredentialError("Credential provider returned an empty token")
    return token


def introspect_token(
    token: str, executor: HttpExecutor, renderer: RequestRenderer
) -> TokenInfo:
    """
    Look up a token's metadata at the tokeninfo endpoint.

    Raises:
        CredentialError: If the lookup fails for any reason
    """
    request = renderer.render(TOKEN_INFO, {"access_token": token})
    try:
        return executor.execute(request, TokenInfo.from_dict)
    except (TransportError, HTTPStatusError, DecodeError) as e:
        raise CredentialError(f"Token introspection failed: {e}") from e


def acquire_credential(
    provider: CredentialProvider,
    executor: HttpExecutor,
    renderer: RequestRenderer,
    clock: Callable[[], float] = time.time,
    logger: Optional[logging.Logger] = None,
) -> Credential:
    """
    Obtain a token from ``provider`` and introspect it.

    Args:
        provider: Zero-argument callable returning a bearer token
        executor: Transport used for the tokeninfo call
        renderer: Renderer used to build the tokeninfo request
        clock: Wall clock, injectable for tests
        logger: Logger to use instead of the module logger

    Returns:
        Credential expiring at issue time + ``expires_in``

    Raises:
        CredentialError: If the token cannot be obtained or introspected
    """
    logger = logger or logging.getLogger(__name__)
    token = fetch_token(provider)
    issued_at = clock()
    info = introspect_token(token, executor, renderer)
    logger.info(
        f"Acquired access token for {info.email or 'unknown principal'} "
        f"(expires in {info.expires_in}s)"
    )
    return Credential(token, issued_at + info.expires_in, info=info, clock=clock)
