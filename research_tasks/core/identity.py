"""Identity verifiers: turn a bearer credential into an ``ExternalIdentity``.

Two strategies exist and a deployment picks exactly one (``AUTH_PROVIDER``):

* ``local``    – HS256 tokens issued by ``/users/login`` and ``/users/register``.
* ``firebase`` – Firebase ID tokens checked with ``firebase-admin``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from jose import ExpiredSignatureError, JWTError

from research_tasks.config import Settings
from research_tasks.core.errors import Unauthenticated, Upstream
from research_tasks.core.security import decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalIdentity:
    subject_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class IdentityVerifier(Protocol):
    provider: str

    async def verify(self, credential: str) -> ExternalIdentity: ...

    async def close(self) -> None: ...


class LocalTokenVerifier:
    provider = "local"

    def __init__(self, settings: Settings):
        self._settings = settings

    async def verify(self, credential: str) -> ExternalIdentity:
        try:
            payload = decode_access_token(credential, self._settings)
        except ExpiredSignatureError:
            raise Unauthenticated("Token has expired")
        except JWTError:
            raise Unauthenticated("Invalid token")

        subject = payload.get("sub")
        if not subject or payload.get("type", "access") != "access":
            raise Unauthenticated("Invalid token")
        return ExternalIdentity(subject_id=str(subject), email=payload.get("email"))

    async def close(self) -> None:
        return None


class FirebaseVerifier:
    provider = "firebase"

    def __init__(
        self,
        credentials_file: Optional[str],
        project_id: Optional[str],
        timeout_seconds: float,
    ):
        # installed with the "firebase" extra
        import firebase_admin
        from firebase_admin import auth, credentials, exceptions

        if credentials_file:
            cred = credentials.Certificate(credentials_file)
        else:
            cred = credentials.ApplicationDefault()
        options = {"projectId": project_id} if project_id else None

        self._firebase_admin = firebase_admin
        self._auth = auth
        self._exceptions = exceptions
        self._app = firebase_admin.initialize_app(cred, options, name=f"research-tasks-{id(self)}")
        self._timeout = timeout_seconds

    async def verify(self, credential: str) -> ExternalIdentity:
        try:
            claims = await asyncio.wait_for(
                asyncio.to_thread(self._auth.verify_id_token, credential, app=self._app),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Firebase token verification timed out after %ss", self._timeout)
            raise Upstream.timeout("Identity verification")
        except (self._auth.InvalidIdTokenError, ValueError) as e:
            # Expired / revoked tokens are subclasses of InvalidIdTokenError
            logger.info("Rejected Firebase token: %s", e)
            raise Unauthenticated("Invalid or expired token")
        except self._exceptions.FirebaseError as e:
            logger.warning("Firebase verification failed: %s", e)
            raise Upstream("Identity provider unavailable")

        return ExternalIdentity(
            subject_id=claims["uid"],
            email=claims.get("email"),
            display_name=claims.get("name"),
        )

    async def close(self) -> None:
        self._firebase_admin.delete_app(self._app)


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    provider = settings.AUTH_PROVIDER.lower()
    if provider == "local":
        return LocalTokenVerifier(settings)
    if provider == "firebase":
        return FirebaseVerifier(
            credentials_file=settings.FIREBASE_CREDENTIALS_FILE,
            project_id=settings.FIREBASE_PROJECT_ID,
            timeout_seconds=settings.IDENTITY_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown AUTH_PROVIDER: {settings.AUTH_PROVIDER}")
