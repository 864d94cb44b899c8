"""
Request authentication: Firebase ID tokens for players, a shared token for
the admin consoles.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional, Protocol

import firebase_admin
from fastapi import Depends, Header
from firebase_admin import auth as firebase_auth

from streakr.config import Settings, get_settings
from streakr.errors import AuthError

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Optional[str]:
        """Returns the uid the token belongs to, or None when it is invalid."""
        ...


def ensure_firebase_app(project_id: Optional[str] = None) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        options = {"projectId": project_id} if project_id else None
        return firebase_admin.initialize_app(options=options)


class FirebaseTokenVerifier:
    def __init__(self, project_id: Optional[str] = None):
        self.app = ensure_firebase_app(project_id)

    def verify(self, token: str) -> Optional[str]:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self.app)
        except (ValueError, firebase_auth.InvalidIdTokenError) as e:
            # ExpiredIdTokenError and RevokedIdTokenError subclass InvalidIdTokenError.
            logger.info("Rejected ID token: %s", e)
            return None
        except firebase_auth.CertificateFetchError:
            logger.exception("Could not fetch Firebase certificates")
            return None
        return decoded.get("uid")


class StaticTokenVerifier:
    """Treats the bearer token as the uid. Local runs and tests only."""

    def verify(self, token: str) -> Optional[str]:
        return token or None


_token_verifier: TokenVerifier | None = None


def get_token_verifier() -> TokenVerifier:
    global _token_verifier
    if _token_verifier:
        return _token_verifier

    settings = get_settings()
    if settings.verify_firebase_tokens and not settings.use_in_memory_backends:
        _token_verifier = FirebaseTokenVerifier(settings.firestore_project_id)
    else:
        _token_verifier = StaticTokenVerifier()
    return _token_verifier


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def get_optional_uid(
    authorization: Optional[str] = Header(default=None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Optional[str]:
    token = bearer_token(authorization)
    if not token:
        return None
    return verifier.verify(token)


def get_current_uid(uid: Optional[str] = Depends(get_optional_uid)) -> str:
    if not uid:
        raise AuthError("Unauthenticated")
    return uid


def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.admin_token:
        raise AuthError("Admin token is not configured on the server")
    if not x_admin_token or not hmac.compare_digest(
        x_admin_token.encode("utf-8"), settings.admin_token.encode("utf-8")
    ):
        raise AuthError("Invalid admin token")
