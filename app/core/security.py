from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Depends, Header

from app.core.errors import AuthError, ReservationAPIError
from app.core.logger import logger
from app.services.db_service import SupabaseStore, db_service


class IdentityVerifier(ABC):
    @abstractmethod
    async def verify(self, token: str) -> str:
        """Returns the stable user id for a valid token, raises AuthError otherwise."""


class SupabaseIdentityVerifier(IdentityVerifier):
    """Validates access tokens issued by Supabase Auth."""

    def __init__(self, store: SupabaseStore):
        self.store = store

    async def verify(self, token: str) -> str:
        client = await self.store.get_client()
        try:
            response = await client.auth.get_user(token)
        except Exception as e:
            logger.warning(f"🔒 Token verification failed: {e}")
            raise AuthError("Invalid token", cause=e)

        user = getattr(response, "user", None) if response else None
        if not user or not user.id:
            raise AuthError("Invalid token")
        return str(user.id)


identity_verifier = SupabaseIdentityVerifier(db_service)


def get_identity_verifier() -> IdentityVerifier:
    return identity_verifier


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Missing token")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Missing token")
    return token


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    """
    Resolves the caller from the ``Authorization: Bearer <token>`` header.
    The returned id is the only source of a reservation's owner.
    """
    token = extract_bearer_token(authorization)
    try:
        user_id = await verifier.verify(token)
    except ReservationAPIError:
        raise
    except Exception as e:
        logger.warning(f"🔒 Token verification failed: {e}")
        raise AuthError("Invalid token", cause=e)
    logger.debug(f"🔓 Authenticated user {user_id}")
    return user_id
