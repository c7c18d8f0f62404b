from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.errors import AuthenticationRequired

logger = logging.getLogger(__name__)


class IdentityClaims(BaseModel):
    subject: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    provider: str = "email"


class IdentityVerifier(ABC):

    @abstractmethod
    def verify(self, token: str) -> IdentityClaims:
        """
        Returns the verified claims carried by ``token``.
        Raises AuthenticationRequired for anything that does not verify.
        """
        pass


class JWTIdentityVerifier(IdentityVerifier):
    """
    Verifies identity-provider tokens signed with a shared secret.

    Accepts the usual OpenID claim names (``sub``, ``email``, ``name``,
    ``picture``) and reads the sign-in provider from ``provider`` or the
    nested ``firebase.sign_in_provider`` claim.
    """

    def __init__(
        self,
        secret_key: str | None,
        algorithm: str = "HS256",
        audience: str | None = None,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.audience = audience

    def verify(self, token: str) -> IdentityClaims:
        if not self.secret_key:
            logger.error("identity_verifier_unconfigured")
            raise AuthenticationRequired("Identity verification is not configured")
        if not token:
            raise AuthenticationRequired()

        options = {"verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except JWTError:
            raise AuthenticationRequired("Invalid token")

        subject = payload.get("sub")
        email = payload.get("email")
        if not subject or not email:
            raise AuthenticationRequired("Invalid token")

        firebase = payload.get("firebase") or {}
        provider = payload.get("provider") or firebase.get("sign_in_provider") or "email"

        return IdentityClaims(
            subject=str(subject),
            email=str(email),
            name=payload.get("name"),
            picture=payload.get("picture"),
            provider=str(provider),
        )
