import json
import logging
from typing import Any, List, Optional

import httpx
from jose import JWTError, jwt

from config import Settings
from domain.entities import MAX_ID

logger = logging.getLogger(__name__)


class StaticKeyProvider:
    """Shared-secret (HS*) or PEM public key configured up front."""

    def __init__(self, key: str):
        self.key = key

    async def get_key(self) -> Any:
        return self.key


class JwksKeyProvider:
    """Fetches the JSON Web Key Set from the identity provider."""

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    async def get_key(self) -> Any:
        logger.debug(f"Fetching JWKS from {self.url}")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            jwks = response.json()
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise ValueError("Invalid JWKS format from provider")
        return jwks


class JwtIdentityResolver:
    """
    Resolves a bearer credential to a user id.

    Every failure (no header, bad format, bad signature, expired token,
    unreachable key set, non-numeric subject) gives the same result,
    None, so callers cannot tell which check failed.
    """

    def __init__(
        self,
        key_provider,
        algorithms: List[str],
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
        user_claim: str = "sub",
        leeway: int = 30,
    ):
        self.key_provider = key_provider
        self.algorithms = algorithms
        self.audience = audience
        self.issuer = issuer
        self.user_claim = user_claim
        self.leeway = leeway

    @staticmethod
    def extract_token(credential: Optional[str]) -> Optional[str]:
        if not credential:
            return None
        credential = credential.strip()
        if credential[:7].lower() == "bearer ":
            credential = credential[7:].strip()
        return credential or None

    async def resolve(self, credential: Optional[str]) -> Optional[int]:
        token = self.extract_token(credential)
        if not token:
            logger.warning("No token found in request")
            return None

        try:
            key = await self.key_provider.get_key()
        except (httpx.HTTPError, json.JSONDecodeError, ValueError) as e:
            logger.error(f"Could not load signing keys: {e}")
            return None

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None, "leeway": self.leeway},
            )
        except JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            return None

        subject = payload.get(self.user_claim)
        try:
            user_id = int(subject)
        except (TypeError, ValueError):
            user_id = None
        if user_id is None or not 0 < user_id <= MAX_ID:
            logger.warning(f"Token claim {self.user_claim!r} is not a user id")
            return None
        return user_id


def build_identity_resolver(settings: Settings) -> JwtIdentityResolver:
    if settings.jwks_url:
        provider = JwksKeyProvider(settings.jwks_url)
        algorithms = ["RS256"]
    else:
        provider = StaticKeyProvider(settings.jwt_secret_key)
        algorithms = [settings.jwt_algorithm]
    return JwtIdentityResolver(
        provider,
        algorithms=algorithms,
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        user_claim=settings.jwt_user_claim,
    )
