"""JWT Token Verification"""
import logging
import time
from typing import Dict, Optional
import requests
from jose import jwt

logger = logging.getLogger(__name__)

JWKS_TTL_SECONDS = 3600


class JWTVerifier:
    """Verifies Keycloak-issued access tokens against the realm JWKS"""

    def __init__(self, keycloak_url: Optional[str], realm: Optional[str], algorithm: str = "RS256"):
        self.algorithm = algorithm
        self.jwks_url = f"{keycloak_url}/realms/{realm}/protocol/openid-connect/certs"
        self.issuer = f"{keycloak_url}/realms/{realm}"
        self._jwks: Optional[Dict] = None
        self._jwks_fetched_at = 0.0

    def _fetch_jwks(self) -> Dict:
        response = requests.get(self.jwks_url, timeout=5)
        response.raise_for_status()
        self._jwks = response.json()
        self._jwks_fetched_at = time.monotonic()
        logger.info(f"Fetched JWKS from {self.jwks_url}")
        return self._jwks

    def _get_jwks(self, kid: Optional[str]) -> Dict:
        """Cached JWKS, refetched when stale or when the signing key is unknown"""
        stale = time.monotonic() - self._jwks_fetched_at > JWKS_TTL_SECONDS
        if self._jwks is None or stale:
            return self._fetch_jwks()
        known = {key.get("kid") for key in self._jwks.get("keys", [])}
        if kid and kid not in known:
            return self._fetch_jwks()
        return self._jwks

    def verify_and_decode(self, token: str) -> Dict:
        """
        Verify JWT token signature and decode payload

        Raises:
            JWTError: Token is invalid or expired
        """
        header = jwt.get_unverified_header(token)
        jwks = self._get_jwks(header.get("kid"))

        return jwt.decode(
            token,
            jwks,
            algorithms=[self.algorithm],
            issuer=self.issuer,
            options={"verify_aud": False},
        )
