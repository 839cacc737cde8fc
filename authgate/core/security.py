"""
Security helpers - cookie signing
"""

from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, TimestampSigner
from loguru import logger

LOG_PREFIX = "[Security]"

ACCESS_TOKEN_COOKIE = "access_token"
USER_ID_COOKIE = "userId"


class CookieSigner:
    """Signs and verifies cookie values."""

    def __init__(self, secret: str, salt: str = "authgate.cookie"):
        if not secret:
            raise ValueError("cookie secret must not be empty")
        self._signer = TimestampSigner(secret, salt=salt)

    def sign(self, value: str) -> str:
        return self._signer.sign(value).decode("utf-8")

    def unsign(self, signed_value: str, max_age: Optional[int] = None) -> Optional[str]:
        """
        Verify a signed value.

        Args:
            signed_value: Value as read from the cookie
            max_age: Maximum age in seconds; older signatures are rejected

        Returns:
            The original value, or None when the signature is invalid or expired
        """
        try:
            return self._signer.unsign(signed_value, max_age=max_age).decode("utf-8")
        except SignatureExpired:
            logger.debug(f"{LOG_PREFIX} Signed cookie value expired")
            return None
        except BadSignature:
            logger.warning(f"{LOG_PREFIX} Invalid cookie signature")
            return None
