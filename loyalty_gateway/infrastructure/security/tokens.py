"""JWT access tokens carrying the user id"""

import uuid
from datetime import timedelta

import jwt

from loyalty_gateway.domain.exceptions import InvalidTokenError
from loyalty_gateway.utils.date_utils import utcnow

ALGORITHM = "HS256"


class TokenService:
    """Issue and resolve HS256 tokens signed with the configured secret"""

    def __init__(self, secret_key: str, ttl_minutes: int):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self.secret_key = secret_key
        self.ttl = timedelta(minutes=ttl_minutes)

    def issue(self, user_id: uuid.UUID) -> str:
        now = utcnow()
        claims = {"sub": str(user_id), "iat": now, "exp": now + self.ttl}
        return jwt.encode(claims, self.secret_key, algorithm=ALGORITHM)

    def resolve(self, token: str) -> uuid.UUID:
        """
        Map a token to the user id it was issued for.

        Raises:
            InvalidTokenError: Bad signature, expired, or missing/garbled subject
        """
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Token expired") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        try:
            return uuid.UUID(claims["sub"])
        except (ValueError, TypeError, AttributeError) as e:
            raise InvalidTokenError("Token subject is not a user id") from e
