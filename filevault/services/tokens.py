from datetime import datetime, timedelta
from typing import Optional
from jose import jwt, JWTError
from filevault.config import Settings
from filevault.errors import Unauthorized


class TokenService:
    """Signs and checks access tokens with the application secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 1440):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.APP_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
        )

    def issue(self, user_id: int, expires_delta: Optional[timedelta] = None) -> str:
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.expire_minutes)
        expire = datetime.utcnow() + expires_delta
        payload = {"sub": str(user_id), "exp": expire, "type": "access"}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Return the user id carried by ``token``.

        Raises ``Unauthorized`` for a bad signature, a malformed or expired
        token, or a payload that is not an access token for an integer id.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise Unauthorized("Not authorized, token failed")

        if payload.get("type") != "access":
            raise Unauthorized("Not authorized, token failed")
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise Unauthorized("Not authorized, token failed")
