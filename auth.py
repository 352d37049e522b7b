import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from errors import Forbidden, InvalidToken, Unauthorized

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_admin: bool = False


class TokenService:
    """Signs and checks bearer tokens. Tokens carry no expiry; rotating the secret revokes them all."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def issue(self, user_id: str, is_admin: bool = False) -> str:
        return jwt.encode({"_id": str(user_id), "isAdmin": bool(is_admin)}, self.secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise InvalidToken()
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise InvalidToken()
        user_id = claims.get("_id")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidToken()
        return Identity(user_id=user_id, is_admin=bool(claims.get("isAdmin", False)))


# ------------------------- Dependencies -------------------------

def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_credential(
    x_auth_token: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    if x_auth_token:
        return x_auth_token
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
        return authorization
    return None


def authenticate(
    token: Optional[str] = Depends(get_credential),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    if not token:
        raise Unauthorized()
    try:
        return tokens.verify(token)
    except InvalidToken:
        logger.warning("Rejected request with an invalid token")
        raise


def require_admin(identity: Identity = Depends(authenticate)) -> Identity:
    if not identity.is_admin:
        logger.warning("User %s attempted an admin-only operation", identity.user_id)
        raise Forbidden()
    return identity
