import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

import config
from database import get_db
from errors import AuthenticationError
from models import UserModel

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class TokenExpired(Exception):
    pass


class TokenInvalid(Exception):
    pass


# ----------------------------------------------------------------------------
# Auth helpers
# ----------------------------------------------------------------------------

def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(secret: str, claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = claims.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": datetime.now(timezone.utc)})
    return jwt.encode(to_encode, secret, algorithm=config.ALGORITHM)


def decode_access_token(secret: str, token: str) -> dict:
    """Verify signature and expiry; returns the claims or raises TokenExpired / TokenInvalid."""
    try:
        payload = jwt.decode(token, secret, algorithms=[config.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise TokenInvalid()
    if not payload.get("sub"):
        raise TokenInvalid()
    return payload


def issue_token(user: UserModel) -> str:
    return create_access_token(config.SECRET_KEY, {"sub": str(user.id)})


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> UserModel:
    if not token:
        raise AuthenticationError()
    try:
        payload = decode_access_token(config.SECRET_KEY, token)
    except TokenExpired:
        raise AuthenticationError("Token has expired. Please login again.")
    except TokenInvalid:
        raise AuthenticationError("Invalid token. Please login again.")

    result = await db.execute(select(UserModel).where(UserModel.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User not found. Token may be invalid.")
    return user
