# teamflow/utils/security.py
from datetime import timedelta
from typing import Optional

from jose import jwt
from passlib.context import CryptContext

from teamflow.config.settings import settings
from teamflow.utils.clock import utcnow

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.AUTH['access_token_expire_minutes']))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.AUTH['secret_key'], algorithm=settings.AUTH['algorithm'])
