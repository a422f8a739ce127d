"""
Auth for the admin console: hashed passwords, JWT bearer tokens, and the FastAPI
dependencies that gate user and admin routes. Admin rights are read from the
users table on every request, so revoking them takes effect immediately.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from gameweek_backend.config import get_config
from gameweek_backend.models import User
from gameweek_backend.persistence import get_connection, UserRepository

# pbkdf2_sha256 avoids passlib's bcrypt backend self-test
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGORITHM = "HS256"
MAX_PASSWORD_BYTES = 72

bearer_scheme = HTTPBearer(auto_error=False)


def normalize_password(password: str) -> str:
    """Cap passwords at 72 UTF-8 bytes so hashes stay portable to bcrypt."""
    raw = password.encode("utf-8")
    if len(raw) <= MAX_PASSWORD_BYTES:
        return password
    return raw[:MAX_PASSWORD_BYTES].decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
    return pwd_context.hash(normalize_password(password))


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(normalize_password(plain), hashed)


def create_access_token(user_id: str) -> str:
    config = get_config()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=config.access_token_expire_minutes),
    }
    return jwt.encode(claims, config.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> str | None:
    """User id from a token; None when the token is malformed, forged or expired."""
    try:
        claims = jwt.decode(token, get_config().jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return claims.get("sub")


# ---------- FastAPI dependencies ----------


def current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str | None:
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def require_user(user_id: str | None = Depends(current_user_id)) -> User:
    if not user_id:
        raise HTTPException(status_code=401, detail="Login required")
    conn = get_connection()
    try:
        user = UserRepository().get(conn, user_id)
    finally:
        conn.close()
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
