"""Staff authentication: bcrypt password hashes and signed bearer tokens."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from backoffice.database import get_db, pwd_context
from backoffice.models import User

security = HTTPBearer(auto_error=False)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-this-secret-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_TTL = timedelta(minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "720")))


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    # Rows seeded by hand may hold a hash passlib cannot identify.
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def create_access_token(user: User, ttl: timedelta | None = None) -> str:
    claims = {
        "sub": str(user.user_id),
        "email": user.email,
        "exp": datetime.now(timezone.utc) + (ttl if ttl is not None else TOKEN_TTL),
    }
    return jwt.encode(claims, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def serialize_user(user: User) -> dict:
    return {"user_id": user.user_id, "name": user.name, "email": user.email}


def issue_token(user: User) -> dict:
    return {"access_token": create_access_token(user), "token_type": "bearer", "user": serialize_user(user)}


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None or not verify_password(password, user.password):
        return None
    return user


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def user_from_token(db: Session, token: str) -> User:
    """Resolve a bearer token to its staff user or raise 401."""
    try:
        claims = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise _unauthorized("Invalid or expired token") from exc

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise _unauthorized("Invalid token payload")

    user = db.get(User, int(subject))
    if user is None:
        raise _unauthorized("User not found")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise _unauthorized("Authentication required")
    return user_from_token(db, credentials.credentials)
