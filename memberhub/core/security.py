from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
from jose import jwt, JWTError
from memberhub.core.config import settings
import hashlib
import secrets

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"

def _bcrypt_input(password: str) -> str:
    """
    Bcrypt has a 72-byte input limit.
    Member passwords are pre-hashed with SHA-256 so long passphrases
    keep all their characters; bcrypt sees the 64-char hex digest.
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()

def hash_password(password: str) -> str:
    return pwd_context.hash(_bcrypt_input(password))

def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(_bcrypt_input(password), password_hash)

def password_needs_rehash(password_hash: str) -> bool:
    return pwd_context.needs_update(password_hash)

def temporary_password() -> str:
    # handed to members whose account is created on application approval
    return secrets.token_urlsafe(9)

def create_access_token(subject: str) -> str:
    # subject = the user id as a string
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.jwt_access_ttl_min)
    payload = {
        "sub": str(subject),
        "type": ACCESS_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict:
    # Returns the token payload if valid, raises JWTError if invalid
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])

def token_user_id(token: str) -> int:
    """User id of a valid access token; JWTError for anything else."""
    payload = decode_token(token)
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    subject = str(payload.get("sub") or "")
    if not subject.isdigit():
        raise JWTError("Token subject is not a user id")
    return int(subject)
