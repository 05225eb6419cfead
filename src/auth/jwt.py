from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from src.auth.context import Principal
from src.auth.roles import Role
from src.config import settings


def create_access_token(
    user_id: str,
    role: Role | str,
    org_id: str | None = None,
    email: str | None = None,
) -> str:
    """Create a signed JWT session token carrying the principal's claims."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expiration_minutes)
    payload = {
        "sub": user_id,
        "role": role.value if isinstance(role, Role) else role,
        "org_id": org_id,
        "email": email,
        "type": "session",
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT. Returns payload or None if invalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        if payload.get("type") != "session":
            return None
        return payload
    except JWTError:
        return None


def principal_from_token(token: str) -> Principal | None:
    """Principal for a valid session token. None for bad signatures, expiry or unknown roles."""
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    try:
        return Principal(
            id=str(payload["sub"]),
            role=payload.get("role"),
            organization_id=payload.get("org_id"),
            email=payload.get("email"),
        )
    except ValueError:
        return None
