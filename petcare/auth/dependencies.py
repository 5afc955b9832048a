from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from petcare.auth import jwt_handler
from petcare.core.validation import is_object_id

security = HTTPBearer()

ROLES = {"user", "shop", "staff", "admin"}


@dataclass(frozen=True)
class Identity:
    """Who is calling, as asserted by an already-issued access token."""

    subject: str
    role: str


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not is_object_id(subject):
        raise HTTPException(status_code=401, detail="Invalid token subject")

    role = payload.get("role")
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token role")

    return Identity(subject=subject.lower(), role=role)


def require_role(identity: Identity, *roles: str) -> Identity:
    if identity.role not in roles:
        raise HTTPException(status_code=403, detail=f"Only {' or '.join(roles)} accounts can do this.")
    return identity
