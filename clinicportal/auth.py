"""
Bearer-token authentication

Tokens are HS256 JWTs issued by the identity provider with the claims:
  sub        - user identifier
  tenant_id  - tenant the session is scoped to
  role       - admin | practitioner | patient
  patient_id - set for patient sessions
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import JWT_ALGORITHM, SECRET_KEY

logger = logging.getLogger(__name__)

security = HTTPBearer()

ROLES = {"admin", "practitioner", "patient"}


@dataclass(frozen=True)
class Principal:
    subject: str
    tenant_id: str
    role: str
    patient_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(
    subject: str,
    tenant_id: str,
    role: str,
    patient_id: Optional[int] = None,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Issue a signed session token (used by the identity bridge and tests)"""
    claims = {
        "sub": subject,
        "tenant_id": tenant_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    if patient_id is not None:
        claims["patient_id"] = patient_id
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"🚫 Invalid access token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    tenant_id = claims.get("tenant_id")
    role = claims.get("role")
    if not claims.get("sub") or not tenant_id or role not in ROLES:
        logger.warning("🚫 Access token missing required claims")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return Principal(
        subject=str(claims["sub"]),
        tenant_id=str(tenant_id),
        role=role,
        patient_id=claims.get("patient_id"),
    )


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """Resolve the caller from the Authorization header"""
    return decode_access_token(credentials.credentials)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        logger.warning(f"🚫 Non-admin {principal.subject} attempted an admin action")
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal
