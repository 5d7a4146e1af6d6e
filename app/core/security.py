import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from app.core.config import settings

http_bearer = HTTPBearer(auto_error=False)

# OWNER | TEAM_ADMIN | AGENT | REQUESTER
ROLES = ("OWNER", "TEAM_ADMIN", "AGENT", "REQUESTER")

class Principal(BaseModel):
    user_id: uuid.UUID
    org_id: uuid.UUID
    role: str = "AGENT"
    primary_team_id: uuid.UUID | None = None
    scopes: list[str] = []

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local/dev, allow missing token and act as an owner of the default org
    if creds is None and settings.ENV == "local":
        return Principal(user_id=uuid.UUID(int=0), org_id=uuid.UUID(settings.DEFAULT_ORG_ID), role="OWNER", scopes=["*"])
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")

    data = _decode_token(creds.credentials)
    user_id = uuid.UUID(str(data.get("sub") or data.get("user_id")))
    org_id = uuid.UUID(str(data.get("org_id") or settings.DEFAULT_ORG_ID))
    role = data.get("role", "AGENT")
    if role not in ROLES:
        raise HTTPException(status_code=401, detail=f"Unknown role: {role}")
    team = data.get("primary_team_id")
    primary_team_id = uuid.UUID(str(team)) if team else None
    scopes = data.get("scopes", [])
    return Principal(user_id=user_id, org_id=org_id, role=role, primary_team_id=primary_team_id, scopes=scopes)

def require_roles(*allowed: str):
    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return principal
    return dep
