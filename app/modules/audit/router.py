from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from app.core.db import get_session
from app.core.security import Principal, require_roles
from app.modules.audit.models import AdminAuditEvent

router = APIRouter()

@router.get("/admin-audit")
async def list_admin_audit(
    principal: Principal = Depends(require_roles("OWNER")),
    session: AsyncSession = Depends(get_session),
    limit: int = Query(50, ge=1, le=200),
):
    q = select(AdminAuditEvent).where(
        AdminAuditEvent.org_id == principal.org_id,
        AdminAuditEvent.deleted_at.is_(None),
    ).order_by(desc(AdminAuditEvent.occurred_at)).limit(limit)
    res = await session.execute(q)
    # Return raw dicts for simplicity
    return [
        {
            "id": row.id,
            "org_id": row.org_id,
            "actor_user_id": row.actor_user_id,
            "team_id": row.team_id,
            "type": row.type,
            "payload": row.payload,
            "occurred_at": row.occurred_at,
        }
        for row in res.scalars().all()
    ]
