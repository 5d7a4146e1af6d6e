from fastapi import APIRouter
from app.modules.automation.router import router as automation_router
from app.modules.tickets.router import router as tickets_router
from app.modules.audit.router import router as audit_router

api_router = APIRouter()
api_router.include_router(automation_router, prefix="/automation-rules", tags=["automation"])
api_router.include_router(tickets_router, prefix="/tickets", tags=["tickets"])
api_router.include_router(audit_router, tags=["audit"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
