from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.db import get_session
from eduguide.core.security import AccessContext, get_access
from eduguide.modules.intake.schemas import (
    TutoringRequestCreate, TutoringRequestList, TutoringRequestCreated, LiveSupportStart, LiveSupportCurrent, LiveSupportSession
)
from eduguide.modules.intake.service import IntakeService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> IntakeService:
    return IntakeService(session)

async def student_access(access: AccessContext = Depends(get_access)) -> AccessContext:
    if access.is_staff_view:
        raise HTTPException(status_code=403, detail="Live support widget is available for student accounts only.")
    return access

# ---- Tutoring requests ----

@router.get("/tutoring-requests", response_model=TutoringRequestList)
async def list_tutoring_requests(
    access: AccessContext = Depends(get_access),
    service: IntakeService = Depends(svc),
):
    return {"requests": await service.list_tutoring_requests(access)}

@router.post("/tutoring-requests", response_model=TutoringRequestCreated, status_code=201)
async def create_tutoring_request(
    payload: TutoringRequestCreate,
    access: AccessContext = Depends(get_access),
    service: IntakeService = Depends(svc),
):
    req, ticket = await service.create_tutoring_request(access, payload)
    return {"request": req, "ticket": ticket}

# ---- Live support ----

@router.get("/live-support/session", response_model=LiveSupportCurrent)
async def get_live_session(
    access: AccessContext = Depends(student_access),
    service: IntakeService = Depends(svc),
):
    return {"ticket": await service.current_live_session(access)}

@router.post("/live-support/session", response_model=LiveSupportSession)
async def start_live_session(
    response: Response,
    payload: LiveSupportStart | None = None,
    access: AccessContext = Depends(student_access),
    service: IntakeService = Depends(svc),
):
    ticket, created = await service.start_live_session(access, payload or LiveSupportStart())
    if created:
        response.status_code = 201
    return {"ticket": ticket, "created": created}
