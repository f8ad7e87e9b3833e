"""
Catalog API Endpoints

GET  /api/v1/services - Active tutoring services
POST /api/v1/services - Admin creates a service
GET  /api/v1/tutors   - Admin lists the tutor roster
POST /api/v1/tutors   - Admin registers a tutor
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.api.auth import get_current_user, require_roles
from tutorbook.database import get_db
from tutorbook.errors import ValidationError
from tutorbook.models.tutor import Tutor
from tutorbook.models.tutoring_service import TutoringService
from tutorbook.schemas import CurrentUser, ServiceCreate, ServiceOut, TutorCreate, TutorOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["catalog"])


class ServiceData(BaseModel):
    data: ServiceOut


class ServiceListData(BaseModel):
    data: List[ServiceOut]


class TutorData(BaseModel):
    data: TutorOut


class TutorListData(BaseModel):
    data: List[TutorOut]


@router.get("/services", response_model=ServiceListData)
async def list_services(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    result = await db.execute(
        select(TutoringService).where(TutoringService.is_active.is_(True)).order_by(TutoringService.name)
    )
    return {"data": [ServiceOut.model_validate(s) for s in result.scalars().all()]}


@router.post("/services", response_model=ServiceData, status_code=201)
async def create_service(
    request: ServiceCreate,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    service = TutoringService(**request.model_dump(), is_active=True)
    db.add(service)
    try:
        await db.flush()
    except IntegrityError as e:
        raise ValidationError("name", f"A service named '{request.name}' already exists") from e

    logger.info(f"Service {service.name} created by {user.id}")
    return {"data": ServiceOut.model_validate(service)}


@router.get("/tutors", response_model=TutorListData)
async def list_tutors(
    status: Optional[str] = Query(None, description="Filter by tutor status"),
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    query = select(Tutor).order_by(Tutor.name)
    if status:
        query = query.where(Tutor.status == status)
    result = await db.execute(query)
    return {"data": [TutorOut.model_validate(t) for t in result.scalars().all()]}


@router.post("/tutors", response_model=TutorData, status_code=201)
async def create_tutor(
    request: TutorCreate,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    tutor = Tutor(**request.model_dump(), availability=[])
    db.add(tutor)
    try:
        await db.flush()
    except IntegrityError as e:
        raise ValidationError("email", "A tutor with this id or email already exists") from e

    logger.info(f"Tutor {tutor.id} ({tutor.name}) registered by {user.id}")
    return {"data": TutorOut.model_validate(tutor)}
