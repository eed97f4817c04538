from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user, require_roles
from app.core.dependencies import get_db
from app.models.service_order import Technician, User
from app.schemas.catalog import TechnicianCreate, TechnicianOut, TechnicianUpdate
from app.services.catalog_service import (
    committing,
    create_entity,
    delete_entity,
    get_entity,
    get_technician_by_user,
    list_entities,
    technician_display,
    update_entity,
)

router = APIRouter()

_MANAGERS = ("ADMIN", "MANAGER")


@router.get("/technicians", response_model=list[TechnicianOut])
async def list_technicians(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [technician_display(db, tech) for tech in list_entities(db, Technician)]


@router.get("/technicians/{technician_id}", response_model=TechnicianOut)
async def get_technician(
    technician_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    technician = get_entity(db, Technician, technician_id)
    if technician is None:
        raise HTTPException(404, "Technician not found")
    return technician_display(db, technician)


@router.post("/technicians", response_model=TechnicianOut, status_code=201)
async def create_technician(
    payload: TechnicianCreate,
    current_user: CurrentUser = Depends(require_roles(*_MANAGERS)),
    db: Session = Depends(get_db),
):
    if get_entity(db, User, payload.user_id) is None:
        raise HTTPException(404, "User not found")
    if get_technician_by_user(db, payload.user_id) is not None:
        raise HTTPException(409, "User is already a technician")

    with committing(db, "Technician could not be saved"):
        technician = create_entity(
            db,
            Technician,
            {
                "user_id": payload.user_id,
                "specialization": payload.specialization,
                "status": payload.status.value,
            },
        )
    db.refresh(technician)
    return technician_display(db, technician)


@router.put("/technicians/{technician_id}", response_model=TechnicianOut)
async def update_technician(
    technician_id: int,
    payload: TechnicianUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    values = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "status" in values:
        values["status"] = values["status"].value

    with committing(db, "Technician could not be saved"):
        technician = update_entity(db, Technician, technician_id, values)
        if technician is None:
            raise HTTPException(404, "Technician not found")
    db.refresh(technician)
    return technician_display(db, technician)


@router.delete("/technicians/{technician_id}", status_code=204)
async def delete_technician(
    technician_id: int,
    current_user: CurrentUser = Depends(require_roles(*_MANAGERS)),
    db: Session = Depends(get_db),
):
    with committing(db, "Technician has service orders and cannot be deleted"):
        if not delete_entity(db, Technician, technician_id):
            raise HTTPException(404, "Technician not found")
    return Response(status_code=204)
