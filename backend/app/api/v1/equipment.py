from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user
from app.core.dependencies import get_db
from app.models.service_order import Equipment
from app.schemas.catalog import EquipmentCreate, EquipmentOut, EquipmentUpdate
from app.services.catalog_service import (
    committing,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    update_entity,
)

router = APIRouter()


def _values(payload, **dump_kwargs) -> dict:
    values = payload.model_dump(**dump_kwargs)
    if values.get("type") is not None:
        values["type"] = values["type"].value
    return values


@router.get("/equipment", response_model=list[EquipmentOut])
async def list_equipment(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_entities(db, Equipment)


@router.get("/equipment/{equipment_id}", response_model=EquipmentOut)
async def get_equipment(
    equipment_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    equipment = get_entity(db, Equipment, equipment_id)
    if equipment is None:
        raise HTTPException(404, "Equipment not found")
    return equipment


@router.post("/equipment", response_model=EquipmentOut, status_code=201)
async def create_equipment(
    payload: EquipmentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with committing(db, "Equipment could not be saved"):
        equipment = create_entity(db, Equipment, _values(payload))
    db.refresh(equipment)
    return equipment


@router.put("/equipment/{equipment_id}", response_model=EquipmentOut)
async def update_equipment(
    equipment_id: int,
    payload: EquipmentUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with committing(db, "Equipment could not be saved"):
        equipment = update_entity(
            db, Equipment, equipment_id, _values(payload, exclude_unset=True, exclude_none=True)
        )
        if equipment is None:
            raise HTTPException(404, "Equipment not found")
    db.refresh(equipment)
    return equipment


@router.delete("/equipment/{equipment_id}", status_code=204)
async def delete_equipment(
    equipment_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with committing(db, "Equipment has service orders and cannot be deleted"):
        if not delete_entity(db, Equipment, equipment_id):
            raise HTTPException(404, "Equipment not found")
    return Response(status_code=204)
