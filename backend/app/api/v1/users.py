from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, require_roles
from app.core.dependencies import get_db
from app.models.service_order import User
from app.schemas.catalog import UserCreate, UserOut, UserUpdate
from app.services.catalog_service import (
    committing,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    update_entity,
)

router = APIRouter()

_admin_only = require_roles("ADMIN")


def _values(payload, **dump_kwargs) -> dict:
    values = payload.model_dump(**dump_kwargs)
    if values.get("role") is not None:
        values["role"] = values["role"].value
    return values


@router.get("/users", response_model=list[UserOut])
async def list_users(
    current_user: CurrentUser = Depends(_admin_only),
    db: Session = Depends(get_db),
):
    return list_entities(db, User)


@router.get("/users/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    current_user: CurrentUser = Depends(_admin_only),
    db: Session = Depends(get_db),
):
    user = get_entity(db, User, user_id)
    if user is None:
        raise HTTPException(404, "User not found")
    return user


@router.post("/users", response_model=UserOut, status_code=201)
async def create_user(
    payload: UserCreate,
    current_user: CurrentUser = Depends(_admin_only),
    db: Session = Depends(get_db),
):
    with committing(db, "Username or email already in use"):
        user = create_entity(db, User, _values(payload))
    db.refresh(user)
    return user


@router.put("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: CurrentUser = Depends(_admin_only),
    db: Session = Depends(get_db),
):
    with committing(db, "Username or email already in use"):
        user = update_entity(db, User, user_id, _values(payload, exclude_unset=True, exclude_none=True))
        if user is None:
            raise HTTPException(404, "User not found")
    db.refresh(user)
    return user


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    current_user: CurrentUser = Depends(_admin_only),
    db: Session = Depends(get_db),
):
    if str(user_id) == str(current_user.id):
        raise HTTPException(400, "You cannot delete your own user")
    with committing(db, "User is linked to a technician and cannot be deleted"):
        if not delete_entity(db, User, user_id):
            raise HTTPException(404, "User not found")
    return Response(status_code=204)
