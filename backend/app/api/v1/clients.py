from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user
from app.core.dependencies import get_db
from app.models.service_order import Client
from app.schemas.catalog import ClientCreate, ClientOut, ClientUpdate
from app.services.catalog_service import (
    committing,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    update_entity,
)

router = APIRouter()


@router.get("/clients", response_model=list[ClientOut])
async def list_clients(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_entities(db, Client)


@router.get("/clients/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    client = get_entity(db, Client, client_id)
    if client is None:
        raise HTTPException(404, "Client not found")
    return client


@router.post("/clients", response_model=ClientOut, status_code=201)
async def create_client(
    payload: ClientCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with committing(db, "Client could not be saved"):
        client = create_entity(db, Client, payload.model_dump())
    db.refresh(client)
    return client


@router.put("/clients/{client_id}", response_model=ClientOut)
async def update_client(
    client_id: int,
    payload: ClientUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with committing(db, "Client could not be saved"):
        client = update_entity(db, Client, client_id, payload.model_dump(exclude_unset=True, exclude_none=True))
        if client is None:
            raise HTTPException(404, "Client not found")
    db.refresh(client)
    return client


@router.delete("/clients/{client_id}", status_code=204)
async def delete_client(
    client_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with committing(db, "Client has service orders and cannot be deleted"):
        if not delete_entity(db, Client, client_id):
            raise HTTPException(404, "Client not found")
    return Response(status_code=204)
