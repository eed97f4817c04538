from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user
from app.core.dependencies import get_db
from app.schemas.catalog import DashboardStats, RecentOrderOut, TechnicianStatusOut
from app.schemas.service_order import ServiceOrderOut
from app.services.catalog_service import dashboard_stats, recent_orders, technicians_status

router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStats)
async def read_dashboard_stats(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DashboardStats(**dashboard_stats(db))


@router.get("/dashboard/recent-orders", response_model=list[RecentOrderOut])
async def read_recent_orders(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [
        RecentOrderOut(
            **ServiceOrderOut.model_validate(item["order"]).model_dump(),
            client_name=item["client_name"],
            technician_name=item["technician_name"],
        )
        for item in recent_orders(db)
    ]


@router.get("/dashboard/technicians-status", response_model=list[TechnicianStatusOut])
async def read_technicians_status(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [TechnicianStatusOut(**row) for row in technicians_status(db)]
