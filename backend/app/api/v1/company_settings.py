from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user, require_roles
from app.core.dependencies import get_db
from app.models.service_order import CompanySettings
from app.schemas.catalog import CompanySettingsIn, CompanySettingsOut
from app.services.catalog_service import committing, get_company_settings, upsert_company_settings

router = APIRouter()


def _settings_out(row: CompanySettings) -> CompanySettingsOut:
    out = CompanySettingsOut.model_validate(row)
    # The stored password never leaves the server.
    out.smtp_password_set = bool(row.smtp_password)
    return out


@router.get("/company-settings", response_model=CompanySettingsOut)
async def read_company_settings(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = get_company_settings(db)
    if row is None:
        raise HTTPException(404, "Company settings not configured")
    return _settings_out(row)


@router.put("/company-settings", response_model=CompanySettingsOut)
async def write_company_settings(
    payload: CompanySettingsIn,
    current_user: CurrentUser = Depends(require_roles("ADMIN")),
    db: Session = Depends(get_db),
):
    with committing(db, "Company settings could not be saved"):
        row = upsert_company_settings(db, payload.model_dump())
    db.refresh(row)
    return _settings_out(row)
