from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.service_order import CamelModel, ServiceOrderOut


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    USER = "user"


class TechnicianStatus(str, Enum):
    AVAILABLE = "available"
    IN_SERVICE = "in_service"
    UNAVAILABLE = "unavailable"


class EquipmentType(str, Enum):
    DESKTOP = "desktop"
    LAPTOP = "laptop"
    SERVER = "server"
    PRINTER = "printer"
    NETWORK = "network"
    OTHER = "other"


class _OutModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserCreate(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    full_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: UserRole = UserRole.USER


class UserUpdate(CamelModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    full_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    role: Optional[UserRole] = None


class UserOut(_OutModel):
    id: int
    username: str
    full_name: str
    email: str
    role: UserRole
    created_at: Optional[datetime] = None


class ClientCreate(CamelModel):
    name: str = Field(min_length=1)
    contact_name: str = Field(min_length=1)
    email: str = ""
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)


class ClientUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    contact_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = Field(default=None, min_length=1)


class ClientOut(_OutModel):
    id: int
    name: str
    contact_name: str
    email: str
    phone: str
    address: str
    created_at: Optional[datetime] = None


class EquipmentCreate(CamelModel):
    type: EquipmentType
    brand: str = Field(min_length=1)
    model: str = Field(min_length=1)
    serial_number: str = Field(min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None


class EquipmentUpdate(CamelModel):
    type: Optional[EquipmentType] = None
    brand: Optional[str] = Field(default=None, min_length=1)
    model: Optional[str] = Field(default=None, min_length=1)
    serial_number: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None


class EquipmentOut(_OutModel):
    id: int
    type: EquipmentType
    brand: str
    model: str
    serial_number: str
    description: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    created_at: Optional[datetime] = None


class TechnicianCreate(CamelModel):
    user_id: int
    specialization: str = Field(min_length=1)
    status: TechnicianStatus = TechnicianStatus.AVAILABLE


class TechnicianUpdate(CamelModel):
    specialization: Optional[str] = Field(default=None, min_length=1)
    status: Optional[TechnicianStatus] = None


class TechnicianOut(_OutModel):
    id: int
    user_id: int
    specialization: str
    status: TechnicianStatus
    full_name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class CompanySettingsIn(CamelModel):
    name: str = Field(min_length=1)
    logo_url: Optional[str] = None
    address: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str = Field(min_length=3)
    website: Optional[str] = None
    tax_id: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = Field(default=None, ge=1, le=65535)
    smtp_secure: bool = True
    smtp_user: Optional[str] = None
    # Omitted or empty keeps the stored password.
    smtp_password: Optional[str] = None
    smtp_from_name: Optional[str] = None
    smtp_from_email: Optional[str] = None


class CompanySettingsOut(_OutModel):
    id: int
    name: str
    logo_url: Optional[str] = None
    address: str
    phone: str
    email: str
    website: Optional[str] = None
    tax_id: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_secure: Optional[bool] = None
    smtp_user: Optional[str] = None
    smtp_password_set: bool = False
    smtp_from_name: Optional[str] = None
    smtp_from_email: Optional[str] = None
    updated_at: Optional[datetime] = None


class DashboardStats(CamelModel):
    total_orders: int
    active_orders: int
    completed_orders: int
    pending_orders: int
    completed_percentage: int
    orders_by_status: Dict[str, int]
    total_clients: int
    new_clients_this_month: int
    available_technicians: int


class RecentOrderOut(ServiceOrderOut):
    client_name: str
    technician_name: str


class TechnicianStatusOut(CamelModel):
    id: int
    name: str
    status: TechnicianStatus
    specialization: str
