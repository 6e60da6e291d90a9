"""
OLKA Mağaza Backoffice
İstek gövdesi şemaları (pydantic)
"""

import re
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models import CustomerSegment
from permissions import PermissionCode, RoleName

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class RequestModel(BaseModel):
    """Dashboard camelCase gönderir, servisler snake_case okur"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              str_strip_whitespace=True)


def _check_email(value):
    if value in (None, ''):
        return None
    if not EMAIL_RE.match(value):
        raise ValueError('Geçerli bir e-posta adresi giriniz')
    return value.lower()


# ==================== AUTH ====================

class LoginRequest(RequestModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


# ==================== MÜŞTERİ ====================

Gender = Literal['Kadın', 'Erkek', 'Belirtmek istemiyorum']


class CustomerCreate(RequestModel):
    """Yeni müşteri kaydı"""
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(min_length=1, max_length=80)
    phone: str = Field(min_length=1, max_length=20)
    email: Optional[str] = None
    national_id: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    segment: CustomerSegment = CustomerSegment.ADAY
    consent_personal_data: bool = False
    consent_marketing: bool = False
    consent_call: bool = False
    consent_profiling: bool = False

    @field_validator('email')
    @classmethod
    def check_email(cls, value):
        return _check_email(value)

    @field_validator('national_id')
    @classmethod
    def check_national_id(cls, value):
        if value in (None, ''):
            return None
        if not re.fullmatch(r'\d{11}', value):
            raise ValueError('TC Kimlik Numarası 11 haneli olmalıdır')
        return value


class CustomerUpdate(RequestModel):
    """Kısmi güncelleme - gönderilmeyen alanlar (onaylar dahil) korunur"""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    phone: Optional[str] = Field(default=None, min_length=1, max_length=20)
    email: Optional[str] = None
    national_id: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    segment: Optional[CustomerSegment] = None
    consent_personal_data: Optional[bool] = None
    consent_marketing: Optional[bool] = None
    consent_call: Optional[bool] = None
    consent_profiling: Optional[bool] = None

    @field_validator('email')
    @classmethod
    def check_email(cls, value):
        return _check_email(value)

    @field_validator('national_id')
    @classmethod
    def check_national_id(cls, value):
        if value in (None, ''):
            return None
        if not re.fullmatch(r'\d{11}', value):
            raise ValueError('TC Kimlik Numarası 11 haneli olmalıdır')
        return value


class AssignRequest(RequestModel):
    consultant_id: Optional[int] = None


class TransferRequest(RequestModel):
    to_consultant_id: int
    from_consultant_id: Optional[int] = None


# ==================== KULLANICI / ROL ====================

class UserCreate(RequestModel):
    email: str
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: Optional[str] = None
    active: bool = True
    roles: List[RoleName] = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def check_email(cls, value):
        return _check_email(value)


class UserRolesUpdate(RequestModel):
    roles: List[RoleName] = Field(min_length=1)


class RolePermissionsUpdate(RequestModel):
    permissions: List[PermissionCode]


# ==================== PARAMETRE ====================

ParameterType = Literal['STRING', 'NUMBER', 'BOOLEAN', 'JSON']


def _stringify(value):
    # Parametre değerleri her zaman metin olarak saklanır
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    return value


class ParameterCreate(RequestModel):
    key: str = Field(min_length=1, max_length=100)
    value: str
    type: ParameterType = 'STRING'
    category: str = 'SYSTEM'
    description: Optional[str] = None

    @field_validator('value', mode='before')
    @classmethod
    def stringify(cls, value):
        return _stringify(value)


class ParameterUpdate(RequestModel):
    value: Optional[str] = None
    type: Optional[ParameterType] = None
    category: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('value', mode='before')
    @classmethod
    def stringify(cls, value):
        return _stringify(value)


# ==================== GÖREV ====================

TaskPriority = Literal['low', 'medium', 'high', 'urgent']


class TaskCreate(RequestModel):
    title: str = Field(min_length=1, max_length=200)
    type: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    priority: TaskPriority = 'medium'
    assigned_to_id: Optional[int] = None
    target_role: Optional[RoleName] = None
    product_code: Optional[str] = None
    delivery_location: Optional[str] = None
    customer_id: Optional[int] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None

    @field_validator('assigned_to_id', 'customer_id', mode='before')
    @classmethod
    def blank_to_none(cls, value):
        if value in ('', 0):
            return None
        return value

    @field_validator('target_role', mode='before')
    @classmethod
    def blank_role(cls, value):
        return value or None


class TaskComplete(RequestModel):
    product_code: Optional[str] = None


class TaskDefinitionCreate(RequestModel):
    name: str = Field(min_length=1, max_length=200)
    role: RoleName
    description: Optional[str] = None
    requires_product_code: bool = False


class TaskDefinitionUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    role: Optional[RoleName] = None
    description: Optional[str] = None
    requires_product_code: Optional[bool] = None


# ==================== SEPET ====================

class CartItemCreate(RequestModel):
    title: str = Field(min_length=1, max_length=200)
    sku: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(ge=0)
    merge: bool = False


class CartItemUpdate(RequestModel):
    quantity: int = Field(ge=1)


class CheckoutRequest(RequestModel):
    payment_method: Literal['cash', 'card', 'transfer'] = 'card'
    title: Optional[str] = None
