"""Form schemas for the dashboard dialogs and the auth screens."""

import base64
import binascii
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

MAX_AVATAR_BYTES = 500 * 1024

# Friendlier wording for the constraint errors users actually hit
_MESSAGES = {
    ('name', 'string_too_short'): 'Name is required',
    ('title', 'string_too_short'): 'Title is required',
    ('category', 'string_too_short'): 'Category is required',
    ('duration', 'greater_than_equal'): 'Minimum 5 minutes',
    ('duration', 'less_than_equal'): 'Maximum 8 hours',
    ('price', 'greater_than_equal'): 'Price must be positive',
    ('email', 'value_error'): 'Invalid email address',
    ('password', 'string_too_short'): 'Password must be at least 6 characters',
    ('full_name', 'string_too_short'): 'Name must be at least 2 characters',
    ('full_name', 'string_too_long'): 'Name is too long',
}


def field_errors(exc: ValidationError) -> Dict[str, str]:
    """First error message per field, keyed by field name."""
    errors: Dict[str, str] = {}
    for err in exc.errors():
        name = str(err['loc'][0]) if err['loc'] else '__all__'
        if name in errors:
            continue
        errors[name] = _MESSAGES.get((name, err['type']), err['msg'])
    return errors


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class ServiceForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default='', max_length=500)
    duration: int = Field(ge=5, le=480)
    price: Decimal = Field(ge=0)
    category: str = Field(min_length=1, max_length=50)
    is_active: bool = True


class StaffForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(default='', max_length=20)
    title: str = Field(min_length=1, max_length=100)
    bio: str = Field(default='', max_length=500)
    is_active: bool = True
    avatar_url: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)

    @field_validator('avatar_url', 'password', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator('avatar_url')
    @classmethod
    def avatar_fits(cls, v):
        if v is None or not v.startswith('data:'):
            return v
        try:
            payload = base64.b64decode(v.split(',', 1)[1], validate=True)
        except (IndexError, binascii.Error):
            raise PydanticCustomError('avatar_invalid', 'Avatar must be a base64 encoded image')
        if len(payload) > MAX_AVATAR_BYTES:
            raise PydanticCustomError('avatar_too_large', 'Avatar must be 500KB or smaller')
        return v


class ClientForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(default='', max_length=20)
    date_of_birth: Optional[date] = None
    notes: str = Field(default='', max_length=500)
    password: Optional[str] = Field(default=None, min_length=6)

    @field_validator('date_of_birth', 'password', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class LoginForm(FormModel):
    email: EmailStr
    password: str = Field(min_length=6)


class SignupForm(FormModel):
    full_name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    confirm_password: str

    @field_validator('confirm_password')
    @classmethod
    def passwords_match(cls, v, info: ValidationInfo):
        if 'password' in info.data and v != info.data['password']:
            raise PydanticCustomError('password_mismatch', "Passwords don't match")
        return v


class AppointmentForm(FormModel):
    client_id: str = Field(min_length=1)
    staff_id: Optional[str] = None
    service_ids: List[str] = Field(min_length=1)
    appointment_date: date
    start_time: str = Field(pattern=r'^\d{2}:\d{2}$')
    end_time: str = Field(pattern=r'^\d{2}:\d{2}$')
    total_duration: int = Field(gt=0)
    total_price: Decimal = Field(ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class AccountRequest(BaseModel):
    """Body of POST /create-user-account; the wire names are camelCase."""
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    user_type: Optional[str] = Field(default=None, alias='userType')
    full_name: Optional[str] = Field(default=None, alias='fullName')
    phone: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = Field(default=None, alias='additionalData')

    @property
    def is_complete(self) -> bool:
        return bool(self.email and self.password and self.user_type)

    @property
    def extra(self) -> Dict[str, Any]:
        return self.additional_data or {}
