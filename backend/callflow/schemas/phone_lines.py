import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from callflow.services.routing.models import E164_PATTERN


class PhoneLineCreate(BaseModel):
    user_id: uuid.UUID
    phone_number: str = Field(..., pattern=E164_PATTERN, description="E.164 phone number")
    display_name: str = Field(..., min_length=1, max_length=100)
    is_default: bool = False
    is_active: bool = True
    forward_to: str | None = Field(default=None, pattern=E164_PATTERN, description="Device that rings the owner")
    forward_after_rings: int = Field(default=3, ge=1, le=10)


class PhoneLineUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    is_default: bool | None = None
    is_active: bool | None = None
    forward_to: str | None = Field(default=None, pattern=E164_PATTERN)
    forward_after_rings: int | None = Field(default=None, ge=1, le=10)


class PhoneLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    phone_number: str
    display_name: str
    is_default: bool
    is_active: bool
    forward_to: str | None
    forward_after_rings: int
    total_inbound_calls: int
    last_inbound_call: datetime | None
    created_at: datetime
    updated_at: datetime
