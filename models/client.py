"""Client models for contact data."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class Client(BaseModel):
    """Client model, one row per distinct email."""

    id: Optional[str] = None
    email: EmailStr
    name: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "email": "ana@example.com",
                "name": "Ana López",
                "phone": "+52 55 1234 5678",
            }
        }


class ClientUpsert(BaseModel):
    """Client upsert model, keyed on the normalized email."""

    email: EmailStr
    name: str
    phone: Optional[str] = None
