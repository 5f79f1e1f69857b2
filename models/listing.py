"""Listing models for the external property-listing service."""

import datetime as dt
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Listing(BaseModel):
    """Property listing as returned by the listing service, reduced to what the CRM shows."""

    public_id: str
    title: str = ""
    price: Optional[float] = None
    currency: Optional[str] = None
    location: Optional[str] = None
    features: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "public_id": "EB-AB1234",
                "title": "Departamento en Polanco",
                "price": 35000,
                "currency": "MXN",
                "location": "Polanco, Miguel Hidalgo, CDMX",
                "features": {"bedrooms": 2, "bathrooms": 2},
            }
        }


class AppointmentView(BaseModel):
    """Appointment row shaped for the CRM list, with its listing when one is linked."""

    id: Optional[str] = None
    client_name: str = Field(alias="clientName")
    client_email: str = Field(alias="clientEmail")
    client_phone: Optional[str] = Field(None, alias="clientPhone")
    property_id: Optional[str] = Field(None, alias="propertyId")
    listing: Optional[Listing] = None
    date: dt.date
    time: str
    status: str
    notes: Optional[str] = None
    operation_type: Optional[str] = Field(None, alias="operationType")
    budget_range: Optional[str] = Field(None, alias="budgetRange")
    created_at: Optional[dt.datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True
