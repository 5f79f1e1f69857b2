"""
Booking request models.

The public form posts one flat JSON object whose fields depend on the chosen
operation. It is modelled as a closed sum type: ``RentRequest`` or
``PurchaseRequest``, selected by ``operationType``. A purchase additionally
carries exactly one funding resource, selected by ``resourceType``.
"""

import datetime as dt
from abc import abstractmethod
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from utils.constants import (
    MAX_COMPANY_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PHONE_LENGTH,
    MAX_WORKER_NUMBER_LENGTH,
    MIN_NAME_LENGTH,
)
from utils.datetime_utils import clean_date, normalize_time
from utils.exceptions import ValidationError
from utils.validation import (
    sanitize_text,
    validate_company,
    validate_name,
    validate_phone,
    validate_time,
)

RentBudget = Literal[
    "20000-30000",
    "30000-40000",
    "40000-50000",
    "50000-60000",
    "60000-80000",
    "80000-100000",
    "100000-150000",
    "mas-150000",
]

PurchaseBudget = Literal[
    "2500000-3000000",
    "3000000-3500000",
    "3500000-4000000",
    "4000000-5000000",
    "5000000-6000000",
    "6000000-8000000",
    "8000000-10000000",
    "mas-10000000",
]

Bank = Literal[
    "bbva",
    "banamex",
    "santander",
    "hsbc",
    "banorte",
    "scotiabank",
    "banco-azteca",
    "bancoppel",
    "inbursa",
    "banregio",
    "banco-del-bajio",
    "banco-multiva",
    "otro-banco",
]

# Flat form keys that belong to the purchase funding resource
_RESOURCE_KEYS = (
    "resourceType",
    "banco",
    "creditoPreaprobado",
    "modalidadInfonavit",
    "numeroTrabajadorInfonavit",
    "modalidadFovissste",
    "numeroTrabajadorFovissste",
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_worker_number(value: Any) -> Any:
    if value is None or not isinstance(value, str):
        return value
    if not value.isdigit():
        raise ValueError("Worker number may only contain digits")
    if len(value) > MAX_WORKER_NUMBER_LENGTH:
        raise ValueError(f"Worker number cannot exceed {MAX_WORKER_NUMBER_LENGTH} characters")
    return value


class _FormModel(BaseModel):
    class Config:
        populate_by_name = True
        extra = "ignore"


class BankCreditResource(_FormModel):
    resource_type: Literal["credito-bancario"] = Field(alias="resourceType")
    banco: Bank
    credito_preaprobado: Literal["si", "no"] = Field(alias="creditoPreaprobado")


class InfonavitResource(_FormModel):
    resource_type: Literal["infonavit"] = Field(alias="resourceType")
    modalidad_infonavit: Literal["tradicional", "cofinavit", "mejoravit", "tu-casa"] = Field(
        alias="modalidadInfonavit"
    )
    numero_trabajador_infonavit: Optional[str] = Field(None, alias="numeroTrabajadorInfonavit")

    @field_validator("numero_trabajador_infonavit", mode="before")
    @classmethod
    def check_worker_number(cls, value: Any) -> Any:
        return _check_worker_number(_blank_to_none(value))


class FovisssteResource(_FormModel):
    resource_type: Literal["fovissste"] = Field(alias="resourceType")
    modalidad_fovissste: Literal["tradicional", "cofinavit", "mi-vivienda"] = Field(
        alias="modalidadFovissste"
    )
    numero_trabajador_fovissste: Optional[str] = Field(None, alias="numeroTrabajadorFovissste")

    @field_validator("numero_trabajador_fovissste", mode="before")
    @classmethod
    def check_worker_number(cls, value: Any) -> Any:
        return _check_worker_number(_blank_to_none(value))


class OwnResources(_FormModel):
    resource_type: Literal["recursos-propios"] = Field(alias="resourceType")


FundingResource = Annotated[
    Union[BankCreditResource, InfonavitResource, FovisssteResource, OwnResources],
    Field(discriminator="resource_type"),
]


class BookingRequestBase(_FormModel):
    """Fields shared by every booking request."""

    date: dt.date
    time: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    notes: Optional[str] = None
    property_id: Optional[str] = Field(None, alias="propertyId")
    appointment_id: Optional[str] = Field(None, alias="appointmentId")
    agent_id: Optional[str] = Field(None, alias="agentId")

    @field_validator("date", mode="before")
    @classmethod
    def _clean_date(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("A date must be selected")
        return clean_date(value)

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not validate_time(value):
            raise ValueError("Invalid time format, expected HH:MM or HH:MM:SS")
        return value

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not MIN_NAME_LENGTH <= len(value) <= MAX_NAME_LENGTH:
            raise ValueError(
                f"Name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters"
            )
        if not validate_name(value):
            raise ValueError("Name may only contain letters and spaces")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def _check_email_length(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if len(value) > MAX_EMAIL_LENGTH:
                raise ValueError(f"Email cannot exceed {MAX_EMAIL_LENGTH} characters")
        return value

    @field_validator("phone", mode="before")
    @classmethod
    def _check_phone(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is None or not isinstance(value, str):
            return value
        if len(value) > MAX_PHONE_LENGTH or not validate_phone(value):
            raise ValueError("Phone contains invalid characters")
        return value

    @field_validator("notes", mode="before")
    @classmethod
    def _clean_notes(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is None or not isinstance(value, str):
            return value
        if len(value) > MAX_NOTES_LENGTH:
            raise ValueError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
        return sanitize_text(value) or None

    @field_validator("property_id", "appointment_id", "agent_id", mode="before")
    @classmethod
    def _blank_ids(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def is_update(self) -> bool:
        return self.appointment_id is not None

    @property
    def normalized_time(self) -> str:
        return normalize_time(self.time)

    @property
    @abstractmethod
    def budget_range(self) -> Optional[str]:
        """Budget range option chosen for the operation."""

    @abstractmethod
    def operation_fields(self) -> Dict[str, Any]:
        """Operation-specific columns stored on the appointment row."""


class RentRequest(BookingRequestBase):
    operation_type: Literal["rentar"] = Field(alias="operationType")
    budget_rentar: RentBudget = Field(alias="budgetRentar")
    company: str

    @field_validator("company")
    @classmethod
    def _check_company(cls, value: str) -> str:
        value = value.strip()
        if not MIN_NAME_LENGTH <= len(value) <= MAX_COMPANY_LENGTH:
            raise ValueError(
                f"Company must be between {MIN_NAME_LENGTH} and {MAX_COMPANY_LENGTH} characters"
            )
        if not validate_company(value):
            raise ValueError("Company name contains invalid characters")
        return value

    @property
    def budget_range(self) -> str:
        return self.budget_rentar

    def operation_fields(self) -> Dict[str, Any]:
        return {
            "operation_type": self.operation_type,
            "budget_range": self.budget_rentar,
            "company": self.company,
            "resource_type": None,
            "resource_details": None,
        }


class PurchaseRequest(BookingRequestBase):
    operation_type: Literal["comprar"] = Field(alias="operationType")
    budget_comprar: PurchaseBudget = Field(alias="budgetComprar")
    resource: FundingResource

    @model_validator(mode="before")
    @classmethod
    def _nest_resource(cls, data: Any) -> Any:
        # The form posts resource fields flat; gather them for the nested union
        if isinstance(data, dict) and "resource" not in data:
            data = dict(data)
            data["resource"] = {key: data[key] for key in _RESOURCE_KEYS if key in data}
        return data

    @property
    def budget_range(self) -> str:
        return self.budget_comprar

    def operation_fields(self) -> Dict[str, Any]:
        resource = self.resource
        return {
            "operation_type": self.operation_type,
            "budget_range": self.budget_comprar,
            "company": None,
            "resource_type": resource.resource_type,
            "resource_details": {
                "banco": getattr(resource, "banco", None),
                "creditoPreaprobado": getattr(resource, "credito_preaprobado", None),
                "modalidadInfonavit": getattr(resource, "modalidad_infonavit", None),
                "numeroTrabajadorInfonavit": getattr(resource, "numero_trabajador_infonavit", None),
                "modalidadFovissste": getattr(resource, "modalidad_fovissste", None),
                "numeroTrabajadorFovissste": getattr(resource, "numero_trabajador_fovissste", None),
            },
        }


BookingRequest = Annotated[Union[RentRequest, PurchaseRequest], Field(discriminator="operation_type")]

_booking_request_adapter = TypeAdapter(BookingRequest)


def parse_booking_request(payload: Dict[str, Any]) -> Union[RentRequest, PurchaseRequest]:
    """
    Validate a raw form payload into a booking request.

    Raises:
        ValidationError: With ``issues`` listing every failing field
    """
    try:
        return _booking_request_adapter.validate_python(payload)
    except PydanticValidationError as e:
        issues: List[Dict[str, Any]] = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in e.errors(include_url=False, include_context=False, include_input=False)
        ]
        raise ValidationError(
            "Validation failed",
            detail="; ".join(f"{issue['field']}: {issue['message']}" for issue in issues),
            issues=issues,
        ) from e
