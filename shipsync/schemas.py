"""
Request schemas.
Validate and normalize caller input; camelCase on the wire.
"""

from decimal import Decimal
from typing import Optional, Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from shipsync.errors import ValidationError


class CamelModel(BaseModel):
    """Base for request bodies that accept camelCase or snake_case keys."""
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ShipmentParty(CamelModel):
    """Sender or receiver."""
    name: str = Field(min_length=1)
    phone: str = Field(min_length=3)
    address: str = Field(min_length=3)


class ShipmentDetails(CamelModel):
    """Shipment intent captured at checkout time."""
    location: str = Field(min_length=1)
    weight: float = Field(ge=0.1, le=100)
    is_cod: bool = True
    same_day_delivery: bool = False
    is_sensitive: bool = False
    special_notes: Optional[str] = None
    customer_code: Optional[str] = None


class CreatePaymentSessionRequest(CamelModel):
    """Body of POST /api/payments/create-session."""
    amount: Decimal = Field(gt=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    description: str = Field(min_length=1, max_length=127)
    order_id: Optional[str] = None
    sender: ShipmentParty
    receiver: ShipmentParty
    shipment: ShipmentDetails


class ShipmentRequest(CamelModel):
    """Carrier shipment request, either posted directly or rebuilt from a session."""
    order_id: str = Field(min_length=1)
    sender_name: str = Field(min_length=1)
    sender_phone: str = Field(min_length=3)
    sender_address: str = Field(min_length=3)
    receiver_name: str = Field(min_length=1)
    receiver_address: str = Field(min_length=1)
    receiver_phone: str = Field(min_length=1)
    item_value: Decimal = Field(ge=0)
    weight: float = Field(ge=0.1, le=100)
    location: str = Field(min_length=1)
    is_cod: bool = True
    same_day_delivery: bool = False
    is_sensitive: bool = False
    special_notes: Optional[str] = None
    customer_code: Optional[str] = None


def validation_details(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors to [{field, message}]."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def parse_create_session(data: Any) -> CreatePaymentSessionRequest:
    """Validate raw input into a CreatePaymentSessionRequest."""
    if isinstance(data, CreatePaymentSessionRequest):
        return data
    try:
        return CreatePaymentSessionRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Validation failed.", details=validation_details(e)) from e
