from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from storefront.models.stock import normalize_quantity


class OrderLineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    product_id: str = Field(
        ...,
        validation_alias=AliasChoices("productId", "product_id", "id"),
        serialization_alias="productId",
        description="Product identifier the item is reserved against.",
    )
    size: str = Field(..., description="Size key; unknown sizes never count as demand.")
    quantity: int = Field(
        0,
        validation_alias=AliasChoices("quantity", "qty"),
        description="Requested units; non-numeric or negative values count as zero.",
    )
    name: Optional[str] = Field(None, description="Display name used in exports.")

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> int:
        return normalize_quantity(v)

    @field_validator("size", mode="before")
    @classmethod
    def strip_size(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""


class OrderPayload(BaseModel):
    items: List[OrderLineItem] = Field(default_factory=list)
    total: float = Field(0, description="Order total as submitted by the storefront.")


class PreorderBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Customer full name.")
    phone: str = Field(..., description="Customer contact number.")
    email: Optional[str] = Field(None, description="Optional customer email.")
    payload: OrderPayload = Field(default_factory=OrderPayload)
    notes: Optional[str] = None


class PreorderCreate(PreorderBase):
    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        normalized = v.strip()
        if not normalized:
            raise ValueError("name must not be empty.")
        return normalized

    @field_validator("phone")
    @classmethod
    def validate_contact(cls, v: str) -> str:
        normalized = v.strip()
        if len(normalized) < 7:
            raise ValueError("phone must contain at least 7 digits.")
        return normalized


class OrderRecord(PreorderBase):
    id: str
    created_at: datetime = Field(
        ...,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class PreorderAction(str, Enum):
    CREATE = "CREATE"
    CHECK = "CHECK"
    READ_ALL = "READ_ALL"
    DELETE = "DELETE"
    CLEAR = "CLEAR"
    EXPORT_CSV = "EXPORT_CSV"


class PreorderOperationRequest(BaseModel):
    action: PreorderAction
    order_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def validate_requirements(self) -> "PreorderOperationRequest":
        if self.action == PreorderAction.DELETE and not self.order_id:
            raise ValueError("order_id is required for DELETE action.")
        if self.action in {PreorderAction.CREATE, PreorderAction.CHECK} and not self.payload:
            raise ValueError(f"payload is required for {self.action.value} action.")
        return self
