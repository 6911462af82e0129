"""Shared schemas for field mappings and mapping sets."""

# Module responsibilities:
# - Describe a single field placement (box, font, format rules) and the named
#   collection of placements persisted by the configuration store.
# - Accept both the authoring tool's camelCase keys and snake_case keys.

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_VERSION = "1.0"


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Position(_Model):
    x: float = Field(default=0, ge=0)
    y: float = Field(default=0, ge=0)


class Size(_Model):
    width: float = Field(default=0, ge=0)
    height: float = Field(default=0, ge=0)


class FieldMapping(_Model):
    """One placement rule: where and how a record field is drawn."""

    field: str
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    font_size: float = Field(default=12, gt=0, alias="fontSize")
    align: Align = Align.LEFT
    date_format: Optional[str] = Field(default=None, alias="dateFormat")
    number_format: bool = Field(default=False, alias="numberFormat")
    decimal_places: int = Field(default=0, ge=0, alias="decimalPlaces")
    default_value: str = Field(default="", alias="defaultValue")

    @field_validator("default_value", mode="before")
    @classmethod
    def _default_as_text(cls, value: object) -> object:
        return "" if value is None else str(value)


class OutputSettings(_Model):
    folder_id: Optional[str] = Field(default=None, alias="folderId")
    document_number_field: Optional[str] = Field(default=None, alias="documentNumberField")
    extension: str = "pdf"
    font_name: Optional[str] = Field(default=None, alias="fontName")

    @field_validator("extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        return value.strip().lstrip(".") or "pdf"


class DeliverySettings(_Model):
    enabled: bool = False
    recipient_field: Optional[str] = Field(default=None, alias="recipientField")
    subject: str = ""
    body: str = ""
    cc: List[str] = Field(default_factory=list)
    bcc: List[str] = Field(default_factory=list)

    @field_validator("cc", "bcc", mode="before")
    @classmethod
    def _split_addresses(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class MappingSet(_Model):
    """Named configuration: template reference, ordered mappings and settings."""

    name: str
    pdf_template_id: Optional[str] = Field(default=None, alias="pdfTemplateId")
    mappings: List[FieldMapping] = Field(default_factory=list)
    output_settings: OutputSettings = Field(default_factory=OutputSettings, alias="outputSettings")
    delivery_settings: DeliverySettings = Field(default_factory=DeliverySettings, alias="deliverySettings")
    version: str = CONFIG_VERSION
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")

    @property
    def field_count(self) -> int:
        return len(self.mappings)

    def to_payload(self) -> dict:
        """Serialize using the authoring tool's camelCase keys."""

        return self.model_dump(mode="json", by_alias=True)
