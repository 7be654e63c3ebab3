"""Oracle boundary: raw payload in, typed OracleResult out.

Everything an oracle returns passes through here exactly once. Downstream code
works with PropertyRecord / OracleResult and never re-inspects raw payloads.
"""

import json
import logging
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .base import NeighbouringProperties, OracleResult, PropertyRecord, SpecificProperty
from ..core.errors import OracleMalformedOutput

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 10


class OracleProperty(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    address: str
    street_number: Optional[str] = Field(default=None, alias="streetNumber")
    street_name: Optional[str] = Field(default=None, alias="streetName")
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    property_type: Optional[str] = Field(default=None, alias="propertyType")
    bedrooms: Optional[float] = Field(default=None, ge=0)
    bathrooms: Optional[float] = Field(default=None, ge=0)
    living_area: Optional[float] = Field(default=None, alias="livingArea", ge=0)
    lot_size: Optional[float] = Field(default=None, alias="lotSize", ge=0)
    year_built: Optional[int] = Field(default=None, alias="yearBuilt")
    current_value: Optional[float] = Field(default=None, alias="currentValue")
    sites: Optional[list[str]] = None

    def to_record(self) -> PropertyRecord:
        data = self.model_dump(exclude={"sites"})
        return PropertyRecord(**data, sites=tuple(self.sites or ()))


class SpecificPayload(BaseModel):
    kind: Literal["specific_property"]
    property: OracleProperty


class NeighbouringPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["neighbouring_properties"]
    reason: Optional[str] = None
    neighbouring_properties: list[OracleProperty] = Field(default_factory=list, alias="neighbouringProperties")


class ScopePayload(BaseModel):
    scope: Literal["specific", "neighbourhood"]
    reason: Optional[str] = None


_payload_adapter = TypeAdapter(
    Union[SpecificPayload, NeighbouringPayload]
)


def _load(payload: Any, what: str) -> Any:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OracleMalformedOutput(f"{what} is not valid UTF-8") from exc
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            snippet = payload.strip()[:80]
            raise OracleMalformedOutput(f"{what} is not JSON: {snippet!r}") from exc
    return payload


def parse_oracle_payload(payload: Any) -> OracleResult:
    """Validate a property-search payload (dict or JSON text)."""
    data = _load(payload, "oracle payload")
    try:
        parsed = _payload_adapter.validate_python(data)
    except ValidationError as exc:
        raise OracleMalformedOutput(f"oracle payload failed validation: {exc.error_count()} error(s)") from exc

    if isinstance(parsed, SpecificPayload):
        return SpecificProperty(record=parsed.property.to_record())
    return _neighbouring(parsed.neighbouring_properties, parsed.reason)


def _neighbouring(items: list[OracleProperty], reason: Optional[str]) -> NeighbouringProperties:
    if len(items) > MAX_CANDIDATES:
        logger.warning("oracle returned %d neighbouring properties; keeping %d", len(items), MAX_CANDIDATES)
        items = items[:MAX_CANDIDATES]
    return NeighbouringProperties(
        candidates=tuple(p.to_record() for p in items),
        reason=reason,
    )


def parse_property(payload: Any) -> PropertyRecord:
    """Validate a bare property object."""
    data = _load(payload, "property payload")
    try:
        return OracleProperty.model_validate(data).to_record()
    except ValidationError as exc:
        raise OracleMalformedOutput(f"property payload failed validation: {exc.error_count()} error(s)") from exc


def parse_address_scope(payload: Any) -> ScopePayload:
    """Validate the classification step ("is this one specific property?")."""
    data = _load(payload, "scope payload")
    try:
        return ScopePayload.model_validate(data)
    except ValidationError as exc:
        raise OracleMalformedOutput(f"scope payload failed validation: {exc.error_count()} error(s)") from exc


class NeighbourList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    neighbouring_properties: list[OracleProperty] = Field(default_factory=list, alias="neighbouringProperties")


def parse_neighbouring(payload: Any, reason: Optional[str] = None) -> NeighbouringProperties:
    """Validate a `{"neighbouringProperties": [...]}` search result."""
    data = _load(payload, "neighbours payload")
    try:
        parsed = NeighbourList.model_validate(data)
    except ValidationError as exc:
        raise OracleMalformedOutput(f"neighbours payload failed validation: {exc.error_count()} error(s)") from exc
    return _neighbouring(parsed.neighbouring_properties, reason)
