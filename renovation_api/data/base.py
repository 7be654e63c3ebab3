import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol, Union

# ----- Data shapes (thin & explicit) -----

@dataclass(frozen=True)
class PropertyRecord:
    """One property as reported by the oracle. Any numeric field may be missing."""
    address: str
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    property_type: Optional[str] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    living_area: Optional[float] = None
    lot_size: Optional[float] = None      # acres
    year_built: Optional[int] = None
    current_value: Optional[float] = None
    sites: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "streetNumber": self.street_number,
            "streetName": self.street_name,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "propertyType": self.property_type,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "livingArea": self.living_area,
            "lotSize": self.lot_size,
            "yearBuilt": self.year_built,
            "currentValue": self.current_value,
            "sites": list(self.sites),
        }

@dataclass(frozen=True)
class DefaultAssumptions:
    square_footage: float = 2000
    bedrooms: float = 3
    bathrooms: float = 2

@dataclass(frozen=True)
class UserDetails:
    """Characteristics the caller supplies after a handoff."""
    square_footage: Optional[float] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None

    def filled_from(self, defaults: DefaultAssumptions) -> "UserDetails":
        return UserDetails(
            square_footage=self.square_footage if self.square_footage is not None else defaults.square_footage,
            bedrooms=self.bedrooms if self.bedrooms is not None else defaults.bedrooms,
            bathrooms=self.bathrooms if self.bathrooms is not None else defaults.bathrooms,
        )

DEFAULT_HANDOFF_REASON = (
    "Property not found as specific address. "
    "Need property details to find appropriate renovation allowance."
)

@dataclass(frozen=True)
class HandoffRequest:
    address: str
    reason: str
    default_assumptions: DefaultAssumptions
    event_type: str = "require_property_details"

@dataclass(frozen=True)
class SpecificProperty:
    """Oracle resolved the address to exactly one property."""
    record: PropertyRecord

    @property
    def candidates(self) -> tuple[PropertyRecord, ...]:
        return (self.record,)

@dataclass(frozen=True)
class NeighbouringProperties:
    """Oracle could only find properties near the address."""
    candidates: tuple[PropertyRecord, ...] = field(default_factory=tuple)
    reason: Optional[str] = None

OracleResult = Union[SpecificProperty, NeighbouringProperties]

# ----- Handoff signal -----

class HandoffChannel:
    """
    Single-use signal an oracle raises when the address does not identify a
    specific property. One channel per estimation call; the address travels
    with it so concurrent calls cannot see each other's context.
    """
    def __init__(self, address: str, defaults: DefaultAssumptions):
        self.address = address
        self.defaults = defaults
        self._signal: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def signal(self) -> asyncio.Future:
        return self._signal

    @property
    def fired(self) -> bool:
        return self._signal.done()

    @property
    def request(self) -> Optional[HandoffRequest]:
        return self._signal.result() if self._signal.done() else None

    def request_details(self, reason: Optional[str] = None) -> HandoffRequest:
        """Emit the handoff. Only the first call counts; later calls return it."""
        if self._signal.done():
            return self._signal.result()
        req = HandoffRequest(
            address=self.address,
            reason=reason or DEFAULT_HANDOFF_REASON,
            default_assumptions=self.defaults,
        )
        self._signal.set_result(req)
        return req

# ----- Protocols (interfaces) -----

class PropertyOracle(Protocol):
    name: str

    async def resolve(self, address: str, handoff: HandoffChannel) -> OracleResult:
        """
        Look up `address`. Before returning neighbouring properties the oracle
        should call `handoff.request_details()` as early as it knows the
        address is ambiguous.
        """
        ...
