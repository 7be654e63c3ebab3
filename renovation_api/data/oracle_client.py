import asyncio
import re
from typing import Any

import httpx

from .base import HandoffChannel, OracleResult, PropertyOracle, SpecificProperty
from .parsing import parse_address_scope, parse_neighbouring, parse_oracle_payload, parse_property
from ..core.config import settings
from ..core.errors import OracleError, OracleTimeout
from ..core.utils import fnv1a_32, normalize_address, seeded_rand

# "<number> <street>, <city>, <ST> ..." identifies one building
FULL_ADDRESS = re.compile(r"^\s*\d+[A-Za-z]?\s+[^,]+,\s*[^,]+,\s*[A-Za-z]{2}\b")

PROPERTY_TYPES = ["Residential", "Single Family", "Townhouse", "Condominium"]

class MockOracle(PropertyOracle):
    """
    Deterministic stand-in for the property search. The address string seeds
    every value, so the same address always yields the same record(s).
    """
    name = "mock"

    def __init__(self, neighbours: int = 8):
        self.neighbours = neighbours

    async def resolve(self, address: str, handoff: HandoffChannel) -> OracleResult:
        seed = fnv1a_32(normalize_address(address))
        if FULL_ADDRESS.match(address):
            return parse_oracle_payload({"kind": "specific_property", "property": self._property(address, seed)})

        handoff.request_details()
        # Let the caller observe the handoff before the neighbourhood search "runs"
        await asyncio.sleep(0)
        street, city, state = _split_partial(address)
        items = []
        for i in range(self.neighbours):
            number = 100 + int(seeded_rand(seed + 97 * i, 1)[0] * 8900)
            line = f"{number} {street}" + (f", {city}" if city else "") + (f", {state}" if state else "")
            items.append(self._property(line, seed + 31 * (i + 1), city=city, state=state))
        return parse_oracle_payload({
            "kind": "neighbouring_properties",
            "reason": handoff.request.reason,
            "neighbouringProperties": items,
        })

    def _property(self, address: str, seed: int, city: str | None = None, state: str | None = None) -> dict[str, Any]:
        r = seeded_rand(seed, 7)
        parts = [p.strip() for p in address.split(",")]
        first = parts[0].split(" ", 1)
        return {
            "address": address,
            "streetNumber": first[0] if len(first) > 1 else None,
            "streetName": first[-1],
            "city": city or (parts[1] if len(parts) > 1 else None),
            "state": state or (parts[2].split()[0] if len(parts) > 2 and parts[2] else None),
            "postalCode": parts[2].split()[1] if len(parts) > 2 and len(parts[2].split()) > 1 else None,
            "propertyType": PROPERTY_TYPES[int(r[0] * len(PROPERTY_TYPES)) % len(PROPERTY_TYPES)],
            "bedrooms": 2 + int(r[1] * 4),                         # 2..5
            "bathrooms": 1 + int(r[2] * 3),                        # 1..3
            "livingArea": 900 + int(r[3] * 2400),
            "lotSize": round(0.05 + r[4] * 0.45, 2),
            "yearBuilt": 1920 + int(r[5] * 100),
            "currentValue": 150_000 + int(r[6] * 1300) * 500,      # 150k..800k in 500 steps
            "sites": [],
        }

def _split_partial(address: str) -> tuple[str, str | None, str | None]:
    parts = [p.strip() for p in address.split(",") if p.strip()]
    street = re.sub(r"^\d+[A-Za-z]?\s+", "", parts[0]) if parts else address.strip()
    city = parts[1] if len(parts) > 1 else None
    state = parts[2].split()[0] if len(parts) > 2 else None
    return street, city, state

class HttpOracle(PropertyOracle):
    """
    Client for a property-search service. Two phases: classify the address,
    then fetch either the property or its neighbours. The handoff is raised
    as soon as classification says "neighbourhood".
    """
    name = "http"

    def __init__(self, base_url: str, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.ORACLE_HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def resolve(self, address: str, handoff: HandoffChannel) -> OracleResult:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            scope = parse_address_scope(await self._post(client, "/classify", address))
            if scope.scope == "neighbourhood":
                handoff.request_details(scope.reason)
                return parse_neighbouring(await self._post(client, "/neighbours", address), reason=scope.reason)
            return SpecificProperty(record=parse_property(await self._post(client, "/property", address)))

    async def _post(self, client: httpx.AsyncClient, path: str, address: str) -> bytes:
        try:
            r = await client.post(path, json={"address": address})
            r.raise_for_status()
        except httpx.TimeoutException as exc:
            raise OracleTimeout(f"property search {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise OracleError(f"property search {path} failed: {exc}") from exc
        return r.content

def oracle_client() -> PropertyOracle:
    """
    Factory picks mock, http or openai based on env flags.
    """
    if settings.ORACLE_PROVIDER == "http" and settings.ORACLE_BASE_URL:
        return HttpOracle(settings.ORACLE_BASE_URL)
    if settings.ORACLE_PROVIDER == "openai":
        from .openai_oracle import OpenAIOracle
        return OpenAIOracle()
    return MockOracle()
