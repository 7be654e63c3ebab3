"""OpenAI-backed property oracle."""

from __future__ import annotations

import logging
from typing import Any

from .base import HandoffChannel, OracleResult, PropertyOracle, SpecificProperty
from .parsing import parse_address_scope, parse_neighbouring, parse_property
from ..core.config import settings
from ..core.errors import OracleError, OracleMalformedOutput

logger = logging.getLogger(__name__)

PROPERTY_FIELDS = (
    "address, streetNumber, streetName, city, state, postalCode, latitude, "
    "longitude, propertyType, bedrooms, bathrooms, livingArea, lotSize (acres), "
    "yearBuilt, currentValue, sites"
)

DECISION_PROMPT = (
    "You decide whether an input names one specific property. "
    "A full address with a house/building number and city/state "
    "(e.g. '2554 Druid Park Dr, Baltimore, MD 21215') is 'specific'. "
    "A street name, city, neighbourhood or partial address "
    "(e.g. 'Druid Park Dr, Baltimore') is 'neighbourhood'. "
    "Respond ONLY with JSON: {\"scope\": \"specific\"|\"neighbourhood\", \"reason\": string}."
)

SPECIFIC_PROMPT = (
    "You are a property search expert. Find every available detail for the EXACT "
    "property at the given address (listing sites, tax and sales records). "
    f"Respond ONLY with a JSON object with keys {PROPERTY_FIELDS}. "
    "Use null for anything you cannot find."
)

NEIGHBOURS_PROMPT = (
    "You are a property search expert. Gather 5-10 properties located near the "
    "given address that can serve as comparables. "
    "Respond ONLY with JSON: {\"neighbouringProperties\": [...]}, each item having "
    f"keys {PROPERTY_FIELDS}. Use null for unknown values."
)


class OpenAIOracle(PropertyOracle):
    """Decision step plus one specialist search, each a JSON-mode chat completion."""
    name = "openai"

    def __init__(self, api_key: str | None = None, model: str | None = None, client: Any = None):
        self.model = model or settings.OPENAI_MODEL
        if client is None:
            api_key = api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise RuntimeError("OPENAI_API_KEY missing from settings")
            try:  # Import lazily so the package remains optional for other providers
                from openai import AsyncOpenAI
            except ImportError as exc:  # pragma: no cover - optional dependency
                raise RuntimeError("openai package is required for OpenAIOracle") from exc
            client = AsyncOpenAI(api_key=api_key)
        self.client = client

    async def resolve(self, address: str, handoff: HandoffChannel) -> OracleResult:
        scope = parse_address_scope(await self._complete(DECISION_PROMPT, address))
        logger.info("openai oracle classified address as %s", scope.scope)
        if scope.scope == "neighbourhood":
            handoff.request_details(scope.reason)
            return parse_neighbouring(await self._complete(NEIGHBOURS_PROMPT, address), reason=scope.reason)
        return SpecificProperty(record=parse_property(await self._complete(SPECIFIC_PROMPT, address)))

    async def _complete(self, instructions: str, address: str) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": instructions},
                    {"role": "user", "content": address},
                ],
                temperature=0,
                response_format={"type": "json_object"},
            )
        except Exception as exc:  # network/API issues
            raise OracleError("Error invoking OpenAI API") from exc
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise OracleMalformedOutput("OpenAI returned an empty completion")
        return content
