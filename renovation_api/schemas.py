from typing import Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class UserDetailsIn(BaseModel):
    square_footage: float | None = Field(default=None, gt=0)
    bedrooms: float | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)

class EstimateRequest(CamelModel):
    address: str | None = None
    user_details: UserDetailsIn | None = None
    is_follow_up: bool = False

class DefaultAssumptionsOut(BaseModel):
    square_footage: float
    bedrooms: float
    bathrooms: float

class HandoffEvent(BaseModel):
    event_type: Literal["require_property_details"] = "require_property_details"
    address: str
    reason: str
    default_assumptions: DefaultAssumptionsOut

class PropertyDetails(CamelModel):
    list_price: int = 0
    living_area: float | None = None
    bedrooms: float | None = None
    bathrooms: float | None = None
    year_built: int | None = None
    property_type: str | None = None

class Comparables(CamelModel):
    renovated: list[dict] = Field(default_factory=list)
    as_is: list[dict] = Field(default_factory=list)

class CalculationDetails(CamelModel):
    arv_formula: str
    chv_formula: str
    renovation_formula: str
    calculation_method: Literal["specific_property", "fallback_calculation", "agent_matching", "pending_user_input"]

class AgentData(CamelModel):
    neighbouring_properties: list[dict] = Field(default_factory=list)
    matching_properties: list[dict] | None = None
    agent_workflow: Literal["specific_property", "neighbouring_properties"]

class EstimationResult(CamelModel):
    property_address: str
    arv: int = 0
    chv: int = 0
    renovation_allowance: int = Field(default=0, ge=0)
    property_details: PropertyDetails
    comparables: Comparables = Field(default_factory=Comparables)
    calculation_details: CalculationDetails
    handoff_event: HandoffEvent | None = None
    requires_user_input: bool = False
    agent_data: AgentData
    cached: bool = False

class ErrorResponse(BaseModel):
    error: str
    detail: str
