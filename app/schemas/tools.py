from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Amount = Union[int, float, str]


class ToolInput(BaseModel):
    """Base for tool request bodies. Unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: Any):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProposalInput(ToolInput):
    title: str
    industry: str
    scope: str
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    min_budget: Optional[Amount] = Field(default=None, alias="minBudget")
    max_budget: Optional[Amount] = Field(default=None, alias="maxBudget")
    tone: Optional[str] = None


class EmailInput(ToolInput):
    original_email: str = Field(alias="originalEmail")
    tone: Optional[str] = None
    context: Optional[str] = None


class PricingInput(ToolInput):
    project_type: str = Field(alias="projectType")
    scope: str
    timeline: Optional[str] = None
    experience: Optional[str] = None
    region: Optional[str] = None


class ContractInput(ToolInput):
    contract_text: str = Field(alias="contractText")
    focus_areas: Optional[List[str]] = Field(default=None, alias="focusAreas")


class BriefInput(ToolInput):
    text: str


class OnboardingInput(ToolInput):
    client_name: str = Field(alias="clientName")
    business_type: str = Field(alias="businessType")
    project_type: str = Field(alias="projectType")
    timeline: Optional[str] = None
    budget: Optional[Amount] = None
    tone: Optional[str] = None
    additional_info: Optional[str] = Field(default=None, alias="additionalInfo")


class ToolResponse(BaseModel):
    text: str
    generationTime: float


class ExportRecordRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    toolType: str
    action: str
    format: str
    content: Union[dict, str]


class NotionExportRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    toolType: str
    title: str = Field(..., min_length=1, max_length=2000)
    content: str = Field(..., min_length=1)
    notionToken: str = Field(..., min_length=1)
    databaseId: str = Field(..., min_length=1)
    parentType: str = Field(default="database", pattern="^(database|page)$")
