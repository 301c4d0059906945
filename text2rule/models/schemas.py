"""Pydantic models for LLM responses and API requests/responses."""
import json
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Optional


class LLMResult(BaseModel):
    """Base for parsed LLM output. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


# =============================================================================
# LLM RESPONSE MODELS
# =============================================================================

class ValidationResult(LLMResult):
    """Outcome of the up-front rule validation check."""

    is_valid: bool = False
    issues_detected: list[str] = Field(default_factory=list)
    suggestion: str = ""
    input_text: str = ""
    has_condition: bool = False
    has_action: bool = False
    has_bonus: bool = False
    has_sampling: bool = False
    has_policy: bool = False
    has_schedule: bool = False
    has_valid_format: bool = False
    has_message_id_with_action: bool = False

    @field_validator("issues_detected", mode="before")
    @classmethod
    def _issues_as_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [_text(v) for v in value]

    @field_validator("suggestion", "input_text", mode="before")
    @classmethod
    def _as_text(cls, value):
        return _text(value)

    @classmethod
    def unparseable(cls, response: str) -> "ValidationResult":
        return cls(
            is_valid=False,
            issues_detected=[f"Validation failed: Could not parse JSON response. Response: {response}"],
        )


class DecompositionResult(LLMResult):
    """Split of the rule into its normal statements and its schedule."""

    normal_statements: str = ""
    schedule: str = ""
    input_text: str = ""

    @field_validator("normal_statements", mode="before")
    @classmethod
    def _join_statements(cls, value):
        # Several rule variants in one field are alternatives of each other.
        if isinstance(value, list):
            return ", otherwise ".join(_text(v) for v in value if v is not None)
        return _text(value)

    @field_validator("schedule", "input_text", mode="before")
    @classmethod
    def _as_text(cls, value):
        return _text(value)


class ExtractionResult(LLMResult):
    """One extracted condition/action statement."""

    condition: str = ""
    actions: str = ""
    input_text: str = ""
    sampling: str = ""
    policy: str = ""
    schedule: str = ""
    rule: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value):
        return _text(value)

    def statement_text(self) -> str:
        if self.rule.strip():
            return self.rule.strip()
        return f"Condition: {self.condition} -> Action: {self.actions}"


class ScheduleParserResult(LLMResult):
    """Structured schedule fields."""

    schedule_type: str = ""
    repeat: str = ""
    last_fetch: str = ""
    segment_rule_start_date: str = ""
    segment_rule_end_date: str = ""
    interval: str = ""
    frequency: str = ""
    hours: str = ""
    minutes: str = ""
    type: str = ""
    period: str = ""
    week: str = ""
    day: str = ""
    select_days: str = ""
    start_time: dict = Field(default_factory=dict)
    end_time: dict = Field(default_factory=dict)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _as_dict(cls, value):
        return value if isinstance(value, dict) else {}

    @field_validator(
        "schedule_type", "repeat", "last_fetch", "segment_rule_start_date",
        "segment_rule_end_date", "interval", "frequency", "hours", "minutes",
        "type", "period", "week", "day", "select_days",
        mode="before",
    )
    @classmethod
    def _as_text(cls, value):
        if isinstance(value, list):
            return ", ".join(_text(v) for v in value)
        return _text(value)


class RuleConverterResult(LLMResult):
    """Typed parts of one segment statement."""

    segments: list[str] = Field(default_factory=list)
    actions: str = ""
    policy: str = ""
    schedule: str = ""
    sampling: str = ""

    @field_validator("segments", mode="before")
    @classmethod
    def _segments_as_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [_text(v) for v in value]

    @field_validator("actions", "policy", "schedule", "sampling", mode="before")
    @classmethod
    def _as_text(cls, value):
        return _text(value)


class ActionExtractionResult(LLMResult):
    """Action type, delivery channel and free-text details."""

    action_type: str = ""
    details: str = ""
    channel: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value):
        return _text(value)


# =============================================================================
# API MODELS
# =============================================================================

class ConvertRequest(BaseModel):
    """Request model for the conversion endpoint."""

    rule_text: str = Field(..., description="Free-text policy rule to convert")
    kpi_context: Optional[str] = Field(
        None,
        description="Optional KPI catalogue used when generating IF conditions"
    )


class ConsistencySummary(BaseModel):
    """Last recorded gate outcome for one stage."""

    score: Optional[float] = None
    retries: int = 0
    passed: bool = False
    feedback: Optional[str] = None


class ConvertResponse(BaseModel):
    """Response model for the conversion endpoint."""

    final_status: str
    validation: Optional[dict] = None
    failure_reason: Optional[str] = None
    consistency: dict[str, ConsistencySummary] = Field(default_factory=dict)
    tree: Optional[dict] = None
    ascii_tree: str = ""
    rule_json: list = Field(default_factory=list)
    stage_timings: dict[str, int] = Field(default_factory=dict)


class RenderRequest(BaseModel):
    """Request to render a serialized tree into rule JSON."""

    tree: dict = Field(..., description="Serialized RuleTree (RuleTree.to_dict())")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    model: str
