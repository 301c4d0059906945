"""Shared pytest fixtures: a scripted SemanticTransform so no test touches the network."""
from collections import Counter
from typing import Optional

import pytest

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.schemas import (
    ActionExtractionResult,
    DecompositionResult,
    RuleConverterResult,
    ScheduleParserResult,
    ValidationResult,
)


SAMPLE_RULE = (
    "If a subscriber's ARPU is above 100 and data usage is at least 5 GB, "
    "send an SMS with Message ID 4521. Run every Monday at 09:00."
)


def _next(value):
    """Pop from a script list (the last entry repeats); plain values repeat forever."""
    if isinstance(value, list):
        return value.pop(0) if len(value) > 1 else value[0]
    return value


class FakeSemanticTransform(SemanticTransform):
    """
    Scripted stand-in for the LLM-backed transform.

    Scores for the root-level gate (original text == the decomposed input)
    come from ``decompose_scores``; every other gate call uses
    ``condition_scores``. Lists are consumed one per call.
    """

    def __init__(
        self,
        valid: bool = True,
        issues: Optional[list] = None,
        normal_statements="ARPU > 100 and data usage >= 5 GB -> send SMS with Message ID 4521",
        schedule: str = "every Monday at 09:00",
        segments: Optional[list] = None,
        decompose_scores=0.95,
        condition_scores=0.95,
        refined: str = "refined prompt",
        converted: Optional[RuleConverterResult] = None,
        action: Optional[ActionExtractionResult] = None,
        if_text: str = "if (ARPU > 100) AND (DATA_USAGE_GB >= 5)",
    ):
        self.valid = valid
        self.issues = issues or []
        self.normal_statements = normal_statements
        self.schedule = schedule
        self.segments = segments if segments is not None else [
            "Condition: ARPU > 100 and data usage >= 5 GB -> Action: send SMS with Message ID 4521",
        ]
        self.decompose_scores = decompose_scores
        self.condition_scores = condition_scores
        self.refined = refined
        self.converted = converted or RuleConverterResult(
            segments=["ARPU > 100", "data usage >= 5 GB"],
            actions="Send SMS with Message ID 4521",
        )
        self.action = action or ActionExtractionResult(
            action_type="Send Promotion", channel="SMS", details="Message ID 4521",
        )
        self.if_text = if_text

        self.calls = Counter()
        self.prompt_overrides = []
        self.decompose_inputs = set()
        self.score_requests = []

    @property
    def model_tag(self) -> str:
        return "fake-model"

    async def validate(self, text):
        self.calls["validate"] += 1
        return ValidationResult(is_valid=self.valid, issues_detected=self.issues, input_text=text)

    async def decompose(self, text, prompt_override=None):
        self.calls["decompose"] += 1
        self.prompt_overrides.append(prompt_override)
        self.decompose_inputs.add(text)
        return DecompositionResult(normal_statements=self.normal_statements, schedule=self.schedule, input_text=text)

    async def extract_child_texts(self, parent_text, prompt_override=None, input_text=""):
        self.calls["extract"] += 1
        return list(self.segments)

    async def score_similarity(self, original_text, combined_children_text):
        self.calls["score"] += 1
        self.score_requests.append((original_text, combined_children_text))
        if original_text in self.decompose_inputs:
            return _next(self.decompose_scores)
        return _next(self.condition_scores)

    async def refine_prompt(self, original_prompt, input_text, previous_output, feedback):
        self.calls["refine"] += 1
        return self.refined

    async def parse_schedule(self, schedule_text):
        self.calls["schedule"] += 1
        return ScheduleParserResult(
            schedule_type="Weekly",
            repeat="Yes",
            day="Monday",
            start_time={"hours": "9", "minutes": "0"},
        )

    async def convert_rule(self, statement_text):
        self.calls["convert"] += 1
        return self.converted

    async def extract_action(self, action_text):
        self.calls["action"] += 1
        return self.action

    async def match_kpis(self, segments_text, kpi_context):
        self.calls["kpi"] += 1
        return ["ARPU", "DATA_USAGE_GB"]

    async def generate_if_condition(self, conditions, kpi_context, input_text, kpi_matches):
        self.calls["if"] += 1
        return self.if_text


@pytest.fixture
def make_transform():
    """Factory for scripted transforms: make_transform(decompose_scores=0.5, ...)."""
    return FakeSemanticTransform


@pytest.fixture
def sample_rule():
    return SAMPLE_RULE
