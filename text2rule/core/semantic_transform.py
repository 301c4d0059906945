"""
Semantic Transform - the natural-language capabilities the pipeline calls.

The workflow only depends on the abstract SemanticTransform. LLMSemanticTransform
implements it with a chat model: it fills the prompt template, sends it, and
defensively parses whatever comes back. Parse failures are reported as None
(or the documented fallback) so the calling stage can decide what to do;
transport failures surface as TransformError.
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from langsmith import traceable
from pydantic import ValidationError

from text2rule.models.schemas import (
    ActionExtractionResult,
    DecompositionResult,
    ExtractionResult,
    RuleConverterResult,
    ScheduleParserResult,
    ValidationResult,
)
from text2rule.prompts import (
    ACTION_KEY,
    CONDITION_KEY,
    CONSISTENCY_KEY,
    DECOMPOSITION_KEY,
    IF_CONDITION_KEY,
    KPI_MATCHING_KEY,
    REFINEMENT_KEY,
    RULE_CONVERTER_KEY,
    SCHEDULE_KEY,
    VALIDATION_KEY,
    VALIDATION_SUFFIX,
)
from text2rule.utils.config import Config, config as default_config
from text2rule.utils.json_utils import (
    extract_json_array,
    extract_json_object,
    repair_json_object,
    strip_code_fences,
)
from text2rule.utils.llm_client import LLMClient, TransformError
from text2rule.utils.prompt_registry import PromptRegistry, fill_template

logger = logging.getLogger(__name__)

_LANGUAGE_TAG = re.compile(r"^(text|markdown)\s*\n", re.IGNORECASE)


class SemanticTransform(ABC):
    """Abstract natural-language capability consumed by the stage controllers."""

    @property
    @abstractmethod
    def model_tag(self) -> str:
        """Provenance tag stored on every node this transform produces."""

    @property
    def prompt_registry(self) -> Optional[PromptRegistry]:
        """Prompts backing this transform, if any."""
        return None

    def default_prompt(self, key: str) -> str:
        """Template a refined prompt starts from; "" when there is none."""
        registry = self.prompt_registry
        return registry.get(key) if registry is not None else ""

    async def aclose(self) -> None:
        """Release any connections held by the transform."""
        return None

    @abstractmethod
    async def validate(self, text: str) -> ValidationResult:
        """Check whether a rule is complete enough to convert."""

    @abstractmethod
    async def decompose(self, text: str, prompt_override: Optional[str] = None) -> Optional[DecompositionResult]:
        """Split a rule into normal statements and schedule. None on failure."""

    @abstractmethod
    async def extract_child_texts(
        self,
        parent_text: str,
        prompt_override: Optional[str] = None,
        input_text: str = "",
    ) -> Optional[list[str]]:
        """Split one statement into child statements. [] is valid, None is a parse failure."""

    @abstractmethod
    async def score_similarity(self, original_text: str, combined_children_text: str) -> Optional[float]:
        """Similarity in [0, 1]; None when no score could be parsed."""

    @abstractmethod
    async def refine_prompt(
        self,
        original_prompt: str,
        input_text: str,
        previous_output: str,
        feedback: str,
    ) -> str:
        """Improved prompt, or "" when refinement failed."""

    @abstractmethod
    async def parse_schedule(self, schedule_text: str) -> ScheduleParserResult:
        """Structured schedule. Raises ValueError when the answer cannot be parsed."""

    @abstractmethod
    async def convert_rule(self, statement_text: str) -> Optional[RuleConverterResult]:
        """Typed parts of one statement. None on failure."""

    @abstractmethod
    async def extract_action(self, action_text: str) -> Optional[ActionExtractionResult]:
        """Action type/channel/details. None on failure."""

    @abstractmethod
    async def match_kpis(self, segments_text: str, kpi_context: str) -> list[str]:
        """KPI names matching each condition line. [] on failure."""

    @abstractmethod
    async def generate_if_condition(
        self,
        conditions: list[str],
        kpi_context: str,
        input_text: str,
        kpi_matches: list[str],
    ) -> str:
        """One-line ``if (...)`` expression. Raises on failure."""


class LLMSemanticTransform(SemanticTransform):
    """SemanticTransform backed by a chat model."""

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        prompts: Optional[PromptRegistry] = None,
        settings: Optional[Config] = None,
    ):
        self.settings = settings or default_config
        self.client = client or LLMClient(settings=self.settings)
        self.prompts = prompts or PromptRegistry(self.settings.PROMPTS_FILE)

    @property
    def model_tag(self) -> str:
        return self.client.model_name

    @property
    def prompt_registry(self) -> PromptRegistry:
        return self.prompts

    async def aclose(self) -> None:
        await self.client.aclose()

    def _prompt(self, key: str, override: Optional[str] = None) -> str:
        return override if override else self.prompts.get(key)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @traceable(name="validate_rule")
    async def validate(self, text: str) -> ValidationResult:
        if not text or not text.strip():
            return ValidationResult(is_valid=False, issues_detected=["Input text is empty"], input_text=text or "")

        prompt = fill_template(self._prompt(VALIDATION_KEY), {".ruletext": text}) + VALIDATION_SUFFIX
        response = await self.client.complete(prompt, stage="validate")

        data = extract_json_object(response)
        if data is None:
            return ValidationResult.unparseable(response)
        try:
            result = ValidationResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Validation response did not match schema: {e}")
            return ValidationResult.unparseable(response)

        if not result.input_text:
            result.input_text = text
        logger.info(f"Validation result: valid={result.is_valid}, issues={len(result.issues_detected)}")
        return result

    # =========================================================================
    # DECOMPOSITION
    # =========================================================================

    @traceable(name="decompose_rule")
    async def decompose(self, text: str, prompt_override: Optional[str] = None) -> Optional[DecompositionResult]:
        prompt = fill_template(self._prompt(DECOMPOSITION_KEY, prompt_override), {".input": text})
        response = await self.client.complete(prompt, stage="decompose")

        data = extract_json_object(response)
        if data is None:
            return None
        try:
            result = DecompositionResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Decomposition response did not match schema: {e}")
            return None

        if not result.input_text:
            result.input_text = text
        return result

    # =========================================================================
    # CONDITION EXTRACTION
    # =========================================================================

    @traceable(name="extract_conditions")
    async def extract_child_texts(
        self,
        parent_text: str,
        prompt_override: Optional[str] = None,
        input_text: str = "",
    ) -> Optional[list[str]]:
        prompt = fill_template(
            self._prompt(CONDITION_KEY, prompt_override),
            {
                "['output.normal_statements']": parent_text,
                ".input_text": input_text or parent_text,
            },
        )
        response = await self.client.complete(prompt, stage="condition_extract")

        items = extract_json_array(response)
        if items is None:
            return None

        texts = []
        for item in items:
            if isinstance(item, str):
                text = item.strip()
            elif isinstance(item, dict):
                try:
                    text = ExtractionResult.model_validate(item).statement_text()
                except ValidationError as e:
                    logger.warning(f"Skipping malformed extraction item: {e}")
                    continue
            else:
                continue
            if text:
                texts.append(text)
        return texts

    # =========================================================================
    # CONSISTENCY SCORING
    # =========================================================================

    @traceable(name="score_similarity")
    async def score_similarity(self, original_text: str, combined_children_text: str) -> Optional[float]:
        prompt = fill_template(
            self._prompt(CONSISTENCY_KEY),
            {".original": original_text, ".children": combined_children_text},
        )
        try:
            response = await self.client.complete(prompt, stage="consistency")
        except TransformError as e:
            logger.error(f"Consistency scoring failed: {e}")
            return None

        data = extract_json_object(response)
        if data is None:
            return None

        score = data.get("similarity_score", data.get("similarityScore"))
        if isinstance(score, bool) or score is None:
            return None
        try:
            score = float(score)
        except (TypeError, ValueError):
            logger.warning(f"Non-numeric similarity score: {score!r}")
            return None
        return max(0.0, min(1.0, score))

    # =========================================================================
    # PROMPT REFINEMENT
    # =========================================================================

    @traceable(name="refine_prompt")
    async def refine_prompt(
        self,
        original_prompt: str,
        input_text: str,
        previous_output: str,
        feedback: str,
    ) -> str:
        prompt = fill_template(
            self._prompt(REFINEMENT_KEY),
            {
                ".original_prompt": original_prompt,
                ".input_text": input_text,
                ".previous_output": previous_output,
                ".feedback": feedback,
            },
        )
        try:
            response = await self.client.complete(prompt, stage="refine")
        except TransformError as e:
            logger.error(f"Prompt refinement failed: {e}")
            return ""

        return clean_refined_prompt(response)

    # =========================================================================
    # SCHEDULE / RULE CONVERSION / ACTION
    # =========================================================================

    @traceable(name="parse_schedule")
    async def parse_schedule(self, schedule_text: str) -> ScheduleParserResult:
        prompt = fill_template(self._prompt(SCHEDULE_KEY), {".output.schedule": schedule_text})
        response = await self.client.complete(prompt, stage="schedule_extract")
        try:
            return ScheduleParserResult.model_validate(repair_json_object(response))
        except ValidationError as e:
            raise ValueError(f"Schedule response did not match schema: {e}") from e

    @traceable(name="convert_rule")
    async def convert_rule(self, statement_text: str) -> Optional[RuleConverterResult]:
        prompt = fill_template(
            self._prompt(RULE_CONVERTER_KEY),
            {"['output.normal_statements']": statement_text},
        )
        response = await self.client.complete(prompt, stage="rule_convert")

        data = extract_json_object(response)
        if data is None:
            return None
        try:
            return RuleConverterResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Rule converter response did not match schema: {e}")
            return None

    @traceable(name="extract_action")
    async def extract_action(self, action_text: str) -> Optional[ActionExtractionResult]:
        prompt = fill_template(self._prompt(ACTION_KEY), {".action_text": action_text})
        response = await self.client.complete(prompt, stage="action_extract")

        data = extract_json_object(response)
        if data is None:
            return None
        try:
            return ActionExtractionResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Action response did not match schema: {e}")
            return None

    # =========================================================================
    # UNIFIED IF-CONDITION
    # =========================================================================

    @traceable(name="match_kpis")
    async def match_kpis(self, segments_text: str, kpi_context: str) -> list[str]:
        prompt = fill_template(
            self._prompt(KPI_MATCHING_KEY),
            {".segments": segments_text, ".context": kpi_context},
        )
        try:
            response = await self.client.complete(prompt, stage="kpi_matching")
        except TransformError as e:
            logger.error(f"KPI matching failed: {e}")
            return []

        items = extract_json_array(response) or []
        return [str(item) for item in items if item is not None]

    @traceable(name="generate_if_condition")
    async def generate_if_condition(
        self,
        conditions: list[str],
        kpi_context: str,
        input_text: str,
        kpi_matches: list[str],
    ) -> str:
        prompt = fill_template(
            self._prompt(IF_CONDITION_KEY),
            {
                ".conditions": json.dumps(conditions),
                ".context": kpi_context,
                ".input_text": input_text,
                ".kpi_matches": json.dumps(kpi_matches),
            },
        )
        response = await self.client.complete(prompt, stage="if_condition")
        return clean_if_condition(response)


# =============================================================================
# RESPONSE CLEANUP
# =============================================================================

def clean_refined_prompt(response: str) -> str:
    """Strip code fences and a leading text/markdown language tag."""
    if not response:
        return ""
    text = response.strip()
    if "```" in text:
        text = text.replace("```", "").strip()
    text = _LANGUAGE_TAG.sub("", text, count=1)
    return text.strip()


def clean_if_condition(response: str) -> str:
    """Reduce a model answer to the single ``if (...)`` line it contains."""
    text = strip_code_fences(response or "").replace("```", "").strip()
    for line in text.splitlines():
        if line.strip().lower().startswith("if"):
            return line.strip()
    return text.splitlines()[0].strip() if text else ""
