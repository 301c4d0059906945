"""Up-front validation of the raw rule text."""
import logging

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.schemas import ValidationResult

logger = logging.getLogger(__name__)


@traceable(name="validate_input")
async def validate_input(text: str, transform: SemanticTransform) -> ValidationResult:
    """
    Single pass/fail check before any tree exists.

    Blank input is rejected without calling the transform.
    """
    if not text or not text.strip():
        return ValidationResult(is_valid=False, issues_detected=["Input text is empty"], input_text=text or "")

    try:
        result = await transform.validate(text)
    except Exception as e:
        logger.error(f"Validation call failed: {e}")
        return ValidationResult(is_valid=False, issues_detected=[f"Validation call failed: {e}"], input_text=text)

    if not result.is_valid and not result.issues_detected:
        result.issues_detected = ["Rule rejected by validator"]
    return result
