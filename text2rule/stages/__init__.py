"""Stage controllers for the rule conversion pipeline."""

from .base import StageResult
from .validation import validate_input
from .decomposer import decompose_rule
from .condition_extractor import extract_conditions
from .schedule_extractor import extract_schedule, format_schedule_details
from .rule_converter import convert_rules
from .action_extractor import extract_actions
from .if_condition_generator import generate_if_conditions

__all__ = [
    "StageResult",
    "validate_input",
    "decompose_rule",
    "extract_conditions",
    "extract_schedule",
    "format_schedule_details",
    "convert_rules",
    "extract_actions",
    "generate_if_conditions",
]
