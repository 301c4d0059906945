"""Data models for Text2Rule."""

from .rule_tree import (
    NodeType,
    RuleNode,
    RuleTree,
    TreeCycleError,
)
from .schemas import (
    ValidationResult,
    DecompositionResult,
    ExtractionResult,
    ScheduleParserResult,
    RuleConverterResult,
    ActionExtractionResult,
)

__all__ = [
    "NodeType",
    "RuleNode",
    "RuleTree",
    "TreeCycleError",
    "ValidationResult",
    "DecompositionResult",
    "ExtractionResult",
    "ScheduleParserResult",
    "RuleConverterResult",
    "ActionExtractionResult",
]
