"""Text-to-structured conversion of a finished rule tree."""

from .condition_parser import ConditionParser, parse_if_condition
from .action_parser import ActionParser, build_action, parse_action_details
from .schedule_parser import ScheduleParser, extract_value
from .rule_json_builder import RuleJsonBuilder
from .renderers import FinalRuleJsonRenderer, AsciiTreeRenderer

__all__ = [
    "ConditionParser",
    "parse_if_condition",
    "ActionParser",
    "build_action",
    "parse_action_details",
    "ScheduleParser",
    "extract_value",
    "RuleJsonBuilder",
    "FinalRuleJsonRenderer",
    "AsciiTreeRenderer",
]
