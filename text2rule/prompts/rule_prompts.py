"""
Default prompt templates for the rule conversion pipeline.

Placeholders use the ``{{ $json.name }}`` form and are filled by literal
find-replace (see utils/prompt_registry.fill_template), so JSON braces in the
templates need no escaping.
"""

# =============================================================================
# VALIDATION
# =============================================================================

VALIDATION_PROMPT = """You are a validator for marketing campaign rules written in plain English.

Check whether the rule below is complete enough to be converted into an executable campaign rule.

A valid rule:
- has at least one CONDITION on subscriber attributes or KPIs (revenue, location, recharge, usage, ...)
- has at least one ACTION (send SMS, give bonus, send promotion, ...)
- if an action sends a message, it names a Message ID
- may optionally contain a bonus, sampling, policy and schedule

RULE:
{{ $json.ruletext }}

Return a JSON object with exactly these fields:
{
  "is_valid": true | false,
  "issues_detected": ["<issue>", ...],
  "suggestion": "<how to fix the rule, empty if valid>",
  "input_text": "<the rule text>",
  "has_condition": true | false,
  "has_action": true | false,
  "has_bonus": true | false,
  "has_sampling": true | false,
  "has_policy": true | false,
  "has_schedule": true | false,
  "has_valid_format": true | false,
  "has_message_id_with_action": true | false
}"""

VALIDATION_SUFFIX = "\nValidate the rule and return a valid JSON object matching the format. Output ONLY the JSON."

# =============================================================================
# DECOMPOSITION
# =============================================================================

DECOMPOSITION_PROMPT = """You split a campaign rule into two parts.

1. normal_statements: every targeting condition and the action(s) tied to it, rewritten as
   clear standalone statements. If the rule describes several alternative variants, return
   one string per variant in a list.
2. schedule: everything about WHEN the campaign runs (days, times, dates, repetition).
   Use an empty string if the rule has no schedule.

Do not drop any condition, threshold, Message ID or channel.

RULE:
{{ $json.input }}

Return ONLY a JSON object:
{"normal_statements": "<text or list of texts>", "schedule": "<text>"}"""

# =============================================================================
# CONDITION EXTRACTION
# =============================================================================

CONDITION_EXTRACTION_PROMPT = """You extract atomic condition -> action rules from campaign statements.

Full rule (for context):
{{ $json.input_text }}

Statements to split:
{{ $json['output.normal_statements'] }}

For every distinct group of subscribers, return one item. Keep every threshold, unit,
comparison word and Message ID exactly as written.

Return ONLY a JSON array:
[
  {"rule": "<one complete sentence>", "condition": "<conditions>", "actions": "<actions>",
   "policy": "", "sampling": "", "schedule": ""}
]"""

# =============================================================================
# SCHEDULE PARSING
# =============================================================================

SCHEDULE_PARSER_PROMPT = """Convert the campaign schedule below into structured fields.

SCHEDULE:
{{ $json.output.schedule }}

Return ONLY a JSON object with these fields (empty string when unknown):
{
  "schedule_type": "Daily | Weekly | Monthly | Once",
  "repeat": "Yes | No",
  "day": "", "select_days": "",
  "start_time": {"hours": "HH", "minutes": "MM"},
  "end_time": {"hours": "HH", "minutes": "MM"},
  "interval": "Yes | No", "frequency": "",
  "segment_rule_start_date": "YYYY-MM-DD",
  "segment_rule_end_date": "YYYY-MM-DD"
}"""

# =============================================================================
# RULE CONVERSION
# =============================================================================

RULE_CONVERTER_PROMPT = """Break the campaign statement below into typed parts.

STATEMENT:
{{ $json['output.normal_statements'] }}

- segments: list of individual targeting conditions, one per item
  (e.g. "SMS revenue in last 30 days = 15 RO")
- actions: what to do for matching subscribers, including channel and Message ID
- policy: any policy or eligibility rule, else ""
- schedule: any timing that applies only to this statement, else ""
- sampling: any control group / sampling rule, else ""

Return ONLY a JSON object:
{"segments": ["..."], "actions": "", "policy": "", "schedule": "", "sampling": ""}"""

# =============================================================================
# ACTION EXTRACTION
# =============================================================================

ACTION_EXTRACTION_PROMPT = """Classify the campaign action below.

ACTION:
{{ $json.action_text }}

Return ONLY a JSON object:
{"action_type": "<e.g. Send Promotion, Give Bonus>", "channel": "<SMS | EMAIL | PUSH | ...>",
 "details": "<remaining details, include Message ID: N when present>"}"""

# =============================================================================
# CONSISTENCY CHECK
# =============================================================================

CONSISTENCY_CHECK_PROMPT = """You compare an original campaign rule with the statements derived from it.

ORIGINAL:
{{ $json.original }}

DERIVED STATEMENTS:
{{ $json.children }}

Score how completely and faithfully the derived statements preserve the meaning of the
original: every condition, threshold, action, Message ID and schedule detail.
1.0 means nothing was lost or changed, 0.0 means unrelated.

Return ONLY a JSON object:
{"similarity_score": <number between 0 and 1>, "reason": "<short explanation>"}"""

# =============================================================================
# PROMPT REFINEMENT
# =============================================================================

PROMPT_REFINEMENT_PROMPT = """You improve an instruction prompt that produced a low-quality result.

CURRENT PROMPT:
{{ $json.original_prompt }}

INPUT GIVEN TO THE PROMPT:
{{ $json.input_text }}

OUTPUT IT PRODUCED:
{{ $json.previous_output }}

FEEDBACK:
{{ $json.feedback }}

Rewrite the prompt so the next output keeps every detail the feedback says was lost.
Keep all placeholders of the form {{ $json.* }} unchanged and keep the required output format.
Return ONLY the improved prompt text."""

# =============================================================================
# UNIFIED IF-CONDITION GENERATION
# =============================================================================

KPI_MATCHING_PROMPT = """Match each targeting condition to the closest KPI name.

CONDITIONS (one per line):
{{ $json.segments }}

AVAILABLE KPIs:
{{ $json.context }}

Return ONLY a JSON array of KPI names, one per condition, in the same order."""

IF_CONDITION_PROMPT = """Write a single IF expression for the targeting conditions below.

CONDITIONS (JSON list):
{{ $json.conditions }}

MATCHED KPIs:
{{ $json.kpi_matches }}

AVAILABLE KPIs:
{{ $json.context }}

ORIGINAL STATEMENT:
{{ $json.input_text }}

Use the form: if (KPI_A >= 10) AND (KPI_B = 'value')
Operators: >=, <=, !=, >, <, =. Join conditions with AND. Quote text values.
Return ONLY one line."""


# =============================================================================
# REGISTRY DEFAULTS
# =============================================================================

DEFAULT_PROMPTS: dict[str, dict] = {
    "basic_validator_agent_prompt": {"template": VALIDATION_PROMPT},
    "statement_decompostion_agent_prompt": {"template": DECOMPOSITION_PROMPT},
    "condition_extraction_prompt": {"template": CONDITION_EXTRACTION_PROMPT},
    "schedule_parser_prompt": {"template": SCHEDULE_PARSER_PROMPT},
    "rule_converter_prompt": {"template": RULE_CONVERTER_PROMPT},
    "action_extraction_prompt": {"template": ACTION_EXTRACTION_PROMPT},
    "consistency_check_prompt": {
        "template": CONSISTENCY_CHECK_PROMPT,
        "attributes": {"consistency_threshold": "0.80", "max_retries": "3"},
    },
    "prompt_refinement_prompt": {"template": PROMPT_REFINEMENT_PROMPT},
    "unified_kpi_matching_prompt": {"template": KPI_MATCHING_PROMPT},
    "unified_if_condition_prompt": {"template": IF_CONDITION_PROMPT},
}
