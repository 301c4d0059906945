"""Tests for text-to-structured conversion and the tree renderers."""
import json

import pytest

from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree


def finished_tree() -> RuleTree:
    """A tree shaped like the output of a full pipeline run."""
    tree = RuleTree(RuleNode(NodeType.ROOT, "the rule", similarity_score=0.9))
    schedule = tree.add_child(tree.root, RuleNode(NodeType.SCHEDULE, "every Monday"))
    tree.add_child(schedule, RuleNode(NodeType.SCHEDULE_DETAILS, "Schedule Type: Weekly, Repeat: Yes"))
    statements = tree.add_child(tree.root, RuleNode(NodeType.NORMAL_STATEMENTS, "statements"))
    segment = tree.add_child(statements, RuleNode(NodeType.SEGMENT, "Condition: c -> Action: a"))
    group = tree.add_child(segment, RuleNode(NodeType.SEGMENTS_GROUP, "ARPU > 100\nDATA >= 5"))
    tree.add_child(group, RuleNode(NodeType.IF_CONDITION, "if (ARPU > 100) AND (DATA >= 5)"))
    action = tree.add_child(segment, RuleNode(NodeType.ACTION, "send SMS"))
    tree.add_child(action, RuleNode(NodeType.ACTION_DETAILS, "Action: Send Bonus, Channel: Email, Message ID: 77"))
    return tree


# =============================================================================
# CONDITIONS
# =============================================================================

def test_condition_split_on_and():
    """if (X >= 10) AND (Y = 'abc') -> two conditions with coerced values."""
    from text2rule.converters import parse_if_condition

    conditions = parse_if_condition("if (X >= 10) AND (Y = 'abc')")

    assert len(conditions) == 2
    first, second = conditions
    assert first["profile"]["name"] == "X"
    assert first["operator"] == ">="
    assert first["values"]["value"] == 10
    assert second["profile"]["name"] == "Y"
    assert second["operator"] == "="
    assert second["values"]["value"] == "abc"
    assert (first["id"], first["pid"], second["id"]) == ("0_0", "0", "0_1")
    assert (first["profile"]["id"], second["profile"]["id"]) == (1000, 1001)
    assert first["type"] == "condition"


def test_operator_precedence_and_numeric_coercion():
    """Two-character operators win; a decimal point gives a float."""
    from text2rule.converters import parse_if_condition

    conditions = parse_if_condition('if(BALANCE <= 12.5) AND (PLAN != "gold") AND (AGE > 30)')

    assert [c["operator"] for c in conditions] == ["<=", "!=", ">"]
    assert conditions[0]["values"]["value"] == 12.5
    assert isinstance(conditions[0]["values"]["value"], float)
    assert conditions[1]["values"]["value"] == "gold"
    assert conditions[2]["values"]["value"] == 30


def test_unparseable_conjunct_is_skipped():
    from text2rule.converters import parse_if_condition

    conditions = parse_if_condition("if (ARPU > 100) AND (customer is loyal)")
    assert [c["profile"]["name"] for c in conditions] == ["ARPU"]


def test_condition_parser_walks_if_condition_nodes():
    """IfCondition matching ignores case and accepts the legacy IF_Condition tag."""
    from text2rule.converters import ConditionParser

    tree = finished_tree()
    tree.add_child(tree.root, RuleNode("IF_Condition", "if (TENURE < 6)"))

    conditions = ConditionParser().extract_conditions(tree.root)

    assert [c["profile"]["name"] for c in conditions] == ["ARPU", "DATA", "TENURE"]
    assert [c["id"] for c in conditions] == ["0_0", "0_1", "0_2"]


# =============================================================================
# ACTIONS
# =============================================================================

def test_action_defaults_to_sms_without_channel():
    from text2rule.converters import build_action

    action = build_action("Action: Send Bonus, Message ID: 12")
    request = {f["name"]: f["value"] for f in action["request"]["field"]}

    assert request["CHANNEL"] == "SMS"
    assert request["MESSAGE_ID"] == "12"
    assert action["action"] == {"id": 5, "name": "Send Bonus"}


def test_action_fields_and_fallbacks():
    from text2rule.converters import build_action, parse_action_details

    assert parse_action_details("Type: Promo, Message ID: 9, junk") == {"Type": "Promo", "Message_ID": "9"}

    action = build_action("Type: Promo, Channel: Email")
    request = {f["name"]: f["value"] for f in action["request"]["field"]}
    fields = {f["name"]: f["value"] for f in action["field"]}

    assert action["action"]["name"] == "Send Promotion"
    assert request == {"ActionKey": "campaign_action", "CHANNEL": "Email", "MESSAGE_ID": ""}
    assert fields == {
        "ActionCall": "EXTERNAL",
        "ActionName": "UPLOADER_MAIN",
        "ActionURL": "UPLOADER_CALL",
        "ActionType": "ASYNCH",
    }


def test_action_parser_only_uses_actions_with_details():
    from text2rule.converters import ActionParser

    tree = finished_tree()
    tree.add_child(tree.root, RuleNode(NodeType.ACTION, "no details yet"))

    actions = ActionParser().extract_actions(tree.root)
    assert len(actions) == 1
    assert actions[0]["action"]["name"] == "Send Bonus"


# =============================================================================
# SCHEDULE
# =============================================================================

def test_schedule_label_and_fixed_fields():
    from text2rule.converters import ScheduleParser, extract_value

    assert extract_value("Schedule Type: Weekly, Repeat: Yes", "Schedule Type:") == "Weekly"
    assert extract_value("Schedule Type: Daily", "Schedule Type:") == "Daily"
    assert extract_value("Repeat: Yes", "Schedule Type:") == ""

    schedule = ScheduleParser().extract_schedule(finished_tree().root)
    fields = {f["name"]: f["value"] for f in schedule["field"]}

    assert fields == {
        "ScheduleId": "",
        "ScheduleName": "Weekly",
        "ScheduleType": "Weekly",
        "StartDate": "2024-11-01",
        "ExpiryDate": "2024-11-30",
        "Repeat": "Yes",
    }


def test_no_schedule_details_gives_none():
    from text2rule.converters import ScheduleParser

    tree = RuleTree(RuleNode(NodeType.ROOT, "r"))
    tree.add_child(tree.root, RuleNode(NodeType.SCHEDULE, "weekly"))
    assert ScheduleParser().extract_schedule(tree.root) is None


# =============================================================================
# ASSEMBLY
# =============================================================================

def test_builder_attaches_every_action_under_every_condition():
    """Actions are copied under each condition with nested ids."""
    from text2rule.converters import RuleJsonBuilder

    conditions = [{"id": "0_0", "pid": "0", "type": "condition"}, {"id": "0_1", "pid": "0", "type": "condition"}]
    actions = [{"id": "0_0", "pid": "0", "type": "action"}, {"id": "0_1", "pid": "0", "type": "action"}]

    output = RuleJsonBuilder().with_conditions(conditions).with_actions(actions).build()

    rules = output[0]["detail"]["rules"]
    assert (rules["id"], rules["pid"]) == ("0", "#")
    assert "schedule" not in rules
    children = rules["childrens"]
    assert [c["id"] for c in children] == ["0_0", "0_1"]
    assert [a["id"] for a in children[1]["childrens"]] == ["0_1_0", "0_1_1"]
    assert all(a["pid"] == "0_1" for a in children[1]["childrens"])
    # Copies, not shared references
    assert children[0]["childrens"][0] is not children[1]["childrens"][0]
    assert actions[0]["id"] == "0_0"


def test_builder_omits_empty_childrens():
    from text2rule.converters import RuleJsonBuilder

    output = RuleJsonBuilder().with_schedule({"field": []}).build()
    assert output == [{"detail": {"rules": {"id": "0", "pid": "#", "schedule": {"field": []}}}}]

    only_conditions = RuleJsonBuilder().with_conditions([{"type": "condition"}]).build()
    assert "childrens" not in only_conditions[0]["detail"]["rules"]["childrens"][0]


def test_final_renderer_end_to_end():
    from text2rule.converters import FinalRuleJsonRenderer

    renderer = FinalRuleJsonRenderer()
    tree = finished_tree()
    before = tree.to_dict()

    output = renderer.render(tree)

    rules = output[0]["detail"]["rules"]
    assert len(rules["childrens"]) == 2
    assert rules["childrens"][0]["childrens"][0]["id"] == "0_0_0"
    assert rules["schedule"]["field"][1]["value"] == "Weekly"
    assert json.loads(renderer.render_json(tree)) == output
    assert tree.to_dict() == before
    assert renderer.render(None) == []
    assert renderer.render(RuleTree()) == []


def test_ascii_renderer_draws_tree():
    from text2rule.converters import AsciiTreeRenderer

    text = AsciiTreeRenderer().render(finished_tree())
    lines = text.splitlines()

    assert lines[0] == "--- ASCII Tree Visualization ---"
    assert lines[1] == "└── [Root] the rule (score: 0.90)"
    assert lines[2] == "    ├── [Schedule] every Monday"
    assert lines[3] == "    │   └── [ScheduleDetails] Schedule Type: Weekly, Repeat: Yes"
    assert lines[4] == "    └── [NormalStatements] statements"
    assert "[segments] ARPU > 100 | DATA >= 5" in text
    assert lines[-1].startswith("---")
    assert AsciiTreeRenderer().render(None) == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
