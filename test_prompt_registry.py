"""Tests for the prompt registry and template filling."""
import pytest

from text2rule.prompts import CONSISTENCY_KEY, DECOMPOSITION_KEY
from text2rule.utils.prompt_registry import PromptNotFoundError, PromptRegistry, fill_template


def test_fill_template_replaces_named_tokens():
    template = "Rule: {{ $json.input }}\nStatements: {{ $json['output.normal_statements'] }}"

    filled = fill_template(template, {".input": "R", "['output.normal_statements']": "S"})

    assert filled == "Rule: R\nStatements: S"


def test_fill_template_is_single_pass_and_keeps_json_braces():
    """Placeholders inside inserted values and literal JSON braces are left alone."""
    template = 'Refine: {{ $json.original_prompt }}\nReturn {"a": 1} for {{ $json.input_text }}'

    filled = fill_template(
        template,
        {".original_prompt": "Use {{ $json.input_text }} here", ".input_text": "the rule"},
    )

    assert filled == 'Refine: Use {{ $json.input_text }} here\nReturn {"a": 1} for the rule'


def test_unknown_placeholders_stay():
    assert fill_template("{{ $json.other }}", {".input": "x"}) == "{{ $json.other }}"
    assert fill_template("no tokens", {}) == "no tokens"


def test_defaults_are_registered_with_gate_attributes():
    registry = PromptRegistry()

    assert DECOMPOSITION_KEY in registry.keys()
    assert "{{ $json.input }}" in registry.get(DECOMPOSITION_KEY)
    assert registry.get_float(CONSISTENCY_KEY, "consistency_threshold", 0.5) == 0.8
    assert registry.get_int(CONSISTENCY_KEY, "max_retries", 9) == 3


def test_unknown_key_raises_key_error():
    registry = PromptRegistry()

    with pytest.raises(PromptNotFoundError):
        registry.get("missing_prompt")
    with pytest.raises(KeyError):
        registry.get("missing_prompt")
    assert registry.get_attribute("missing_prompt", "x", "fallback") == "fallback"


def test_bad_numeric_attribute_falls_back():
    registry = PromptRegistry()
    registry.register("p", "template", {"consistency_threshold": "high", "max_retries": "2.5"})

    assert registry.get_float("p", "consistency_threshold", 0.8) == 0.8
    assert registry.get_int("p", "max_retries", 3) == 3


def test_xml_file_overrides_and_extends(tmp_path):
    prompts_file = tmp_path / "prompts.xml"
    prompts_file.write_text(
        """<prompts>
  <prompt key="consistency_check_prompt" consistency_threshold="0.9" max_retries="1">
    Compare {{ $json.original }} with {{ $json.children }}
  </prompt>
  <prompt key="custom_prompt">Hello {{ $json.name }}</prompt>
  <prompt>no key, skipped</prompt>
</prompts>""",
        encoding="utf-8",
    )

    registry = PromptRegistry(str(prompts_file))

    assert registry.get(CONSISTENCY_KEY) == "Compare {{ $json.original }} with {{ $json.children }}"
    assert registry.get_float(CONSISTENCY_KEY, "consistency_threshold", 0.8) == 0.9
    assert registry.get_int(CONSISTENCY_KEY, "max_retries", 3) == 1
    assert registry.get("custom_prompt") == "Hello {{ $json.name }}"
    assert DECOMPOSITION_KEY in registry.keys()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
