"""Test the command-line entry point."""
import json

import pytest

from text2rule import cli


def fake_pipeline(final_state):
    calls = []

    async def run(rule_text, **kwargs):
        calls.append((rule_text, kwargs))
        return final_state

    return run, calls


def test_prints_tree_and_json(monkeypatch, capsys):
    run, calls = fake_pipeline({
        "final_status": "OK",
        "ascii_tree": "--- ASCII Tree Visualization ---\n└── [Root] r",
        "rule_json": [{"detail": {"rules": {"id": "0", "pid": "#"}}}],
    })
    monkeypatch.setattr(cli, "run_rule_pipeline", run)

    exit_code = cli.main(["If ARPU > 100 send SMS", "--delay", "0"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert out.startswith("--- ASCII Tree Visualization ---")
    assert json.loads(out[out.index("\n[") + 1:]) == [{"detail": {"rules": {"id": "0", "pid": "#"}}}]
    assert calls[0][0] == "If ARPU > 100 send SMS"
    assert calls[0][1]["inter_call_delay"] == 0


def test_reads_rule_from_file_and_fails_on_invalid(monkeypatch, capsys, tmp_path):
    rule_file = tmp_path / "rule.txt"
    rule_file.write_text("rule from file", encoding="utf-8")
    run, calls = fake_pipeline({"final_status": "INVALID", "failure_reason": "Missing action"})
    monkeypatch.setattr(cli, "run_rule_pipeline", run)

    exit_code = cli.main(["--file", str(rule_file)])

    assert exit_code == 1
    assert calls[0][0] == "rule from file"
    assert "Missing action" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
