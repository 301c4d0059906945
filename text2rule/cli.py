"""Command-line entry point: convert one rule and print the tree and rule JSON."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from text2rule.graph import run_rule_pipeline
from text2rule.utils.config import config

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="text2rule",
        description="Convert a free-text policy rule into a rule tree and rule JSON.",
    )
    parser.add_argument("rule_text", nargs="?", help="Rule text to convert")
    parser.add_argument("--file", "-f", help="Read the rule text from a file")
    parser.add_argument("--kpi-context", help="KPI catalogue text used for IF generation")
    parser.add_argument("--kpi-file", help="Read the KPI catalogue from a file")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between LLM calls")
    parser.add_argument("--json-only", action="store_true", help="Print only the rule JSON")
    return parser.parse_args(argv)


def read_rule_text(args: argparse.Namespace) -> str:
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    if args.rule_text:
        return args.rule_text
    return sys.stdin.read()


def main(argv=None) -> int:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%H:%M:%S',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    args = parse_args(argv)
    rule_text = read_rule_text(args)
    kpi_context = Path(args.kpi_file).read_text(encoding="utf-8") if args.kpi_file else args.kpi_context

    state = asyncio.run(
        run_rule_pipeline(rule_text, kpi_context=kpi_context, inter_call_delay=args.delay)
    )

    status = state.get("final_status")
    if status in ("INVALID", "FAIL"):
        print(f"Status: {status}")
        print(f"Reason: {state.get('failure_reason', '')}")
        return 1

    if not args.json_only and state.get("ascii_tree"):
        print(state["ascii_tree"])
    print(json.dumps(state.get("rule_json", []), indent=2))
    if status == "BEST_EFFORT":
        logger.warning("Output produced with low consistency, review before use")
    return 0


if __name__ == "__main__":
    sys.exit(main())
