"""Command line tool for checking block visibility rules."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from .adapters import context_from_preview
from .config import SettingsError, get_settings
from .controls import TriState, registry
from .engine import explain_block_visibility

logger = logging.getLogger("block_visibility")

STATUS_LABELS = {
    TriState.TRUE: "PASS",
    TriState.FALSE: "FAIL",
    TriState.NOT_APPLICABLE: "SKIP",
}


def configure_logging(verbose: bool = False) -> None:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_document(path: Path) -> Any:
    """Load a YAML or JSON document."""
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def cmd_evaluate(args: argparse.Namespace) -> int:
    settings = get_settings(args.settings)
    attributes = load_document(args.block)
    payload = load_document(args.context) if args.context else {}

    context = context_from_preview(payload)
    visible, results = explain_block_visibility(attributes, context, settings)

    if args.json:
        print(json.dumps({
            "visible": visible,
            "controls": [
                {
                    "control": result.identifier,
                    "state": result.state.value,
                    "description": result.description,
                    "source": result.source,
                }
                for result in results
            ],
        }, indent=2))
    else:
        print("Control results:")
        for result in results:
            print(f"  [{STATUS_LABELS[result.state]}] {result.identifier}: {result.description}")
        print(f"\nBlock is {'visible' if visible else 'hidden'}.")
    return 0 if visible else 1


def cmd_controls(args: argparse.Namespace) -> int:
    settings = get_settings(args.settings)
    for definition in registry.definitions():
        enabled = "enabled" if settings.is_control_enabled(definition.slug) else "disabled"
        extra = f" (requires {definition.requires_integration})" if definition.requires_integration else ""
        print(f"{definition.identifier:<16} {definition.label:<18} {enabled}{extra}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check block visibility rules")
    parser.add_argument("--settings", type=Path, help="Settings YAML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate = subparsers.add_parser("evaluate", help="Evaluate a block's visibility")
    evaluate.add_argument("block", type=Path, help="Block visibility attributes (YAML/JSON)")
    evaluate.add_argument("--context", type=Path, help="Preview context facts (YAML/JSON)")
    evaluate.add_argument("--json", action="store_true", help="Output as JSON")
    evaluate.set_defaults(handler=cmd_evaluate)

    controls = subparsers.add_parser("controls", help="List registered controls")
    controls.set_defaults(handler=cmd_controls)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        return args.handler(args)
    except (OSError, SettingsError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
