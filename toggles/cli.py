import argparse
import sys
from collections.abc import Sequence
from typing import TextIO

from toggles.config import ToggleConfig
from toggles.nouns import PREDICATES
from toggles.reference import generate_reference
from toggles.result import Err, Ok
from toggles.verbs import UnknownVerbError, VerbKind, resolve_verb


def handle_check(names: Sequence[str], *, as_verb: bool, out: TextIO) -> int:
    """Validate each name as a noun name (default) or as a verb name."""
    invalid = 0
    for name in names:
        if as_verb:
            try:
                kind = resolve_verb(name)
            except UnknownVerbError:
                out.write(f"  ✗ {name}: not a verb\n")
                invalid += 1
                continue
            match kind:
                case VerbKind.POSITIVE:
                    out.write(f"  ✓ {name}: sets True\n")
                case VerbKind.NEGATIVE:
                    out.write(f"  ✓ {name}: sets False\n")
                case VerbKind.TOGGLE:
                    out.write(f"  ✓ {name}: inverts is_active\n")
            continue

        if not name.isidentifier():
            out.write(f"  ✗ {name}: not a valid identifier\n")
            invalid += 1
            continue
        try:
            resolve_verb(name)
        except UnknownVerbError:
            pass
        else:
            out.write(f"  ✗ {name}: conflicts with the verb of the same name\n")
            invalid += 1
            continue
        if name in PREDICATES:
            out.write(f"  ⚠ {name}: valid, but shadows a predicate name\n")
        else:
            out.write(f"  ✓ {name}\n")

    out.write(f"\n  {len(names) - invalid}/{len(names)} valid\n")
    return 1 if invalid else 0


def handle_config(out: TextIO) -> int:
    match ToggleConfig.from_env():
        case Ok(config):
            out.write(f"  mode:             {config.mode.value}\n")
            out.write(f"  ttl:              {config.ttl_seconds:g}s\n")
            out.write(f"  sweep interval:   {config.sweep_interval_seconds:g}s\n")
            out.write(f"  max notify depth: {config.max_notify_depth}\n")
            return 0
        case Err(e):
            print(f"Invalid configuration: {e}", file=sys.stderr)
            return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toggles",
        description="Inspect the toggle vocabulary and configuration",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "reference",
        help="Print the predicate and verb reference (Markdown).",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate noun names (or verb names with --as verb).",
    )
    check_parser.add_argument("names", nargs="+", metavar="NAME")
    check_parser.add_argument(
        "--as",
        dest="kind",
        choices=["noun", "verb"],
        default="noun",
        help="What the names are meant to be (default: noun).",
    )

    subparsers.add_parser(
        "config",
        help="Print the configuration read from the environment and .env.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the console script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    match args.command:
        case "reference":
            print(generate_reference())
            return 0
        case "check":
            return handle_check(args.names, as_verb=args.kind == "verb", out=sys.stdout)
        case "config":
            return handle_config(sys.stdout)
        case None:
            parser.print_help()
            return 1
        case _:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            parser.print_help()
            return 1


if __name__ == "__main__":
    sys.exit(main())
