"""Main CLI entry point for the ezdom command-line tool.

Provides commands to parse and re-serialize XML files, to check them for
well-formedness and to read values out of them by child path.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ezdom import __version__
from ezdom.api.parser import EzdomParser
from ezdom.shared.config import ConfigError, ParserConfig
from ezdom.shared.logging import configure_logging, get_logger
from ezdom.tree.document import Document

logger = get_logger(__name__, component="cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="ezdom",
        description="Parse, check and query XML documents",
    )

    parser.add_argument("--version", action="version", version=__version__)

    # Global options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="JSON parser configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Parse command
    parse_parser = subparsers.add_parser(
        "parse", help="Parse XML files and print them re-serialized"
    )
    parse_parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="XML files to parse",
    )

    # Check command
    check_parser = subparsers.add_parser("check", help="Check XML files for well-formedness")
    check_parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="XML files to check",
    )
    check_parser.add_argument(
        "--format", "-f",
        choices=["json", "text"],
        default="text",
        help="Output format (default: text)",
    )

    # Get command
    get_parser = subparsers.add_parser("get", help="Print the text of an element selected by path")
    get_parser.add_argument(
        "path",
        type=Path,
        help="XML file to read",
    )
    get_parser.add_argument(
        "steps",
        nargs="*",
        help="Child steps below the root, each NAME or NAME:INDEX",
    )
    get_parser.add_argument(
        "--attribute", "-a",
        help="Print this attribute of the selected element instead of its text",
    )

    return parser


def parse_step(step: str) -> Union[str, Tuple[str, int]]:
    """Turn a ``NAME`` or ``NAME:INDEX`` argument into a path step.

    Only an all-digit suffix is an index, so prefixed names such as ``ns:a``
    select by name.
    """
    name, separator, index = step.rpartition(":")
    if not (separator and index.isdecimal()):
        name, index = step, ""
    if not name:
        raise argparse.ArgumentTypeError(f"invalid step {step!r}")
    return (name, int(index)) if index else name


def load_config(config_path: Optional[Path]) -> ParserConfig:
    """Load a parser configuration file, or return the default configuration."""
    if config_path is None:
        return ParserConfig()
    return ParserConfig.from_json(config_path.read_text())


def check_result(path: Path, document: Document) -> Dict[str, Any]:
    """Summarize one parsed file for the check command."""
    statistics = document.statistics
    return {
        "file": str(path),
        "well_formed": not document.error,
        "elements": statistics.elements,
        "attributes": statistics.attributes,
        "entities_declared": statistics.entities_declared,
        "processing_time_ms": statistics.processing_time_ms,
        "error": document.error or None,
        "diagnostics": [
            {
                "severity": diag.severity.name,
                "message": diag.message,
                "component": diag.component,
                "line": diag.line,
            } for diag in document.diagnostics
        ],
    }


def format_results(results: List[Dict[str, Any]], format_type: str) -> str:
    """Format check results for output."""
    if format_type == "json":
        return json.dumps(results, indent=2)

    if not results:
        return "No results to display."

    lines = []
    well_formed = sum(1 for r in results if r.get("well_formed", False))
    lines.append(f"Checked {len(results)} files, {well_formed} well-formed")
    lines.append("-" * 60)

    for result in results:
        status = "OK  " if result.get("well_formed", False) else "FAIL"
        lines.append(f"{status} {result['file']}")
        if "elements" in result:
            lines.append(
                f"     Elements: {result['elements']}, "
                f"Entities: {result['entities_declared']}, "
                f"Time: {result['processing_time_ms']:.1f}ms"
            )
        if result.get("error"):
            lines.append(f"     Error: {result['error']}")

    return "\n".join(lines)


def cmd_parse(args: argparse.Namespace, parser: EzdomParser) -> int:
    """Handle parse command."""
    failed = 0
    for path in args.paths:
        try:
            document = parser.parse_file(path)
        except OSError as e:
            print(f"{path}: {e.strerror or e}", file=sys.stderr)
            failed += 1
            continue
        output = document.to_xml()
        if output:
            print(output)
        if document.error:
            print(f"{path}: {document.error}", file=sys.stderr)
            failed += 1
    return EXIT_FAILURE if failed else EXIT_OK


def cmd_check(args: argparse.Namespace, parser: EzdomParser) -> int:
    """Handle check command."""
    results = []
    for path in args.paths:
        try:
            document = parser.parse_file(path)
        except OSError as e:
            results.append({
                "file": str(path),
                "well_formed": False,
                "error": e.strerror or str(e),
            })
            continue
        results.append(check_result(path, document))
        document.free()

    print(format_results(results, args.format))
    well_formed = sum(1 for r in results if r.get("well_formed", False))
    return EXIT_OK if well_formed == len(results) else EXIT_FAILURE


def cmd_get(args: argparse.Namespace, parser: EzdomParser) -> int:
    """Handle get command."""
    try:
        steps = [parse_step(step) for step in args.steps]
    except argparse.ArgumentTypeError as e:
        print(str(e), file=sys.stderr)
        return EXIT_FAILURE
    try:
        document = parser.parse_file(args.path)
    except OSError as e:
        print(f"{args.path}: {e.strerror or e}", file=sys.stderr)
        return EXIT_FAILURE
    if document.error:
        print(f"{args.path}: {document.error}", file=sys.stderr)
        return EXIT_FAILURE

    element = document.root.get(steps)
    if element is None:
        print("No element at the given path", file=sys.stderr)
        return EXIT_FAILURE
    if args.attribute:
        value = element.attribute(args.attribute)
        if value is None:
            print(f"No attribute {args.attribute!r} on <{element.name}>", file=sys.stderr)
            return EXIT_FAILURE
        print(value)
    else:
        print(element.text)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    arg_parser = create_argument_parser()
    args = arg_parser.parse_args(argv)

    if not args.command:
        arg_parser.print_help()
        return EXIT_FAILURE

    # Set up logging verbosity
    if args.verbose:
        configure_logging(logging.DEBUG)
    elif args.quiet:
        configure_logging(logging.ERROR)
    else:
        configure_logging(logging.WARNING)

    try:
        config = load_config(args.config)
    except OSError as e:
        print(f"Could not read config file {args.config}: {e.strerror or e}", file=sys.stderr)
        return EXIT_FAILURE
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE
    parser = EzdomParser(config)
    logger.debug("Running command", extra={"command": args.command})

    # Route to appropriate command handler
    try:
        if args.command == "parse":
            return cmd_parse(args, parser)
        if args.command == "check":
            return cmd_check(args, parser)
        if args.command == "get":
            return cmd_get(args, parser)
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
