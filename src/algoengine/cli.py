"""
algoengine command line

    algoengine parse "base * Math.pow(2, n)"
    algoengine optimize "x * 1 + 0"
    algoengine validate "value / 0"
    algoengine run algorithm.json --n 3
    algoengine generate algorithm.json

Exit status is 1 when the expression or algorithm has errors.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__
from .engine_exceptions import AlgorithmEngineError, AlgorithmExecutionError
from .expressions.builtins import format_value
from .expressions.codegen import generate_javascript
from .expressions.optimizer import optimize_expression
from .expressions.parser import parse_expression, parse_number
from .expressions.validator import ASTValidator, Severity
from .logging_config import reconfigure_log_directory, restore_stderr_logging, suppress_stderr_logging
from .models import Algorithm
from .services.config_loader import reset_config_loader
from .services.execution_service import AlgorithmExecutionService


def _parse_errors(node) -> List[str]:
    return list(node.metadata.validation_errors) if node.metadata is not None else []


def _load_algorithm(path: Path) -> Algorithm:
    with open(path, "r", encoding="utf-8") as f:
        return Algorithm.model_validate(json.load(f))


def _parse_mode_context(pairs: Optional[List[str]]) -> Dict[str, str]:
    modes: Dict[str, str] = {}
    for pair in pairs or []:
        dimension, sep, mode = pair.partition("=")
        if not sep or not dimension or not mode:
            raise ValueError(f"Expected DIMENSION=MODE, got {pair!r}")
        modes[dimension] = mode
    return modes


def _parse_context(text: Optional[str]) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    context = json.loads(text)
    if not isinstance(context, dict):
        raise ValueError(f"--context must be a JSON object, got {type(context).__name__}")
    return context


# ============================================================
# COMMANDS
# ============================================================

def cmd_parse(args, console: Console) -> int:
    node = parse_expression(args.expression)
    console.print_json(json.dumps(node.to_dict()))
    errors = _parse_errors(node)
    for error in errors:
        console.print(Text(f"Parse error: {error}", style="red"))
    return 1 if errors else 0


def cmd_optimize(args, console: Console) -> int:
    node = parse_expression(args.expression)
    errors = _parse_errors(node)
    if errors:
        for error in errors:
            console.print(Text(f"Parse error: {error}", style="red"))
        return 1
    optimized = optimize_expression(node)
    console.print(generate_javascript(optimized), highlight=False)
    return 0


def cmd_validate(args, console: Console) -> int:
    node = parse_expression(args.expression)
    result = ASTValidator().validate(node)

    if not result.issues:
        console.print(Text("No issues found", style="green"))
        return 0

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Severity", width=8)
    table.add_column("Message")
    for issue in result.issues:
        style = "red" if issue.severity == Severity.ERROR else "yellow"
        table.add_row(Text(issue.severity.value, style=style), issue.message)
    console.print(table)
    return 0 if result.valid else 1


def cmd_run(args, console: Console) -> int:
    algorithm = _load_algorithm(args.file)
    service = AlgorithmExecutionService()

    problems = service.validate_algorithm(algorithm)
    if problems:
        for problem in problems:
            console.print(Text(problem, style="red"))
        return 1

    context = _parse_context(args.context)
    try:
        result = service.execute_algorithm(
            algorithm, args.n, context=context,
            mode_context=_parse_mode_context(args.mode),
        )
    except AlgorithmExecutionError as e:
        console.print(Text(str(e), style="red"))
        return 1

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Step")
    table.add_column("Result", justify="right")
    for name, value in result.results.items():
        table.add_row(name, format_value(value))
    console.print(table)
    console.print(f"final result: {format_value(result.final_result)}", highlight=False)
    return 0


def cmd_generate(args, console: Console) -> int:
    algorithm = _load_algorithm(args.file)
    service = AlgorithmExecutionService()
    tokens = service.generate_tokens_for_algorithm(
        algorithm, mode_context=_parse_mode_context(args.mode)
    )

    if not tokens:
        console.print(Text("Token generation is disabled for this algorithm", style="yellow"))
        return 0

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Token")
    table.add_column("n", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Formula")
    for token in tokens:
        value: Any = Text(token.error, style="red") if token.error else token.value.value
        table.add_row(token.display_name, format_value(token.iteration_value), value, token.formula_name)
    console.print(table)
    return 1 if any(token.error for token in tokens) else 0


COMMANDS = {
    "parse": cmd_parse,
    "optimize": cmd_optimize,
    "validate": cmd_validate,
    "run": cmd_run,
    "generate": cmd_generate,
}


# ============================================================
# ENTRY POINT
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="algoengine", description="Algorithm Expression Engine")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project", "-p", type=Path, help="Project root holding algoengine.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("parse", "Print the AST of an expression"),
        ("optimize", "Print the optimized form of an expression"),
        ("validate", "List errors and warnings for an expression"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("expression", help="Expression source text")

    run = sub.add_parser("run", help="Execute an algorithm JSON file for one iteration value")
    run.add_argument("file", type=Path, help="Algorithm JSON file")
    run.add_argument("--n", type=parse_number, default=0, help="Iteration value (default: 0)")
    run.add_argument("--context", help="Extra variables as a JSON object")
    run.add_argument("--mode", action="append", metavar="DIMENSION=MODE", help="Active mode for a dimension")

    generate = sub.add_parser("generate", help="Generate the token series of an algorithm JSON file")
    generate.add_argument("file", type=Path, help="Algorithm JSON file")
    generate.add_argument("--mode", action="append", metavar="DIMENSION=MODE", help="Active mode for a dimension")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the algoengine command."""
    args = build_parser().parse_args(argv)

    if args.project:
        os.environ["ALGOENGINE_PROJECT_ROOT"] = str(args.project.resolve())
        reset_config_loader()
        reconfigure_log_directory()

    if args.verbose:
        logging.getLogger("algoengine").setLevel(logging.DEBUG)

    console = Console()
    # Failures are reported in the rendered output; keep log lines out of it
    if not args.verbose:
        suppress_stderr_logging()
    try:
        return COMMANDS[args.command](args, console)
    except (OSError, json.JSONDecodeError, ValidationError, ValueError, AlgorithmEngineError) as e:
        console.print(Text(f"Error: {e}", style="red"))
        return 1
    finally:
        restore_stderr_logging()


if __name__ == "__main__":
    sys.exit(main())
