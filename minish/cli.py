"""Command-line interface for minish."""

from __future__ import annotations

import argparse
import logging
import sys

from .capture import IOConfig
from .exceptions import ParseError, ShellStatus
from .lexer import tokenize
from .nodes import dump
from .parser import Parser
from .shell import Interpreter


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity for interpreter diagnostics.",
    )


def _run_exec(args: argparse.Namespace) -> int:
    interpreter = Interpreter()
    io: IOConfig | None = None
    if args.capture or args.stdin is not None:
        io = IOConfig(stdin=args.stdin)
    status = interpreter.interpret(args.command, io)
    if io is not None:
        if io.stdout:
            sys.stdout.write(io.stdout_text)
        if io.stderr:
            sys.stderr.write(io.stderr_text)
    if status < 0:
        sys.stderr.write(f"minish: {ShellStatus(status).name.lower()} error ({status})\n")
        return 1
    return status


def _run_tokens(args: argparse.Namespace) -> int:
    stream = tokenize(args.command)
    for token in stream.tokens:
        sys.stdout.write(f"{token.kind.describe()} {token.start}:{token.end} {token.text}\n")
    if stream.error is not None:
        sys.stderr.write(f"error: '{stream.error.message}' at byte {stream.error.offset}\n")
        return 1
    return 0


def _run_ast(args: argparse.Namespace) -> int:
    stream = tokenize(args.command)
    if stream.error is not None:
        sys.stderr.write(f"error: '{stream.error.message}' at byte {stream.error.offset}\n")
        return 1
    try:
        tree = Parser(stream.tokens).parse()
    except ParseError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1
    sys.stdout.write(dump(tree) + "\n")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="minish")
    subparsers = parser.add_subparsers(dest="command_name", required=True)

    exec_parser = subparsers.add_parser("exec", help="Run a single command line")
    _add_common_flags(exec_parser)
    exec_parser.add_argument("command", help="Command line to execute")
    exec_parser.add_argument(
        "--capture",
        action="store_true",
        help="Capture child output and print it after the command finishes.",
    )
    exec_parser.add_argument("--stdin", default=None, help="Text fed to the command's stdin.")
    exec_parser.set_defaults(func=_run_exec)

    tokens_parser = subparsers.add_parser("tokens", help="Print the token stream")
    _add_common_flags(tokens_parser)
    tokens_parser.add_argument("command", help="Command line to tokenize")
    tokens_parser.set_defaults(func=_run_tokens)

    ast_parser = subparsers.add_parser("ast", help="Print the parsed syntax tree")
    _add_common_flags(ast_parser)
    ast_parser.add_argument("command", help="Command line to parse")
    ast_parser.set_defaults(func=_run_ast)

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    exit_code = args.func(args)
    raise SystemExit(exit_code)


__all__ = ["main"]
