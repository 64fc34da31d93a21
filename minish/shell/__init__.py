"""Interpreter package: builtins, executor and entry points."""

from .common import CommandResult, ExecContext
from .core import Interpreter, interpret, interpret_fmt

__all__ = ["CommandResult", "ExecContext", "Interpreter", "interpret", "interpret_fmt"]
