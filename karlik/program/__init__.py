"""Program model, its snapshot format and the authoring notation."""

from .ast import (
    Block,
    Call,
    Condition,
    ConditionType,
    If,
    Intrinsic,
    IntrinsicType,
    Module,
    Procedure,
    Recurse,
    Repeat,
    Statement,
    StatementType,
)
from .codec import dump, dumps, load, loads
from .notation import format_module, parse_notation

__all__ = [
    "Block",
    "Call",
    "Condition",
    "ConditionType",
    "If",
    "Intrinsic",
    "IntrinsicType",
    "Module",
    "Procedure",
    "Recurse",
    "Repeat",
    "Statement",
    "StatementType",
    "dump",
    "dumps",
    "format_module",
    "load",
    "loads",
    "parse_notation",
]
