"""Readable authoring notation for modules, parsed with lark."""
from __future__ import annotations

import random
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from lark import Lark, Token, Transformer, Tree
from lark.exceptions import UnexpectedInput, VisitError

from karlik.errors import IdentifierExhaustedError, NotationError

from .ast import (
    DEFAULT_IDENT_ATTEMPTS,
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
)

_GRAMMAR_PATH = Path(__file__).with_name("karlik.lark")

_INTRINSIC_WORDS = {
    IntrinsicType.TURN_LEFT: "turn_left",
    IntrinsicType.MOVE: "move",
    IntrinsicType.PUT_WHITE: "put_white",
    IntrinsicType.PUT_GREY: "put_grey",
    IntrinsicType.PUT_BLACK: "put_black",
    IntrinsicType.PICK_UP: "pick_up",
}
_CONDITION_WORDS = {
    ConditionType.WALL: "wall",
    ConditionType.WHITE_TAG: "white_tag",
    ConditionType.GREY_TAG: "grey_tag",
    ConditionType.BLACK_TAG: "black_tag",
    ConditionType.TAG: "tag",
    ConditionType.EAST: "east",
    ConditionType.NORTH: "north",
    ConditionType.WEST: "west",
    ConditionType.SOUTH: "south",
}
_INTRINSICS = {word: itype for itype, word in _INTRINSIC_WORDS.items()}
_CONDITIONS = {word: ctype for ctype, word in _CONDITION_WORDS.items()}


# ============================================================
# Tree -> program model
# ============================================================

class NotationBuilder(Transformer):
    """Builds statements bottom-up; procedures are created before the walk.

    ``ordered`` lists the procedures in source order, since anonymous ones
    can only be matched by position.
    """

    def __init__(self, procs: Dict[str, Procedure], ordered: List[Procedure]):
        super().__init__()
        self._procs = procs
        self._ordered = iter(ordered)

    def start(self, items):
        return list(items)

    def procedure(self, items):
        statements = items[-1]
        proc = next(self._ordered)
        for stmt in statements:
            proc.body.append(stmt)
        return proc

    def block(self, items):
        return list(items)

    def intrinsic(self, items):
        return Intrinsic(_INTRINSICS[str(items[0])])

    def call(self, items):
        token = items[0]
        proc = self._procs.get(str(token))
        if proc is None:
            raise NotationError(
                f"Call to undefined procedure '{token}'",
                line=token.line,
                column=token.column,
            )
        return Call(proc)

    def if_stmt(self, items):
        cond, true_stmts = items[0], items[1]
        false_stmts = items[2] if len(items) > 2 else None
        return If(
            cond=cond,
            true_block=Block(true_stmts),
            false_block=Block(false_stmts) if false_stmts is not None else None,
        )

    def else_block(self, items):
        return items[0]

    def repeat_stmt(self, items):
        count = 0
        start_cond: Optional[Condition] = None
        end_cond: Optional[Condition] = None
        body: List[Statement] = []
        for item in items:
            if isinstance(item, Token):
                count = int(item)
            elif isinstance(item, tuple) and item[0] == "start":
                start_cond = item[1]
            elif isinstance(item, tuple) and item[0] == "end":
                end_cond = item[1]
            else:
                body = item
        return Repeat(body=Block(body), count=count, start_cond=start_cond, end_cond=end_cond)

    def start_cond(self, items):
        return ("start", items[0])

    def end_cond(self, items):
        return ("end", items[0])

    def recurse(self, _items):
        return Recurse()

    def condition(self, items):
        return Condition(ctype=_CONDITIONS[str(items[-1])], negated=len(items) == 2)


# ============================================================
# Parser helpers
# ============================================================

@lru_cache(maxsize=None)
def load_notation_parser(grammar_path: str = str(_GRAMMAR_PATH)) -> Lark:
    with open(grammar_path, "r", encoding="utf-8") as f:
        grammar = f.read()
    return Lark(grammar, start="start", parser="lalr", propagate_positions=True)


def parse_notation(
    source: str,
    parser: Optional[Lark] = None,
    *,
    rng: Optional[random.Random] = None,
    max_attempts: int = DEFAULT_IDENT_ATTEMPTS,
) -> Module:
    """Build a module from notation.

    Procedures written without an identifier get one from
    :meth:`Module.generate_ident`, drawn with ``rng`` and ``max_attempts``.
    """
    parser = parser or load_notation_parser()
    try:
        tree: Tree = parser.parse(source)
    except UnexpectedInput as exc:
        raise NotationError(
            str(exc).strip(),
            line=getattr(exc, "line", None),
            column=getattr(exc, "column", None),
        ) from exc

    module = Module()
    procs: Dict[str, Procedure] = {}
    for node in tree.children:
        token = node.children[0]
        if not isinstance(token, Token):
            continue
        ident = str(token)
        if ident in procs:
            raise NotationError(
                f"Procedure '{ident}' defined twice", line=token.line, column=token.column
            )
        procs[ident] = Procedure(ident)

    # procedures exist before any body is built so calls may refer forward
    ordered: List[Procedure] = []
    try:
        for node in tree.children:
            token = node.children[0]
            if isinstance(token, Token):
                proc = procs[str(token)]
            else:
                proc = Procedure(module.generate_ident(rng, max_attempts, reserved=procs))
            module.append(proc)
            ordered.append(proc)
        NotationBuilder(procs, ordered).transform(tree)
    except IdentifierExhaustedError:
        module.destroy()
        raise
    except VisitError as exc:
        module.destroy()
        if isinstance(exc.orig_exc, NotationError):
            raise exc.orig_exc from None
        raise
    return module


# ============================================================
# Program model -> text
# ============================================================

def format_condition(cond: Condition) -> str:
    word = _CONDITION_WORDS[cond.ctype]
    return f"not {word}" if cond.negated else word


def format_module(module: Module, indent: str = "    ") -> str:
    lines: List[str] = []
    for proc in module:
        if lines:
            lines.append("")
        lines.append(f"proc {proc.ident} {{")
        _format_block(proc.body, 1, indent, lines)
        lines.append("}")
    return "\n".join(lines) + "\n" if lines else ""


def _format_block(block: Block, depth: int, indent: str, lines: List[str]) -> None:
    for stmt in block:
        _format_stmt(stmt, depth, indent, lines)


def _format_stmt(stmt: Statement, depth: int, indent: str, lines: List[str]) -> None:
    pad = indent * depth
    if isinstance(stmt, Intrinsic):
        lines.append(f"{pad}{_INTRINSIC_WORDS[stmt.itype]};")
    elif isinstance(stmt, Call):
        lines.append(f"{pad}call {stmt.proc.ident};")
    elif isinstance(stmt, If):
        lines.append(f"{pad}if {format_condition(stmt.cond)} {{")
        _format_block(stmt.true_block, depth + 1, indent, lines)
        if stmt.false_block is not None:
            lines.append(f"{pad}}} else {{")
            _format_block(stmt.false_block, depth + 1, indent, lines)
        lines.append(f"{pad}}}")
    elif isinstance(stmt, Repeat):
        head = "repeat"
        if stmt.count:
            head += f" {stmt.count}"
        if stmt.start_cond is not None:
            head += f" while {format_condition(stmt.start_cond)}"
        lines.append(f"{pad}{head} {{")
        _format_block(stmt.body, depth + 1, indent, lines)
        tail = f" until {format_condition(stmt.end_cond)}" if stmt.end_cond is not None else ""
        lines.append(f"{pad}}}{tail}")
    elif isinstance(stmt, Recurse):
        lines.append(f"{pad}recurse;")
    else:
        raise TypeError(f"Unknown statement type: {stmt!r}")


__all__ = [
    "NotationBuilder",
    "format_condition",
    "format_module",
    "load_notation_parser",
    "parse_notation",
]
