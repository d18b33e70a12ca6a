"""Line-oriented text format for programs and the runtime state built on them."""
from __future__ import annotations

import io
import logging
import re
from enum import IntEnum
from typing import List, Optional, TextIO, Tuple, Type, TypeVar

from karlik.errors import DuplicateIdentifierError, ProgramLoadError

from .ast import (
    IDENT_ALPHABET,
    PROC_IDENT_LEN,
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

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=IntEnum)

_UINT_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"-?[0-9]+")


class SnapshotReader:
    """Cursor over snapshot text.

    Numbers are whitespace-delimited; identifiers occupy exactly
    ``PROC_IDENT_LEN`` characters followed by a newline.
    """

    def __init__(self, text: str):
        self._text = text
        self._pos = 0
        self._line = 1

    @property
    def line(self) -> int:
        return self._line

    def error(self, message: str) -> ProgramLoadError:
        return ProgramLoadError(message, line=self.line)

    def read_uint(self, what: str = "integer") -> int:
        return self._read_number(_UINT_RE, what)

    def read_int(self, what: str = "integer") -> int:
        return self._read_number(_INT_RE, what)

    def read_flag(self, what: str = "flag") -> bool:
        value = self.read_uint(what)
        if value not in (0, 1):
            raise self.error(f"Expected 0 or 1 for {what}, got {value}")
        return value == 1

    def read_enum(self, enum_cls: Type[E], what: str) -> E:
        value = self.read_uint(what)
        try:
            return enum_cls(value)
        except ValueError:
            raise self.error(f"{what} {value} out of range") from None

    def read_ident(self) -> str:
        end = self._pos + PROC_IDENT_LEN
        ident = self._text[self._pos:end]
        if len(ident) != PROC_IDENT_LEN or any(ch not in IDENT_ALPHABET for ch in ident):
            raise self.error(
                f"Expected {PROC_IDENT_LEN} uppercase letters as procedure identifier"
            )
        if self._text[end:end + 1] != "\n":
            raise self.error("Procedure identifier must be followed by a newline")
        self._advance(end + 1)
        return ident

    def expect(self, literal: str) -> None:
        self._skip_ws()
        if not self._text.startswith(literal, self._pos):
            raise self.error(f"Expected {literal!r}")
        self._advance(self._pos + len(literal))
        self._skip_ws()

    def at_end(self) -> bool:
        self._skip_ws()
        return self._pos >= len(self._text)

    def expect_end(self) -> None:
        if not self.at_end():
            raise self.error("Unexpected trailing data")

    def _read_number(self, pattern: "re.Pattern[str]", what: str) -> int:
        self._skip_ws()
        match = pattern.match(self._text, self._pos)
        if match is None:
            raise self.error(f"Expected {what}")
        self._advance(match.end())
        nxt = self._text[self._pos:self._pos + 1]
        if nxt and not nxt.isspace():
            raise self.error(f"Malformed {what}")
        self._skip_ws()
        return int(match.group(0))

    def _skip_ws(self) -> None:
        text = self._text
        end = self._pos
        while end < len(text) and text[end].isspace():
            end += 1
        self._advance(end)

    def _advance(self, end: int) -> None:
        self._line += self._text.count("\n", self._pos, end)
        self._pos = end


class SnapshotWriter:
    def __init__(self, fp: TextIO):
        self._fp = fp

    def write_uint(self, value: int, end: str = "\n") -> None:
        if value < 0:
            raise ValueError(f"Cannot write negative value {value} as unsigned")
        self._fp.write(f"{int(value)}{end}")

    def write_ints(self, *values: int) -> None:
        self._fp.write(" ".join(str(int(v)) for v in values) + "\n")

    def write_ident(self, ident: str) -> None:
        self._fp.write(f"{ident}\n")

    def write_line(self, text: str) -> None:
        self._fp.write(f"{text}\n")


# ----------------------------------------------------------------------
# Writing


def write_module(writer: SnapshotWriter, module: Module) -> None:
    writer.write_uint(len(module))
    for proc in module:
        writer.write_ident(proc.ident)
        write_block(writer, proc.body)


def write_block(writer: SnapshotWriter, block: Block) -> None:
    writer.write_uint(len(block))
    for stmt in block:
        write_statement(writer, stmt)


def write_statement(writer: SnapshotWriter, stmt: Statement) -> None:
    writer.write_uint(stmt.stype, end=" ")
    if isinstance(stmt, Intrinsic):
        writer.write_uint(stmt.itype)
    elif isinstance(stmt, Call):
        writer.write_ident(stmt.proc.ident)
    elif isinstance(stmt, If):
        write_condition(writer, stmt.cond)
        write_block(writer, stmt.true_block)
        writer.write_uint(1 if stmt.false_block is not None else 0)
        if stmt.false_block is not None:
            write_block(writer, stmt.false_block)
    elif isinstance(stmt, Repeat):
        writer.write_uint(stmt.count)
        writer.write_uint(1 if stmt.start_cond is not None else 0)
        if stmt.start_cond is not None:
            write_condition(writer, stmt.start_cond)
        write_block(writer, stmt.body)
        writer.write_uint(1 if stmt.end_cond is not None else 0)
        if stmt.end_cond is not None:
            write_condition(writer, stmt.end_cond)
    elif isinstance(stmt, Recurse):
        writer.write_line("R")
    else:
        raise TypeError(f"Unknown statement type: {stmt!r}")


def write_condition(writer: SnapshotWriter, cond: Condition) -> None:
    writer.write_ints(1 if cond.negated else 0, cond.ctype)


def write_stmt_ref(writer: SnapshotWriter, proc: Procedure, stmt: Statement) -> None:
    """Persist a statement position as (procedure identifier, linear index)."""

    writer.write_ident(proc.ident)
    writer.write_uint(proc.stmt_index(stmt))


# ----------------------------------------------------------------------
# Reading


class _ModuleLoader:
    def __init__(self, reader: SnapshotReader):
        self.reader = reader
        self.module = Module()
        # call statements wait until every procedure of the module is known
        self._pending: List[Tuple[Call, str, int]] = []

    def load(self) -> Module:
        try:
            count = self.reader.read_uint("procedure count")
            for _ in range(count):
                self._load_procedure()
            self._resolve_calls()
        except ProgramLoadError:
            self.module.destroy()
            raise
        return self.module

    def _load_procedure(self) -> None:
        line = self.reader.line
        ident = self.reader.read_ident()
        proc = Procedure(ident)
        self._load_block_into(proc.body)
        try:
            self.module.append(proc)
        except DuplicateIdentifierError as exc:
            proc.destroy()
            raise ProgramLoadError(str(exc), line=line) from exc

    def _load_block(self) -> Block:
        block = Block()
        self._load_block_into(block)
        return block

    def _load_block_into(self, block: Block) -> None:
        count = self.reader.read_uint("statement count")
        for _ in range(count):
            block.append(self._load_statement())

    def _load_statement(self) -> Statement:
        reader = self.reader
        stype = reader.read_enum(StatementType, "statement type")
        if stype == StatementType.INTRINSIC:
            return Intrinsic(reader.read_enum(IntrinsicType, "intrinsic type"))
        if stype == StatementType.CALL:
            line = reader.line
            ident = reader.read_ident()
            stmt = Call(proc=None)  # type: ignore[arg-type]
            self._pending.append((stmt, ident, line))
            return stmt
        if stype == StatementType.IF:
            cond = self._load_condition()
            true_block = self._load_block()
            false_block = self._load_block() if reader.read_flag("false-branch flag") else None
            return If(cond=cond, true_block=true_block, false_block=false_block)
        if stype == StatementType.REPEAT:
            count = reader.read_uint("repeat count")
            start_cond = self._load_condition() if reader.read_flag("start-condition flag") else None
            body = self._load_block()
            end_cond = self._load_condition() if reader.read_flag("end-condition flag") else None
            return Repeat(body=body, count=count, start_cond=start_cond, end_cond=end_cond)
        reader.expect("R")
        return Recurse()

    def _load_condition(self) -> Condition:
        negated = self.reader.read_flag("condition negation")
        ctype = self.reader.read_enum(ConditionType, "condition type")
        return Condition(ctype=ctype, negated=negated)

    def _resolve_calls(self) -> None:
        for stmt, ident, line in self._pending:
            proc = self.module.find(ident)
            if proc is None:
                raise ProgramLoadError(f"Call to unknown procedure '{ident}'", line=line)
            stmt.proc = proc


def read_module(reader: SnapshotReader) -> Module:
    return _ModuleLoader(reader).load()


def read_stmt_ref(reader: SnapshotReader, module: Module) -> Tuple[Procedure, Statement]:
    line = reader.line
    ident = reader.read_ident()
    index = reader.read_uint("statement index")
    proc = module.find(ident)
    if proc is None:
        raise ProgramLoadError(f"Unknown procedure '{ident}'", line=line)
    stmt = proc.stmt_by_index(index)
    if stmt is None:
        raise ProgramLoadError(
            f"Statement index {index} out of range in procedure '{ident}'", line=line
        )
    return proc, stmt


# ----------------------------------------------------------------------
# Convenience entry points


def dump(module: Module, fp: TextIO) -> None:
    write_module(SnapshotWriter(fp), module)


def dumps(module: Module) -> str:
    buffer = io.StringIO()
    dump(module, buffer)
    return buffer.getvalue()


def loads(text: str) -> Module:
    reader = SnapshotReader(text)
    module = read_module(reader)
    try:
        reader.expect_end()
    except ProgramLoadError:
        module.destroy()
        raise
    logger.debug("module_loaded procedures=%s", len(module))
    return module


def load(fp: TextIO) -> Module:
    return loads(fp.read())


__all__ = [
    "SnapshotReader",
    "SnapshotWriter",
    "dump",
    "dumps",
    "load",
    "loads",
    "read_module",
    "read_stmt_ref",
    "write_module",
    "write_stmt_ref",
]
