"""Program model: modules, procedures, blocks and statements."""
from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Collection, Dict, Iterator, List, Optional

from karlik.errors import DuplicateIdentifierError, IdentifierExhaustedError

PROC_IDENT_LEN = 8
IDENT_ALPHABET = string.ascii_uppercase
DEFAULT_IDENT_ATTEMPTS = 1000


class IntrinsicType(IntEnum):
    TURN_LEFT = 0
    MOVE = 1
    PUT_WHITE = 2
    PUT_GREY = 3
    PUT_BLACK = 4
    PICK_UP = 5


class StatementType(IntEnum):
    INTRINSIC = 0
    CALL = 1
    IF = 2
    REPEAT = 3
    RECURSE = 4


class ConditionType(IntEnum):
    WALL = 0
    WHITE_TAG = 1
    GREY_TAG = 2
    BLACK_TAG = 3
    TAG = 4
    EAST = 5
    NORTH = 6
    WEST = 7
    SOUTH = 8


@dataclass(frozen=True)
class Condition:
    ctype: ConditionType
    negated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"ctype": self.ctype.name, "negated": self.negated}


def validate_ident(ident: str) -> str:
    if len(ident) != PROC_IDENT_LEN or any(ch not in IDENT_ALPHABET for ch in ident):
        raise ValueError(
            f"Procedure identifier must be {PROC_IDENT_LEN} uppercase letters, got {ident!r}"
        )
    return ident


# ----------------------------------------------------------------------
# Blocks


class Block:
    """Ordered sequence of statements owned by a procedure or a statement."""

    def __init__(self, statements: Optional[List["Statement"]] = None):
        self._stmts: List[Statement] = []
        self.owner: Optional[Any] = None
        for stmt in statements or []:
            self.append(stmt)

    def append(self, stmt: "Statement") -> None:
        if stmt.block is not None:
            raise ValueError("Statement already belongs to a block")
        stmt.block = self
        self._stmts.append(stmt)

    def first(self) -> Optional["Statement"]:
        return self._stmts[0] if self._stmts else None

    def last(self) -> Optional["Statement"]:
        return self._stmts[-1] if self._stmts else None

    def next(self, cur: "Statement") -> Optional["Statement"]:
        pos = self._position(cur)
        if pos + 1 < len(self._stmts):
            return self._stmts[pos + 1]
        return None

    def prev(self, cur: "Statement") -> Optional["Statement"]:
        pos = self._position(cur)
        return self._stmts[pos - 1] if pos > 0 else None

    def destroy(self) -> None:
        for stmt in self._stmts:
            stmt.destroy()
        self._stmts.clear()
        self.owner = None

    def to_list(self) -> List[Dict[str, Any]]:
        return [stmt.to_dict() for stmt in self._stmts]

    def __iter__(self) -> Iterator["Statement"]:
        return iter(list(self._stmts))

    def __len__(self) -> int:
        return len(self._stmts)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Block({len(self._stmts)} statements)"

    def _position(self, stmt: "Statement") -> int:
        # identity, not equality: two "move" statements are distinct positions
        for pos, candidate in enumerate(self._stmts):
            if candidate is stmt:
                return pos
        raise ValueError("Statement does not belong to this block")


def _own(block: Optional[Block], owner: Any) -> None:
    if block is None:
        return
    if block.owner is not None and block.owner is not owner:
        raise ValueError("Block already has an owner")
    block.owner = owner


# ----------------------------------------------------------------------
# Statements


class Statement:
    """Base for every statement variant."""

    stype: StatementType
    block: Optional[Block] = None

    def next(self) -> Optional["Statement"]:
        if self.block is None:
            return None
        return self.block.next(self)

    def prev(self) -> Optional["Statement"]:
        if self.block is None:
            return None
        return self.block.prev(self)

    def child_blocks(self) -> List[Block]:
        return []

    def destroy(self) -> None:
        for child in self.child_blocks():
            child.destroy()
        self.block = None

    def to_dict(self) -> Dict[str, Any]:
        return {"stype": self.stype.name}


@dataclass(eq=False)
class Intrinsic(Statement):
    itype: IntrinsicType
    stype = StatementType.INTRINSIC

    def to_dict(self) -> Dict[str, Any]:
        return {"stype": self.stype.name, "itype": self.itype.name}


@dataclass(eq=False)
class Call(Statement):
    proc: "Procedure"
    stype = StatementType.CALL

    def to_dict(self) -> Dict[str, Any]:
        return {"stype": self.stype.name, "proc": self.proc.ident}


@dataclass(eq=False)
class If(Statement):
    cond: Condition
    true_block: Block = field(default_factory=Block)
    false_block: Optional[Block] = None
    stype = StatementType.IF

    def __post_init__(self):
        _own(self.true_block, self)
        _own(self.false_block, self)

    def child_blocks(self) -> List[Block]:
        blocks = [self.true_block]
        if self.false_block is not None:
            blocks.append(self.false_block)
        return blocks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stype": self.stype.name,
            "cond": self.cond.to_dict(),
            "true": self.true_block.to_list(),
            "false": self.false_block.to_list() if self.false_block is not None else None,
        }


@dataclass(eq=False)
class Repeat(Statement):
    """Loop statement.

    ``count`` of zero means the loop is governed by the conditions instead
    of a fixed repeat count.
    """

    body: Block = field(default_factory=Block)
    count: int = 0
    start_cond: Optional[Condition] = None
    end_cond: Optional[Condition] = None
    stype = StatementType.REPEAT

    def __post_init__(self):
        if self.count < 0:
            raise ValueError("Repeat count must not be negative")
        _own(self.body, self)

    def child_blocks(self) -> List[Block]:
        return [self.body]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stype": self.stype.name,
            "count": self.count,
            "start_cond": self.start_cond.to_dict() if self.start_cond else None,
            "body": self.body.to_list(),
            "end_cond": self.end_cond.to_dict() if self.end_cond else None,
        }


@dataclass(eq=False)
class Recurse(Statement):
    stype = StatementType.RECURSE


# ----------------------------------------------------------------------
# Procedures and modules


@dataclass(eq=False)
class Procedure:
    ident: str
    body: Block = field(default_factory=Block)
    module: Optional["Module"] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        validate_ident(self.ident)
        _own(self.body, self)

    def next(self) -> Optional["Procedure"]:
        if self.module is None:
            return None
        return self.module.next(self)

    def prev(self) -> Optional["Procedure"]:
        if self.module is None:
            return None
        return self.module.prev(self)

    def walk(self) -> Iterator[Statement]:
        """Yield every statement of the procedure in pre-order."""

        def _walk_block(block: Block) -> Iterator[Statement]:
            for stmt in block:
                yield stmt
                for child in stmt.child_blocks():
                    yield from _walk_block(child)

        return _walk_block(self.body)

    def stmt_index(self, stmt: Statement) -> int:
        for index, candidate in enumerate(self.walk()):
            if candidate is stmt:
                return index
        raise ValueError(f"Statement does not belong to procedure {self.ident}")

    def stmt_by_index(self, index: int) -> Optional[Statement]:
        if index < 0:
            return None
        for pos, stmt in enumerate(self.walk()):
            if pos == index:
                return stmt
        return None

    def destroy(self) -> None:
        self.body.destroy()
        self.module = None

    def to_dict(self) -> Dict[str, Any]:
        return {"ident": self.ident, "body": self.body.to_list()}


class Module:
    """Insertion-ordered collection of procedures with unique identifiers."""

    def __init__(self):
        self._procs: List[Procedure] = []

    def append(self, proc: Procedure) -> None:
        if proc.module is not None:
            raise ValueError(f"Procedure {proc.ident} already belongs to a module")
        if self.find(proc.ident) is not None:
            raise DuplicateIdentifierError(f"Procedure '{proc.ident}' already defined")
        proc.module = self
        self._procs.append(proc)

    def find(self, ident: str) -> Optional[Procedure]:
        for proc in self._procs:
            if proc.ident == ident:
                return proc
        return None

    def generate_ident(
        self,
        rng: Optional[random.Random] = None,
        max_attempts: int = DEFAULT_IDENT_ATTEMPTS,
        reserved: Collection[str] = (),
    ) -> str:
        """Return a random identifier not yet used in this module.

        Identifiers in ``reserved`` are treated as taken as well.
        """

        source = rng or random
        for _ in range(max_attempts):
            ident = "".join(source.choice(IDENT_ALPHABET) for _ in range(PROC_IDENT_LEN))
            if ident not in reserved and self.find(ident) is None:
                return ident
        raise IdentifierExhaustedError(
            f"No unused procedure identifier found after {max_attempts} attempts"
        )

    def new_procedure(
        self,
        rng: Optional[random.Random] = None,
        max_attempts: int = DEFAULT_IDENT_ATTEMPTS,
    ) -> Procedure:
        proc = Procedure(self.generate_ident(rng, max_attempts))
        self.append(proc)
        return proc

    def first(self) -> Optional[Procedure]:
        return self._procs[0] if self._procs else None

    def last(self) -> Optional[Procedure]:
        return self._procs[-1] if self._procs else None

    def next(self, cur: Procedure) -> Optional[Procedure]:
        pos = self._position(cur)
        if pos + 1 < len(self._procs):
            return self._procs[pos + 1]
        return None

    def prev(self, cur: Procedure) -> Optional[Procedure]:
        pos = self._position(cur)
        return self._procs[pos - 1] if pos > 0 else None

    def destroy(self) -> None:
        for proc in self._procs:
            proc.destroy()
        self._procs.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {"procedures": [proc.to_dict() for proc in self._procs]}

    def __iter__(self) -> Iterator[Procedure]:
        return iter(list(self._procs))

    def __len__(self) -> int:
        return len(self._procs)

    def __repr__(self) -> str:
        return f"Module({[proc.ident for proc in self._procs]})"

    def _position(self, proc: Procedure) -> int:
        for pos, candidate in enumerate(self._procs):
            if candidate is proc:
                return pos
        raise ValueError(f"Procedure {proc.ident} does not belong to this module")


__all__ = [
    "Block",
    "Call",
    "Condition",
    "ConditionType",
    "IDENT_ALPHABET",
    "If",
    "Intrinsic",
    "IntrinsicType",
    "Module",
    "PROC_IDENT_LEN",
    "Procedure",
    "Recurse",
    "Repeat",
    "Statement",
    "StatementType",
    "validate_ident",
]
