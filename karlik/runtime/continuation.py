"""Per-robot stack of resume points for procedure calls."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

from karlik.errors import EmptyStackError
from karlik.program.ast import Module, Procedure, Statement
from karlik.program.codec import SnapshotReader, SnapshotWriter, read_stmt_ref, write_stmt_ref


@dataclass(frozen=True, eq=False)
class Continuation:
    """Where execution resumes once the current block runs out of statements."""

    procedure: Procedure
    statement: Statement


class ContinuationStack:
    def __init__(self):
        self._entries: List[Continuation] = []

    def push(self, procedure: Procedure, statement: Statement) -> None:
        self._entries.append(Continuation(procedure, statement))

    def pop(self) -> Continuation:
        if not self._entries:
            raise EmptyStackError("Cannot pop an empty continuation stack")
        return self._entries.pop()

    def peek(self) -> Continuation:
        if not self._entries:
            raise EmptyStackError("Continuation stack is empty")
        return self._entries[-1]

    def is_empty(self) -> bool:
        return not self._entries

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Continuation]:
        """Iterate from the oldest entry to the most recent one."""
        return iter(list(self._entries))

    # ------------------------------------------------------------------
    # Persistence

    def dump(self, writer: SnapshotWriter) -> None:
        writer.write_uint(len(self._entries))
        for entry in self._entries:
            write_stmt_ref(writer, entry.procedure, entry.statement)

    @classmethod
    def load(cls, reader: SnapshotReader, module: Module) -> "ContinuationStack":
        stack = cls()
        count = reader.read_uint("continuation count")
        for _ in range(count):
            procedure, statement = read_stmt_ref(reader, module)
            stack.push(procedure, statement)
        return stack


__all__ = ["Continuation", "ContinuationStack"]
