"""Live code-coverage data collected from instrumented code.

Coverage sources register themselves with a :class:`Registry` through a set
of reader callables. The registry can snapshot or clear the coverage state of
every source and render it as a cover profile.
"""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, TextIO

ReadPosFn = Callable[[], Iterable[int]]
"""Returns the position triples (start line, end line, packed columns) of a source."""

ReadStmtFn = Callable[[], Iterable[int]]
"""Returns the number of statements in each block of a source."""

ReadCountFn = Callable[[], Iterable[int]]
"""Returns the current execution count of each block of a source."""

ClearCountFn = Callable[[], None]
"""Resets the execution counts of a source."""

_UINT16 = 0xFFFF
_UINT32 = 0xFFFFFFFF


def _copy_into(target: list[int], values: Iterable[int], mask: int) -> None:
    """Overwrite the head of ``target`` with ``values``, never growing it."""
    data = [value & mask for value in values][: len(target)]
    target[: len(data)] = data


@dataclass
class Block:
    """Coverage snapshot of a single file."""

    name: str
    count: list[int] = field(default_factory=list)
    pos: list[int] = field(default_factory=list)
    num_stmt: list[int] = field(default_factory=list)

    def clone(self) -> "Block":
        """Return a copy with its own counts.

        Positions and statement counts never change once read, so they are shared.
        """
        return Block(name=self.name, count=list(self.count), pos=self.pos, num_stmt=self.num_stmt)


class BlockState:
    """The registered readers of one coverage source and its last captured state."""

    def __init__(
        self,
        length: int,
        name: str,
        read_pos: ReadPosFn,
        read_stmt: ReadStmtFn,
        read_count: ReadCountFn,
        clear_count: ClearCountFn,
    ) -> None:
        self._length = length
        self._lock = threading.Lock()
        self._ephemeral = Block(name=name)
        self._read_pos = read_pos
        self._read_stmt = read_stmt
        self._read_count = read_count
        self._clear_count = clear_count

    def capture(self) -> None:
        """Copy the source's current counts into the captured state."""
        with self._lock:
            self._init_ephemeral()
            _copy_into(self._ephemeral.count, self._read_count(), _UINT32)

    def clear(self) -> None:
        """Reset the source's counts; the captured state is left as it was."""
        with self._lock:
            self._init_ephemeral()
            self._clear_count()

    def read(self) -> Block:
        """Return a snapshot of the captured state."""
        with self._lock:
            self._init_ephemeral()
            return self._ephemeral.clone()

    def _init_ephemeral(self) -> None:
        # Must be called with the lock held.
        if self._ephemeral.count:
            return
        self._ephemeral.count = [0] * self._length
        self._ephemeral.pos = [0] * (self._length * 3)
        self._ephemeral.num_stmt = [0] * self._length
        _copy_into(self._ephemeral.num_stmt, self._read_stmt(), _UINT16)
        _copy_into(self._ephemeral.pos, self._read_pos(), _UINT32)


@dataclass
class Coverage:
    """Coverage data of all registered sources."""

    blocks: list[Block] = field(default_factory=list)

    def write_profile(self, stream: TextIO) -> None:
        """Write the data to ``stream`` in cover profile format."""
        stream.write("mode: atomic\n")
        for block in self.blocks:
            for i, count in enumerate(block.count):
                line0 = block.pos[3 * i]
                line1 = block.pos[3 * i + 1]
                columns = block.pos[3 * i + 2]
                col0 = columns & _UINT16
                col1 = (columns >> 16) & _UINT16
                stmts = block.num_stmt[i]
                stream.write(f"{block.name}:{line0}.{col0},{line1}.{col1} {stmts} {count}\n")

    def profile_text(self) -> str:
        """Return the data in cover profile format."""
        buffer = io.StringIO()
        self.write_profile(buffer)
        return buffer.getvalue()


class Registry:
    """Registry of coverage sources, keyed by name."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._blocks: dict[str, BlockState] = {}

    def register(
        self,
        length: int,
        context: str,
        read_pos: ReadPosFn,
        read_stmt: ReadStmtFn,
        read_count: ReadCountFn,
        clear_count: ClearCountFn,
    ) -> None:
        """Register a coverage source; raise ValueError if the name is taken."""
        state = BlockState(length, context, read_pos, read_stmt, read_count, clear_count)
        with self._lock:
            if context in self._blocks:
                raise ValueError(f"Registry.Register: Name already registered: {context!r}")
            self._blocks[context] = state

    def snapshot(self) -> None:
        """Capture the current counts of every registered source."""
        with self._lock:
            for state in self._blocks.values():
                state.capture()

    def clear(self) -> None:
        """Reset the counts of every registered source."""
        with self._lock:
            for state in self._blocks.values():
                state.clear()

    def get_coverage(self) -> Coverage:
        """Return the captured state of every registered source."""
        with self._lock:
            return Coverage(blocks=[state.read() for state in self._blocks.values()])


_registry = Registry()


def get_registry() -> Registry:
    """Return the process-wide coverage registry."""
    return _registry