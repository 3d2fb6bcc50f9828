"""
Short code space & the durable code pool.

Codec:   index in [0, A^L) <-> L-character code over an A-letter alphabet
         digit i = (index // A^i) % A, most-significant digit first
         e.g. A-Z, L=3:  0 -> "AAA", 27 -> "ABB", 17575 -> "ZZZ"

Pool:    every index, shuffled once, stored as one flat file of
         concatenated codes ("QXFBTA...").  The head of the file is the
         next code to hand out.  take() rewrites the file without the head
         and only then drops it from memory, so a crash can at worst re-offer
         a code, never hand the same one out twice.
"""

import os
import secrets
import threading
from dataclasses import dataclass
from pathlib import Path

import structlog

from shortlinks.core.errors import PersistenceError, PoolExhausted

logger = structlog.get_logger()


@dataclass(frozen=True)
class CodeSpace:
    alphabet: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    length: int = 3

    def __post_init__(self):
        if len(self.alphabet) < 2 or len(set(self.alphabet)) != len(self.alphabet):
            raise ValueError("alphabet needs at least two distinct characters")
        if self.length < 1:
            raise ValueError("code length must be positive")

    @property
    def size(self) -> int:
        return len(self.alphabet) ** self.length

    def encode(self, index: int) -> str:
        """Map an index to its code."""
        if not 0 <= index < self.size:
            raise ValueError(f"index {index} outside [0, {self.size})")
        radix = len(self.alphabet)
        return "".join(
            self.alphabet[(index // radix ** i) % radix]
            for i in reversed(range(self.length))
        )

    def decode(self, code: str) -> int:
        """Map a code back to its index. Raises ValueError for foreign codes."""
        if len(code) != self.length:
            raise ValueError(f"code {code!r} is not {self.length} characters")
        radix = len(self.alphabet)
        index = 0
        for char in code:
            digit = self.alphabet.find(char)
            if digit < 0:
                raise ValueError(f"code {code!r} uses characters outside the alphabet")
            index = index * radix + digit
        return index


class CodePool:
    """Pre-shuffled permutation of unallocated codes, backed by a flat file."""

    def __init__(self, path: str | os.PathLike, space: CodeSpace | None = None):
        self.path = Path(path)
        self.space = space or CodeSpace()
        self._entries: list[int] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def remaining(self) -> int:
        return len(self._entries)

    def initialize(self) -> None:
        """Build the pool file on first start, otherwise load it as-is."""
        with self._lock:
            if not self.path.exists():
                entries = list(range(self.space.size))
                secrets.SystemRandom().shuffle(entries)
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._write(entries)
                logger.info("code_pool_created", path=str(self.path), size=len(entries))
            self._entries = self._read()
            logger.info("code_pool_loaded", path=str(self.path), remaining=len(self._entries))

    def take(self) -> int:
        """Remove and return the next unallocated index."""
        with self._lock:
            if not self._entries:
                raise PoolExhausted(f"no codes left in {self.path}")
            head = self._entries[0]
            self._write(self._entries[1:])
            del self._entries[0]
            return head

    def put_back(self, index: int) -> None:
        """Return an index that was taken but never bound to a link."""
        with self._lock:
            if index in self._entries:
                return
            self._write([index] + self._entries)
            self._entries.insert(0, index)

    # --- file format ---

    def _read(self) -> list[int]:
        try:
            raw = self.path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"cannot read code pool {self.path}: {e}") from e

        width = self.space.length
        if len(raw) % width:
            raise PersistenceError(
                f"code pool {self.path} is {len(raw)} bytes, not a multiple of {width}"
            )
        entries = []
        for offset in range(0, len(raw), width):
            try:
                entries.append(self.space.decode(raw[offset:offset + width]))
            except ValueError as e:
                raise PersistenceError(f"corrupt code pool {self.path} at byte {offset}: {e}") from e
        if len(set(entries)) != len(entries):
            raise PersistenceError(f"code pool {self.path} lists a code more than once")
        return entries

    def _write(self, entries: list[int]) -> None:
        # Full rewrite via temp file + rename; fsync before rename so the
        # shrunk pool is on disk before the caller sees the code.
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="ascii") as fh:
            fh.write("".join(self.space.encode(i) for i in entries))
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, self.path)
