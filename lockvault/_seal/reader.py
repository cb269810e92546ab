"""
Reader — strict parser for .seal containers.

Security features:
  - Magic check before anything else (instant file identification)
  - Minimum-size check so short inputs fail before field parsing
  - Version and algorithm allowlists (no downgrade)
  - ciphertext_len bounds-checked against the bytes actually present
  - Size limit on input (prevents OOM from crafted files)
  - Trailing garbage is an error, never silently dropped
"""

from __future__ import annotations

from pathlib import Path

from lockvault._seal.spec import (
    MAGIC, MIN_SIZE, NONCE_SIZE, TAG_SIZE, MAX_SIZE,
    SUPPORTED_ALGORITHMS, SUPPORTED_FORMAT_VERSIONS,
    U8, U16, U32,
)
from lockvault._seal.document import SealFile
from lockvault.errors import MalformedSeal


class _Cursor:
    """Bounds-checked forward reader over a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.pos

    def take(self, n: int, what: str) -> bytes:
        if n > self.remaining:
            raise MalformedSeal(
                f"Truncated SEAL: need {n} bytes for {what}, {self.remaining} left"
            )
        chunk = self._data[self.pos:self.pos + n]
        self.pos += n
        return chunk


class SealReader:
    """
    Strict .seal reader.

    Usage:
        seal = SealReader.read("vault.seal")
        seal = SealReader.parse(data)
    """

    @staticmethod
    def is_seal(path: str | Path) -> bool:
        """Fast check if a file is a SEAL container. Reads only the magic."""
        with open(path, "rb") as f:
            head = f.read(len(MAGIC))
        return head == MAGIC

    @staticmethod
    def is_seal_bytes(data: bytes) -> bool:
        return data[:len(MAGIC)] == MAGIC

    @classmethod
    def read(cls, path: str | Path, max_size: int = MAX_SIZE) -> SealFile:
        """Fully parse a .seal file."""
        path = Path(path)
        file_size = path.stat().st_size
        if file_size > max_size:
            raise MalformedSeal(
                f"File size {file_size} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        return cls.parse(path.read_bytes(), max_size=max_size)

    @classmethod
    def parse(cls, data: bytes, max_size: int = MAX_SIZE) -> SealFile:
        """Parse bytes into a SealFile. Raises MalformedSeal on any violation."""
        if len(data) > max_size:
            raise MalformedSeal(
                f"Input size {len(data)} exceeds maximum {max_size} bytes"
            )

        cur = _Cursor(bytes(data))

        magic = cur.take(len(MAGIC), "magic")
        if magic != MAGIC:
            raise MalformedSeal(f"Invalid magic: {magic!r}")
        if len(data) < MIN_SIZE:
            raise MalformedSeal(
                f"Truncated SEAL: {len(data)} bytes, smallest valid container is {MIN_SIZE}"
            )

        (version,) = U8.unpack(cur.take(U8.size, "version"))
        if version not in SUPPORTED_FORMAT_VERSIONS:
            raise MalformedSeal(
                f"Unsupported SEAL version: {version}. "
                f"Supported: {', '.join(str(v) for v in sorted(SUPPORTED_FORMAT_VERSIONS))}"
            )

        (algo_len,) = U8.unpack(cur.take(U8.size, "algorithm length"))
        try:
            algo = cur.take(algo_len, "algorithm").decode("ascii")
        except UnicodeDecodeError as e:
            raise MalformedSeal("Algorithm name is not ASCII") from e
        if algo not in SUPPORTED_ALGORITHMS:
            raise MalformedSeal(f"Unsupported encryption algorithm: {algo!r}")

        nonce = cur.take(NONCE_SIZE, "nonce")

        (ciphertext_len,) = U32.unpack(cur.take(U32.size, "ciphertext length"))
        if ciphertext_len + TAG_SIZE > cur.remaining:
            raise MalformedSeal(
                f"ciphertext_len {ciphertext_len} inconsistent with "
                f"{cur.remaining} remaining bytes"
            )
        ciphertext = cur.take(ciphertext_len, "ciphertext")
        tag = cur.take(TAG_SIZE, "integrity tag")

        hint: str | None = None
        if cur.remaining:
            (hint_len,) = U16.unpack(cur.take(U16.size, "hint length"))
            if hint_len != cur.remaining:
                raise MalformedSeal(
                    f"metadata_hint length {hint_len} inconsistent with "
                    f"{cur.remaining} remaining bytes"
                )
            try:
                hint = cur.take(hint_len, "metadata hint").decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedSeal("metadata_hint is not valid UTF-8") from e

        return SealFile(
            encryption_algo=algo,
            nonce=nonce,
            ciphertext=ciphertext,
            integrity_tag=tag,
            metadata_hint=hint,
            version=version,
            magic=magic,
        )
