"""Replayable audio bodies for upload retries.

Every upload attempt must send identical bytes from offset 0. Seekable
sources are rewound before each attempt; non-seekable sources are read
into memory exactly once, before the first attempt.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import BinaryIO, Union

from transcript_pipeline.utils.cancellation import CancellationToken
from transcript_pipeline.utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

_NOT_BYTES = "Audio stream must yield bytes"

AudioSource = Union[bytes, bytearray, memoryview, BinaryIO, AsyncIterable[bytes]]


def _is_seekable(stream: BinaryIO) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


class ReplayableAudio:
    """Audio body that can be re-sent identically on every upload attempt.

    Use ReplayableAudio.prepare() to build one; it validates the source and
    buffers it when it cannot be rewound.
    """

    def __init__(
        self, stream: BinaryIO, size: int, buffered: bool, owned: bool = False
    ) -> None:
        self._stream = stream
        self._owned = owned
        self.size = size
        self.buffered = buffered
        self.rewinds = 0

    @classmethod
    async def prepare(
        cls, source: AudioSource | None, cancel: CancellationToken | None = None
    ) -> ReplayableAudio:
        """Validate `source` and make it replayable.

        Args:
            source: Bytes, a binary file-like object or an async iterable of
                byte chunks.
            cancel: Optional token checked while buffering async sources.

        Returns:
            A ReplayableAudio positioned at offset 0.

        Raises:
            InvalidInputError: If the source is missing, unreadable or empty.
        """
        if source is None:
            raise InvalidInputError("No audio stream provided")

        if isinstance(source, (bytes, bytearray, memoryview)):
            data = bytes(source)
            return cls._from_bytes(data, buffered=False)

        if hasattr(source, "read"):
            stream: BinaryIO = source  # type: ignore[assignment]
            if getattr(stream, "closed", False):
                raise InvalidInputError("Audio stream is closed")
            if isinstance(stream, io.TextIOBase):
                raise InvalidInputError(_NOT_BYTES)
            if _is_seekable(stream):
                stream.seek(0, io.SEEK_END)
                size = stream.tell()
                stream.seek(0)
                if size == 0:
                    raise InvalidInputError("Audio stream is empty")
                return cls(stream, size, buffered=False)
            try:
                # Pipe-backed sources may block; keep the event loop free
                data = await asyncio.to_thread(stream.read)
            except OSError as exc:
                raise InvalidInputError(f"Audio stream is unreadable: {exc}") from exc
            if data is None:
                data = b""
            if not isinstance(data, (bytes, bytearray)):
                raise InvalidInputError(_NOT_BYTES)
            logger.info("Buffered non-seekable audio stream (%d bytes)", len(data))
            return cls._from_bytes(bytes(data), buffered=True)

        if isinstance(source, AsyncIterable):
            cancel = cancel or CancellationToken()
            buffer = io.BytesIO()
            async for chunk in source:
                cancel.raise_if_cancelled("buffer")
                if not isinstance(chunk, (bytes, bytearray, memoryview)):
                    raise InvalidInputError(_NOT_BYTES)
                buffer.write(chunk)
            logger.info("Buffered async audio stream (%d bytes)", buffer.tell())
            return cls._from_bytes(buffer.getvalue(), buffered=True)

        raise InvalidInputError(
            f"Unsupported audio source type: {type(source).__name__}"
        )

    @classmethod
    def _from_bytes(cls, data: bytes, buffered: bool) -> ReplayableAudio:
        if not data:
            raise InvalidInputError("Audio stream is empty")
        return cls(io.BytesIO(data), len(data), buffered=buffered, owned=True)

    @property
    def position(self) -> int:
        return self._stream.tell()

    def rewind(self) -> None:
        """Reset the stream to offset 0 before an attempt."""
        self._stream.seek(0)
        self.rewinds += 1

    async def body(self) -> AsyncIterator[bytes]:
        """Yield the audio from the current position in CHUNK_SIZE pieces.

        Caller-owned streams (files, sockets) are read in a worker thread;
        the internal in-memory buffer is read inline.
        """
        while True:
            if self._owned:
                chunk = self._stream.read(CHUNK_SIZE)
            else:
                chunk = await asyncio.to_thread(self._stream.read, CHUNK_SIZE)
            if not chunk:
                break
            yield chunk

    def release(self) -> None:
        """Drop the internal buffer. Caller-owned streams are left open."""
        if self._owned:
            self._stream.close()
