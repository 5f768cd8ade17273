"""
Incremental decoder for newline-framed text streams with optional SSE-style `data:` prefixes.
Knows nothing about JSON; it only turns raw chunks into complete logical lines.
"""

from __future__ import annotations

import codecs
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

DATA_PREFIX = "data:"


def _strip_frame(raw_line: str) -> str:
    line = raw_line.rstrip()
    if line.startswith(DATA_PREFIX):
        line = line[len(DATA_PREFIX):].lstrip()
    return line


class StreamFrameDecoder:
    """
    Reassembles logical lines from chunks that arrive at arbitrary byte boundaries.

    The only state carried between calls is the incremental text decoder and the
    unterminated remainder of the last chunk.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: bytes | str) -> list[str]:
        """
        Append a chunk and return every line it completes.

        Args:
            chunk: Raw bytes from the transport, or already decoded text.

        Returns:
            Complete lines in arrival order, with framing stripped and empty lines dropped.

        Raises:
            RuntimeError: If called after finish().
        """
        if self._finished:
            raise RuntimeError("feed() called after finish()")

        if isinstance(chunk, str):
            # Bytes still held by the decoder arrived before this text.
            self._buffer += self._decoder.decode(b"", final=True) + chunk
        else:
            self._buffer += self._decoder.decode(chunk)

        lines: list[str] = []
        while True:
            idx = self._buffer.find("\n")
            if idx < 0:
                break
            raw_line = self._buffer[:idx]
            self._buffer = self._buffer[idx + 1:]
            line = _strip_frame(raw_line)
            if line:
                lines.append(line)
        return lines

    def finish(self) -> list[str]:
        """
        Flush whatever is left once the source reports end of data.

        The remainder is handled as a final, possibly unterminated, line.
        """
        if self._finished:
            raise RuntimeError("finish() called twice")

        tail = self._decoder.decode(b"", final=True)
        lines = self.feed(tail) if tail else []
        self._finished = True

        rest, self._buffer = self._buffer, ""
        line = _strip_frame(rest)
        if line:
            lines.append(line)
        return lines


def iter_frames(chunks: Iterable[bytes | str], *, encoding: str = "utf-8") -> Iterator[str]:
    """
    Lazily decode a synchronous chunk source (e.g. httpx `Response.iter_bytes()`).

    Args:
        chunks: Iterable of raw chunks.
        encoding: Text encoding of the stream.

    Yields:
        Logical lines as soon as they are complete.
    """
    decoder = StreamFrameDecoder(encoding)
    for chunk in chunks:
        if not chunk:
            continue
        yield from decoder.feed(chunk)
    yield from decoder.finish()


async def aiter_frames(chunks: AsyncIterable[bytes | str], *, encoding: str = "utf-8") -> AsyncIterator[str]:
    decoder = StreamFrameDecoder(encoding)
    async for chunk in chunks:
        if not chunk:
            continue
        for line in decoder.feed(chunk):
            yield line
    for line in decoder.finish():
        yield line
