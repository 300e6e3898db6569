"""Incremental decoding of chat response bodies into stream events.

Two wire shapes are supported:

- **Plain**: the body is raw text; every non-empty decoded chunk becomes a
  token event.
- **Structured**: the body is a server-sent-event stream of ``data:`` frames
  separated by blank lines, each carrying a JSON object with a ``type``
  discriminator (``token`` or ``sources``).

Decoding is incremental. Multi-byte characters and frames split across
chunk boundaries are buffered until complete.
"""

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator
from enum import Enum

from pydantic import ValidationError

from chatstream.models import EndEvent, SourcesEvent, StreamEvent, TokenEvent
from chatstream.models.schemas import SSEFrame

logger = logging.getLogger(__name__)

FRAME_DELIMITER = "\n\n"
DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamMode(str, Enum):
    """Wire shape of a response body."""

    PLAIN = "plain"
    STRUCTURED = "structured"


class StreamDecoder:
    """Turns a byte stream into an ordered, finite sequence of events.

    A decoder is bound to a single stream. Once it has produced an
    ``EndEvent`` it refuses further input; decode a new stream with a
    new decoder.
    """

    def __init__(self, mode: StreamMode = StreamMode.PLAIN) -> None:
        self.mode = mode
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Consume one chunk of bytes and return the events it completes."""
        if self._ended:
            raise RuntimeError("Decoder already reached the end of its stream")

        text = self._text.decode(chunk)
        if self.mode is StreamMode.PLAIN:
            return [TokenEvent(text=text)] if text else []

        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        events: list[StreamEvent] = []
        while FRAME_DELIMITER in self._buffer and not self._ended:
            frame, self._buffer = self._buffer.split(FRAME_DELIMITER, 1)
            events.extend(self._parse_frame(frame))
        return events

    def close(self) -> list[StreamEvent]:
        """Flush buffered input at stream closure and emit the end event."""
        if self._ended:
            return []

        events: list[StreamEvent] = []
        tail = self._text.decode(b"", final=True)
        if self.mode is StreamMode.PLAIN:
            if tail:
                events.append(TokenEvent(text=tail))
        else:
            remainder = (self._buffer + tail).replace("\r\n", "\n")
            self._buffer = ""
            for frame in remainder.split(FRAME_DELIMITER):
                if self._ended:
                    break
                events.extend(self._parse_frame(frame))

        if not self._ended:
            events.append(EndEvent())
            self._ended = True
        return events

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
        """Lazily decode an async byte stream.

        Args:
            chunks: Response body chunks as they arrive.

        Yields:
            Stream events in order, always ending with ``EndEvent``.
        """
        async for chunk in chunks:
            for event in self.feed(chunk):
                yield event
            if self._ended:
                return
        for event in self.close():
            yield event

    def _parse_frame(self, frame: str) -> list[StreamEvent]:
        data_lines = []
        for line in frame.split("\n"):
            if line.startswith(DATA_PREFIX):
                value = line[len(DATA_PREFIX):]
                data_lines.append(value[1:] if value.startswith(" ") else value)

        # Comments, keep-alives and frames without data carry no event
        if not data_lines:
            return []

        payload = "\n".join(data_lines)
        if payload.strip() == DONE_SENTINEL:
            self._ended = True
            return [EndEvent()]

        try:
            parsed = SSEFrame.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(
                f"Dropping malformed stream frame ({e.error_count()} errors): {payload[:200]!r}"
            )
            return []

        if parsed.type == "sources":
            return [SourcesEvent(sources=tuple(parsed.sources))]

        events: list[StreamEvent] = [TokenEvent(text=parsed.text)]
        if parsed.done:
            events.append(EndEvent())
            self._ended = True
        return events
