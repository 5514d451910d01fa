"""
SSE line parser for OpenAI-compatible chat completion streams.

Each ``data:`` line carries one JSON chunk. The text of a line is the
concatenation of every choice's ``delta.content`` (or legacy ``text``) in
array order. Malformed lines are counted and skipped; they never abort the
stream.
"""

from __future__ import annotations

import inspect
import json
import time
from collections.abc import AsyncIterable, Awaitable, Callable
from typing import Any

import structlog

from .models import AccumulatorState, RawSSEChunk, SSEEventType, StreamingStats

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

DeltaCallback = Callable[[str], Awaitable[None] | None]

logger = structlog.get_logger(__name__)


def extract_delta(payload: Any) -> str:
    """
    Pull the text out of one decoded chunk.

    Raises:
        ValueError: If the chunk is not shaped like a completion chunk.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Chunk must be a JSON object, got {type(payload).__name__}")

    choices = payload.get("choices")
    if not isinstance(choices, list):
        return ""

    pieces: list[str] = []
    for choice in choices:
        if not isinstance(choice, dict):
            raise ValueError("Choice entry must be a JSON object")

        content = None
        if "delta" in choice:
            delta = choice["delta"]
            if not isinstance(delta, dict):
                raise ValueError("Choice delta must be a JSON object")
            content = _primitive_text(delta.get("content"))
        if content is None:
            # Legacy Completions shape
            content = _primitive_text(choice.get("text"))
            if content is None:
                continue

        pieces.append(content)

    return "".join(pieces)


def _primitive_text(value: Any) -> str | None:
    """Text of a JSON scalar; ``None`` for null or absent values."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool | int | float):
        return json.dumps(value)
    raise ValueError(f"Unexpected content type: {type(value).__name__}")


class StreamingParser:
    """Single-pass parser turning stream lines into text deltas."""

    def __init__(self) -> None:
        self.stats = self._empty_stats()
        self.last_stats: StreamingStats | None = None

    @staticmethod
    def _empty_stats() -> dict[str, int]:
        return {
            "total_lines": 0,
            "delta_lines": 0,
            "skipped_lines": 0,
            "error_chunks": 0,
        }

    def parse_line(self, line: str) -> RawSSEChunk:
        """Classify one line of server output."""
        if not line.strip() or not line.startswith(DATA_PREFIX):
            return RawSSEChunk(event_type=SSEEventType.SKIPPED, raw_data=line)

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            return RawSSEChunk(event_type=SSEEventType.COMPLETION, raw_data=data)

        try:
            delta = extract_delta(json.loads(data))
        except ValueError as e:  # JSONDecodeError is a ValueError
            return RawSSEChunk(
                event_type=SSEEventType.ERROR,
                raw_data=data,
                error=f"Parse error: {e}",
            )

        return RawSSEChunk(event_type=SSEEventType.DELTA, raw_data=data, delta=delta)

    async def consume(
        self,
        lines: AsyncIterable[str],
        on_delta: DeltaCallback | None = None,
    ) -> str:
        """Read ``lines`` and return the text; see :meth:`consume_with_stats`."""
        text, self.last_stats = await self.consume_with_stats(lines, on_delta)
        return text

    async def consume_with_stats(
        self,
        lines: AsyncIterable[str],
        on_delta: DeltaCallback | None = None,
    ) -> tuple[str, StreamingStats]:
        """
        Read ``lines`` until ``[DONE]`` or end of stream.

        Returns the text together with the stats of this call alone.

        ``on_delta`` is called once per non-empty line delta, in arrival
        order, before the next line is read. Coroutine callbacks are awaited.
        """
        state = AccumulatorState()
        counts = self._empty_stats()
        completed = False
        started = time.time()

        try:
            async for line in lines:
                counts["total_lines"] += 1
                chunk = self.parse_line(line)

                if chunk.event_type is SSEEventType.COMPLETION:
                    completed = True
                    break

                if chunk.event_type is SSEEventType.SKIPPED:
                    counts["skipped_lines"] += 1
                    continue

                if chunk.event_type is SSEEventType.ERROR:
                    counts["error_chunks"] += 1
                    logger.debug("Skipping malformed stream line", error=chunk.error)
                    continue

                if not chunk.delta:
                    continue

                counts["delta_lines"] += 1
                state.append(chunk.delta)
                if on_delta is not None:
                    result = on_delta(chunk.delta)
                    if inspect.isawaitable(result):
                        await result
        finally:
            for key, value in counts.items():
                self.stats[key] += value

        text = state.text
        stats = StreamingStats(
            total_lines=counts["total_lines"],
            delta_lines=counts["delta_lines"],
            skipped_lines=counts["skipped_lines"],
            error_lines=counts["error_chunks"],
            completed=completed,
            result_length=len(text),
            duration=time.time() - started,
        )
        return text, stats

    def get_stats(self) -> dict[str, int]:
        """Get line counters accumulated since the last reset."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        self.stats = self._empty_stats()
        self.last_stats = None
