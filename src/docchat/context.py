"""Size-bounded context assembly for the generation backend."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence

from docchat.config import Settings
from docchat.errors import ContextOverflow
from docchat.models import AssembledContext, ContextItem, HistoryMessage, SourcePreview
from docchat.telemetry import emit_context_event

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
PREVIEW_SUFFIX = "..."


def coerce_text(value: Any) -> str:
    """Best effort conversion of stored payload text to a plain string."""

    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(coerce_text(item) for item in value)
    if isinstance(value, Mapping):
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return ""
    return str(value)


@dataclass(frozen=True, slots=True)
class ContextBudget:
    max_context_chunks: int = 40
    chars_per_chunk: int = 1200
    history_messages: int = 4
    preview_count: int = 4
    preview_chars: int = 200

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContextBudget":
        return cls(
            max_context_chunks=settings.max_context_chunks,
            chars_per_chunk=settings.context_chars_per_chunk,
            history_messages=settings.history_messages,
            preview_count=settings.source_preview_count,
            preview_chars=settings.source_preview_chars,
        )


def _turn_field(turn: Any, name: str) -> Any:
    if isinstance(turn, Mapping):
        return turn.get(name)
    return getattr(turn, name, None)


def _history_message(turn: Any) -> HistoryMessage:
    role = _turn_field(turn, "role")
    role = getattr(role, "value", role)
    return HistoryMessage(role=str(role), content=coerce_text(_turn_field(turn, "content")))


def assemble(
    results: Sequence[ContextItem],
    history: Sequence[Any],
    budget: ContextBudget,
) -> AssembledContext:
    """Bound ranked *results* and *history* to the sizes in *budget*.

    Results keep their order; each text is hard cut to ``chars_per_chunk``
    and dropped if nothing is left. Only the newest ``history_messages``
    turns are kept, reduced to role and content.
    """

    limit = max(budget.max_context_chunks, 0)
    selected = list(results)[:limit]
    context_texts: List[str] = []
    for item in selected:
        text = coerce_text(item.text)[: max(budget.chars_per_chunk, 0)]
        if text:
            context_texts.append(text)

    window = budget.history_messages
    recent = list(history)[-window:] if window > 0 else []
    history_messages = [_history_message(turn) for turn in recent]

    if len(context_texts) > limit or any(len(text) > budget.chars_per_chunk for text in context_texts):
        raise ContextOverflow("Assembled context exceeds the configured budget")
    if len(history_messages) > max(window, 0):
        raise ContextOverflow("Assembled history exceeds the configured budget")

    emit_context_event(
        chunks=len(context_texts),
        context_chars=sum(len(text) for text in context_texts),
        history=len(history_messages),
        dropped=len(results) - len(context_texts),
    )
    return AssembledContext(context_texts=context_texts, history_messages=history_messages)


def preview_sources(items: Iterable[ContextItem], budget: ContextBudget) -> List[SourcePreview]:
    """Short excerpts of the leading items for display to the caller."""

    previews: List[SourcePreview] = []
    for item in list(items)[: max(budget.preview_count, 0)]:
        score = item.score
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            confidence = float(score)
        else:
            confidence = DEFAULT_CONFIDENCE
        previews.append(
            SourcePreview(
                page=item.page or None,
                text=coerce_text(item.text)[: budget.preview_chars] + PREVIEW_SUFFIX,
                confidence=confidence,
            )
        )
    return previews


__all__ = [
    "ContextBudget",
    "assemble",
    "coerce_text",
    "preview_sources",
]
