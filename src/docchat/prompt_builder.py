"""Utilities for constructing chat messages for the generation backend."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence

from docchat.models import HistoryMessage

_SYSTEM_PROMPT_PATH = Path(__file__).resolve().parent / "prompts" / "system.txt"


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


SYSTEM_PROMPT = _load_template(_SYSTEM_PROMPT_PATH)


def build_user_message(question: str, context_texts: Sequence[str]) -> str:
    context_block = "\n\n".join(context_texts)
    return f"Document Context:\n{context_block}\n\nQuestion: {question}"


def build_messages(
    question: str,
    context_texts: Sequence[str],
    history: Sequence[HistoryMessage] = (),
    *,
    system_prompt: str | None = None,
) -> List[Dict[str, str]]:
    """Compose the message list: system prompt, recent history, then the question."""

    if question is None:
        raise ValueError("question must not be None")

    messages: List[Dict[str, str]] = [{"role": "system", "content": system_prompt or SYSTEM_PROMPT}]
    messages.extend(message.as_dict() for message in history)
    messages.append({"role": "user", "content": build_user_message(question, context_texts)})
    return messages


__all__ = ["SYSTEM_PROMPT", "build_messages", "build_user_message"]
