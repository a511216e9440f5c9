from __future__ import annotations

from docchat.config import Settings
from docchat.context import ContextBudget, assemble, coerce_text, preview_sources
from docchat.models import ContextItem, ConversationTurn, HistoryMessage, Role, SourcePreview


def _items(count: int, text: str = "passage") -> list[ContextItem]:
    return [ContextItem(text=f"{text} {index}", page=index + 1, score=1.0 - index / 100) for index in range(count)]


def _turns(count: int) -> list[ConversationTurn]:
    roles = [Role.USER, Role.ASSISTANT]
    return [ConversationTurn(role=roles[index % 2], content=f"turn {index}") for index in range(count)]


def test_results_are_capped_and_keep_rank_order() -> None:
    assembled = assemble(_items(50), [], ContextBudget(max_context_chunks=40))

    assert len(assembled.context_texts) == 40
    assert assembled.context_texts[0] == "passage 0"
    assert assembled.context_texts[-1] == "passage 39"


def test_texts_are_cut_to_chars_per_chunk() -> None:
    items = [ContextItem(text="x" * 5000, page=1, score=0.9)]

    assembled = assemble(items, [], ContextBudget(chars_per_chunk=1200))

    assert assembled.context_texts == ["x" * 1200]


def test_empty_texts_are_dropped() -> None:
    items = [
        ContextItem(text="", page=1, score=0.9),
        ContextItem(text=None, page=2, score=0.8),
        ContextItem(text="kept", page=3, score=0.7),
    ]

    assert assemble(items, [], ContextBudget()).context_texts == ["kept"]


def test_non_string_payload_text_is_coerced() -> None:
    items = [ContextItem(text=["clause", 7], page=None, score=None)]

    assert assemble(items, [], ContextBudget()).context_texts == ["clause 7"]


def test_only_latest_history_turns_are_forwarded() -> None:
    assembled = assemble([], _turns(10), ContextBudget(history_messages=4))

    assert assembled.history_messages == [
        HistoryMessage("user", "turn 6"),
        HistoryMessage("assistant", "turn 7"),
        HistoryMessage("user", "turn 8"),
        HistoryMessage("assistant", "turn 9"),
    ]


def test_short_history_is_kept_whole() -> None:
    assembled = assemble([], _turns(2), ContextBudget(history_messages=4))

    assert [message.content for message in assembled.history_messages] == ["turn 0", "turn 1"]


def test_zero_history_window_forwards_nothing() -> None:
    assert assemble([], _turns(6), ContextBudget(history_messages=0)).history_messages == []


def test_history_accepts_plain_mappings() -> None:
    history = [{"role": "user", "content": "hi", "sources": []}, {"role": "assistant", "content": "hello"}]

    assembled = assemble([], history, ContextBudget())

    assert [message.as_dict() for message in assembled.history_messages] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_budget_reads_settings() -> None:
    budget = ContextBudget.from_settings(Settings(max_context_chunks=5, history_messages=2))

    assert budget.max_context_chunks == 5
    assert budget.history_messages == 2
    assert budget.chars_per_chunk == 1200


def test_coerce_text_variants() -> None:
    assert coerce_text("plain") == "plain"
    assert coerce_text(None) == ""
    assert coerce_text(42) == "42"
    assert coerce_text(("a", ["b", None])) == "a b "
    assert coerce_text({"k": "v"}) == '{"k": "v"}'


def test_previews_take_leading_items_with_excerpt() -> None:
    items = [ContextItem(text="y" * 300, page=2, score=0.73)] + _items(5)

    previews = preview_sources(items, ContextBudget())

    assert len(previews) == 4
    assert previews[0] == SourcePreview(page=2, text="y" * 200 + "...", confidence=0.73)
    assert previews[1].text == "passage 0..."


def test_previews_default_confidence_and_page() -> None:
    previews = preview_sources([ContextItem(text="short", page=0, score=None)], ContextBudget())

    assert previews == [SourcePreview(page=None, text="short...", confidence=0.8)]
