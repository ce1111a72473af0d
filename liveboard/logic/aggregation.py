"""Board aggregations over a step's responses.

Pure functions: poll tallies, word-cloud grouping and the sentiment split
used by sentiment steps. Inputs are responses already filtered to one step.
"""

from __future__ import annotations

import math
import string
from typing import Iterable, List, Sequence

from liveboard.models.board import PollBar, PollTally, SentimentColumn, WordEntry
from liveboard.models.response import ResponseRecord

# Word-cloud size scale: index 0 is the smallest rendering
SIZE_STEPS = 6

_EDGE_CHARS = string.punctuation + string.whitespace


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def word_key(raw: str) -> str:
    """Grouping key: lower-cased, with surrounding whitespace and punctuation removed."""
    lowered = raw.strip().lower()
    return lowered.strip(_EDGE_CHARS) or lowered


def tally_poll(responses: Sequence[ResponseRecord], options: Sequence[str]) -> PollTally:
    """Count votes per option in option order.

    Votes for choices outside ``options`` count toward the total only.
    """
    total = len(responses)
    counts = [(opt, sum(1 for r in responses if r.poll_choice == opt)) for opt in options]
    max_count = max([c for _, c in counts] + [1])
    bars = [
        PollBar(
            label=opt,
            count=count,
            percent=_round_half_up(count / total * 100) if total else 0,
            width=count / max_count * 100,
        )
        for opt, count in counts
    ]
    return PollTally(total=total, bars=bars)


def build_word_cloud(responses: Iterable[ResponseRecord], size_steps: int = SIZE_STEPS) -> List[WordEntry]:
    """Group responses by ``word_key`` of the answer (falling back to poll choice).

    Entries keep first-seen order; the first response of a group supplies its
    display text and sentiment.
    """
    grouped: dict[str, WordEntry] = {}
    for r in responses:
        raw = (r.answer or r.poll_choice or "").strip()
        key = word_key(raw)
        if not key:
            continue
        entry = grouped.get(key)
        if entry is None:
            grouped[key] = WordEntry(
                key=key,
                text=raw,
                count=1,
                student_names=[r.student_name],
                sentiment=r.sentiment,
            )
        else:
            entry.count += 1
            entry.student_names.append(r.student_name)

    entries = list(grouped.values())
    if not entries:
        return entries
    low = min(e.count for e in entries)
    high = max(e.count for e in entries)
    for e in entries:
        if high == low:
            e.size = 0
        else:
            e.size = _round_half_up((e.count - low) / (high - low) * (size_steps - 1))
    return entries


def group_by_sentiment(entries: Sequence[WordEntry]) -> List[SentimentColumn]:
    """Split word-cloud entries into positive, negative and neutral columns.

    Entries without a sentiment land in the neutral column.
    """
    columns = []
    for label in ("positive", "negative", "neutral"):
        if label == "neutral":
            picked = [e for e in entries if e.sentiment not in ("positive", "negative")]
        else:
            picked = [e for e in entries if e.sentiment == label]
        columns.append(SentimentColumn(label=label, total=sum(e.count for e in picked), entries=picked))
    return columns


def grid_shape(topic_count: int) -> tuple[int, int]:
    """Board grid as (columns, rows)."""
    if topic_count <= 2:
        return (2, 1)
    if topic_count <= 4:
        return (2, 2)
    return (3, 2)


__all__ = [
    "SIZE_STEPS",
    "word_key",
    "tally_poll",
    "build_word_cloud",
    "group_by_sentiment",
    "grid_shape",
]
