"""Keyword sentiment classification.

Each keyword counts once when it occurs anywhere in the text, compared
case-insensitively. Keyword lists belong to the case configuration, so two
cases may label the same text differently.
"""

from __future__ import annotations

from typing import Iterable

from liveboard.models.response import Sentiment


def _score(lowered: str, keywords: Iterable[str]) -> int:
    score = 0
    for kw in keywords:
        kw = (kw or "").strip().lower()
        if kw and kw in lowered:
            score += 1
    return score


def classify_sentiment(
    text: str,
    positive_keywords: Iterable[str],
    negative_keywords: Iterable[str],
) -> Sentiment:
    lowered = (text or "").lower()
    positive = _score(lowered, positive_keywords)
    negative = _score(lowered, negative_keywords)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


__all__ = ["classify_sentiment"]
