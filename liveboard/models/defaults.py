"""Default case configuration used when a case has no stored record."""

from __future__ import annotations

from liveboard.models.case_config import CaseConfig, SessionRef, Step, Topic


DEFAULT_POSITIVE: list[str] = [
    "creative", "creativity", "inclusive", "diverse", "diversity",
    "entertaining", "entertainment", "fun", "engaging", "engage",
    "discovery", "discover", "innovative", "innovation",
    "empowering", "empower", "expression", "expressive",
    "community", "connect", "connection", "accessible",
    "opportunity", "opportunities", "democratiz", "enabling",
    "inspiring", "inspiration", "educational", "learning",
    "viral", "popular", "growth", "amazing", "powerful",
    "platform for", "marketplace", "e-commerce", "commerce",
    "free", "easy", "cool", "great", "good", "love", "best",
    "revolutionary", "transformative", "disruptive",
]

DEFAULT_NEGATIVE: list[str] = [
    "addictive", "addiction", "addicted", "dopamine",
    "distract", "distracting", "distraction", "time-consuming",
    "waste", "wasting", "toxic", "harmful", "harm", "damage",
    "manipulat", "exploit", "surveillance", "spy", "spying",
    "dangerous", "threat", "risk", "risky", "unsafe",
    "misinformation", "disinformation", "fake", "propaganda",
    "privacy", "data harvester", "data mining", "tracking",
    "censorship", "censor", "ban", "banned",
    "mental health", "anxiety", "depression", "lonely",
    "narcissi", "vanity", "shallow", "mindless",
    "national security", "predatory",
    "problematic", "concerning", "bad", "worst", "terrible",
    "annoying", "cringe", "overrated",
]

DEFAULT_CASE_ID = "default"


def default_case_config(case_id: str = DEFAULT_CASE_ID) -> CaseConfig:
    """Return a fresh default configuration carrying ``case_id``."""
    return CaseConfig(
        id=case_id,
        title="Case Discussion",
        board_title="Case Discussion Board",
        description="Classroom Case Discussion Board",
        sessions=[
            SessionRef(id="A", label="Section A"),
            SessionRef(id="B", label="Section B"),
            SessionRef(id="C", label="Section C"),
        ],
        steps=[
            Step(id=0, topic="Opening", question="Share your first impression", type="sentiment"),
            Step(id=1, topic="Topic 1", question="Discussion question 1", type="text"),
            Step(id=2, topic="Topic 1", question="Discussion question 2", type="text"),
            Step(id=3, topic="Topic 2", question="Discussion question 3", type="text"),
            Step(
                id=4,
                topic="Topic 2",
                question="Discussion question 4",
                type="poll",
                poll_options=["Option A", "Option B", "Option C"],
            ),
        ],
        topics=[
            Topic(name="Opening", step_ids=[0], color="purple"),
            Topic(name="Topic 1", step_ids=[1, 2], color="blue"),
            Topic(name="Topic 2", step_ids=[3, 4], color="green"),
        ],
        sentiment_positive=list(DEFAULT_POSITIVE),
        sentiment_negative=list(DEFAULT_NEGATIVE),
    )


__all__ = ["DEFAULT_POSITIVE", "DEFAULT_NEGATIVE", "DEFAULT_CASE_ID", "default_case_config"]
