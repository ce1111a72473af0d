"""Functional tests for the submission flow and the response ledger.

Payload rules per step type, server-side sentiment, duplicate handling
(pre-check and store constraint, including concurrent submitters) and the
ordering contract of the ledger read.
"""

from __future__ import annotations

import threading

import pytest

from liveboard.logic import events
from liveboard.logic.errors import DuplicateSubmission, NotFound, ValidationError
from liveboard.logic.repository_cases import save_case_config
from liveboard.logic.repository_responses import insert_response, list_responses
from liveboard.logic.submission import submit_response
from liveboard.models.case_config import CaseConfigDraft, SessionRef, StepDraft, TopicDraft
from liveboard.models.response import SubmissionPayload


def _payload(**overrides) -> SubmissionPayload:
    data = {"session_id": "A", "step": 1, "student_name": "Ann", "answer": "Growth loops"}
    data.update(overrides)
    return SubmissionPayload(**data)


def test_text_submission_is_stored_and_published():
    record = submit_response(_payload(student_name="  Ann  "), "default")

    assert (record.case_id, record.session_id, record.step, record.student_name) == ("default", "A", 1, "Ann")
    assert record.answer == "Growth loops"
    assert record.sentiment is None and record.poll_choice is None
    assert record.created_at.endswith("Z")
    published = events.get_buffered_events()
    assert [(e["table"], e["event"]) for e in published] == [("response", "insert")]
    assert published[0]["new_row"] == record.model_dump()


def test_session_id_is_normalized_to_upper_case():
    record = submit_response(_payload(session_id=" b "), "default")
    assert record.session_id == "B"


def test_sentiment_is_classified_by_the_server():
    record = submit_response(_payload(step=0, answer="So creative", sentiment="negative"), "default")
    assert record.sentiment == "positive"


def test_invalid_client_sentiment_rejected():
    with pytest.raises(ValidationError):
        submit_response(_payload(step=0, answer="fine", sentiment="ecstatic"), "default")


def test_poll_requires_a_listed_option():
    record = submit_response(_payload(step=4, answer=None, poll_choice="Option B"), "default")
    assert (record.poll_choice, record.answer) == ("Option B", None)

    with pytest.raises(ValidationError):
        submit_response(_payload(step=4, student_name="Bob", answer=None, poll_choice="Option Z"), "default")
    with pytest.raises(ValidationError):
        submit_response(_payload(step=4, student_name="Cyd", answer="free text", poll_choice=None), "default")


def test_text_step_rejects_poll_choice_and_blank_answer():
    with pytest.raises(ValidationError):
        submit_response(_payload(poll_choice="Option A"), "default")
    with pytest.raises(ValidationError):
        submit_response(_payload(answer="   "), "default")


@pytest.mark.parametrize("missing", ["student_name", "step", "session_id"])
def test_missing_required_fields(missing):
    with pytest.raises(ValidationError):
        submit_response(_payload(**{missing: None}), "default")
    assert list_responses("default") == []


def test_blank_student_name_is_missing():
    with pytest.raises(ValidationError):
        submit_response(_payload(student_name="   "), "default")


def test_unknown_step_and_session():
    with pytest.raises(ValidationError):
        submit_response(_payload(step=99), "default")
    with pytest.raises(NotFound):
        submit_response(_payload(session_id="Z"), "default")


def test_duplicate_is_rejected_without_write():
    submit_response(_payload(), "default")
    events.get_buffered_events()

    with pytest.raises(DuplicateSubmission) as excinfo:
        submit_response(_payload(answer="second try"), "default")

    assert excinfo.value.message == "Already submitted for this step"
    assert [r.answer for r in list_responses("default", "A")] == ["Growth loops"]
    assert events.get_buffered_events() == []


def test_store_constraint_maps_to_duplicate():
    insert_response("default", "A", 1, "Ann", "first", None, None)
    with pytest.raises(DuplicateSubmission):
        insert_response("default", "A", 1, "Ann", "second", None, None)


def test_same_name_may_answer_other_steps_and_sessions():
    submit_response(_payload(), "default")
    submit_response(_payload(step=2), "default")
    submit_response(_payload(session_id="B"), "default")
    assert len(list_responses("default")) == 3


def test_concurrent_submitters_store_one_row():
    outcomes: list[str] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def attempt(i: int) -> None:
        barrier.wait()
        try:
            submit_response(_payload(answer=f"attempt {i}"), "default")
            result = "ok"
        except DuplicateSubmission:
            result = "duplicate"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["duplicate"] * 7 + ["ok"]
    assert len(list_responses("default", "A")) == 1


def test_listing_is_in_store_order_and_stable():
    first = submit_response(_payload(student_name="Ann"), "default")
    second = submit_response(_payload(student_name="Bob"), "default")
    third = submit_response(_payload(student_name="Cyd"), "default")

    listed = list_responses("default", "A")
    assert [r.id for r in listed] == [first.id, second.id, third.id]
    assert listed[-1] == third
    assert sum(1 for r in listed if r.id == third.id) == 1


def test_sentiment_uses_the_case_keyword_lists():
    save_case_config(
        "custom",
        CaseConfigDraft(
            sessions=[SessionRef(id="a", label="Morning")],
            steps=[StepDraft(topic="Intro", question="Describe it", type="sentiment")],
            topics=[TopicDraft(name="Intro", color="teal")],
            sentiment_positive=["bold"],
            sentiment_negative=["creative"],
        ),
    )
    record = submit_response(
        _payload(case_id="custom", session_id="a", step=0, answer="Creative but risky"), "default"
    )
    assert (record.case_id, record.session_id, record.sentiment) == ("custom", "A", "negative")
