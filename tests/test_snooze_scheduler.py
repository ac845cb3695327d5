"""Tests for the snooze reactivation check."""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

from sqlalchemy.orm import Session

from dealflow.llm.errors import AIQuotaExceededError
from dealflow.models import RejectedEmail
from dealflow.schemas.proposal import ProgressEvaluation, ProgressRecommendation
from dealflow.services.judgment import JudgmentService
from dealflow.services.proposals.snooze_scheduler import (
    MERGED_REASON,
    NO_PROGRESS_REASON,
    check_snoozed_proposals,
    find_followups,
    reactivation_notes,
)
from tests.factories import NOW, make_entry
from tests.test_constants import TEST_ORG_ID, TEST_OTHER_ORG_ID

EARLIER = NOW - timedelta(days=60)


def _snoozed(db: Session, name: str = "Acme Robotics", email_from: str = "founder@acme.example"):
    return make_entry(
        db,
        name,
        email_from=email_from,
        status="snoozed",
        created_at=EARLIER - timedelta(days=1),
        reviewed_at=EARLIER,
        snoozed_until=NOW + timedelta(days=30),
        snooze_count=1,
    )


def _followup(db: Session, days_after: int = 10, email_from: str = "founder@acme.example", **kw):
    return make_entry(
        db,
        kw.pop("startup_name", "Acme Robotics"),
        email_from=email_from,
        created_at=EARLIER + timedelta(days=days_after),
        **kw,
    )


def _judge(recommendation: ProgressRecommendation, summary: str = "Revenue tripled") -> MagicMock:
    judge = MagicMock()
    judge.evaluate_progress.return_value = ProgressEvaluation(
        recommendation=recommendation,
        progress_summary=summary,
        key_changes=["ARR $1.2M", "Hired CTO"],
        progress_score=80,
        has_significant_progress=recommendation is ProgressRecommendation.REACTIVATE,
    )
    return judge


class TestFindFollowups:
    def test_newer_pending_from_same_sender(self, db: Session) -> None:
        original = _snoozed(db)
        later = _followup(db, email_from="FOUNDER@acme.example")
        _followup(db, days_after=-5, startup_name="Acme Old")
        _followup(db, email_from="someone@else.example", startup_name="Other Co")
        _followup(db, days_after=12, startup_name="Acme Snoozed", status="snoozed")

        assert [f.id for f in find_followups(db, original)] == [later.id]

    def test_scoped_to_organization(self, db: Session) -> None:
        original = _snoozed(db)
        _followup(db, organization_id=TEST_OTHER_ORG_ID)
        assert find_followups(db, original) == []

    def test_no_sender_no_followups(self, db: Session) -> None:
        original = _snoozed(db)
        original.email_from = None
        assert find_followups(db, original) == []


class TestCheckSnoozedProposals:
    def test_reactivation_absorbs_followup(self, db: Session) -> None:
        original = _snoozed(db)
        followup = _followup(db)
        judge = _judge(ProgressRecommendation.REACTIVATE)

        result = check_snoozed_proposals(db, TEST_ORG_ID, judge, now=NOW)

        assert (result.checked, result.reactivated) == (1, 1)
        db.refresh(original)
        db.refresh(followup)
        assert original.status == "pending"
        assert original.progress_notes == "REACTIVATED: Revenue tripled\nKey changes: ARR $1.2M, Hired CTO"
        assert original.last_progress_check is not None
        assert followup.status == "rejected"
        assert followup.rejection_reason == MERGED_REASON
        # Merging never suppresses the sender
        assert db.query(RejectedEmail).count() == 0

    def test_every_followup_judged_together_and_merged(self, db: Session) -> None:
        _snoozed(db)
        first = _followup(db, days_after=5, message_id="<f1@m>")
        second = _followup(db, days_after=9, message_id="<f2@m>")
        judge = _judge(ProgressRecommendation.KEEP_SNOOZED)

        check_snoozed_proposals(db, TEST_ORG_ID, judge, now=NOW)

        judge.evaluate_progress.assert_called_once()
        _, followups = judge.evaluate_progress.call_args.args
        assert [f.id for f in followups] == [first.id, second.id]
        for entry in (first, second):
            db.refresh(entry)
            assert entry.status == "rejected"
            assert entry.rejection_reason == MERGED_REASON

    def test_reject_recommendation_rejects_original(self, db: Session) -> None:
        original = _snoozed(db)
        _followup(db)
        judge = _judge(ProgressRecommendation.REJECT, summary="Same deck, no traction")
        notifier = MagicMock()
        notifier.notify_rejection.return_value = True

        result = check_snoozed_proposals(db, TEST_ORG_ID, judge, notifier=notifier, now=NOW)

        assert result.rejected == 1
        db.refresh(original)
        assert original.status == "rejected"
        assert original.rejection_reason == NO_PROGRESS_REASON
        assert original.progress_notes == "Same deck, no traction"
        assert original.reviewed_by is None
        assert db.query(RejectedEmail).one().email_address == "founder@acme.example"
        notifier.notify_rejection.assert_called_once()

    def test_keep_snoozed_records_notes(self, db: Session) -> None:
        original = _snoozed(db)
        _followup(db)
        result = check_snoozed_proposals(
            db, TEST_ORG_ID, _judge(ProgressRecommendation.KEEP_SNOOZED, "Too early"), now=NOW
        )
        assert result.keep_snoozed == 1
        db.refresh(original)
        assert original.status == "snoozed"
        assert original.progress_notes == "Too early"
        assert original.snooze_count == 1

    def test_entries_without_followups_are_not_checked(self, db: Session) -> None:
        _snoozed(db)
        judge = MagicMock()
        result = check_snoozed_proposals(db, TEST_ORG_ID, judge, now=NOW)
        judge.evaluate_progress.assert_not_called()
        assert result.checked == 0

    def test_failure_is_isolated(self, db: Session) -> None:
        broken = _snoozed(db, "Broken Co", "a@broken.example")
        _followup(db, email_from="a@broken.example", startup_name="Broken Co")
        healthy = _snoozed(db, "Healthy Co", "b@healthy.example")
        _followup(db, email_from="b@healthy.example", startup_name="Healthy Co")

        judge = MagicMock()
        judge.evaluate_progress.side_effect = [
            RuntimeError("model returned garbage"),
            ProgressEvaluation(recommendation=ProgressRecommendation.REACTIVATE, progress_summary="ok"),
        ]

        result = check_snoozed_proposals(db, TEST_ORG_ID, judge, now=NOW)

        assert (result.checked, result.failed, result.reactivated) == (2, 1, 1)
        db.refresh(broken)
        db.refresh(healthy)
        assert broken.status == "snoozed"
        assert healthy.status == "pending"

    def test_timeout_leaves_followups_for_next_run(self, db: Session) -> None:
        original = _snoozed(db)
        followup = _followup(db)
        provider = MagicMock()
        provider.complete.side_effect = TimeoutError("read timed out")
        judgment = JudgmentService(
            provider=provider, settings=SimpleNamespace(founder_mail_signature="Jo Partner")
        )

        result = check_snoozed_proposals(db, TEST_ORG_ID, judgment, now=NOW)

        assert (result.checked, result.failed, result.keep_snoozed) == (1, 1, 0)
        db.refresh(original)
        db.refresh(followup)
        assert original.status == "snoozed"
        assert original.last_progress_check is None
        assert followup.status == "pending"
        assert followup.rejection_reason is None

    def test_quota_stops_run(self, db: Session) -> None:
        first = _snoozed(db, "First Co", "a@first.example")
        _followup(db, email_from="a@first.example", startup_name="First Co")
        _snoozed(db, "Second Co", "b@second.example")
        _followup(db, email_from="b@second.example", startup_name="Second Co")

        judge = MagicMock()
        judge.evaluate_progress.side_effect = AIQuotaExceededError()

        result = check_snoozed_proposals(db, TEST_ORG_ID, judge, now=NOW)

        assert result.quota_exceeded is True
        assert judge.evaluate_progress.call_count == 1
        db.refresh(first)
        assert first.status == "snoozed"


def test_reactivation_notes_format() -> None:
    evaluation = ProgressEvaluation(
        recommendation=ProgressRecommendation.REACTIVATE,
        progress_summary="Closed pilot",
        key_changes=[],
    )
    assert reactivation_notes(evaluation) == "REACTIVATED: Closed pilot\nKey changes: "
