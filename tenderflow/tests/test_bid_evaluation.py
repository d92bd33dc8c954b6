"""
Tests for per-reviewer bid evaluation and the bid summary overwrite.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import build_bid_request, build_rfx_request
from tenderflow.db.models import BidReview, SupplierBid
from tenderflow.schemas.bid import EvaluateBidRequest
from tenderflow.services import bid_evaluation
from tenderflow.services.bid_evaluation import (
    evaluate_bid, apply_summary, upsert_review, list_bid_reviews, get_review_for_reviewer, list_bids_for_rfx,
)
from tenderflow.services.bid_submission import submit_bid
from tenderflow.services.rfx_lifecycle import create_rfx


@pytest.fixture
def bid(db_session, committee, supplier):
    rfx = create_rfx(db_session, build_rfx_request([committee[0].id], status="Published")).value
    submitted = submit_bid(db_session, rfx.id, supplier.id, build_bid_request()).value
    return db_session.get(SupplierBid, submitted.bid_id)


class TestEvaluateBid:
    """Per-reviewer upsert plus last-reviewer-wins summary."""

    def test_last_reviewer_sets_summary(self, db_session, bid, committee):
        alice, bob = committee
        evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Approved", notes="Good"), alice.id)
        result = evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Rejected"), bob.id)

        assert result.success
        summary = result.value
        assert summary.evaluation_status == "Rejected"
        assert summary.evaluated_by_user_id == bob.id
        assert summary.evaluation_notes is None
        assert len(summary.reviews) == 2

        assert get_review_for_reviewer(db_session, bid.id, alice.id).value.status == "Approved"
        assert get_review_for_reviewer(db_session, bid.id, bob.id).value.status == "Rejected"

    def test_repeat_evaluation_overwrites_single_row(self, db_session, bid, committee):
        alice, _ = committee
        for status in ("Under Review", "needs clarification", "RECOMMENDED"):
            evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status=status), alice.id)

        reviews = db_session.query(BidReview).filter(BidReview.bid_id == bid.id).all()
        assert len(reviews) == 1
        assert reviews[0].status == "Recommended"
        db_session.expire_all()
        assert db_session.get(SupplierBid, bid.id).evaluation_status == "Recommended"

    def test_blank_notes_are_stored_as_none(self, db_session, bid, committee):
        result = evaluate_bid(
            db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Approved", notes="   "), committee[0].id,
        )
        assert result.value.evaluation_notes is None

    def test_unknown_status_checked_before_lookup(self, db_session):
        result = evaluate_bid(db_session, 404, 404, EvaluateBidRequest(status="Shortlisted"), 1)
        assert result.code == "invalid_status"

    def test_unknown_rfx(self, db_session, bid, committee):
        result = evaluate_bid(db_session, 404, bid.id, EvaluateBidRequest(status="Approved"), committee[0].id)
        assert result.code == "not_found"

    def test_bid_must_belong_to_rfx(self, db_session, bid, committee):
        other = create_rfx(db_session, build_rfx_request([committee[0].id], status="Published")).value
        result = evaluate_bid(db_session, other.id, bid.id, EvaluateBidRequest(status="Approved"), committee[0].id)
        assert result.code == "not_found"

    def test_concurrent_first_insert_is_retried_as_update(self, db_session, bid, committee):
        alice, _ = committee
        real_upsert = bid_evaluation.upsert_review
        calls = []

        def flaky_upsert(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise IntegrityError("INSERT INTO bid_reviews", {}, Exception(
                    "UNIQUE constraint failed: bid_reviews.bid_id, bid_reviews.reviewer_user_id"
                ))
            return real_upsert(*args, **kwargs)

        with patch("tenderflow.services.bid_evaluation.upsert_review", side_effect=flaky_upsert):
            result = evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Approved"), alice.id)

        assert result.success
        assert len(calls) == 2
        assert db_session.query(BidReview).count() == 1

    def test_other_integrity_errors_are_not_retried(self, db_session, bid, committee):
        failing = IntegrityError("INSERT INTO bid_reviews", {}, Exception("FOREIGN KEY constraint failed"))

        with patch("tenderflow.services.bid_evaluation.upsert_review", side_effect=failing) as upsert:
            with pytest.raises(IntegrityError):
                evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Approved"), committee[0].id)

        upsert.assert_called_once()
        assert db_session.query(BidReview).count() == 0

    def test_reviewer_without_local_user_row(self, db_session, bid):
        result = evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Recommended"), 4242)

        assert result.success
        assert result.value.evaluated_by_user_id == 4242
        assert get_review_for_reviewer(db_session, bid.id, 4242).value.status == "Recommended"


class TestEvaluationSteps:
    """The two evaluation steps behave independently."""

    def test_upsert_inserts_then_updates(self, db_session, bid):
        now = datetime.now(timezone.utc)
        first = upsert_review(db_session, bid, 7, "Under Review", None, now)
        second = upsert_review(db_session, bid, 7, "Approved", "ok", now + timedelta(minutes=5))

        assert first.id == second.id
        assert second.status == "Approved"
        assert second.notes == "ok"

    def test_upsert_does_not_touch_summary(self, db_session, bid):
        upsert_review(db_session, bid, 7, "Approved", None, datetime.now(timezone.utc))
        assert bid.evaluation_status == "Pending Review"
        assert bid.evaluated_by_user_id is None

    def test_apply_summary_overwrites_unconditionally(self, bid):
        now = datetime.now(timezone.utc)
        apply_summary(bid, 3, "Approved", "fine", now)
        apply_summary(bid, 4, "Rejected", None, now)

        assert bid.evaluation_status == "Rejected"
        assert bid.evaluated_by_user_id == 4
        assert bid.evaluation_notes is None
        assert bid.evaluated_at == now


class TestEvaluationQueries:
    """Review history and bid listing."""

    def test_reviews_listed_newest_first(self, db_session, bid, committee):
        alice, bob = committee
        base = datetime.now(timezone.utc)
        evaluate_bid(db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Approved"), alice.id, now=base)
        evaluate_bid(
            db_session, bid.rfx_id, bid.id, EvaluateBidRequest(status="Rejected"), bob.id,
            now=base + timedelta(minutes=1),
        )

        reviews = list_bid_reviews(db_session, bid.rfx_id, bid.id).value
        assert [r.reviewer_user_id for r in reviews] == [bob.id, alice.id]

    def test_reviews_for_unknown_bid(self, db_session, bid):
        assert list_bid_reviews(db_session, bid.rfx_id, 999).code == "not_found"

    def test_missing_review(self, db_session, bid):
        assert get_review_for_reviewer(db_session, bid.id, 12345).code == "not_found"

    def test_list_bids_for_rfx(self, db_session, bid):
        bids = list_bids_for_rfx(db_session, bid.rfx_id).value
        assert [b.id for b in bids] == [bid.id]
        assert list_bids_for_rfx(db_session, 999).code == "not_found"
