"""
Tests for committee approval and the derived committee status.
"""
from types import SimpleNamespace
from unittest.mock import patch

from sqlalchemy.dialects import postgresql

from conftest import build_rfx_request
from tenderflow.db import repository
from tenderflow.db.models import Rfx, RfxCommitteeMember
from tenderflow.db.session import SessionLocal
from tenderflow.services.committee import approve_rfx
from tenderflow.services.result import ErrorCategory
from tenderflow.services.rfx_lifecycle import create_rfx, close_rfx
from tenderflow.services.rfx_mapping import committee_status


class TestApprovalFlow:
    """Two-member committee publishes only once both approve."""

    def test_publishes_after_all_members_approve(self, db_session, committee):
        alice, bob = committee
        rfx = create_rfx(db_session, build_rfx_request([alice.id, bob.id])).value
        assert rfx.status == "Draft"

        first = approve_rfx(db_session, rfx.id, alice.id)
        assert first.success
        assert first.value.status == "Draft"
        assert first.value.committee_status == "1/2 Approved"

        second = approve_rfx(db_session, rfx.id, bob.id)
        assert second.value.status == "Published"
        assert second.value.committee_status == "Approved"

        stored = db_session.get(Rfx, rfx.id)
        assert stored.status == "Published"
        assert all(m.is_approved and m.approved_at is not None for m in stored.committee_members)

    def test_never_published_with_partial_approval(self, db_session, committee, make_user):
        alice, bob = committee
        carol = make_user("Carol Reviewer")
        rfx = create_rfx(db_session, build_rfx_request([alice.id, bob.id, carol.id])).value

        approve_rfx(db_session, rfx.id, alice.id)
        result = approve_rfx(db_session, rfx.id, carol.id)

        assert result.value.status == "Draft"
        assert result.value.committee_status == "2/3 Approved"

    def test_second_approval_by_same_member_is_rejected(self, db_session, committee):
        alice, bob = committee
        rfx = create_rfx(db_session, build_rfx_request([alice.id, bob.id])).value
        approve_rfx(db_session, rfx.id, alice.id)
        before = db_session.get(Rfx, rfx.id).last_modified

        result = approve_rfx(db_session, rfx.id, alice.id)

        assert result.code == "already_approved"
        assert result.error.category == ErrorCategory.CONFLICT
        db_session.expire_all()
        stored = db_session.get(Rfx, rfx.id)
        assert stored.status == "Draft"
        assert stored.last_modified == before
        assert sum(1 for m in stored.committee_members if m.is_approved) == 1

    def test_non_member_is_forbidden(self, db_session, committee, make_user):
        outsider = make_user("Outsider")
        rfx = create_rfx(db_session, build_rfx_request([committee[0].id])).value

        assert approve_rfx(db_session, rfx.id, outsider.id).code == "forbidden"

    def test_unknown_rfx(self, db_session):
        assert approve_rfx(db_session, 999, 1).code == "not_found"

    def test_missing_user_is_unauthorized(self, db_session):
        assert approve_rfx(db_session, 1, None).code == "unauthorized"

    def test_only_drafts_can_be_approved(self, db_session, committee):
        alice, bob = committee
        rfx = create_rfx(db_session, build_rfx_request([alice.id, bob.id])).value
        close_rfx(db_session, rfx.id, alice.id)

        assert approve_rfx(db_session, rfx.id, bob.id).code == "invalid_status"

    def test_published_is_irreversible(self, db_session, committee):
        alice, bob = committee
        rfx = create_rfx(db_session, build_rfx_request([alice.id, bob.id])).value
        approve_rfx(db_session, rfx.id, alice.id)
        approve_rfx(db_session, rfx.id, bob.id)

        again = approve_rfx(db_session, rfx.id, alice.id)
        assert again.code == "invalid_status"
        assert db_session.get(Rfx, rfx.id).status == "Published"


class TestApprovalLocking:
    """Approvals serialize on a row lock of the RFx."""

    def test_lock_query_emits_for_update(self, db_session):
        query = repository.rfx_for_update_query(db_session, 1)
        sql = str(query.statement.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql

    def test_approval_loads_rfx_with_lock(self, db_session, committee):
        alice, _ = committee
        rfx = create_rfx(db_session, build_rfx_request([alice.id])).value

        with patch.object(repository, "get_rfx_for_update", wraps=repository.get_rfx_for_update) as locked:
            approve_rfx(db_session, rfx.id, alice.id)

        locked.assert_called_once_with(db_session, rfx.id)

    def test_locked_load_sees_committed_member_state(self, db_session, committee):
        alice, bob = committee
        rfx = create_rfx(db_session, build_rfx_request([alice.id, bob.id])).value
        stale = db_session.get(Rfx, rfx.id)
        assert not any(m.is_approved for m in stale.committee_members)

        # Another session approves behind this session's back
        other = SessionLocal()
        try:
            other.query(RfxCommitteeMember).filter(
                RfxCommitteeMember.user_id == alice.id
            ).update({"is_approved": True}, synchronize_session=False)
            other.commit()
        finally:
            other.close()

        locked = repository.get_rfx_for_update(db_session, rfx.id)
        assert sum(1 for m in locked.committee_members if m.is_approved) == 1


class TestCommitteeStatus:
    """Derived committee progress text."""

    def test_published_reads_approved(self):
        rfx = SimpleNamespace(status="Published", committee_members=[])
        assert committee_status(rfx) == "Approved"

    def test_counts_approved_members(self):
        members = [SimpleNamespace(is_approved=True), SimpleNamespace(is_approved=False)]
        assert committee_status(SimpleNamespace(status="Draft", committee_members=members)) == "1/2 Approved"

    def test_no_members_is_pending(self):
        assert committee_status(SimpleNamespace(status="Draft", committee_members=[])) == "Pending"

    def test_closed_with_members_shows_progress(self):
        members = [SimpleNamespace(is_approved=True)]
        assert committee_status(SimpleNamespace(status="Closed", committee_members=members)) == "1/1 Approved"
