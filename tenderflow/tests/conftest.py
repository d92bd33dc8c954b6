"""
Shared fixtures: in-memory SQLite database and procurement test data.
"""
import os

os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789abcdef"

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import event

from tenderflow.db import models  # noqa - register tables
from tenderflow.db.models import User, UserRole
from tenderflow.db.session import Base, SessionLocal, engine
from tenderflow.schemas.bid import SubmitBidRequest, BidDocumentInput, BidInputValue
from tenderflow.schemas.rfx import CreateRfxRequest, EvaluationCriterionInput

VALID_PDF_BASE64 = "JVBERi0xLjQKJcfs"


@event.listens_for(engine, "connect")
def _enforce_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores foreign keys unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ============= FIXTURES =============

@pytest.fixture
def db_session():
    """Fresh schema per test on the shared in-memory engine."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db_session):
    """Factory for committed users."""
    counter = {"n": 0}

    def _make(full_name=None, role=UserRole.PROCUREMENT.value, email=None):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@tenderflow.test",
            full_name=full_name,
            role=role,
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def committee(make_user):
    """Two procurement reviewers."""
    return make_user("Alice Reviewer"), make_user("Bob Reviewer")


@pytest.fixture
def supplier(make_user):
    return make_user("Gulf Supplies LLC", role=UserRole.SUPPLIER.value)


# ============= REQUEST BUILDERS =============

def build_rfx_request(member_ids=(), **overrides) -> CreateRfxRequest:
    data = {
        "rfx_type": "RFQ",
        "category": "Office Supplies",
        "title": "Office Furniture Supply",
        "department": "Facilities",
        "estimated_budget": Decimal("250000.00"),
        "currency": "QAR",
        "closing_date": datetime.now(timezone.utc) + timedelta(days=30),
        "minimum_score": 70,
        "evaluation_criteria": [
            EvaluationCriterionInput(title="Quality", weight=100, type="technical"),
        ],
        "committee_member_ids": list(member_ids),
    }
    data.update(overrides)
    return CreateRfxRequest(**data)


def build_bid_request(documents=None, inputs=None, **overrides) -> SubmitBidRequest:
    data = {
        "bid_amount": Decimal("180000.00"),
        "currency": "QAR",
        "expected_delivery_date": datetime.now(timezone.utc) + timedelta(days=60),
        "proposal_summary": "Ergonomic desks and chairs for three floors.",
        "documents": documents or [],
        "inputs": inputs if inputs is not None else [
            BidInputValue(name="Bid Amount", value="180000"),
            BidInputValue(name="Delivery Date", value="within 60 days"),
            BidInputValue(name="Proposal Summary", value="Ergonomic furniture"),
        ],
    }
    data.update(overrides)
    return SubmitBidRequest(**data)


def trade_license(content=VALID_PDF_BASE64) -> BidDocumentInput:
    return BidDocumentInput(name="Trade License", file_name="license.pdf", content_base64=content)
