"""
HTTP surface tests: routing, role checks and error translation.

The client is created without entering the lifespan, so startup schema
checks do not run; the database dependency points at the test session.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import VALID_PDF_BASE64
from tenderflow.core.security import create_access_token
from tenderflow.db.session import get_db
from tenderflow.main import app


def auth(user, role="procurement") -> dict:
    token = create_access_token({"sub": str(user.id), "role": role, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def rfx_payload(member_ids, **overrides) -> dict:
    data = {
        "rfx_type": "RFQ",
        "category": "Office Supplies",
        "title": "Office Furniture Supply",
        "currency": "QAR",
        "closing_date": "2099-01-31T00:00:00Z",
        "minimum_score": 70,
        "required_documents": ["Trade License"],
        "evaluation_criteria": [{"title": "Quality", "weight": 100, "type": "technical"}],
        "committee_member_ids": member_ids,
    }
    data.update(overrides)
    return data


def bid_payload(**overrides) -> dict:
    data = {
        "bid_amount": "180000.00",
        "currency": "QAR",
        "expected_delivery_date": "2099-03-01T00:00:00Z",
        "proposal_summary": "Ergonomic desks and chairs.",
        "documents": [{"name": "Trade License", "file_name": "tl.pdf", "content_base64": VALID_PDF_BASE64}],
        "inputs": [
            {"name": "Bid Amount", "value": "180000"},
            {"name": "Delivery Date", "value": "60 days"},
            {"name": "Proposal Summary", "value": "Furniture"},
        ],
    }
    data.update(overrides)
    return data


class TestRfxRoutes:
    """RFx creation and committee approval over HTTP."""

    def test_create_and_approve(self, client, committee):
        alice, bob = committee
        response = client.post("/api/rfx", json=rfx_payload([alice.id, bob.id]), headers=auth(alice))

        assert response.status_code == 200
        body = response.json()
        assert body["reference_number"].startswith("RFX-")
        assert body["committee_status"] == "0/2 Approved"

        client.post(f"/api/rfx/{body['id']}/approve", headers=auth(alice))
        approved = client.post(f"/api/rfx/{body['id']}/approve", headers=auth(bob)).json()
        assert approved["status"] == "Published"
        assert approved["committee_status"] == "Approved"

    def test_validation_error_body(self, client, committee):
        response = client.post("/api/rfx", json=rfx_payload([committee[0].id], title=" "), headers=auth(committee[0]))

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_title"

    def test_non_member_approval_is_forbidden(self, client, committee, make_user):
        outsider = make_user("Olivia Outsider")
        rfx = client.post("/api/rfx", json=rfx_payload([committee[0].id]), headers=auth(committee[0])).json()

        response = client.post(f"/api/rfx/{rfx['id']}/approve", headers=auth(outsider))

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "forbidden"

    def test_repeat_approval_conflicts(self, client, committee):
        alice, bob = committee
        rfx = client.post("/api/rfx", json=rfx_payload([alice.id, bob.id]), headers=auth(alice)).json()
        client.post(f"/api/rfx/{rfx['id']}/approve", headers=auth(alice))

        response = client.post(f"/api/rfx/{rfx['id']}/approve", headers=auth(alice))
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "already_approved"

    def test_unknown_rfx(self, client, committee):
        response = client.get("/api/rfx/999", headers=auth(committee[0]))
        assert response.status_code == 404

    def test_suppliers_cannot_use_staff_routes(self, client, supplier):
        response = client.get("/api/rfx", headers=auth(supplier, role="supplier"))
        assert response.status_code == 403


class TestSupplierFlow:
    """Tender to signed contract through the supplier portal."""

    @pytest.fixture
    def published_rfx_id(self, client, committee):
        alice = committee[0]
        rfx = client.post("/api/rfx", json=rfx_payload([alice.id]), headers=auth(alice)).json()
        client.post(f"/api/rfx/{rfx['id']}/approve", headers=auth(alice))
        return rfx["id"]

    def test_bid_evaluate_contract_sign(self, client, committee, supplier, published_rfx_id):
        alice = committee[0]
        supplier_headers = auth(supplier, role="supplier")

        tender = client.get(f"/api/supplier/rfx/{published_rfx_id}", headers=supplier_headers).json()
        assert tender["required_documents"] == ["Trade License"]

        bid = client.post(f"/api/supplier/rfx/{published_rfx_id}/bid", json=bid_payload(), headers=supplier_headers)
        assert bid.status_code == 200
        bid_id = bid.json()["bid_id"]

        evaluated = client.post(
            f"/api/rfx/{published_rfx_id}/bids/{bid_id}/evaluate",
            json={"status": "approved", "notes": "Best value"},
            headers=auth(alice),
        )
        assert evaluated.json()["evaluation_status"] == "Approved"

        ready = client.get("/api/contracts/ready-bids", headers=auth(alice)).json()
        assert [r["bid_id"] for r in ready] == [bid_id]

        contract = client.post("/api/contracts", json={
            "rfx_id": published_rfx_id,
            "bid_id": bid_id,
            "title": "Furniture Agreement",
            "supplier_name": "Gulf Supplies LLC",
            "supplier_user_id": supplier.id,
            "contract_value": "180000.00",
            "currency": "QAR",
            "start_date": "2099-02-01T00:00:00Z",
            "end_date": "2100-02-01T00:00:00Z",
        }, headers=auth(alice)).json()
        assert contract["status"] == "Draft"

        signed = client.post(
            f"/api/supplier/contracts/{contract['id']}/sign",
            json={"signature": "Jane Doe"},
            headers=supplier_headers,
        )
        assert signed.json()["status"] == "Active"

        again = client.post(
            f"/api/supplier/contracts/{contract['id']}/sign",
            json={"signature": "Jane Doe"},
            headers=supplier_headers,
        )
        assert again.status_code == 409
        assert again.json()["detail"]["error"] == "invalid_status"

    def test_missing_document_detail(self, client, supplier, published_rfx_id):
        response = client.post(
            f"/api/supplier/rfx/{published_rfx_id}/bid",
            json=bid_payload(documents=[]),
            headers=auth(supplier, role="supplier"),
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "documents_incomplete"
        assert detail["details"] == ["Trade License"]

    def test_null_documents_get_coded_error(self, client, supplier, published_rfx_id):
        response = client.post(
            f"/api/supplier/rfx/{published_rfx_id}/bid",
            json=bid_payload(documents=None),
            headers=auth(supplier, role="supplier"),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "documents_incomplete"

    def test_staff_cannot_bid(self, client, committee, published_rfx_id):
        response = client.post(
            f"/api/supplier/rfx/{published_rfx_id}/bid", json=bid_payload(), headers=auth(committee[0]),
        )
        assert response.status_code == 403


class TestRouteFunctions:
    """Route coroutines called directly, without the HTTP stack."""

    @pytest.mark.asyncio
    async def test_failure_raises_http_exception(self, db_session, committee):
        """Service failures surface as HTTPException with the error body."""
        from fastapi import HTTPException
        from tenderflow.api import rfx as rfx_api

        user_context = {"user_id": committee[0].id, "is_admin": False}
        with pytest.raises(HTTPException) as exc:
            await rfx_api.close_rfx(999, user_context=user_context, db=db_session)

        assert exc.value.status_code == 404
        assert exc.value.detail == {"error": "not_found", "message": "RFx not found."}

    @pytest.mark.asyncio
    async def test_success_returns_value(self, db_session, committee):
        from tenderflow.api import contracts as contracts_api

        user_context = {"user_id": committee[0].id, "is_admin": False}
        assert await contracts_api.list_contract_ready_bids(user_context=user_context, db=db_session) == []


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
