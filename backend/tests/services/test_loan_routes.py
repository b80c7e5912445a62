"""Loan routes — HTTP contract over the full stack (FastAPI + service + SQLite).

Invariants:
    - Success responses use the {"message", "data"} envelope
    - Domain errors map to their HTTP status with the structured error body
    - Unknown loan ids return 404 from every endpoint
    - Malformed input returns 400 VALIDATION_ERROR before reaching the service
"""

from decimal import Decimal
from uuid import uuid4

import pytest

PROOF = "https://cdn.example.com/images/visit.jpg"
SIGNED = "https://example.com/signed/agreement.pdf"


async def _create(client, principal=50000, borrower="borrower-1") -> dict:
    res = await client.post("/api/v1/loans", json={
        "borrower_id": borrower, "principal_amount": principal, "rate": 5.5, "roi": 7.0,
    })
    assert res.status_code == 201, res.text
    return res.json()["data"]


async def _approve(client, loan_id):
    return await client.put(f"/api/v1/loans/{loan_id}/approve", json={
        "field_validator_proof": PROOF, "field_validator_id": "validator-1",
    })


async def _invest(client, loan_id, amount, investor="investor-1"):
    return await client.put(f"/api/v1/loans/{loan_id}/invest", json={
        "investor_id": investor, "amount": amount,
    })


async def _disburse(client, loan_id, officer="officer-1"):
    return await client.put(f"/api/v1/loans/{loan_id}/disburse", json={
        "signed_agreement_link": SIGNED, "field_officer_id": officer,
    })


# --- Scenarios -----------------------------------------------------------------

async def test_scenario_full_lifecycle(client):
    loan = await _create(client, 50000)
    assert loan["status"] == "proposed"
    assert loan["approval_details"] is None
    assert loan["agreement_letter_link"] == ""

    res = await _approve(client, loan["id"])
    assert res.status_code == 200
    approved = res.json()["data"]
    assert approved["status"] == "approved"
    assert approved["approval_details"]["field_validator_id"] == "validator-1"

    res = await _invest(client, loan["id"], 50000)
    assert res.status_code == 200
    invested = res.json()["data"]
    assert invested["status"] == "invested"
    assert Decimal(invested["total_invested"]) == Decimal("50000")
    assert invested["agreement_letter_link"] == (
        f"https://example.com/agreements/loan_{loan['id']}_agreement.pdf"
    )
    assert len(invested["investments"]) == 1

    res = await _disburse(client, loan["id"])
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Loan disbursed successfully"
    assert body["data"]["status"] == "disbursed"
    assert body["data"]["disbursement_details"]["field_officer_id"] == "officer-1"


async def test_scenario_installments(client):
    loan = await _create(client, 100000)
    await _approve(client, loan["id"])

    expected = [(40000, "approved", "40000"), (35000, "approved", "75000"), (25000, "invested", "100000")]
    for amount, status, total in expected:
        res = await _invest(client, loan["id"], amount)
        data = res.json()["data"]
        assert data["status"] == status
        assert Decimal(data["total_invested"]) == Decimal(total)


async def test_scenario_overshoot_returns_limit_exceeded(client):
    loan = await _create(client, 30000)
    await _approve(client, loan["id"])

    res = await _invest(client, loan["id"], 35000)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "LIMIT_EXCEEDED"

    current = (await client.get(f"/api/v1/loans/{loan['id']}")).json()["data"]
    assert Decimal(current["total_invested"]) == Decimal("0")
    assert current["investments"] == []


async def test_scenario_invest_before_approval(client):
    loan = await _create(client, 1000)
    res = await _invest(client, loan["id"], 100)
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "INVALID_OPERATION"
    assert error["message"] == "loan is not in approved status"

    current = (await client.get(f"/api/v1/loans/{loan['id']}")).json()["data"]
    assert current["status"] == "proposed"


async def test_scenario_double_disbursement(client):
    loan = await _create(client, 1000)
    await _approve(client, loan["id"])
    await _invest(client, loan["id"], 1000)
    first = (await _disburse(client, loan["id"], "officer-1")).json()["data"]

    res = await _disburse(client, loan["id"], "officer-2")
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "can only disburse fully invested loans"

    current = (await client.get(f"/api/v1/loans/{loan['id']}")).json()["data"]
    assert current["disbursement_details"]["field_officer_id"] == "officer-1"
    assert current["disbursement_details"] == first["disbursement_details"]


async def test_approve_twice_is_rejected(client):
    loan = await _create(client)
    await _approve(client, loan["id"])
    res = await _approve(client, loan["id"])
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "can only approve loans in proposed status"


# --- CRUD ----------------------------------------------------------------------

async def test_list_loans_with_filters(client):
    first = await _create(client, borrower="alice")
    await _create(client, borrower="bob")
    await _approve(client, first["id"])

    res = await client.get("/api/v1/loans")
    assert res.status_code == 200
    assert len(res.json()["data"]) == 2

    res = await client.get("/api/v1/loans", params={"status": "approved"})
    assert [l["id"] for l in res.json()["data"]] == [first["id"]]

    res = await client.get("/api/v1/loans", params={"borrower_id": "bob"})
    assert [l["borrower_id"] for l in res.json()["data"]] == ["bob"]


async def test_list_loans_rejects_unknown_status(client):
    res = await client.get("/api/v1/loans", params={"status": "rejected"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_update_proposed_loan(client):
    loan = await _create(client, 1000)
    res = await client.put(f"/api/v1/loans/{loan['id']}", json={"principal_amount": 2500, "roi": 8})
    assert res.status_code == 200
    data = res.json()["data"]
    assert Decimal(data["principal_amount"]) == Decimal("2500")
    assert Decimal(data["roi"]) == Decimal("8")
    assert Decimal(data["rate"]) == Decimal("5.5")


async def test_update_after_approval_is_rejected(client):
    loan = await _create(client, 1000)
    await _approve(client, loan["id"])
    res = await client.put(f"/api/v1/loans/{loan['id']}", json={"rate": 9})
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "can only update loans in proposed status"


async def test_delete_proposed_loan(client):
    loan = await _create(client)
    res = await client.delete(f"/api/v1/loans/{loan['id']}")
    assert res.status_code == 200
    assert res.json()["message"] == "Loan deleted successfully"
    assert (await client.get(f"/api/v1/loans/{loan['id']}")).status_code == 404


async def test_delete_after_approval_is_rejected(client):
    loan = await _create(client)
    await _approve(client, loan["id"])
    res = await client.delete(f"/api/v1/loans/{loan['id']}")
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "can only delete loans in proposed status"


# --- Transitions ---------------------------------------------------------------

async def test_transitions_query(client):
    loan = await _create(client, 100)
    res = await client.get(f"/api/v1/loans/{loan['id']}/transitions")
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["current_state"] == "proposed"
    assert data["transitions"] == [
        {"from_state": "proposed", "to_state": "approved", "action": "approve"},
    ]

    await _approve(client, loan["id"])
    await _invest(client, loan["id"], 100)
    await _disburse(client, loan["id"])
    data = (await client.get(f"/api/v1/loans/{loan['id']}/transitions")).json()["data"]
    assert data == {"current_state": "disbursed", "transitions": []}


# --- Not found & validation ------------------------------------------------------

@pytest.mark.parametrize("method, suffix, body", [
    ("GET", "", None),
    ("PUT", "", {"rate": 1}),
    ("DELETE", "", None),
    ("PUT", "/approve", {"field_validator_proof": PROOF, "field_validator_id": "v"}),
    ("PUT", "/invest", {"investor_id": "i", "amount": 1}),
    ("PUT", "/disburse", {"signed_agreement_link": SIGNED, "field_officer_id": "o"}),
    ("GET", "/transitions", None),
])
async def test_unknown_loan_returns_404_everywhere(client, method, suffix, body):
    res = await client.request(method, f"/api/v1/loans/{uuid4()}{suffix}", json=body)
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


@pytest.mark.parametrize("payload", [
    {"borrower_id": "", "principal_amount": 100, "rate": 1, "roi": 1},
    {"borrower_id": "b", "principal_amount": 0, "rate": 1, "roi": 1},
    {"borrower_id": "b", "principal_amount": 100, "rate": -1, "roi": 1},
    {"borrower_id": "b", "principal_amount": 100, "rate": 1},
])
async def test_create_validation_errors(client, payload):
    res = await client.post("/api/v1/loans", json=payload)
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]


async def test_created_terms_read_back_unchanged(client):
    res = await client.post("/api/v1/loans", json={
        "borrower_id": "b", "principal_amount": "1500.25", "rate": "0.0001", "roi": "99999.9999",
    })
    assert res.status_code == 201
    created = res.json()["data"]

    stored = (await client.get(f"/api/v1/loans/{created['id']}")).json()["data"]
    for field in ("principal_amount", "rate", "roi"):
        assert Decimal(stored[field]) == Decimal(created[field])
    assert Decimal(stored["rate"]) == Decimal("0.0001")


@pytest.mark.parametrize("payload", [
    {"rate": "0.00001"},
    {"roi": "100000"},
    {"principal_amount": "10.001"},
])
async def test_terms_beyond_stored_precision_are_rejected(client, payload):
    body = {"borrower_id": "b", "principal_amount": 100, "rate": 1, "roi": 1, **payload}
    res = await client.post("/api/v1/loans", json=body)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"

    loan = await _create(client)
    res = await client.put(f"/api/v1/loans/{loan['id']}", json=payload)
    assert res.status_code == 400
    current = (await client.get(f"/api/v1/loans/{loan['id']}")).json()["data"]
    assert Decimal(current["rate"]) == Decimal("5.5")


async def test_approve_requires_image_proof(client):
    loan = await _create(client)
    res = await client.put(f"/api/v1/loans/{loan['id']}/approve", json={
        "field_validator_proof": "https://example.com/report.pdf",
        "field_validator_id": "validator-1",
    })
    assert res.status_code == 400
    current = (await client.get(f"/api/v1/loans/{loan['id']}")).json()["data"]
    assert current["status"] == "proposed"


async def test_invest_rejects_non_positive_amount(client):
    loan = await _create(client)
    await _approve(client, loan["id"])
    res = await _invest(client, loan["id"], 0)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_malformed_loan_id_is_validation_error(client):
    res = await client.get("/api/v1/loans/not-a-uuid")
    assert res.status_code == 400


# --- Health --------------------------------------------------------------------

async def test_liveness(client):
    res = await client.get("/api/v1/health/")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
    assert res.json()["service"] == "loan-service"


async def test_readiness_with_database(client):
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.json()["checks"]["database"] == "healthy"


async def test_readiness_without_database(client, monkeypatch):
    import loan_service.infrastructure.database as db_module

    monkeypatch.setattr(db_module, "db_manager", None)
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 503
    assert res.json() == {"status": "not_ready", "checks": {"database": "unavailable"}}
