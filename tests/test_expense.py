"""
Expense Tests
Tests for expense submission, viewing, receipt scanning and the approval routes
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from io import BytesIO
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from expenseflow.main import app
from expenseflow.services.currency_service import currency_service
from expenseflow.utils.exceptions import ExternalServiceError
from tests.test_auth import TestingSessionLocal, test_db, acme, auth_headers

client = TestClient(app)


def expense_payload(**overrides):
    payload = {
        "amount": 100.0,
        "currency": "usd",
        "category": "travel",
        "description": "  Airport taxi  ",
        "expense_date": "2026-10-01"
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def two_step_rule(acme):
    """Manager first, then finance"""
    response = client.put(
        "/api/admin/approval-rules",
        json={
            "is_manager_approver": True,
            "rule_type": "sequential",
            "steps": [{"approver_id": acme.finance_id, "step_order": 1}]
        },
        headers=auth_headers("admin@acme.com")
    )
    assert response.status_code == 200, response.json()
    return acme


@pytest.fixture
def employee_headers(acme):
    return auth_headers("employee@acme.com")


class TestExpenseSubmission:
    """Test expense creation and validation"""

    def test_submit_creates_chain(self, two_step_rule, employee_headers):
        acme = two_step_rule
        response = client.post("/api/expenses", json=expense_payload(), headers=employee_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["currency"] == "USD"
        assert data["description"] == "Airport taxi"
        assert data["is_stalled"] is False
        assert data["employee_email"] == "employee@acme.com"
        assert [(a["approver_id"], a["step_order"], a["status"]) for a in data["approvals"]] == [
            (acme.lead_id, 0, "pending"),
            (acme.finance_id, 2, "waiting"),
        ]
        assert data["approvals"][0]["approver_email"] == "lead@acme.com"

    def test_submit_without_rule_is_stalled(self, acme, employee_headers):
        response = client.post("/api/expenses", json=expense_payload(), headers=employee_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["is_stalled"] is True
        assert data["approvals"] == []

    def test_negative_amount(self, acme, employee_headers):
        response = client.post("/api/expenses", json=expense_payload(amount=-5), headers=employee_headers)
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_blank_description(self, acme, employee_headers):
        response = client.post("/api/expenses", json=expense_payload(description="   "), headers=employee_headers)
        assert response.status_code == 422

    def test_unknown_category(self, acme, employee_headers):
        response = client.post("/api/expenses", json=expense_payload(category="yachts"), headers=employee_headers)
        assert response.status_code == 422

    def test_admin_cannot_submit(self, acme):
        response = client.post("/api/expenses", json=expense_payload(), headers=auth_headers("admin@acme.com"))
        assert response.status_code == 403

    def test_unauthenticated(self, test_db):
        response = client.post("/api/expenses", json=expense_payload())
        assert response.status_code == 401


class TestExpenseViewing:

    def test_my_expenses_newest_first(self, two_step_rule, employee_headers):
        first = client.post("/api/expenses", json=expense_payload(description="Lunch"), headers=employee_headers)
        second = client.post("/api/expenses", json=expense_payload(description="Hotel"), headers=employee_headers)

        response = client.get("/api/expenses/my-expenses", headers=employee_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [e["id"] for e in data["expenses"]] == [second.json()["id"], first.json()["id"]]

    def test_detail_visible_to_chain_approver(self, two_step_rule, employee_headers):
        expense_id = client.post("/api/expenses", json=expense_payload(), headers=employee_headers).json()["id"]

        response = client.get(f"/api/expenses/{expense_id}", headers=auth_headers("finance@acme.com"))
        assert response.status_code == 200
        assert [a["step_order"] for a in response.json()["approvals"]] == [0, 2]

    def test_detail_visible_to_admin(self, two_step_rule, employee_headers):
        expense_id = client.post("/api/expenses", json=expense_payload(), headers=employee_headers).json()["id"]

        response = client.get(f"/api/expenses/{expense_id}", headers=auth_headers("admin@acme.com"))
        assert response.status_code == 200

    def test_detail_hidden_from_unrelated_manager(self, two_step_rule, employee_headers):
        expense_id = client.post("/api/expenses", json=expense_payload(), headers=employee_headers).json()["id"]

        response = client.get(f"/api/expenses/{expense_id}", headers=auth_headers("cfo@acme.com"))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestReceiptScan:

    def test_scan_returns_prefill_guess(self, acme, employee_headers):
        files = {"receipt": ("receipt.png", BytesIO(b"\x89PNG fake image bytes"), "image/png")}
        response = client.post("/api/expenses/ocr", files=files, headers=employee_headers)

        assert response.status_code == 200
        data = response.json()
        assert 10 <= data["amount"] <= 509
        assert data["currency"] == "USD"
        assert data["category"] in ("travel", "food", "supplies", "entertainment")
        assert data["description"] == "Auto-generated from receipt"
        assert data["merchant"] == "Sample Merchant"

    def test_scan_rejects_file_type(self, acme, employee_headers):
        files = {"receipt": ("notes.txt", BytesIO(b"hello"), "text/plain")}
        response = client.post("/api/expenses/ocr", files=files, headers=employee_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_scan_rejects_empty_file(self, acme, employee_headers):
        files = {"receipt": ("receipt.jpg", BytesIO(b""), "image/jpeg")}
        response = client.post("/api/expenses/ocr", files=files, headers=employee_headers)
        assert response.status_code == 400


class TestApprovalRoutes:

    def submit(self, headers, **overrides):
        response = client.post("/api/expenses", json=expense_payload(**overrides), headers=headers)
        assert response.status_code == 201
        return response.json()["id"]

    def test_pending_inbox(self, two_step_rule, employee_headers):
        expense_id = self.submit(employee_headers)

        response = client.get("/api/approvals/pending", headers=auth_headers("lead@acme.com"))
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        item = data["approvals"][0]
        assert item["expense"]["id"] == expense_id
        assert item["employee_email"] == "employee@acme.com"
        assert item["company_currency"] == "USD"
        assert item["converted_amount"] is None

        # Finance is still waiting
        response = client.get("/api/approvals/pending", headers=auth_headers("finance@acme.com"))
        assert response.json()["count"] == 0

    def test_pending_inbox_converts_foreign_currency(self, two_step_rule, employee_headers):
        self.submit(employee_headers, amount=100.0, currency="EUR")

        with patch.object(currency_service, "convert", AsyncMock(return_value=92.1234)):
            response = client.get("/api/approvals/pending", headers=auth_headers("lead@acme.com"))

        assert response.json()["approvals"][0]["converted_amount"] == 92.12

    def test_pending_inbox_survives_conversion_failure(self, two_step_rule, employee_headers):
        self.submit(employee_headers, currency="EUR")

        failing = AsyncMock(side_effect=ExternalServiceError("rates unavailable"))
        with patch.object(currency_service, "convert", failing):
            response = client.get("/api/approvals/pending", headers=auth_headers("lead@acme.com"))

        assert response.status_code == 200
        assert response.json()["approvals"][0]["converted_amount"] is None

    def test_approve_through_chain(self, two_step_rule, employee_headers):
        expense_id = self.submit(employee_headers)

        response = client.post(
            f"/api/approvals/{expense_id}/approve",
            json={"comments": "Approved by lead"},
            headers=auth_headers("lead@acme.com")
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["approval"]["status"] == "approved"
        assert data["activated_step"]["step_order"] == 2
        assert data["expense"]["status"] == "pending"

        response = client.post(
            f"/api/approvals/{expense_id}/approve",
            json={},
            headers=auth_headers("finance@acme.com")
        )
        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "approved"
        assert data["expense"]["status"] == "approved"

    def test_reject(self, two_step_rule, employee_headers):
        expense_id = self.submit(employee_headers)

        response = client.post(
            f"/api/approvals/{expense_id}/reject",
            json={"comments": "Not a business expense"},
            headers=auth_headers("lead@acme.com")
        )
        assert response.status_code == 200
        assert response.json()["expense"]["status"] == "rejected"

        response = client.get(f"/api/expenses/{expense_id}", headers=employee_headers)
        assert [a["status"] for a in response.json()["approvals"]] == ["rejected", "waiting"]

    def test_act_out_of_turn(self, two_step_rule, employee_headers):
        expense_id = self.submit(employee_headers)

        response = client.post(
            f"/api/approvals/{expense_id}/approve",
            json={},
            headers=auth_headers("finance@acme.com")
        )
        assert response.status_code == 409
        assert response.json()["error"] == "already_actioned"

    def test_employee_cannot_approve(self, two_step_rule, employee_headers):
        expense_id = self.submit(employee_headers)

        response = client.post(f"/api/approvals/{expense_id}/approve", json={}, headers=employee_headers)
        assert response.status_code == 403

    def test_data_store_failure_is_bad_gateway(self, two_step_rule, employee_headers):
        expense_id = self.submit(employee_headers)
        lead = auth_headers("lead@acme.com")

        failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))
        with patch.object(Session, "commit", side_effect=failure):
            response = client.post(f"/api/approvals/{expense_id}/approve", json={}, headers=lead)

        assert response.status_code == 502
        assert response.json()["error"] == "external_service_error"

        response = client.get(f"/api/expenses/{expense_id}", headers=employee_headers)
        assert [a["status"] for a in response.json()["approvals"]] == ["pending", "waiting"]

    def test_unknown_expense(self, two_step_rule):
        response = client.post("/api/approvals/9999/approve", json={}, headers=auth_headers("lead@acme.com"))
        assert response.status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
