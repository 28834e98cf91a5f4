"""
Integration tests: full API flow against the temp SQLite DB from conftest.

Tables are dropped and recreated around every test so each one starts from
an empty ledger.
"""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from district_ledger.core.config import settings
from district_ledger.core.database import engine
from district_ledger.main import app
from district_ledger.models.master import ManagedUser

TODAY = date.today().isoformat()

VENDOR = {
    "vendor_name": "Sri Murugan Traders",
    "district": "Coimbatore",
    "business_type": "Hardware",
    "reg_year": "2025",
    "mobile": "9876543210",
}


@pytest.fixture(autouse=True)
def fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def client():
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


def _vendor(client, **overrides) -> dict:
    r = client.post("/api/vendors", json={**VENDOR, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def _txn(client, vendor_code, expected=100000, advance=0, gst=5, month="May", headers=None) -> dict:
    r = client.post(
        "/api/transactions",
        json={
            "vendor_code": vendor_code,
            "expected_amount": expected,
            "advance_amount": advance,
            "gst_percent": gst,
            "month": month,
            "financial_year": "2025-26",
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def _bill(client, txn_id, amount, gst=5, number="INV-001", headers=None):
    return client.post(
        f"/api/transactions/{txn_id}/bills",
        json={"bill_number": number, "bill_date": TODAY, "bill_amount": amount, "gst_percent": gst},
        headers=headers,
    )


class TestHealth:
    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"


class TestVendorEndpoints:
    def test_register_and_fetch(self, client):
        v = _vendor(client)
        assert v["vendor_code"] == "CBE25HW001"
        r = client.get("/api/vendors/CBE25HW001")
        assert r.status_code == 200
        assert r.json()["vendor_name"] == "Sri Murugan Traders"
        assert len(client.get("/api/vendors").json()) == 1

    def test_contact_patch(self, client):
        _vendor(client)
        r = client.patch("/api/vendors/CBE25HW001", json={"address": "Town Hall Road"})
        assert r.status_code == 200
        assert r.json()["address"] == "Town Hall Road"
        assert r.json()["mobile"] == "9876543210"

    def test_invalid_vendor_is_422(self, client):
        r = client.post("/api/vendors", json={**VENDOR, "mobile": "123"})
        assert r.status_code == 422
        assert client.get("/api/vendors").json() == []

    def test_unknown_vendor_is_404(self, client):
        assert client.get("/api/vendors/NOPE").status_code == 404

    def test_delete_blocked_by_transaction(self, client):
        v = _vendor(client)
        _txn(client, v["vendor_code"])
        assert client.delete(f"/api/vendors/{v['vendor_code']}").status_code == 422


class TestTransactionFlow:
    def test_full_lifecycle(self, client):
        v = _vendor(client)
        t = _txn(client, v["vendor_code"], expected=300950, advance=5000, gst=4)
        txn_id = t["txn_id"]
        assert t["gst_amount"] == 12038.0
        assert t["gst_balance"] == 7038.0
        assert t["status"] == "Open"

        r = _bill(client, txn_id, 76664, gst=4)
        assert r.status_code == 201
        assert r.json()["total_amount"] == 90463.52
        assert r.json()["gst_amount"] == 3066.56

        t = client.get(f"/api/transactions/{txn_id}").json()
        assert t["bills_received"] == 76664.0
        assert t["remaining_expected"] == 210486.48

        r = client.post(f"/api/transactions/{txn_id}/close")
        assert r.status_code == 200
        assert r.json()["status"] == "PendingClose"
        assert r.json()["remaining_expected"] == 0.0

        r = client.post(f"/api/transactions/{txn_id}/confirm")
        assert r.status_code == 200
        assert r.json()["status"] == "Closed"
        assert r.json()["profit"] == 24076.0

        wallet = client.get("/api/wallet").json()
        assert [e["type"] for e in wallet["entries"]] == ["advance", "gst", "profit"]
        assert [e["balance"] for e in wallet["entries"]] == [-5000.0, -12038.0, 12038.0]
        assert wallet["balance"] == 12038.0

        logs = client.get("/api/audit-logs", params={"entity": "Transaction", "entity_id": txn_id}).json()
        assert [log["action"] for log in logs] == ["CONFIRM", "CLOSE", "CREATE"]

    def test_second_confirm_is_409(self, client):
        v = _vendor(client)
        txn_id = _txn(client, v["vendor_code"], expected=200000)["txn_id"]
        client.post(f"/api/transactions/{txn_id}/close")
        assert client.post(f"/api/transactions/{txn_id}/confirm").status_code == 200
        r = client.post(f"/api/transactions/{txn_id}/confirm")
        assert r.status_code == 409
        assert "already closed" in r.json()["detail"]
        assert client.get("/api/wallet").json()["balance"] == 6000.0

    def test_confirm_open_is_409(self, client):
        v = _vendor(client)
        txn_id = _txn(client, v["vendor_code"])["txn_id"]
        assert client.post(f"/api/transactions/{txn_id}/confirm").status_code == 409

    def test_edit_and_bill_changes(self, client):
        v = _vendor(client)
        txn_id = _txn(client, v["vendor_code"], expected=100000)["txn_id"]
        bill_id = _bill(client, txn_id, 40000).json()["id"]

        r = client.patch(f"/api/transactions/{txn_id}", json={"expected_amount": 120000})
        assert r.status_code == 200
        assert r.json()["gst_amount"] == 6000.0
        assert r.json()["remaining_expected"] == 72800.0

        r = client.patch(f"/api/bills/{bill_id}", json={"bill_amount": 50000})
        assert r.status_code == 200
        assert r.json()["total_amount"] == 59000.0
        assert client.get(f"/api/transactions/{txn_id}").json()["remaining_expected"] == 61000.0

        r = client.delete(f"/api/bills/{bill_id}")
        assert r.status_code == 200
        assert r.json()["remaining_expected"] == 120000.0
        assert client.get(f"/api/transactions/{txn_id}/bills").json() == []

    def test_validation_errors_are_422(self, client):
        v = _vendor(client)
        txn_id = _txn(client, v["vendor_code"])["txn_id"]
        future = (date.today() + timedelta(days=1)).isoformat()
        r = client.post(
            f"/api/transactions/{txn_id}/bills",
            json={"bill_number": "INV-9", "bill_date": future, "bill_amount": 10, "gst_percent": 5},
        )
        assert r.status_code == 422
        assert _bill(client, txn_id, 100, gst=18).status_code == 422
        assert _bill(client, txn_id, -100).status_code == 422
        r = client.post(
            "/api/transactions",
            json={"vendor_code": v["vendor_code"], "expected_amount": 1000, "advance_amount": 900,
                  "gst_percent": 5, "month": "May", "financial_year": "2025-26"},
        )
        assert r.status_code == 422
        assert len(client.get("/api/transactions").json()) == 1

    def test_unknown_ids_are_404(self, client):
        assert client.get("/api/transactions/TXNMISSING").status_code == 404
        assert client.post("/api/transactions/TXNMISSING/close").status_code == 404
        assert client.patch("/api/bills/999", json={"bill_amount": 1}).status_code == 404
        r = client.post(
            "/api/transactions",
            json={"vendor_code": "XXX", "expected_amount": 1000, "gst_percent": 5, "month": "May"},
        )
        assert r.status_code == 404

    def test_financial_year_defaults(self, client):
        v = _vendor(client)
        r = client.post(
            "/api/transactions",
            json={"vendor_code": v["vendor_code"], "expected_amount": 1000, "gst_percent": 5, "month": "May"},
        )
        assert r.status_code == 201
        assert r.json()["financial_year"]

    def test_filters(self, client):
        v1 = _vendor(client)
        v2 = _vendor(client, district="Salem")
        t1 = _txn(client, v1["vendor_code"])
        _txn(client, v2["vendor_code"])
        client.post(f"/api/transactions/{t1['txn_id']}/close")

        assert len(client.get("/api/transactions").json()) == 2
        assert len(client.get("/api/transactions", params={"district": "Salem"}).json()) == 1
        pending = client.get("/api/transactions", params={"status": "PendingClose"}).json()
        assert [t["txn_id"] for t in pending] == [t1["txn_id"]]

    def test_delete_leaves_orphans(self, client):
        v = _vendor(client)
        txn_id = _txn(client, v["vendor_code"], advance=1000)["txn_id"]
        assert client.delete(f"/api/transactions/{txn_id}").status_code == 200
        assert client.get(f"/api/transactions/{txn_id}").status_code == 404
        orphans = client.get("/api/wallet/orphans").json()
        assert [o["txn_id"] for o in orphans] == [txn_id]
        assert client.get("/api/wallet").json()["balance"] == -1000.0


class TestWalletEndpoints:
    def test_manual_and_set_balance(self, client):
        r = client.post("/api/wallet/manual", json={"description": "Opening float", "credit": 2500})
        assert r.status_code == 201
        assert r.json()["balance"] == 2500.0

        r = client.post("/api/wallet/balance", json={"target": 1000})
        assert r.status_code == 200
        assert r.json()["balance"] == 1000.0
        assert r.json()["entry"]["debit"] == 1500.0
        assert r.json()["entry"]["description"] == "Balance Adjustment (Debit)"

        r = client.post("/api/wallet/balance", json={"target": 1000})
        assert r.json()["entry"] is None
        assert len(client.get("/api/wallet").json()["entries"]) == 2

    def test_manual_entry_validation(self, client):
        assert client.post("/api/wallet/manual", json={"description": " ", "credit": 1}).status_code == 422
        assert client.post("/api/wallet/manual", json={"description": "x", "debit": -1}).status_code == 422
        assert client.get("/api/wallet").json()["entries"] == []

    def test_oversized_amounts_are_422(self, client):
        r = client.post("/api/wallet/balance", json={"target": 1e30})
        assert r.status_code == 422
        assert "exceeds the limit" in r.json()["detail"]
        r = client.post("/api/wallet/manual", json={"description": "big", "credit": 1e27})
        assert r.status_code == 422
        assert client.get("/api/wallet").json()["entries"] == []

    def test_verify(self, client):
        client.post("/api/wallet/manual", json={"description": "a", "credit": 10})
        client.post("/api/wallet/manual", json={"description": "b", "debit": 3.5})
        r = client.get("/api/wallet/verify")
        assert r.json() == {"ok": True, "entries_checked": 2, "mismatched_ids": []}


class TestDashboard:
    def test_summary(self, client):
        v = _vendor(client)
        t1 = _txn(client, v["vendor_code"], expected=200000)["txn_id"]
        t2 = _txn(client, v["vendor_code"], expected=50000, month="June")["txn_id"]
        _bill(client, t2, 10000)
        client.post(f"/api/transactions/{t1}/close")
        client.post(f"/api/transactions/{t1}/confirm")

        data = client.get("/api/dashboard").json()
        assert data["total_expected"] == 250000.0
        assert data["total_bills_received"] == 10000.0
        assert data["total_gst"] == 12500.0
        assert data["total_profit"] == 16000.0
        assert data["open_count"] == 1
        assert data["closed_count"] == 1
        assert data["pending_close_count"] == 0
        assert data["wallet_balance"] == 6000.0

    def test_pending_close_listed(self, client):
        v = _vendor(client)
        txn_id = _txn(client, v["vendor_code"])["txn_id"]
        client.post(f"/api/transactions/{txn_id}/close")
        data = client.get("/api/dashboard").json()
        assert data["pending_close_count"] == 1
        assert [t["txn_id"] for t in data["pending_close"]] == [txn_id]
        assert data["total_profit"] == 0.0


class TestAccessGate:
    @pytest.fixture(autouse=True)
    def auth_on(self, fresh_db, monkeypatch):
        monkeypatch.setattr(settings, "AUTH_ENABLED", True)
        with Session(engine) as s:
            s.add(ManagedUser(username="cbe_office", district="Coimbatore"))
            s.add(ManagedUser(username="slm_office", district="Salem"))
            s.add(ManagedUser(username="old_office", district="Coimbatore", active=False))
            s.commit()

    ADMIN = {"X-User": "admin"}
    CBE = {"X-User": "cbe_office"}
    SLM = {"X-User": "slm_office"}

    def test_missing_or_unknown_user(self, client):
        assert client.get("/api/vendors").status_code == 403
        assert client.get("/api/vendors", headers={"X-User": "stranger"}).status_code == 403
        assert client.get("/api/vendors", headers={"X-User": "old_office"}).status_code == 403

    def test_district_user_lifecycle(self, client):
        r = client.post("/api/vendors", json=VENDOR, headers=self.CBE)
        assert r.status_code == 201
        t = _txn(client, "CBE25HW001", headers=self.CBE)
        assert _bill(client, t["txn_id"], 1000, headers=self.CBE).status_code == 201
        r = client.post(f"/api/transactions/{t['txn_id']}/close", headers=self.CBE)
        assert r.status_code == 200

        # Only the admin confirms
        r = client.post(f"/api/transactions/{t['txn_id']}/confirm", headers=self.CBE)
        assert r.status_code == 403
        r = client.post(f"/api/transactions/{t['txn_id']}/confirm", headers=self.ADMIN)
        assert r.status_code == 200

        logs = client.get("/api/audit-logs", params={"entity": "Transaction"}, headers=self.ADMIN).json()
        assert [(log["action"], log["user"]) for log in logs] == [
            ("CONFIRM", "admin"),
            ("CLOSE", "cbe_office"),
            ("CREATE", "cbe_office"),
        ]

    def test_other_district_is_refused(self, client):
        client.post("/api/vendors", json=VENDOR, headers=self.CBE)
        t = _txn(client, "CBE25HW001", headers=self.CBE)
        assert client.get(f"/api/transactions/{t['txn_id']}", headers=self.SLM).status_code == 403
        assert client.post(f"/api/transactions/{t['txn_id']}/close", headers=self.SLM).status_code == 403
        assert client.post("/api/vendors", json=VENDOR, headers=self.SLM).status_code == 403
        # Listings are scoped to the caller's district
        assert client.get("/api/transactions", headers=self.SLM).json() == []
        assert len(client.get("/api/transactions", headers=self.CBE).json()) == 1

    def test_wallet_and_audit_are_admin_only(self, client):
        assert client.get("/api/wallet", headers=self.CBE).status_code == 403
        assert client.post("/api/wallet/manual", json={"description": "x", "credit": 1}, headers=self.CBE).status_code == 403
        assert client.get("/api/audit-logs", headers=self.CBE).status_code == 403
        assert client.get("/api/wallet", headers=self.ADMIN).status_code == 200

    def test_district_dashboard_hides_wallet(self, client):
        data = client.get("/api/dashboard", headers=self.CBE).json()
        assert data["district"] == "Coimbatore"
        assert data["wallet_balance"] is None
