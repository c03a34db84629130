from conftest import auth, future, leave_form

from leave_mgmt.audit.logger import AuditLogger
from leave_mgmt.audit.models import AuditLog


def test_log_data_modification_serializes_dates(db):
    row = AuditLogger.log_data_modification(
        db, 1, "leave", 7, "UPDATE",
        old_values={"status": "pending"},
        new_values={"status": "approved", "start_date": future(1)},
    )
    assert row.id is not None
    assert row.category == "data_modification"
    assert row.new_values["start_date"] == future(1).isoformat()


def test_failed_audit_write_is_swallowed(db, monkeypatch):
    def boom():
        raise RuntimeError("disk full")

    monkeypatch.setattr(db, "commit", boom)
    assert AuditLogger.log_authentication(db, None, "login", False) is None


def test_submission_and_decision_are_audited(client, team, leave_types, db):
    res = client.post("/api/leaves", data=leave_form(leave_types["Annual Leave"], future(12), future(12)),
                      headers=auth(team["employee"]))
    leave_id = res.json()["leave"]["id"]
    client.put(f"/api/leaves/{leave_id}/approve", json={"action": "approve"}, headers=auth(team["manager"]))

    rows = db.query(AuditLog).filter(AuditLog.entity_type == "leave", AuditLog.entity_id == leave_id) \
        .order_by(AuditLog.id).all()
    assert [r.action for r in rows] == ["CREATE", "UPDATE"]
    assert rows[0].user_id == team["employee"].id
    assert rows[1].new_values["status"] == "approved"
    assert rows[1].old_values == {"status": "pending"}


def test_audit_logs_filtering_and_admin_only(client, team):
    client.post("/api/auth/login", json={"email": team["hr"].email, "password": "secret123"})
    client.post("/api/auth/login", json={"email": team["hr"].email, "password": "wrong"})

    assert client.get("/api/audit/logs", headers=auth(team["hr"])).status_code == 403

    res = client.get("/api/audit/logs?category=authentication&sort_by=severity&sort_order=asc",
                     headers=auth(team["admin"]))
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 2
    assert [r["severity"] for r in body["data"]] == ["info", "warning"]
    assert body["data"][0]["user_id"] == team["hr"].id

    res = client.get("/api/audit/logs?severity=warning", headers=auth(team["admin"]))
    assert res.json()["total"] == 1

    res = client.get("/api/audit/logs?search=log&limit=1", headers=auth(team["admin"]))
    assert res.json()["total"] == 2 and len(res.json()["data"]) == 1

    res = client.get("/api/audit/logs?sort_by=password", headers=auth(team["admin"]))
    assert res.status_code == 400


def test_audit_log_detail(client, team, db):
    row = AuditLogger.log_data_modification(db, team["admin"].id, "user", 3, "DELETE", severity="warning")
    res = client.get(f"/api/audit/logs/{row.id}", headers=auth(team["admin"]))
    assert res.json()["log"]["action"] == "DELETE"
    assert client.get("/api/audit/logs/9999", headers=auth(team["admin"])).status_code == 404


def test_export_returns_pdf(client, team, db):
    AuditLogger.log_data_modification(db, team["admin"].id, "leave", 1, "CREATE")
    res = client.get("/api/audit/export", headers=auth(team["admin"]))
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")
    assert "attachment" in res.headers["content-disposition"]
