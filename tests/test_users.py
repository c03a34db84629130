from conftest import auth

from leave_mgmt.audit.models import AuditLog
from leave_mgmt.balances.models import LeaveBalance


def _new_user(**overrides):
    data = {
        "first_name": "Nina",
        "last_name": "New",
        "email": "Nina.New@Example.com",
        "password": "welcome1",
        "role": "employee",
        "department": "Finance",
    }
    data.update(overrides)
    return data


def test_hr_creates_user_with_balances(client, team, leave_types, db):
    res = client.post("/api/users", json=_new_user(manager_id=team["manager"].id), headers=auth(team["hr"]))

    assert res.status_code == 201
    user = res.json()["user"]
    assert user["email"] == "nina.new@example.com"
    assert user["manager_id"] == team["manager"].id
    assert db.query(LeaveBalance).filter(LeaveBalance.user_id == user["id"]).count() == len(leave_types)
    assert db.query(AuditLog).filter(AuditLog.entity_type == "user", AuditLog.entity_id == user["id"]).count() == 1

    login = client.post("/api/auth/login", json={"email": "nina.new@example.com", "password": "welcome1"})
    assert login.status_code == 200


def test_create_user_rules(client, team):
    headers = auth(team["admin"])
    assert client.post("/api/users", json=_new_user(), headers=auth(team["manager"])).status_code == 403

    res = client.post("/api/users", json=_new_user(email=team["hr"].email), headers=headers)
    assert res.status_code == 409

    res = client.post("/api/users", json=_new_user(role="owner"), headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"]["details"][0]["field"] == "role"

    res = client.post("/api/users", json=_new_user(manager_id=4242), headers=headers)
    assert res.status_code == 400


def test_manager_lists_only_direct_reports(client, team, make_user):
    make_user("employee")
    res = client.get("/api/users", headers=auth(team["manager"]))
    assert [u["id"] for u in res.json()["users"]] == [team["employee"].id]

    res = client.get("/api/users?role=employee", headers=auth(team["hr"]))
    assert len(res.json()["users"]) == 2

    assert client.get("/api/users", headers=auth(team["employee"])).status_code == 403


def test_user_detail_visibility(client, team, make_user):
    employee = team["employee"]
    url = f"/api/users/{employee.id}"
    assert client.get(url, headers=auth(employee)).status_code == 200
    assert client.get(url, headers=auth(team["manager"])).status_code == 200
    assert client.get(url, headers=auth(team["hr"])).status_code == 200
    assert client.get(url, headers=auth(make_user("manager"))).status_code == 403
    assert client.get("/api/users/777", headers=auth(team["admin"])).status_code == 404
