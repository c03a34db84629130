from datetime import date

import pytest
from conftest import auth, future, leave_form

from leave_mgmt import config
from leave_mgmt.balances import financial_year
from leave_mgmt.balances.financial_year import (
    find_balance,
    financial_year_bounds,
    get_current_financial_year,
    get_default_balance,
    get_financial_year,
    initialize_employee_leave_balances,
    process_financial_year_rollover,
    recalculate_remaining,
)
from leave_mgmt.balances.models import LeaveBalance
from leave_mgmt.database import SessionLocal
from leave_mgmt.leaves.models import LeaveType
from leave_mgmt.notifications.models import Notification


@pytest.mark.parametrize("day, expected", [
    (date(2025, 3, 31), 2024),
    (date(2025, 4, 1), 2025),
    (date(2025, 12, 31), 2025),
    (date(2026, 1, 15), 2025),
])
def test_financial_year_starts_in_april(day, expected):
    assert get_financial_year(day) == expected


def test_financial_year_with_calendar_start():
    assert get_financial_year(date(2025, 1, 1), start_month=1) == 2025
    assert financial_year_bounds(2025, start_month=1) == (date(2025, 1, 1), date(2025, 12, 31))


def test_financial_year_bounds():
    assert financial_year_bounds(2025) == (date(2025, 4, 1), date(2026, 3, 31))
    assert get_current_financial_year(date(2024, 2, 10)) == 2023


def test_recalculate_remaining():
    b = LeaveBalance(total_days=20, used_days=3.5, carried_over_days=2)
    assert recalculate_remaining(b).remaining_days == 18.5


def test_initialize_creates_one_row_per_active_type(db, make_user, leave_types):
    user = make_user()
    created = initialize_employee_leave_balances(db, user.id, 2025)
    assert len(created) == len(leave_types)

    annual = find_balance(db, user.id, leave_types["Annual Leave"], 2025)
    sick = find_balance(db, user.id, leave_types["Sick Leave"], 2025)
    assert (annual.total_days, annual.remaining_days, annual.max_carry_over) == (20, 20, config.DEFAULT_MAX_CARRY_OVER)
    assert sick.max_carry_over == 0

    # second call is a no-op
    assert initialize_employee_leave_balances(db, user.id, 2025) == []


def test_rollover_carries_capped_annual_leave(db, make_user, leave_types):
    user = make_user()
    initialize_employee_leave_balances(db, user.id, 2024)
    annual = find_balance(db, user.id, leave_types["Annual Leave"], 2024)
    annual.used_days = 8
    recalculate_remaining(annual)          # 12 left, only 5 may carry
    sick = find_balance(db, user.id, leave_types["Sick Leave"], 2024)
    sick.used_days = 1
    recalculate_remaining(sick)
    db.commit()

    processed = process_financial_year_rollover(db, 2025)

    assert processed == 1
    new_annual = find_balance(db, user.id, leave_types["Annual Leave"], 2025)
    assert new_annual.carried_over_days == 5
    assert new_annual.remaining_days == 25
    new_sick = find_balance(db, user.id, leave_types["Sick Leave"], 2025)
    assert new_sick.carried_over_days == 0
    assert new_sick.remaining_days == 10


def test_rollover_without_previous_year(db, make_user, leave_types):
    user = make_user()
    assert process_financial_year_rollover(db, 2030) == 1
    assert find_balance(db, user.id, leave_types["Annual Leave"], 2030).remaining_days == 20


def test_default_balance(db, leave_types):
    assert get_default_balance(db) == {
        "annual_leave": 20.0,
        "sick_leave": 10.0,
        "personal_leave": 5.0,
        "max_carry_over": float(config.DEFAULT_MAX_CARRY_OVER),
    }


# ---------------- routes ----------------
def test_my_balances_initializes_lazily(client, team, leave_types):
    res = client.get("/api/leave-balances/my-balances?year=2025", headers=auth(team["employee"]))
    assert res.status_code == 200
    body = res.json()
    assert body["year"] == 2025
    assert len(body["balances"]) == len(leave_types)

    same = client.get("/api/users/leave-balance?year=2025", headers=auth(team["employee"])).json()
    assert [b["id"] for b in same["balances"]] == [b["id"] for b in body["balances"]]


def test_admin_routes_require_hr_or_admin(client, team):
    assert client.get("/api/admin/financial-year-info", headers=auth(team["employee"])).status_code == 403
    assert client.get("/api/admin/financial-year-info", headers=auth(team["manager"])).status_code == 403
    res = client.get("/api/admin/financial-year-info", headers=auth(team["hr"]))
    assert res.status_code == 200
    year = res.json()["current_financial_year"]
    assert res.json()["label"] == f"{year}-{year + 1}"


def test_admin_updates_balance_and_employee_is_notified(client, team, leave_types, db):
    employee = team["employee"]
    listing = client.get(f"/api/admin/employees/{employee.id}/leave-balance?year=2025",
                         headers=auth(team["hr"])).json()
    annual = next(b for b in listing["balances"] if b["leave_type"]["name"] == "Annual Leave")

    res = client.put(
        f"/api/admin/employees/{employee.id}/leave-balance",
        json={"balance_id": annual["id"], "total_days": 22, "used_days": 4, "notes": "Long service"},
        headers=auth(team["hr"]),
    )

    assert res.status_code == 200
    balance = res.json()["balance"]
    assert (balance["total_days"], balance["used_days"], balance["remaining_days"]) == (22, 4, 18)
    assert balance["notes"] == "Long service"

    n = db.query(Notification).filter(Notification.user_id == employee.id,
                                      Notification.related_type == "leave_balance").one()
    assert n.title == "Leave Balance Updated"


def test_admin_update_rejects_foreign_balance(client, team, make_user, leave_types, db):
    other = make_user()
    foreign = initialize_employee_leave_balances(db, other.id, 2025)[0]

    res = client.put(
        f"/api/admin/employees/{team['employee'].id}/leave-balance",
        json={"balance_id": foreign.id, "total_days": 1},
        headers=auth(team["admin"]),
    )
    assert res.status_code == 404

    res = client.put(
        f"/api/admin/employees/{other.id}/leave-balance",
        json={"balance_id": foreign.id, "used_days": -1},
        headers=auth(team["admin"]),
    )
    assert res.status_code == 400


def test_all_employee_balances(client, team, leave_types):
    res = client.get("/api/admin/employees/leave-balances?year=2025", headers=auth(team["admin"]))
    assert res.status_code == 200
    employees = res.json()["employees"]
    assert {e["employee"]["id"] for e in employees} == {u.id for u in team.values()}
    assert all(len(e["balances"]) == len(leave_types) for e in employees)


def test_rollover_route_broadcasts_to_employees(client, team, leave_types, db):
    res = client.post("/api/admin/financial-year-rollover", json={"new_year": 2031}, headers=auth(team["admin"]))
    assert res.status_code == 200
    assert res.json()["employees_processed"] == 4

    broadcast = db.query(Notification).filter(Notification.user_id.is_(None)).one()
    assert broadcast.recipient_role == "employee"

    res = client.post("/api/admin/financial-year-rollover", json={"new_year": 2019}, headers=auth(team["admin"]))
    assert res.status_code == 400


def test_default_balance_route(client, team, leave_types):
    res = client.get("/api/admin/default-balance", headers=auth(team["hr"]))
    assert res.json()["default_balance"]["annual_leave"] == 20


def test_concurrent_first_submission_keeps_existing_balances(client, team, leave_types, db, monkeypatch):
    employee = team["employee"]
    create_balance = financial_year._new_balance
    raced = []

    def balances_created_meanwhile(user_id, leave_type, year):
        if not raced:
            raced.append(year)
            # another request for the same employee commits the whole set first
            other = SessionLocal()
            try:
                for lt in other.query(LeaveType).filter(LeaveType.is_active.is_(True)):
                    other.add(create_balance(user_id, lt, year))
                other.commit()
            finally:
                other.close()
        return create_balance(user_id, leave_type, year)

    monkeypatch.setattr(financial_year, "_new_balance", balances_created_meanwhile)

    res = client.post("/api/leaves", data=leave_form(leave_types["Annual Leave"], future(15), future(16)),
                      headers=auth(employee))

    assert res.status_code == 201
    assert raced == [get_financial_year(future(15))]
    db.expire_all()
    rows = db.query(LeaveBalance).filter(LeaveBalance.user_id == employee.id, LeaveBalance.year == raced[0]).count()
    assert rows == len(leave_types)
