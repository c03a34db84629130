from conftest import auth

from leave_mgmt.auth.jwt_handler import decode_jwt


def test_api_login_returns_token(client, team):
    hr = team["hr"]
    res = client.post("/api/auth/login", json={"email": hr.email.upper(), "password": "secret123"})
    assert res.status_code == 200
    body = res.json()
    assert body["user"]["id"] == hr.id
    assert decode_jwt(body["token"])["role"] == "hr"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.json()["user"]["email"] == hr.email


def test_api_login_wrong_password(client, team):
    res = client.post("/api/auth/login", json={"email": team["hr"].email, "password": "nope"})
    assert res.status_code == 401
    assert res.json()["detail"]["error"] == "Authentication Failed"


def test_inactive_user_cannot_login(client, make_user, db):
    user = make_user()
    user.is_active = False
    db.commit()
    res = client.post("/api/auth/login", json={"email": user.email, "password": "secret123"})
    assert res.status_code == 401


def test_bad_bearer_token_is_rejected(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
    assert res.json()["detail"]["error"] == "Invalid Token"


def test_form_login_sets_cookie_and_redirects(client, team):
    res = client.post("/login", data={"email": team["employee"].email, "password": "secret123"},
                      follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/dashboard"
    assert decode_jwt(res.cookies["session"])["user_id"] == team["employee"].id

    page = client.get("/dashboard")
    assert page.status_code == 200
    assert "Leave" in page.text


def test_form_login_failure_rerenders(client, team):
    res = client.post("/login", data={"email": team["employee"].email, "password": "bad"})
    assert res.status_code == 401
    assert "Invalid email or password." in res.text


def test_anonymous_pages_redirect_to_login(client, tables):
    res = client.get("/dashboard", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/login"
    assert client.get("/", follow_redirects=False).headers["location"] == "/dashboard"


def test_review_page_for_approvers_only(client, team):
    assert client.get("/leaves/review", headers=auth(team["employee"])).status_code == 403
    assert client.get("/leaves/review", headers=auth(team["manager"])).status_code == 200


def test_logout_clears_cookie(client, team):
    client.post("/login", data={"email": team["employee"].email, "password": "secret123"},
                follow_redirects=False)
    res = client.get("/logout", follow_redirects=False)
    assert res.status_code == 303
    assert client.get("/dashboard", follow_redirects=False).status_code == 302


def test_health(client, tables):
    assert client.get("/api/health").json()["status"] == "ok"
