"""Route tests — full app with lifespan, throwaway SQLite and code pool."""

import sqlite3

import pyotp
import pytest
from fastapi.testclient import TestClient

from shortlinks.main import create_app


def _secret(tmp_path, name: str) -> str:
    with sqlite3.connect(tmp_path / "app.db") as conn:
        return conn.execute("SELECT secret FROM users WHERE name = ?", (name,)).fetchone()[0]


def _login(client, tmp_path, name="admin", password="hunter2", secret=None) -> dict:
    secret = secret or _secret(tmp_path, name)
    resp = client.post("/login", json={
        "username": name, "password": password, "otp": pyotp.TOTP(secret).now(),
    })
    assert resp.status_code == 200, resp.text
    # use the bearer token explicitly so several users can share one client
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def client(app_env):
    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def admin(client, tmp_path):
    return _login(client, tmp_path)


class TestHealth:
    def test_health_reports_pool(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["codes_remaining"] == 26 ** 3

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "no-store" in resp.headers["Cache-Control"]


class TestLogin:
    def test_checklogin(self, client):
        assert client.post("/checklogin", json={"username": "admin", "password": "hunter2"}).json() is True
        resp = client.post("/checklogin", json={"username": "admin", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json() is False

    def test_login_sets_cookies(self, client, tmp_path):
        otp = pyotp.TOTP(_secret(tmp_path, "admin")).now()
        resp = client.post("/login", json={"username": "admin", "password": "hunter2", "otp": otp})
        assert resp.status_code == 200
        body = resp.json()
        assert body["expires_in"] == 86400
        assert resp.cookies["token"] == body["token"]
        assert resp.cookies["username"] == "admin"

        # cookie alone authenticates
        assert client.get("/links").status_code == 200

    @pytest.mark.parametrize("password", ["", "x" * 100, "é" * 40, "pässwörd"])
    def test_checklogin_wrong_password_is_401(self, client, password):
        resp = client.post("/checklogin", json={"username": "admin", "password": password})
        assert resp.status_code == 401
        assert resp.json() is False

    @pytest.mark.parametrize("password", ["x" * 100, "é" * 40, "pässwörd"])
    def test_login_wrong_password_is_401(self, client, tmp_path, password):
        otp = pyotp.TOTP(_secret(tmp_path, "admin")).now()
        resp = client.post("/login", json={"username": "admin", "password": password, "otp": otp})
        assert resp.status_code == 401

    def test_login_missing_fields(self, client):
        assert client.post("/login", json={"username": "admin", "password": "hunter2"}).status_code == 400

    def test_login_bad_otp(self, client):
        resp = client.post("/login", json={"username": "admin", "password": "hunter2", "otp": "12345"})
        assert resp.status_code == 401

    def test_logout_revokes_sessions(self, client, admin, tmp_path):
        second = _login(client, tmp_path)
        resp = client.post("/logout", headers=admin)
        assert resp.status_code == 200
        assert resp.json()["revoked"] == 2

        assert client.get("/links", headers=admin).status_code == 401
        assert client.get("/links", headers=second).status_code == 401

    def test_logout_requires_session(self, client):
        assert client.post("/logout").status_code == 401


class TestCreateLink:
    def test_requires_login(self, client):
        resp = client.post("/", json={"link": "https://example.com"})
        assert resp.status_code == 401

    def test_anonymous_when_login_not_required(self, app_env):
        app_env(require_login="false")
        with TestClient(create_app()) as c:
            resp = c.post("/", json={"link": "https://example.com"})
            assert resp.status_code == 201
            code = resp.json()["code"]
            assert len(code) == 3 and code.isupper()

    def test_requested_code_then_taken(self, client, admin):
        resp = client.post("/", json={"link": "https://example.com", "requested_code": "AAA"}, headers=admin)
        assert resp.status_code == 201
        assert resp.json() == {"code": "AAA", "url": "https://localhost:8008/AAA"}

        resp = client.post("/", json={"link": "https://example.com", "requested_code": "AAA"}, headers=admin)
        assert resp.status_code == 409

    @pytest.mark.parametrize("code", ["x", "no/slash", "login"])
    def test_bad_requested_codes(self, client, admin, code):
        resp = client.post("/", json={"link": "https://example.com", "requested_code": code}, headers=admin)
        assert resp.status_code == 409

    @pytest.mark.parametrize("body", [
        {"link": ""},
        {"link": "javascript:alert(1)"},
        {"link": "https://example.com", "max_visits": 0},
        {"link": "https://example.com", "expires_at": "2000-01-01T00:00:00Z"},
    ])
    def test_bad_input(self, client, admin, body):
        assert client.post("/", json=body, headers=admin).status_code == 400

    def test_pool_exhausted(self, app_env):
        app_env(require_login="false", code_alphabet="AB", code_length=2)
        with TestClient(create_app()) as c:
            codes = {c.post("/", json={"link": "https://example.com"}).json()["code"] for _ in range(4)}
            assert codes == {"AA", "AB", "BA", "BB"}

            resp = c.post("/", json={"link": "https://example.com"})
            assert resp.status_code == 503


class TestFollowLink:
    def test_redirect(self, client, admin):
        client.post("/", json={"link": "https://example.com/x", "requested_code": "AAA"}, headers=admin)
        resp = client.get("/AAA", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == "https://example.com/x"
        assert resp.headers["Referrer-Policy"] == "no-referrer"

    def test_unknown_code(self, client):
        assert client.get("/ZZZZ", follow_redirects=False).status_code == 404

    def test_single_use_link(self, client, admin):
        client.post("/", json={"link": "https://example.com", "requested_code": "ONCE", "max_visits": 1},
                    headers=admin)

        assert client.get("/ONCE", follow_redirects=False).status_code == 302
        assert client.get("/ONCE", follow_redirects=False).status_code == 410
        assert client.get("/ONCE", follow_redirects=False).status_code == 404

        listed = client.get("/links", headers=admin).json()
        assert "ONCE" not in [l["code"] for l in listed["links"]]


class TestManageLinks:
    def test_listing_visibility(self, client, admin, tmp_path):
        resp = client.post("/accounts", json={"name": "bob", "password": "pw"}, headers=admin)
        assert resp.status_code == 201
        assert resp.json()["provisioning_uri"].startswith("otpauth://")
        bob = _login(client, tmp_path, "bob", "pw", secret=resp.json()["secret"])

        client.post("/", json={"link": "https://example.com/a", "requested_code": "ADM"}, headers=admin)
        client.post("/", json={"link": "https://example.com/b", "requested_code": "BOB"}, headers=bob)

        mine = client.get("/links", headers=bob).json()
        assert [l["code"] for l in mine["links"]] == ["BOB"]
        assert mine["total"] == 1

        everything = client.get("/links", headers=admin).json()
        assert {l["code"] for l in everything["links"]} == {"ADM", "BOB"}
        assert everything["page_size"] == 5

    def test_pagination(self, client, admin):
        for i in range(7):
            client.post("/", json={"link": f"https://example.com/{i}"}, headers=admin)
        first = client.get("/links?page=0", headers=admin).json()
        second = client.get("/links?page=1", headers=admin).json()
        assert len(first["links"]) == 5
        assert len(second["links"]) == 2
        assert first["total"] == 7
        assert client.get("/links?page=-1", headers=admin).status_code == 422

    def test_owner_or_admin_only(self, client, admin, tmp_path):
        secret = client.post("/accounts", json={"name": "bob", "password": "pw"}, headers=admin).json()["secret"]
        bob = _login(client, tmp_path, "bob", "pw", secret=secret)
        client.post("/", json={"link": "https://example.com", "requested_code": "ADM"}, headers=admin)

        assert client.delete("/links/ADM", headers=bob).status_code == 403
        assert client.patch("/links/ADM", json={"link": "https://evil.example"}, headers=bob).status_code == 403

        resp = client.patch("/links/ADM", json={"link": "https://example.org"}, headers=admin)
        assert resp.status_code == 200
        assert resp.json()["link"] == "https://example.org"

        assert client.delete("/links/ADM", headers=admin).status_code == 200
        assert client.delete("/links/ADM", headers=admin).status_code == 404

    def test_accounts_admin_only(self, client, admin, tmp_path):
        secret = client.post("/accounts", json={"name": "bob", "password": "pw"}, headers=admin).json()["secret"]
        bob = _login(client, tmp_path, "bob", "pw", secret=secret)
        assert client.post("/accounts", json={"name": "eve", "password": "pw"}, headers=bob).status_code == 403
        assert client.post("/accounts", json={"name": "bob", "password": "pw"}, headers=admin).status_code == 409

    def test_accounts_password_too_long(self, client, admin):
        resp = client.post("/accounts", json={"name": "bob", "password": "x" * 73}, headers=admin)
        assert resp.status_code == 400
