from app.core.security import create_refresh_token


def test_login_and_me(client, staff_user):
    res = client.post("/api/v1/auth/login", json={"email": "DESK@moorings.test", "password": "desk-password"})
    assert res.status_code == 200, res.text
    access = res.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access}"})
    assert me.json()["role"] == "staff"


def test_wrong_password(client, staff_user):
    res = client.post("/api/v1/auth/login", json={"email": "desk@moorings.test", "password": "nope"})
    assert res.status_code == 401


def test_refresh_token_cannot_be_used_as_access(client, staff_user):
    refresh = create_refresh_token(staff_user.id)
    assert client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh}"}).status_code == 401

    res = client.post("/api/v1/auth/refresh", params={"refresh_token": refresh})
    assert res.status_code == 200
    assert res.json()["access_token"]


def test_staff_cannot_edit_catalog(client, staff_headers):
    res = client.post("/api/v1/admin/models", json={"name": "Nomad L", "slug": "nomad-l"}, headers=staff_headers)
    assert res.status_code == 403
