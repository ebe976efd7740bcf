from conftest import PASSWORD, bearer, make_user
from storefront.extensions import db
from storefront.model import Address, RefreshToken, User
from storefront.utils.parsing import utcnow


def _address(**overrides):
    body = {"address_line1": "12 Market Street", "city": "Pune", "state": "MH", "pincode": "411001"}
    body.update(overrides)
    return body


def _add(client, headers, **overrides):
    return client.post("/api/users/addresses", json=_address(**overrides), headers=headers)


# ---------- profile ----------

def test_get_and_update_profile(client, user, user_headers):
    resp = client.get("/api/users/profile", headers=user_headers)
    assert resp.get_json()["data"]["user"]["email"] == "alice@example.com"

    resp = client.put("/api/users/profile", json={"name": "Alice B", "phone_number": "555-0111"},
                      headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["name"] == "Alice B"
    assert db.session.get(User, user.id).phone_number == "555-0111"


def test_profile_validation(client, user_headers):
    make_user("taken@example.com", phone="555-0199")
    assert client.put("/api/users/profile", json={}, headers=user_headers).status_code == 400
    assert client.put("/api/users/profile", json={"name": "A"}, headers=user_headers).status_code == 400
    assert client.put("/api/users/profile", json={"name": 7}, headers=user_headers).status_code == 400
    assert client.put("/api/users/profile", json={"phone_number": "555-0199"},
                      headers=user_headers).status_code == 409


def test_profile_requires_token(client):
    assert client.get("/api/users/profile").status_code == 401


def test_change_password(client, user, user_headers):
    db.session.add(RefreshToken(user_id=user.id, token="r" * 32, expires_at=utcnow()))
    db.session.commit()

    resp = client.put("/api/users/change-password",
                      json={"currentPassword": "wrong-one", "newPassword": "brandnew1"}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid current password"
    assert client.put("/api/users/change-password", json={"currentPassword": PASSWORD},
                      headers=user_headers).status_code == 400

    resp = client.put("/api/users/change-password",
                      json={"current_password": PASSWORD, "new_password": "brandnew1"}, headers=user_headers)
    assert resp.status_code == 200
    assert RefreshToken.query.filter_by(user_id=user.id).count() == 0

    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "brandnew1"})
    assert login.status_code == 200


# ---------- addresses ----------

def test_first_address_becomes_default_with_default_country(client, user_headers):
    resp = _add(client, user_headers)
    assert resp.status_code == 201
    address = resp.get_json()["data"]["address"]
    assert address["is_default"] is True
    assert address["country"] == "India"

    second = _add(client, user_headers, city="Mumbai", country="IN").get_json()["data"]["address"]
    assert second["is_default"] is False
    assert second["country"] == "IN"


def test_single_default_address_per_user(client, user, user_headers):
    first = _add(client, user_headers).get_json()["data"]["address"]
    second = _add(client, user_headers, city="Mumbai", is_default=True).get_json()["data"]["address"]
    assert second["is_default"] is True
    assert Address.query.filter_by(user_id=user.id, is_default=True).count() == 1

    resp = client.put(f"/api/users/addresses/{first['id']}/default", headers=user_headers)
    assert resp.status_code == 200
    defaults = Address.query.filter_by(user_id=user.id, is_default=True).all()
    assert [a.id for a in defaults] == [first["id"]]

    listed = client.get("/api/users/addresses", headers=user_headers).get_json()["data"]["addresses"]
    assert listed[0]["id"] == first["id"]
    assert len(listed) == 2


def test_update_address_to_default_clears_others(client, user, user_headers):
    _add(client, user_headers)
    second = _add(client, user_headers, city="Mumbai").get_json()["data"]["address"]

    resp = client.put(f"/api/users/addresses/{second['id']}", json={"is_default": True, "pincode": "400001"},
                      headers=user_headers)
    assert resp.get_json()["data"]["address"]["pincode"] == "400001"
    defaults = Address.query.filter_by(user_id=user.id, is_default=True).all()
    assert [a.id for a in defaults] == [second["id"]]


def test_deleting_default_promotes_another(client, user, user_headers):
    first = _add(client, user_headers).get_json()["data"]["address"]
    second = _add(client, user_headers, city="Mumbai").get_json()["data"]["address"]

    assert client.delete(f"/api/users/addresses/{first['id']}", headers=user_headers).status_code == 200
    assert db.session.get(Address, second["id"]).is_default is True
    assert client.get(f"/api/users/addresses/{first['id']}", headers=user_headers).status_code == 404


def test_address_validation(client, user_headers):
    assert client.post("/api/users/addresses", json={"city": "Pune"}, headers=user_headers).status_code == 400
    assert _add(client, user_headers, pincode=411001).status_code == 400
    assert _add(client, user_headers, is_default="maybe").status_code == 400
    address = _add(client, user_headers).get_json()["data"]["address"]
    assert client.put(f"/api/users/addresses/{address['id']}", json={},
                      headers=user_headers).status_code == 400
    assert client.put(f"/api/users/addresses/{address['id']}", json={"city": " "},
                      headers=user_headers).status_code == 400


def test_addresses_are_per_user(client, user_headers, other_user):
    address = _add(client, user_headers).get_json()["data"]["address"]
    other = bearer(other_user)

    assert client.get("/api/users/addresses", headers=other).get_json()["data"]["addresses"] == []
    assert client.get(f"/api/users/addresses/{address['id']}", headers=other).status_code == 404
    assert client.put(f"/api/users/addresses/{address['id']}/default", headers=other).status_code == 404
    assert client.delete(f"/api/users/addresses/{address['id']}", headers=other).status_code == 404
    assert client.get(f"/api/users/addresses/{address['id']}", headers=user_headers).status_code == 200
