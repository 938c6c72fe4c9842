import pytest
from fastapi.testclient import TestClient
from jose import jwt

from bustracker.auth import BearerAuth, JWTVerifier, Principal
from bustracker.errors import Unauthorized
from bustracker.main import create_app

ADMIN_KEY = "service-credential-for-tests"
JWT_SECRET = "jwt-secret-for-tests"


def token_for(subject, role=None, secret=JWT_SECRET):
    claims = {"sub": subject}
    if role:
        claims["role"] = role
    return jwt.encode(claims, secret, algorithm="HS256")


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_client(store, make_settings):
    app_settings = make_settings(AUTH_ENABLED=True, ADMIN_API_KEY=ADMIN_KEY, JWT_SECRET=JWT_SECRET)
    with TestClient(create_app(store=store, app_settings=app_settings)) as client:
        yield client


def test_missing_header_is_401(auth_client):
    response = auth_client.post("/buses", json={"bus_id": "B1", "name": "One"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_wrong_scheme_is_401(auth_client):
    response = auth_client.get("/locations", headers={"Authorization": f"Basic {ADMIN_KEY}"})
    assert response.status_code == 401


def test_invalid_token_is_401(auth_client):
    response = auth_client.get("/locations", headers=bearer("not-a-jwt"))
    assert response.status_code == 401


def test_token_signed_with_other_secret_is_401(auth_client):
    response = auth_client.get("/locations", headers=bearer(token_for("driver-1", secret="other")))
    assert response.status_code == 401


def test_service_credential_is_admin(auth_client):
    response = auth_client.post("/buses", json={"bus_id": "B1", "name": "One"}, headers=bearer(ADMIN_KEY))
    assert response.status_code == 201


def test_admin_role_claim_is_admin(auth_client):
    response = auth_client.post(
        "/buses",
        json={"bus_id": "B1", "name": "One"},
        headers=bearer(token_for("ops", role="admin"))
    )
    assert response.status_code == 201


def test_non_admin_on_admin_route_is_403(auth_client):
    auth_client.post("/buses", json={"bus_id": "B1", "name": "One"}, headers=bearer(ADMIN_KEY))
    driver = bearer(token_for("driver-1", role="driver"))

    assert auth_client.post("/buses", json={"bus_id": "B2", "name": "Two"}, headers=driver).status_code == 403
    assert auth_client.put("/buses/B1/deactivate", headers=driver).status_code == 403


def test_verified_token_can_report_and_read(auth_client):
    auth_client.post("/buses", json={"bus_id": "B1", "name": "One"}, headers=bearer(ADMIN_KEY))
    driver = bearer(token_for("driver-1"))

    created = auth_client.post("/locations", json={"bus_id": "B1", "latitude": 1, "longitude": 2}, headers=driver)
    latest = auth_client.get("/buses/B1/location", headers=driver)

    assert created.status_code == 201
    assert latest.json()["location"]["longitude"] == 2


def test_public_routes_stay_open(auth_client):
    assert auth_client.get("/").status_code == 200
    assert auth_client.get("/health").status_code == 200


def test_auth_disabled_ignores_header(client):
    response = client.post("/buses", json={"bus_id": "B1", "name": "One"}, headers=bearer("garbage"))
    assert response.status_code == 201


def test_verifier_requires_subject():
    verifier = JWTVerifier(JWT_SECRET)
    token = jwt.encode({"role": "admin"}, JWT_SECRET, algorithm="HS256")

    with pytest.raises(Unauthorized):
        verifier.verify(token)


def test_verifier_without_secret_rejects():
    with pytest.raises(Unauthorized):
        JWTVerifier(None).verify(token_for("x"))


def test_custom_verifier_is_used():
    class StaticVerifier:
        def verify(self, token):
            if token == "good":
                return Principal(subject="device-7")
            raise Unauthorized("bad token")

    auth = BearerAuth(enabled=True, admin_api_key=ADMIN_KEY, verifier=StaticVerifier())

    assert auth.authenticate("good").subject == "device-7"
    assert auth.authenticate(ADMIN_KEY).is_admin
    with pytest.raises(Unauthorized):
        auth.authenticate("bad")
    with pytest.raises(Unauthorized):
        auth.authenticate(None)
