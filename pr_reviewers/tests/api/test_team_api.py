from http import HTTPStatus

from fastapi.testclient import TestClient

TEAM_PAYLOAD = {
    "team_name": "backend",
    "members": [
        {"user_id": "u1", "username": "Alice", "is_active": True},
        {"user_id": "u2", "username": "Bob", "is_active": True},
        {"user_id": "u3", "username": "Carol", "is_active": False},
    ],
}


def test_add_team_success(client: TestClient):
    response = client.post("/team/add", json=TEAM_PAYLOAD)
    assert response.status_code == HTTPStatus.CREATED, response.text
    data = response.json()["team"]
    assert data["team_name"] == "backend"
    assert data["members"] == TEAM_PAYLOAD["members"]


def test_add_team_duplicate(client: TestClient):
    client.post("/team/add", json=TEAM_PAYLOAD)
    response = client.post("/team/add", json=TEAM_PAYLOAD)
    assert response.status_code == HTTPStatus.BAD_REQUEST, response.text
    assert response.json()["error"]["code"] == "TEAM_EXISTS"


def test_add_team_validation(client: TestClient):
    response = client.post("/team/add", json={"team_name": "", "members": []})
    assert response.status_code == HTTPStatus.BAD_REQUEST, response.text
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_get_team(client: TestClient, user_headers):
    client.post("/team/add", json=TEAM_PAYLOAD)
    response = client.get("/team/get", params={"team_name": "backend"}, headers=user_headers("u1"))
    assert response.status_code == HTTPStatus.OK, response.text
    assert [m["user_id"] for m in response.json()["members"]] == ["u1", "u2", "u3"]


def test_get_team_requires_token(client: TestClient):
    response = client.get("/team/get", params={"team_name": "backend"})
    assert response.status_code == HTTPStatus.UNAUTHORIZED, response.text
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_get_team_bad_token(client: TestClient):
    response = client.get(
        "/team/get",
        params={"team_name": "backend"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == HTTPStatus.UNAUTHORIZED, response.text


def test_get_team_not_found(client: TestClient, user_headers):
    response = client.get("/team/get", params={"team_name": "missing"}, headers=user_headers("u1"))
    assert response.status_code == HTTPStatus.NOT_FOUND, response.text
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_deactivate_team(client: TestClient, admin_headers, user_headers):
    client.post("/team/add", json=TEAM_PAYLOAD)

    forbidden = client.post("/team/deactivate", json={"team_name": "backend"}, headers=user_headers("u1"))
    assert forbidden.status_code == HTTPStatus.FORBIDDEN, forbidden.text

    response = client.post("/team/deactivate", json={"team_name": "backend"}, headers=admin_headers)
    assert response.status_code == HTTPStatus.OK, response.text
    assert sorted(response.json()["deactivated_user_ids"]) == ["u1", "u2"]

    team = client.get("/team/get", params={"team_name": "backend"}, headers=admin_headers).json()
    assert not any(m["is_active"] for m in team["members"])


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"ok": True}
