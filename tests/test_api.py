"""
HTTP tests for the task routes.

Covers the authorization gate, the response envelopes and the full
create/update/find/delete lifecycle against a real SQLite file.
"""

from unittest.mock import AsyncMock, patch

import httpx
from fastapi.testclient import TestClient

from application.ports import TaskRepository
from domain.errors import OperationTimeoutError, PersistenceError
from infrastructure.auth import JwksKeyProvider, JwtIdentityResolver
from main import create_app

UNAUTHORIZED = {"message": "user account not authorized, please login or sign up!"}


def _create(client, auth_header, user_id, /, title="Buy milk", description="2%", **extra):
    body = {"title": title, "description": description, **extra}
    response = client.post("/tasks", json=body, headers=auth_header(user_id))
    assert response.status_code == 201
    return response.json()


class TestCreateTask:
    def test_create_returns_created_envelope(self, client, auth_header):
        envelope = _create(client, auth_header, 42)

        assert envelope["statusCode"] == 201
        assert envelope["message"] == "create task successful"
        assert envelope["authorizationEcho"] == "42"
        assert envelope["referenceID"] == envelope["data"]["taskID"]
        assert envelope["timestamp"]
        data = envelope["data"]
        assert data["userID"] == 42
        assert data["title"] == "Buy milk"
        assert data["description"] == "2%"
        assert data["completed"] is False
        assert data["updatedAt"] is None
        assert data["completedAt"] > data["createdAt"]

    def test_owner_comes_from_token_not_body(self, client, auth_header):
        envelope = _create(client, auth_header, 42, userID=99, user_id=99, taskID=1000)

        assert envelope["data"]["userID"] == 42
        assert envelope["data"]["taskID"] != 1000

    def test_empty_title_is_rejected(self, client, auth_header):
        response = client.post("/tasks", json={"title": "", "description": "x"}, headers=auth_header(42))

        assert response.status_code == 400
        body = response.json()
        assert body["statusCode"] == 400
        assert body["field"] == "title"

    def test_missing_title_is_rejected(self, client, auth_header):
        response = client.post("/tasks", json={"description": "x"}, headers=auth_header(42))

        assert response.status_code == 400
        assert response.json()["field"] == "title"

    def test_malformed_json_is_rejected(self, client, auth_header):
        headers = {**auth_header(42), "Content-Type": "application/json"}
        response = client.post("/tasks", content=b"{not json", headers=headers)

        assert response.status_code == 400
        assert response.json()["field"] == "body"


class TestAuthorization:
    def test_missing_credential_gets_unauthorized_envelope(self, client, database):
        response = client.post("/tasks", json={"title": "Buy milk"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED
        assert database.find_all_by_owner(42) == []

    def test_invalid_token(self, client):
        response = client.get("/tasks", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_expired_token(self, client, make_token):
        token = make_token(42, expires_in=-3600)
        response = client.get("/tasks", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_token_signed_with_other_secret(self, client, make_token):
        token = make_token(42, secret="someone-elses-secret")
        response = client.get("/tasks/1", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_auth_checked_before_validation(self, client):
        response = client.post("/tasks", json={"title": ""})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_mutations_without_auth_leave_storage_alone(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        assert client.put(f"/tasks/{task_id}", json={"title": "hacked"}).status_code == 401
        assert client.delete(f"/tasks/{task_id}").status_code == 401
        assert client.patch(f"/tasks/{task_id}/status", json={"completed": True}).status_code == 401

        data = client.get(f"/tasks/{task_id}", headers=auth_header(42)).json()["data"]
        assert data["title"] == "Buy milk"
        assert data["completed"] is False


class TestUpdateTask:
    def test_partial_update_keeps_other_fields(self, client, auth_header):
        created = _create(client, auth_header, 42)["data"]

        response = client.put(
            f"/tasks/{created['taskID']}",
            json={"title": "Buy milk and eggs"},
            headers=auth_header(42),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Buy milk and eggs"
        assert data["description"] == "2%"
        assert data["completed"] is False
        assert data["userID"] == 42
        assert data["createdAt"] == created["createdAt"]
        assert data["completedAt"] == created["completedAt"]
        assert data["updatedAt"] is not None

    def test_update_round_trip_through_find(self, client, auth_header):
        created = _create(client, auth_header, 42)["data"]
        client.put(f"/tasks/{created['taskID']}", json={"title": "New"}, headers=auth_header(42))

        found = client.get(f"/tasks/{created['taskID']}", headers=auth_header(42)).json()["data"]
        assert found["title"] == "New"
        assert found["completed"] == created["completed"]
        assert found["createdAt"] == created["createdAt"]

    def test_update_cannot_change_owner(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.put(f"/tasks/{task_id}", json={"title": "x", "userID": 7}, headers=auth_header(42))

        assert response.json()["data"]["userID"] == 42

    def test_update_other_users_task_is_not_found(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.put(f"/tasks/{task_id}", json={"title": "mine now"}, headers=auth_header(43))

        assert response.status_code == 404
        assert response.json()["statusCode"] == 404

    def test_update_unknown_task(self, client, auth_header):
        response = client.put("/tasks/9999", json={"title": "x"}, headers=auth_header(42))

        assert response.status_code == 404

    def test_update_without_fields_is_rejected(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.put(f"/tasks/{task_id}", json={}, headers=auth_header(42))

        assert response.status_code == 400
        assert response.json()["field"] == "body"


class TestFindTasks:
    def test_find_by_id(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.get(f"/tasks/{task_id}", headers=auth_header(42))

        assert response.status_code == 200
        envelope = response.json()
        assert envelope["referenceID"] == task_id
        assert envelope["data"]["title"] == "Buy milk"

    def test_find_by_id_of_other_user_is_not_found(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.get(f"/tasks/{task_id}", headers=auth_header(43))

        assert response.status_code == 404
        assert "data" not in response.json()

    def test_non_numeric_id_is_rejected(self, client, auth_header):
        response = client.get("/tasks/abc", headers=auth_header(42))

        assert response.status_code == 400
        assert response.json()["field"] == "task_id"

    def test_find_all_returns_only_own_tasks(self, client, auth_header):
        _create(client, auth_header, 42, title="one")
        _create(client, auth_header, 42, title="two")
        _create(client, auth_header, 43, title="three")

        response = client.get("/tasks", headers=auth_header(42))

        assert response.status_code == 200
        envelope = response.json()
        assert envelope["count"] == 2
        assert [t["title"] for t in envelope["data"]] == ["one", "two"]
        assert all(t["userID"] == 42 for t in envelope["data"])

    def test_find_all_empty(self, client, auth_header):
        response = client.get("/tasks", headers=auth_header(42))

        assert response.status_code == 200
        assert response.json()["count"] == 0
        assert response.json()["data"] == []


class TestDeleteAndStatus:
    def test_delete_task(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.delete(f"/tasks/{task_id}", headers=auth_header(42))

        assert response.status_code == 200
        assert response.json()["data"] is None
        assert response.json()["referenceID"] == task_id
        assert client.get(f"/tasks/{task_id}", headers=auth_header(42)).status_code == 404

    def test_delete_other_users_task_is_not_found(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        assert client.delete(f"/tasks/{task_id}", headers=auth_header(43)).status_code == 404
        assert client.get(f"/tasks/{task_id}", headers=auth_header(42)).status_code == 200

    def test_update_status(self, client, auth_header):
        created = _create(client, auth_header, 42)["data"]

        response = client.patch(
            f"/tasks/{created['taskID']}/status", json={"completed": True}, headers=auth_header(42)
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["completed"] is True
        assert data["title"] == created["title"]
        assert data["createdAt"] == created["createdAt"]

    def test_update_status_requires_boolean(self, client, auth_header):
        task_id = _create(client, auth_header, 42)["data"]["taskID"]

        response = client.patch(f"/tasks/{task_id}/status", json={"completed": "yes"}, headers=auth_header(42))

        assert response.status_code == 400
        assert response.json()["field"] == "completed"


class FailingRepository(TaskRepository):
    def find_all_by_owner(self, owner_id, timeout=None):
        raise PersistenceError("find_all", "database is locked")

    def find_by_id(self, task_id, timeout=None):
        raise OperationTimeoutError("find task")

    def save(self, record, timeout=None):
        raise RuntimeError("disk on fire")


class TestServerErrors:
    def test_persistence_error_becomes_envelope(self, settings, auth_header):
        app = create_app(settings, repository=FailingRepository())
        with TestClient(app) as client:
            response = client.get("/tasks", headers=auth_header(42))

        assert response.status_code == 500
        body = response.json()
        assert body["statusCode"] == 500
        assert "database is locked" in body["message"]

    def test_unsupported_operation_reports_not_implemented(self, settings, auth_header):
        app = create_app(settings, repository=FailingRepository())
        with TestClient(app) as client:
            response = client.delete("/tasks/1", headers=auth_header(42))

        assert response.status_code == 501
        assert response.json()["statusCode"] == 501

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_invalid_timeout_header_is_rejected(self, client, auth_header):
        headers = {**auth_header(42), "X-Request-Timeout": "soon"}

        response = client.get("/tasks", headers=headers)

        assert response.status_code == 400
        assert response.json()["field"] == "X-Request-Timeout"

    def test_timeout_becomes_gateway_timeout(self, settings, auth_header):
        app = create_app(settings, repository=FailingRepository())
        with TestClient(app) as client:
            response = client.get("/tasks/1", headers=auth_header(42))

        assert response.status_code == 504
        body = response.json()
        assert body["statusCode"] == 504
        assert body["message"] == "Storage find task timed out"

    def test_unexpected_error_becomes_envelope(self, settings, auth_header):
        app = create_app(settings, repository=FailingRepository())
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.post("/tasks", json={"title": "Buy milk"}, headers=auth_header(42))

        assert response.status_code == 500
        body = response.json()
        assert body["statusCode"] == 500
        assert body["message"] == "An unexpected error occurred"
        assert "disk on fire" not in response.text


class TestOutOfRangeIdentifiers:
    def test_huge_task_id_is_rejected(self, client, auth_header):
        response = client.get("/tasks/99999999999999999999", headers=auth_header(42))

        assert response.status_code == 400
        body = response.json()
        assert body["statusCode"] == 400
        assert body["field"] == "task_id"

    def test_huge_task_id_on_delete_is_rejected(self, client, auth_header):
        response = client.delete("/tasks/9223372036854775808", headers=auth_header(42))

        assert response.status_code == 400
        assert response.json()["field"] == "task_id"

    def test_huge_subject_is_unauthorized(self, client, make_token):
        token = make_token("99999999999999999999")

        response = client.get("/tasks", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_malformed_jwks_document_is_unauthorized(self, settings, database, make_token):
        url = "https://id.example.com/jwks/"
        resolver = JwtIdentityResolver(JwksKeyProvider(url), algorithms=["HS256"])
        jwks = httpx.Response(200, json=42, request=httpx.Request("GET", url))
        app = create_app(settings, repository=database, identity_resolver=resolver)

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=jwks):
            with TestClient(app) as client:
                response = client.get("/tasks", headers={"Authorization": f"Bearer {make_token(42)}"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED
