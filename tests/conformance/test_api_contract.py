"""API contract conformance tests for the library endpoints."""

import json
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from library_ledger.persistence import storage
from library_ledger.persistence.errors import StorageError
from library_ledger.service.app import create_library_app
from library_ledger.service.config import LibraryConfig


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def config(tmp_path):
    """Create test configuration."""
    return LibraryConfig(api_key="12345", storage_dir=str(tmp_path / "storage"))


@pytest.fixture
def app(config):
    return create_library_app(config)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": "12345"}


@pytest.fixture
def seeded(client, auth_headers):
    """Two books, two users, three loans."""
    for name, author in [("War and Peace", "Leo Tolstoy"), ("Dead Souls", "Nikolai Gogol")]:
        client.post("/api/v1/books/add", json={"name": name, "author": author}, headers=auth_headers)
    for name, surname in [("John", "Doe"), ("Jane", "Roe")]:
        client.post("/api/v1/users/add", json={"name": name, "surname": surname}, headers=auth_headers)
    for book_id, user_id in [(1, 1), (2, 1), (1, 2)]:
        client.post("/api/v1/story", json={"book_id": book_id, "user_id": user_id}, headers=auth_headers)
    return client


class TestHealthEndpoints:
    """Tests for unauthenticated endpoints."""

    def test_index(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "/api/v2" in response.json()["versions"]

    def test_healthz_reports_stores(self, seeded):
        response = seeded.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"]["books"]["count"] == 2
        assert data["checks"]["ledger"]["open_loans"] == 3

    def test_ready(self, client):
        assert client.get("/ready").json()["ready"] is True


class TestAuthentication:
    """Tests for API key enforcement."""

    def test_missing_key_returns_401(self, client):
        response = client.get("/api/v1/books")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or missing API key"

    def test_invalid_key_returns_401(self, client):
        response = client.get("/api/v1/books", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_query_param_key(self, client):
        assert client.get("/api/v1/books?api_key=12345").status_code == 200

    def test_version_info(self, client, auth_headers):
        v1 = client.get("/api/v1", headers=auth_headers).json()
        v2 = client.get("/api/v2", headers=auth_headers).json()
        assert v1["version"] == "1.0"
        assert v2["features"] == ["delete_operations"]

    def test_correlation_id_echoed(self, client, auth_headers):
        response = client.get(
            "/api/v1/books",
            headers={**auth_headers, "X-Correlation-ID": "corr-abc"},
        )
        assert response.headers["X-Correlation-ID"] == "corr-abc"
        assert "X-Request-ID" in response.headers


class TestBookEndpoints:
    """Tests for /books."""

    def test_add_uses_default_price(self, client, auth_headers):
        response = client.post(
            "/api/v1/books/add",
            json={"name": "Anna Karenina", "author": "Leo Tolstoy"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "id": 1,
            "name": "Anna Karenina",
            "author": "Leo Tolstoy",
            "price": 100.0,
        }

    def test_get_missing_book(self, client, auth_headers):
        response = client.get("/api/v1/books/7", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["reason"] == "not_found"

    def test_non_numeric_id_is_rejected(self, client, auth_headers):
        response = client.get("/api/v1/books/abc", headers=auth_headers)
        assert response.status_code == 422

    def test_update_keeps_price_when_omitted(self, seeded, auth_headers):
        seeded.post(
            "/api/v1/books/update",
            json={"id": 1, "name": "War & Peace", "author": "L. Tolstoy"},
            headers=auth_headers,
        )
        book = seeded.get("/api/v1/books/1", headers=auth_headers).json()
        assert book["name"] == "War & Peace"
        assert book["price"] == 100.0

    def test_delete_not_available_in_v1(self, seeded, auth_headers):
        response = seeded.delete("/api/v1/books/1", headers=auth_headers)
        assert response.status_code == 405

    def test_delete_book_cascades_loans(self, seeded, auth_headers):
        response = seeded.delete("/api/v2/books/1", headers=auth_headers)
        assert response.status_code == 200

        loans = seeded.get("/api/v2/story", headers=auth_headers).json()
        assert [(loan["id"], loan["book_id"]) for loan in loans] == [(0, 2)]


class TestLoanEndpoints:
    """Tests for /story."""

    def test_add_and_list(self, seeded, auth_headers):
        loans = seeded.get("/api/v1/story", headers=auth_headers).json()

        assert [loan["id"] for loan in loans] == [1, 2, 3]
        assert all(loan["end_at"] is None for loan in loans)

    def test_add_requires_existing_book(self, seeded, auth_headers):
        response = seeded.post(
            "/api/v1/story", json={"book_id": 99, "user_id": 1}, headers=auth_headers
        )
        assert response.status_code == 404
        assert "book 99" in response.json()["detail"]

    def test_add_requires_existing_user(self, seeded, auth_headers):
        response = seeded.post(
            "/api/v1/story", json={"book_id": 1, "user_id": 99}, headers=auth_headers
        )
        assert response.status_code == 404

    def test_add_rejects_missing_fields(self, seeded, auth_headers):
        response = seeded.post("/api/v1/story", json={"book_id": 1}, headers=auth_headers)
        assert response.status_code == 422

    def test_queries(self, seeded, auth_headers):
        by_book = seeded.get("/api/v1/story/book/1", headers=auth_headers).json()
        by_user = seeded.get("/api/v1/story/user/1", headers=auth_headers).json()
        one = seeded.get("/api/v1/story/id/2", headers=auth_headers).json()

        assert [loan["id"] for loan in by_book] == [1, 3]
        assert [loan["id"] for loan in by_user] == [1, 2]
        assert one["book_id"] == 2

    def test_get_missing_loan(self, seeded, auth_headers):
        assert seeded.get("/api/v1/story/id/40", headers=auth_headers).status_code == 404

    def test_end_loan(self, seeded, auth_headers):
        response = seeded.put("/api/v1/story/end/1", headers=auth_headers)

        assert response.status_code == 200
        loan = response.json()
        assert loan["end_at"] is not None
        assert _parse(loan["end_at"]) >= _parse(loan["start_at"])

    def test_end_missing_loan(self, seeded, auth_headers):
        assert seeded.put("/api/v1/story/end/40", headers=auth_headers).status_code == 404

    def test_update_loan(self, seeded, auth_headers):
        original = seeded.get("/api/v1/story/id/1", headers=auth_headers).json()

        response = seeded.put(
            "/api/v1/story/update/1",
            json={"book_id": 2, "user_id": 2},
            headers=auth_headers,
        )

        assert response.status_code == 200
        updated = response.json()
        assert (updated["book_id"], updated["user_id"]) == (2, 2)
        assert updated["start_at"] == original["start_at"]

    def test_update_can_reopen(self, seeded, auth_headers):
        seeded.put("/api/v1/story/end/1", headers=auth_headers)
        seeded.put(
            "/api/v1/story/update/1",
            json={"book_id": 1, "user_id": 1, "end_at": None},
            headers=auth_headers,
        )
        loan = seeded.get("/api/v1/story/id/1", headers=auth_headers).json()
        assert loan["end_at"] is None

    def test_delete_by_id_renumbers(self, seeded, auth_headers):
        response = seeded.delete("/api/v2/story/id/2", headers=auth_headers)
        assert response.status_code == 200

        loans = seeded.get("/api/v2/story", headers=auth_headers).json()
        assert [(loan["id"], loan["book_id"], loan["user_id"]) for loan in loans] == [
            (0, 1, 1),
            (1, 1, 2),
        ]

    def test_delete_by_user_without_match(self, seeded, auth_headers):
        response = seeded.delete("/api/v2/story/user/42", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"removed": 0}
        loans = seeded.get("/api/v2/story", headers=auth_headers).json()
        assert [loan["id"] for loan in loans] == [1, 2, 3]

    def test_delete_by_book(self, seeded, auth_headers):
        response = seeded.delete("/api/v2/story/book/1", headers=auth_headers)
        assert response.json() == {"removed": 2}

    def test_delete_missing_loan(self, seeded, auth_headers):
        assert seeded.delete("/api/v2/story/id/40", headers=auth_headers).status_code == 404

    def test_storage_failure_returns_500(self, seeded, auth_headers, monkeypatch):
        def fail_replace(src, dst):
            raise OSError("read-only file system")

        monkeypatch.setattr(storage.os, "replace", fail_replace)

        response = seeded.put("/api/v1/story/end/1", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Got error while updating storage"


class TestFormBodies:
    """Tests for form-encoded create/update bodies."""

    def test_add_user_from_form(self, client, auth_headers):
        response = client.post(
            "/api/v1/users/add",
            data={"name": "John", "surname": "Doe"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"id": 1, "name": "John", "surname": "Doe"}

    def test_add_book_from_form_blank_price_uses_default(self, client, auth_headers):
        response = client.post(
            "/api/v1/books/add",
            data={"name": "War and Peace", "author": "Leo Tolstoy", "price": ""},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["price"] == 100.0

    def test_update_book_from_form(self, seeded, auth_headers):
        response = seeded.post(
            "/api/v1/books/update",
            data={"id": "2", "name": "Dead Souls", "author": "N. Gogol", "price": "699.99"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "id": 2,
            "name": "Dead Souls",
            "author": "N. Gogol",
            "price": 699.99,
        }

    def test_update_user_from_form(self, seeded, auth_headers):
        seeded.post(
            "/api/v1/users/update",
            data={"id": "1", "name": "Johnny", "surname": "Doe"},
            headers=auth_headers,
        )
        assert seeded.get("/api/v1/users/1", headers=auth_headers).json()["name"] == "Johnny"

    def test_add_loan_from_form(self, seeded, auth_headers):
        response = seeded.post(
            "/api/v1/story",
            data={"book_id": "2", "user_id": "2"},
            headers=auth_headers,
        )
        assert response.json() == {"id": 4}

    def test_form_missing_field_returns_422(self, client, auth_headers):
        response = client.post(
            "/api/v1/users/add",
            data={"name": "John"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "surname"]

    def test_malformed_json_returns_422(self, client, auth_headers):
        response = client.post(
            "/api/v1/users/add",
            content="{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 422


class TestStartup:
    """Tests for loading persisted state at startup."""

    def test_state_survives_restart(self, seeded, config, auth_headers):
        client = TestClient(create_library_app(config))
        loans = client.get("/api/v1/story", headers=auth_headers).json()
        assert len(loans) == 3

    def test_corrupt_ledger_is_fatal(self, config):
        ledger_path = config.ledger_path
        ledger_path.parent.mkdir(parents=True, exist_ok=True)
        ledger_path.write_text(json.dumps({"purchases": "oops"}))

        with pytest.raises(StorageError):
            create_library_app(config)
