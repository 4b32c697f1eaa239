"""HTTP tests: routes, status codes and the error envelope."""

import csv
import io
import warnings

import pytest
from httpx import AsyncClient

from palletrack.config import Settings
from palletrack.main import create_app
from palletrack.middleware.exceptions import ValidationError
from palletrack.services import reporting


async def _lot(client: AsyncClient, quantity: int = 100, name: str = "ACME") -> dict:
    response = await client.post(
        "/api/lots/", json={"client": name, "quantity": quantity, "actor": "maria"}
    )
    assert response.status_code == 201
    return response.json()


async def _task(client: AsyncClient, lot: dict, quantity: int, **extra) -> dict:
    response = await client.post(
        "/api/tasks/",
        json={
            "lot_id": lot["id"],
            "client": lot["client"],
            "quantity": quantity,
            "aisle": "A1",
            "actor": "planner",
            **extra,
        },
    )
    assert response.status_code == 201
    return response.json()


def _error(response) -> dict:
    return response.json()["error"]


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["environment"] == "test"

    async def test_ready(self, client: AsyncClient):
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "ok"


@pytest.mark.api
@pytest.mark.asyncio
class TestLotEndpoints:

    async def test_create_and_get(self, client: AsyncClient):
        lot = await _lot(client)
        assert lot["available"] == 100
        assert lot["total_quantity"] == 100

        response = await client.get(f"/api/lots/{lot['id']}")
        assert response.status_code == 200
        assert response.json()["client"] == "ACME"

    async def test_list_with_search(self, client: AsyncClient):
        await _lot(client, 10, "ACME")
        await _lot(client, 20, "Globex")

        response = await client.get("/api/lots/", params={"search": "glob"})
        data = response.json()
        assert response.status_code == 200
        assert data["total"] == 1
        assert data["items"][0]["client"] == "Globex"
        assert data["limit"] == 50
        assert data["offset"] == 0

    async def test_invalid_intake(self, client: AsyncClient):
        response = await client.post(
            "/api/lots/", json={"client": "ACME", "quantity": 0, "actor": "maria"}
        )
        assert response.status_code == 422
        assert _error(response)["code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize("quantity", [True, 2.5, 3.0, "5"])
    async def test_quantity_must_be_a_json_integer(self, client: AsyncClient, quantity):
        response = await client.post(
            "/api/lots/", json={"client": "ACME", "quantity": quantity, "actor": "maria"}
        )
        assert response.status_code == 422
        assert _error(response)["code"] == "VALIDATION_ERROR"

        response = await client.get("/api/lots/")
        assert response.json()["total"] == 0

    async def test_missing_field(self, client: AsyncClient):
        response = await client.post("/api/lots/", json={"client": "ACME", "quantity": 5})
        assert response.status_code == 422
        error = _error(response)
        assert error["code"] == "VALIDATION_ERROR"
        assert any("actor" in e["field"] for e in error["details"]["errors"])

    async def test_unknown_lot(self, client: AsyncClient):
        response = await client.get("/api/lots/999")
        assert response.status_code == 404
        assert _error(response)["code"] == "RESOURCE_NOT_FOUND"

    async def test_direct_discount(self, client: AsyncClient):
        lot = await _lot(client)

        response = await client.post(
            f"/api/lots/{lot['id']}/discount", json={"quantity": 25, "actor": "worker-a"}
        )
        assert response.status_code == 201
        assert response.json()["task_id"] is None
        assert response.json()["lot_available"] == 75

        response = await client.post(
            f"/api/lots/{lot['id']}/discount", json={"quantity": 76, "actor": "worker-a"}
        )
        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "INVALID_QUANTITY"
        assert error["details"]["pending"] == 75


@pytest.mark.api
@pytest.mark.asyncio
class TestTaskEndpoints:

    async def test_create_over_availability(self, client: AsyncClient):
        lot = await _lot(client, 50)

        response = await client.post(
            "/api/tasks/",
            json={"lot_id": lot["id"], "client": "ACME", "quantity": 51, "aisle": "A1", "actor": "planner"},
        )
        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "INSUFFICIENT_AVAILABILITY"
        assert error["details"]["available"] == 50
        assert error["message"] == "Invalid quantity. Available: 50"

    @pytest.mark.parametrize("quantity", [True, 2.5])
    async def test_non_integer_quantities_rejected(self, client: AsyncClient, quantity):
        lot = await _lot(client)
        task = await _task(client, lot, 10)
        await client.post(f"/api/tasks/{task['id']}/claim", json={"actor": "worker-a"})

        responses = [
            await client.post(
                "/api/tasks/",
                json={"lot_id": lot["id"], "client": "ACME", "quantity": quantity, "aisle": "A1", "actor": "planner"},
            ),
            await client.post(
                f"/api/tasks/{task['id']}/discount", json={"quantity": quantity, "actor": "worker-a"}
            ),
            await client.post(
                f"/api/lots/{lot['id']}/discount", json={"quantity": quantity, "actor": "worker-a"}
            ),
        ]
        assert [r.status_code for r in responses] == [422, 422, 422]
        assert all(_error(r)["code"] == "VALIDATION_ERROR" for r in responses)

        response = await client.get(f"/api/lots/{lot['id']}")
        assert response.json()["available"] == 90

    async def test_claim_discount_complete(self, client: AsyncClient):
        lot = await _lot(client)
        task = await _task(client, lot, 40, priority="urgent")
        assert task["pending"] == 40
        assert task["state"] == "pending"
        assert task["lock_state"] == "free"

        response = await client.post(f"/api/tasks/{task['id']}/claim", json={"actor": "worker-a"})
        assert response.status_code == 200
        assert response.json()["holder"] == "worker-a"
        assert response.json()["lock_state"] == "in_progress"

        response = await client.post(
            f"/api/tasks/{task['id']}/discount", json={"quantity": 40, "actor": "worker-a"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["task_state"] == "completed"
        assert data["task_pending"] == 0
        assert data["lot_available"] == 60

        response = await client.get(f"/api/tasks/{task['id']}")
        assert response.json()["state"] == "completed"
        assert response.json()["discounted"] == 40

    async def test_claim_conflict(self, client: AsyncClient):
        lot = await _lot(client)
        task = await _task(client, lot, 10)
        await client.post(f"/api/tasks/{task['id']}/claim", json={"actor": "worker-a"})

        response = await client.post(f"/api/tasks/{task['id']}/claim", json={"actor": "worker-b"})
        assert response.status_code == 409
        error = _error(response)
        assert error["code"] == "CONFLICT"
        assert error["details"]["holder"] == "worker-a"

    async def test_release_forbidden_and_invalid_state(self, client: AsyncClient):
        lot = await _lot(client)
        task = await _task(client, lot, 10)

        response = await client.post(f"/api/tasks/{task['id']}/release", json={"actor": "worker-a"})
        assert response.status_code == 409
        assert _error(response)["code"] == "INVALID_STATE"

        await client.post(f"/api/tasks/{task['id']}/claim", json={"actor": "worker-a"})
        response = await client.post(f"/api/tasks/{task['id']}/release", json={"actor": "worker-b"})
        assert response.status_code == 403
        assert _error(response)["code"] == "FORBIDDEN"

        response = await client.post(f"/api/tasks/{task['id']}/release", json={"actor": "worker-a"})
        assert response.status_code == 200
        assert response.json()["holder"] is None

    async def test_discount_over_pending(self, client: AsyncClient):
        lot = await _lot(client)
        task = await _task(client, lot, 10)
        await client.post(f"/api/tasks/{task['id']}/claim", json={"actor": "worker-a"})

        response = await client.post(
            f"/api/tasks/{task['id']}/discount", json={"quantity": 11, "actor": "worker-a"}
        )
        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "INVALID_QUANTITY"
        assert error["details"]["pending"] == 10

    async def test_cancel(self, client: AsyncClient):
        lot = await _lot(client)
        task = await _task(client, lot, 30)

        response = await client.post(f"/api/tasks/{task['id']}/cancel", json={"actor": "planner"})
        assert response.status_code == 200
        assert response.json()["state"] == "cancelled"

        response = await client.get(f"/api/lots/{lot['id']}")
        assert response.json()["available"] == 100

        response = await client.post(f"/api/tasks/{task['id']}/cancel", json={"actor": "planner"})
        assert response.status_code == 409
        assert _error(response)["code"] == "INVALID_STATE"

    async def test_list_states(self, client: AsyncClient):
        lot = await _lot(client)
        keep = await _task(client, lot, 10)
        drop = await _task(client, lot, 10)
        await client.post(f"/api/tasks/{drop['id']}/cancel", json={"actor": "planner"})

        pending = (await client.get("/api/tasks/")).json()
        cancelled = (await client.get("/api/tasks/", params={"state": "cancelled"})).json()
        every = (await client.get("/api/tasks/", params={"state": "all"})).json()

        assert [t["id"] for t in pending["items"]] == [keep["id"]]
        assert [t["id"] for t in cancelled["items"]] == [drop["id"]]
        assert every["total"] == 2

        response = await client.get("/api/tasks/", params={"state": "bogus"})
        assert response.status_code == 422

    async def test_unknown_task(self, client: AsyncClient):
        response = await client.post("/api/tasks/999/claim", json={"actor": "worker-a"})
        assert response.status_code == 404
        assert _error(response)["code"] == "RESOURCE_NOT_FOUND"


@pytest.mark.api
@pytest.mark.asyncio
class TestMovementEndpoints:

    async def test_list_and_filter(self, client: AsyncClient):
        lot = await _lot(client)
        await _task(client, lot, 10)

        response = await client.get("/api/movements/")
        assert response.status_code == 200
        assert [m["kind"] for m in response.json()] == ["CREACION_TAREA", "INGRESO"]

        response = await client.get("/api/movements/", params={"kind": "INGRESO"})
        assert [m["kind"] for m in response.json()] == ["INGRESO"]

    async def test_export_csv(self, client: AsyncClient):
        await _lot(client)

        response = await client.get("/api/movements/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][1] == "kind"
        assert rows[1][1] == "INGRESO"


@pytest.mark.api
@pytest.mark.asyncio
class TestStatusAndAdmin:

    async def test_status(self, client: AsyncClient):
        lot = await _lot(client)
        await client.post(f"/api/lots/{lot['id']}/discount", json={"quantity": 10, "actor": "worker-a"})

        response = await client.get("/api/status")
        assert response.status_code == 200
        data = response.json()
        assert data["pending_total"] == 90
        assert data["processed_total"] == 10
        assert data["cancelled_total"] == 0
        assert data["in_tasks_total"] == 0
        assert data["last_action"].startswith("Descontado 10 de ACME a las ")

    async def test_purge_requires_confirm(self, client: AsyncClient):
        await _lot(client)

        response = await client.delete("/api/admin/purge", params={"actor": "admin"})
        assert response.status_code == 400
        assert _error(response)["code"] == "HTTP_400"

        response = await client.get("/api/lots/")
        assert response.json()["total"] == 1

    async def test_purge(self, client: AsyncClient):
        lot = await _lot(client)
        await _task(client, lot, 10)

        response = await client.delete(
            "/api/admin/purge", params={"actor": "admin", "confirm": "true"}
        )
        assert response.status_code == 200
        assert response.json() == {"movements": 2, "discounts": 0, "tasks": 1, "lots": 1}

        assert (await client.get("/api/lots/")).json()["total"] == 0
        assert (await client.get("/api/movements/")).json() == []
        assert (await client.get("/api/status")).json()["last_action"] == "–"


@pytest.mark.api
@pytest.mark.asyncio
class TestLifespan:

    async def test_lifespan_builds_and_disposes_database(self, test_settings: Settings):
        settings = test_settings.model_copy(update={"create_tables_on_startup": True})
        app = create_app(settings)

        async with app.router.lifespan_context(app):
            async with app.state.database.unit_of_work() as db:
                report = await reporting.status(db)

        assert report.pending_total == 0
        assert report.last_action == "–"


@pytest.mark.unit
class TestValidationStatus:

    def test_validation_error_is_422_without_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            exc = ValidationError("client is required")

        assert exc.status_code == 422
        assert exc.error_code == "VALIDATION_ERROR"
