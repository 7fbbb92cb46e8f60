import pytest

API = "/api/v1"


async def create_part(client, part_number: str):
    response = await client.post(f"{API}/inventory/parts/", json={"part_number": part_number})
    assert response.status_code == 201
    return response.json()


async def receive(client, container_number: str, lines, inbound_date: str = "2024-01-10"):
    response = await client.post(
        f"{API}/receiving/containers/",
        json={
            "container_number": container_number,
            "parts": [{"part_number": p, "quantity": q} for p, q in lines],
        },
    )
    assert response.status_code == 201
    arn_number = response.json()["arn_number"]
    response = await client.post(
        f"{API}/receiving/containers/{arn_number}/confirm", json={"inbound_date": inbound_date}
    )
    assert response.status_code == 200
    return response.json()


async def stock_of(client, part_number: str) -> int:
    response = await client.get(f"{API}/inventory/stock/{part_number}")
    assert response.status_code == 200
    return response.json()["current_stock"]


@pytest.mark.asyncio
class TestServiceEndpoints:
    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_request_id_header(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        assert "X-Process-Time" in response.headers


@pytest.mark.asyncio
class TestCatalogAndStockEndpoints:
    async def test_create_and_get_part(self, client):
        created = await create_part(client, "49600-p8000a")
        assert created["part_number"] == "49600-P8000A"
        assert created["category"] == "REAR"

        response = await client.get(f"{API}/inventory/parts/49600-P8000A")
        assert response.status_code == 200

        duplicate = await client.post(f"{API}/inventory/parts/", json={"part_number": "49600-P8000A"})
        assert duplicate.status_code == 422

    async def test_unknown_part_is_404(self, client):
        response = await client.get(f"{API}/inventory/parts/NOPE")
        assert response.status_code == 404

    async def test_unstocked_part_reads_zero(self, client):
        response = await client.get(f"{API}/inventory/stock/A1")
        assert response.status_code == 200
        assert response.json() == {
            "part_number": "A1",
            "current_stock": 0,
            "status": "out_of_stock",
            "has_record": False,
        }


@pytest.mark.asyncio
class TestReceivingEndpoints:
    async def test_confirm_container_over_http(self, client):
        result = await receive(client, "CONT-1", [("A1", 20)])

        assert result["applied"] is True
        assert result["container"]["status"] == "COMPLETED"
        assert await stock_of(client, "A1") == 20

        arn_number = result["container"]["arn_number"]
        again = await client.post(
            f"{API}/receiving/containers/{arn_number}/confirm", json={"inbound_date": "2024-01-11"}
        )
        assert again.json()["applied"] is False
        assert await stock_of(client, "A1") == 20

    async def test_completed_container_cannot_be_deleted(self, client):
        result = await receive(client, "CONT-1", [("A1", 20)])
        arn_number = result["container"]["arn_number"]

        response = await client.delete(f"{API}/receiving/containers/{arn_number}")
        assert response.status_code == 422

    async def test_zero_quantity_line_is_rejected(self, client):
        response = await client.post(
            f"{API}/receiving/containers/",
            json={"container_number": "CONT-1", "parts": [{"part_number": "A1", "quantity": 0}]},
        )
        assert response.status_code == 422


@pytest.mark.asyncio
class TestShipmentEndpoints:
    async def test_register_edit_and_confirm(self, client):
        await receive(client, "CONT-1", [("A1", 20)])

        response = await client.post(
            f"{API}/shipments/sequences",
            json={"outbound_date": "2024-01-11", "sequence_label": "1", "parts": [{"part_number": "A1", "quantity": 8}]},
        )
        assert response.status_code == 201
        sequence = response.json()
        assert sequence["sequence_number"] == "20240111-1"

        line_id = sequence["parts"][0]["id"]
        response = await client.patch(f"{API}/shipments/parts/{line_id}", json={"actual_qty": 6})
        assert response.json()["total_actual_qty"] == 6

        response = await client.post(f"{API}/shipments/sequences/{sequence['id']}/confirm")
        assert response.status_code == 200
        body = response.json()
        assert body["applied"] is True
        assert body["sequence"]["status"] == "CONFIRMED"
        assert await stock_of(client, "A1") == 14

        history = await client.get(f"{API}/inventory/transactions/part/A1")
        assert [t["quantity"] for t in history.json()["transactions"]] == [20, -6]
        assert history.json()["logged_balance"] == 14

    async def test_unknown_part_is_rejected(self, client):
        response = await client.post(
            f"{API}/shipments/sequences",
            json={"outbound_date": "2024-01-11", "sequence_label": "1", "parts": [{"part_number": "ZZ9", "quantity": 1}]},
        )
        assert response.status_code == 422
        assert "Unknown part number" in response.json()["detail"]

    async def test_confirmed_sequence_cannot_be_cancelled(self, client):
        await create_part(client, "A1")
        response = await client.post(
            f"{API}/shipments/sequences",
            json={"outbound_date": "2024-01-11", "sequence_label": "AS", "parts": [{"part_number": "A1", "quantity": 1}]},
        )
        sequence_id = response.json()["id"]
        confirm = await client.post(f"{API}/shipments/sequences/{sequence_id}/confirm")
        assert confirm.json()["warnings"]

        response = await client.delete(f"{API}/shipments/sequences/{sequence_id}")
        assert response.status_code == 422


@pytest.mark.asyncio
class TestPhysicalCountEndpoints:
    async def test_count_flow(self, client):
        await receive(client, "CONT-1", [("A1", 100)])

        response = await client.post(
            f"{API}/physical-count/sessions", json={"session_name": "Weekly", "session_date": "2024-01-12"}
        )
        assert response.status_code == 201
        session_id = response.json()["id"]

        response = await client.post(f"{API}/physical-count/sessions/{session_id}/items", json={"part_number": "A1"})
        item_id = response.json()["items"][0]["id"]

        for value in (97, 95):
            response = await client.patch(
                f"{API}/physical-count/sessions/{session_id}/items/{item_id}", json={"physical_stock": value}
            )
            assert response.status_code == 200
        assert response.json()["items"][0]["physical_stock"] == 95
        assert response.json()["pending_edit_count"] == 1

        preview = await client.get(f"{API}/physical-count/sessions/{session_id}/preview")
        assert preview.json() == [
            {"item_id": item_id, "part_number": "A1", "system_stock": 100, "physical_stock": 95, "difference": -5}
        ]

        response = await client.post(f"{API}/physical-count/sessions/{session_id}/complete")
        assert response.status_code == 200
        assert response.json()["adjusted_parts"] == ["A1"]
        assert await stock_of(client, "A1") == 95

    async def test_missing_session_is_404(self, client):
        response = await client.get(f"{API}/physical-count/sessions/999")
        assert response.status_code == 404


@pytest.mark.asyncio
class TestQuickAdjustmentEndpoints:
    async def test_paste_then_apply(self, client):
        response = await client.post(
            f"{API}/inventory/quick-adjustments/paste", json={"text": "49600-P8000\t3,500\nXX-1\t2"}
        )
        assert response.status_code == 200
        parsed = response.json()
        assert parsed["changes"] == {"49600-P8000": 3500}
        assert parsed["unmatched"] == ["XX-1"]

        response = await client.post(
            f"{API}/inventory/quick-adjustments/",
            json={"changes": parsed["changes"], "reason": "opening balance", "batch_id": "ADJ-OPEN"},
        )
        assert response.status_code == 200
        assert response.json()["adjusted"][0]["difference"] == 3500
        assert await stock_of(client, "49600-P8000") == 3500

    async def test_rows_cover_curated_parts(self, client):
        response = await client.get(f"{API}/inventory/quick-adjustments/")
        assert response.status_code == 200
        assert len(response.json()) == 15

    async def test_part_outside_list_is_rejected(self, client):
        response = await client.post(f"{API}/inventory/quick-adjustments/", json={"changes": {"A1": 3}})
        assert response.status_code == 422


@pytest.mark.asyncio
class TestReconciliationEndpoints:
    async def test_consistent_after_workflows(self, client):
        await receive(client, "CONT-1", [("A1", 5), ("B2", 7)])

        response = await client.get(f"{API}/inventory/reconciliation/")
        assert response.status_code == 200
        assert response.json() == []

        response = await client.get(f"{API}/inventory/reconciliation/shipments", params={"since": "2024-01-01"})
        assert response.json() == []
