"""
Integration tests for the API endpoints.
"""

import pytest
from httpx import AsyncClient


class TestQueueAPI:
    """Integration tests for queue API endpoints."""

    @pytest.fixture
    def base_url(self, queue_name: str) -> str:
        return f"/v1/queues/{queue_name}"

    @pytest.mark.asyncio
    async def test_round_trip(self, client: AsyncClient, base_url: str):
        """Test add -> lease -> ack over HTTP."""
        response = await client.post(f"{base_url}/messages", json={"payload": "Hello, World!"})

        assert response.status_code == 201
        ids = response.json()["ids"]
        assert len(ids) == 1

        response = await client.post(f"{base_url}/messages/lease")

        assert response.status_code == 200
        message = response.json()
        assert message["id"] == ids[0]
        assert message["payload"] == "Hello, World!"
        assert message["tries"] == 1
        assert message["ack"]

        response = await client.post(f"{base_url}/messages/{message['ack']}/ack")

        assert response.status_code == 200
        assert response.json() == {"id": ids[0]}

        response = await client.get(f"{base_url}/stats")

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["done"] == 1
        assert response.json()["available"] == 0

    @pytest.mark.asyncio
    async def test_add_batch(self, client: AsyncClient, base_url: str):
        """Test adding several messages at once."""
        response = await client.post(
            f"{base_url}/messages",
            json={"payloads": [{"n": 1}, {"n": 2}, {"n": 3}]},
        )

        assert response.status_code == 201
        assert len(response.json()["ids"]) == 3

    @pytest.mark.asyncio
    async def test_add_empty_batch(self, client: AsyncClient, base_url: str):
        """Test that an empty batch is rejected."""
        response = await client.post(f"{base_url}/messages", json={"payloads": []})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_add_delayed(self, client: AsyncClient, base_url: str):
        """Test that a delayed message is not leased immediately."""
        await client.post(f"{base_url}/messages", json={"payload": "later", "delay": 60})

        response = await client.post(f"{base_url}/messages/lease")

        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_lease_empty_queue(self, client: AsyncClient, base_url: str):
        """Test leasing from an empty queue."""
        response = await client.post(f"{base_url}/messages/lease")

        assert response.status_code == 204
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_ping(self, client: AsyncClient, base_url: str):
        """Test extending a lease."""
        await client.post(f"{base_url}/messages", json={"payload": "long"})
        message = (await client.post(f"{base_url}/messages/lease")).json()

        response = await client.post(
            f"{base_url}/messages/{message['ack']}/ping",
            json={"visibility": 120},
        )

        assert response.status_code == 200
        assert response.json() == {"id": message["id"]}

    @pytest.mark.asyncio
    async def test_unidentified_ack(self, client: AsyncClient, base_url: str):
        """Test that unknown tokens are reported as not found."""
        response = await client.post(f"{base_url}/messages/not-a-token/ack")
        assert response.status_code == 404
        assert "Unidentified ack" in response.json()["detail"]

        response = await client.post(f"{base_url}/messages/not-a-token/ping")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ack_with_error(self, client: AsyncClient, base_url: str):
        """Test acknowledging with an error note."""
        await client.post(f"{base_url}/messages", json={"payload": "x"})
        message = (await client.post(f"{base_url}/messages/lease")).json()

        response = await client.post(
            f"{base_url}/messages/{message['ack']}/ack",
            json={"error": "gave up"},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_clean(self, client: AsyncClient, base_url: str):
        """Test purging acknowledged messages."""
        await client.post(f"{base_url}/messages", json={"payloads": ["a", "b"]})
        message = (await client.post(f"{base_url}/messages/lease")).json()
        await client.post(f"{base_url}/messages/{message['ack']}/ack")

        response = await client.delete(f"{base_url}/messages/done")

        assert response.status_code == 200
        assert response.json() == {"removed": 1}

        stats = (await client.get(f"{base_url}/stats")).json()
        assert stats == {
            "queue": base_url.rsplit("/", 1)[-1],
            "total": 1,
            "available": 1,
            "leased": 0,
            "done": 0,
        }

    @pytest.mark.asyncio
    async def test_queues_are_isolated(self, client: AsyncClient, base_url: str):
        """Test that messages stay in the queue they were added to."""
        await client.post(f"{base_url}/messages", json={"payload": "mine"})

        response = await client.post(f"{base_url}-other/messages/lease")

        assert response.status_code == 204


class TestHealthAPI:
    """Integration tests for health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        """Test the health check reports a reachable database."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "healthy"

    @pytest.mark.asyncio
    async def test_live_and_ready(self, client: AsyncClient):
        """Test the probe endpoints."""
        assert (await client.get("/live")).json() == {"alive": True}
        assert (await client.get("/ready")).json() == {"ready": True}

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient, queue_name: str):
        """Test that queue activity shows up in the metrics."""
        await client.post(f"/v1/queues/{queue_name}/messages", json={"payload": 1})

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "queue_messages_added_total" in response.text
        assert queue_name in response.text
