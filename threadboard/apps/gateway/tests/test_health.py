"""健康检查测试

测试内容：
1. GET /health 返回 200 + ok
2. GET /ready 正常时返回 200 + checks 结构（含 journal_mode）
3. GET /ready SQLite 不可用时返回 503
"""

from httpx import AsyncClient


class TestHealthCheck:
    async def test_health_returns_200(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_ready_returns_checks(self, client: AsyncClient, test_app):
        await test_app.state.sse_hub.subscribe()
        resp = await client.get("/ready")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["checks"] == {"sqlite": "ok", "journal_mode": "wal", "sse_subscribers": 1}

    async def test_ready_sqlite_unavailable(self, client: AsyncClient, store_group):
        await store_group.conn.close()
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "not_ready"
