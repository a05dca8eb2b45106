"""请求上下文中间件测试"""

from httpx import AsyncClient
from taskflow.gateway.middleware.request_context import trace_id_from_path

_TASK_ID = "01JTASK0000000000000000001"


class TestTraceIdFromPath:
    def test_task_path(self):
        assert trace_id_from_path(f"/api/tasks/{_TASK_ID}") == f"trace-{_TASK_ID}"
        assert trace_id_from_path(f"/api/tasks/{_TASK_ID}/comments") == f"trace-{_TASK_ID}"

    def test_non_task_path(self):
        assert trace_id_from_path("/api/notifications") is None
        assert trace_id_from_path("/api/tasks") is None
        assert trace_id_from_path("/api/tasks/not-a-ulid") is None


class TestRequestId:
    async def test_generated(self, client: AsyncClient):
        resp = await client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 26

    async def test_propagated_from_upstream(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "upstream-123"})
        assert resp.headers["X-Request-ID"] == "upstream-123"
