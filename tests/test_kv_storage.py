"""
Tests for the job registry.
"""

import json

import httpx
import pytest

from animato.kv_storage import KVStorage


class TestMemoryStorage:
    """Tests for the in-process fallback."""

    @pytest.mark.asyncio
    async def test_set_get_update(self):
        kv = KVStorage(url="", token="")
        assert not kv.enabled

        await kv.set_job("job-1", {"job_id": "job-1", "status": "queued"})
        assert await kv.update_job_status("job-1", "running", current_step="photos")

        job = await kv.get_job("job-1")
        assert job == {"job_id": "job-1", "status": "running", "current_step": "photos"}

    @pytest.mark.asyncio
    async def test_stored_data_is_a_copy(self):
        kv = KVStorage(url="", token="")
        data = {"job_id": "job-1", "status": "queued"}
        await kv.set_job("job-1", data)
        data["status"] = "changed"
        assert (await kv.get_job("job-1"))["status"] == "queued"

    @pytest.mark.asyncio
    async def test_update_missing_job(self):
        kv = KVStorage(url="", token="")
        assert not await kv.update_job_status("nope", "failed", error="boom")

    @pytest.mark.asyncio
    async def test_error_is_recorded(self):
        kv = KVStorage(url="", token="")
        await kv.set_job("job-1", {"job_id": "job-1", "status": "running", "error": None})
        await kv.update_job_status("job-1", "failed", error="boom")
        assert (await kv.get_job("job-1"))["error"] == "boom"


class TestRestStorage:
    """Tests for the REST-backed registry."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        store = {}

        def handler(request):
            assert request.headers["authorization"] == "Bearer kv-token"
            body = json.loads(request.content)
            if request.url.path == "/set":
                store[body[0]] = body[1]
                return httpx.Response(200, json={"result": "OK"})
            return httpx.Response(200, json={"result": store.get(body[0])})

        kv = KVStorage(url="https://kv.test", token="kv-token", transport=httpx.MockTransport(handler))
        assert kv.enabled
        assert await kv.set_job("job-1", {"job_id": "job-1", "status": "queued"})
        assert "job:job-1" in store
        assert (await kv.get_job("job-1"))["status"] == "queued"
        assert await kv.get_job("job-2") is None

    @pytest.mark.asyncio
    async def test_http_errors_are_logged_not_raised(self):
        kv = KVStorage(
            url="https://kv.test", token="kv-token",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        assert await kv.set_job("job-1", {"job_id": "job-1"}) is False
        assert await kv.get_job("job-1") is None
