"""
Job registry backed by a Vercel KV compatible REST API.
Falls back to process memory when KV is not configured, so local runs and
tests work without external storage.
"""
import os
import json
import httpx
import logging
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

JOB_KEY_PREFIX = "job:"


class KVStorage:
    def __init__(self, url: Optional[str] = None, token: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.kv_rest_api_url = url if url is not None else os.getenv("KV_REST_API_URL", "")
        self.kv_rest_api_token = token if token is not None else os.getenv("KV_REST_API_TOKEN", "")
        self._transport = transport
        self._memory: Dict[str, Dict[str, Any]] = {}

        if not self.kv_rest_api_url or not self.kv_rest_api_token:
            logger.warning("KV storage not configured - falling back to in-memory storage")
            self.enabled = False
        else:
            self.enabled = True
            logger.info("KV storage enabled")

    async def _command(self, verb: str, args: List[str]) -> Any:
        """POST one REST verb (``set``, ``get``) and return its ``result`` field."""
        async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
            response = await client.post(
                f"{self.kv_rest_api_url}/{verb}",
                headers={"Authorization": f"Bearer {self.kv_rest_api_token}"},
                json=args,
            )
            response.raise_for_status()
            return response.json().get("result")

    async def set_job(self, job_id: str, job_data: Dict[str, Any]) -> bool:
        # Stored as JSON text so callers never share the dict they passed in.
        encoded = json.dumps(job_data)
        if not self.enabled:
            self._memory[job_id] = json.loads(encoded)
            return True
        try:
            await self._command("set", [JOB_KEY_PREFIX + job_id, encoded])
        except httpx.HTTPError as e:
            logger.error(f"Could not save job {job_id}: {e}")
            return False
        return True

    async def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return self._memory.get(job_id)
        try:
            stored = await self._command("get", [JOB_KEY_PREFIX + job_id])
        except httpx.HTTPError as e:
            logger.error(f"Could not load job {job_id}: {e}")
            return None
        return json.loads(stored) if stored else None

    async def update_job_status(self, job_id: str, status: str, error: Optional[str] = None, **fields) -> bool:
        """Merge ``status``, ``error`` and any extra fields into a stored job."""
        job = await self.get_job(job_id)
        if job is None:
            logger.warning(f"Job {job_id} is not registered, status {status} dropped")
            return False
        job.update(fields, status=status)
        if error:
            job["error"] = error
        return await self.set_job(job_id, job)


kv = KVStorage()
