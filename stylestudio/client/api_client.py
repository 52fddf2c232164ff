"""
Async HTTP client for the Style Studio API with generation progress polling
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional
import httpx
from stylestudio.config.settings import settings

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed", "cancelled")


class APIClientError(Exception):
    """Non-2xx response from the API"""
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


async def _invoke(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class StyleStudioClient:
    """
    Thin async wrapper over the REST API
    Args:
        base_url: Server root, e.g. "http://localhost:8000"
        token: Bearer token (set by login() when omitted)
        transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        timeout: Request timeout in seconds
    """
    def __init__(self, base_url: str, token: Optional[str] = None, transport=None, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.transport = transport
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.request(method, f"{self.base_url}/api{path}", headers=self._headers(), **kwargs)

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise APIClientError(response.status_code, str(detail))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        result = await self._request("POST", "/login", json={"email": email, "password": password})
        self.token = result["accessToken"]
        return result["user"]

    async def start_generation(
        self,
        job_name: str,
        style_id: str,
        concepts: List[str],
        generation_settings: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """Start a batch job and return its id"""
        payload: Dict[str, Any] = {"jobName": job_name, "styleId": style_id, "concepts": concepts}
        if generation_settings is not None:
            payload["settings"] = generation_settings
        if session_id is not None:
            payload["sessionId"] = session_id
        result = await self._request("POST", "/generate", json=payload)
        return result["jobId"]

    async def get_generation_job(self, job_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/jobs/{job_id}")

    async def get_generated_images(self, job_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/jobs/{job_id}/images")

    async def cancel_generation(self, job_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/jobs/{job_id}/cancel")

    async def poll_generation_progress(
        self,
        job_id: str,
        on_progress: Optional[Callable] = None,
        on_complete: Optional[Callable] = None,
        on_error: Optional[Callable] = None,
        interval: Optional[float] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Poll a job until it reaches a terminal status
        Args:
            job_id: Job to watch
            on_progress: Called with (job, images) after every fetch
            on_complete: Called once with (job, images) when the job is completed, failed or cancelled
            on_error: Called with the exception when a fetch fails; polling stops
            interval: Seconds between fetches (defaults to settings.POLL_INTERVAL_SECONDS)
        Returns:
            The terminal job, or None when polling stopped on an error
        """
        interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        while True:
            try:
                job = await self.get_generation_job(job_id)
                images = await self.get_generated_images(job_id)
            except Exception as e:
                logger.error(f"Polling job {job_id} failed: {e}")
                await _invoke(on_error, e)
                return None

            await _invoke(on_progress, job, images)
            if job.get("status") in TERMINAL_STATUSES:
                logger.info(f"Job {job_id} finished with status {job['status']}")
                await _invoke(on_complete, job, images)
                return job
            await asyncio.sleep(interval)
