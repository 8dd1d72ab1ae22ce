from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ValidationError

from app.core.config import settings

logger = logging.getLogger(__name__)


# Judge0 CE language ids.
LANGUAGE_IDS: dict[str, int] = {
    "java": 62,
    "python": 71,
    "cpp": 54,
    "c": 50,
    "javascript": 63,
}

STATUS_IN_QUEUE = 1
STATUS_PROCESSING = 2
STATUS_ACCEPTED = 3

_NON_TERMINAL = {STATUS_IN_QUEUE, STATUS_PROCESSING}


class ExecutionError(Exception):
    """Base class for everything the execution client can raise."""


class UnsupportedLanguage(ExecutionError):
    def __init__(self, language: str):
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class ServiceUnavailable(ExecutionError):
    pass


class ExecutionTimeout(ExecutionError):
    pass


class ExecutionStatus(BaseModel):
    id: int
    description: str = ""


class ExecutionResult(BaseModel):
    token: str | None = None
    status: ExecutionStatus
    stdout: str | None = None
    stderr: str | None = None
    compile_output: str | None = None
    message: str | None = None
    time: str | None = None
    memory: int | None = None

    @property
    def status_id(self) -> int:
        return int(self.status.id)

    @property
    def status_description(self) -> str:
        return str(self.status.description or "")

    @property
    def is_terminal(self) -> bool:
        return self.status_id not in _NON_TERMINAL

    @property
    def is_accepted(self) -> bool:
        return self.status_id == STATUS_ACCEPTED


def language_id_for(language: str) -> int:
    lid = LANGUAGE_IDS.get(str(language or "").strip().lower())
    if lid is None:
        raise UnsupportedLanguage(language)
    return lid


class Judge0Client:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        api_host: str | None = None,
        max_poll_attempts: int = 30,
        poll_interval_seconds: float = 1.0,
        timeout: httpx.Timeout | None = None,
    ):
        self.base_url = str(base_url or "").rstrip("/")
        self.api_key = (api_key or "").strip() or None
        self.api_host = (api_host or "").strip() or (urlparse(self.base_url).hostname or None)
        self.max_poll_attempts = max(1, int(max_poll_attempts))
        self.poll_interval_seconds = max(0.0, float(poll_interval_seconds))
        self.timeout = timeout or httpx.Timeout(connect=3.0, read=10.0, write=10.0, pool=3.0)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-RapidAPI-Key"] = self.api_key
            if self.api_host:
                headers["X-RapidAPI-Host"] = self.api_host
        return headers

    def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> dict[str, Any]:
        url = self.base_url + path
        try:
            with httpx.Client(timeout=self.timeout, headers=self._headers()) as client:
                if method == "POST":
                    r = client.post(url, json=json)
                else:
                    r = client.get(url)
        except httpx.HTTPError as e:
            raise ServiceUnavailable(f"Judge0 API error: {type(e).__name__}: {e}") from e

        if r.status_code < 200 or r.status_code >= 300:
            snip = ""
            try:
                snip = (r.text or "")[:200]
            except Exception:
                snip = ""
            raise ServiceUnavailable(f"Judge0 API error: {r.status_code}" + (f" {snip}" if snip else ""))

        try:
            data = r.json()
        except ValueError as e:
            raise ServiceUnavailable("Judge0 API error: malformed response body") from e
        if not isinstance(data, dict):
            raise ServiceUnavailable("Judge0 API error: malformed response body")
        return data

    def submit(
        self,
        code: str,
        language: str,
        stdin: str | None = None,
        cpu_time_limit_seconds: float | None = None,
        memory_limit_kb: int | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "source_code": code,
            "language_id": language_id_for(language),
        }
        if stdin is not None:
            payload["stdin"] = stdin
        if cpu_time_limit_seconds is not None:
            payload["cpu_time_limit"] = cpu_time_limit_seconds
        if memory_limit_kb is not None:
            payload["memory_limit"] = int(memory_limit_kb)

        data = self._request("POST", "/submissions?base64_encoded=false&wait=false", json=payload)
        token = str(data.get("token") or "").strip()
        if not token:
            raise ServiceUnavailable("Judge0 API error: submission response has no token")
        return token

    def poll(self, token: str) -> ExecutionResult:
        data = self._request("GET", f"/submissions/{token}?base64_encoded=false")
        try:
            result = ExecutionResult.model_validate(data)
        except ValidationError as e:
            raise ServiceUnavailable("Judge0 API error: malformed submission status") from e
        if not result.token:
            result.token = token
        return result

    def run(
        self,
        code: str,
        language: str,
        stdin: str | None = None,
        cpu_time_limit_seconds: float | None = None,
        memory_limit_kb: int | None = None,
    ) -> ExecutionResult:
        token = self.submit(
            code,
            language,
            stdin=stdin,
            cpu_time_limit_seconds=cpu_time_limit_seconds,
            memory_limit_kb=memory_limit_kb,
        )

        for attempt in range(1, self.max_poll_attempts + 1):
            result = self.poll(token)
            if result.is_terminal:
                return result
            logger.debug("judge0 token=%s still %s (attempt %s)", token, result.status_description, attempt)
            if attempt < self.max_poll_attempts:
                time.sleep(self.poll_interval_seconds)

        raise ExecutionTimeout(f"Submission timed out after {self.max_poll_attempts} polls")


def get_execution_client() -> Judge0Client:
    return Judge0Client(
        base_url=settings.judge0_api_url,
        api_key=settings.judge0_api_key,
        api_host=settings.judge0_api_host,
        max_poll_attempts=int(settings.judge0_max_poll_attempts),
        poll_interval_seconds=float(settings.judge0_poll_interval_seconds),
        timeout=httpx.Timeout(
            connect=float(settings.judge0_timeout_connect),
            read=float(settings.judge0_timeout_read),
            write=float(settings.judge0_timeout_write),
            pool=3.0,
        ),
    )
