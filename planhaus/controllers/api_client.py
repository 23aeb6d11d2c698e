"""
HTTP client for the PlanHaus REST API.
"""
import asyncio
import threading
from typing import Any, Dict, Optional

import requests

from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUSES = {408, 429}


class ApiError(Exception):
    """A non-2xx response (status set) or a transport failure (status None)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(f"{status}: {message}" if status else message)
        self.message = message
        self.status = status

    @property
    def retryable(self) -> bool:
        """Network failures, timeouts, throttling and server errors are worth retrying."""
        if self.status is None:
            return True
        return self.status in RETRYABLE_STATUSES or self.status >= 500


class AuthenticationError(ApiError):
    """The session expired and could not be refreshed; the user must log in again."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, 401)

    @property
    def retryable(self) -> bool:
        return False


class PlanHausClient:
    """
    Interface for the PlanHaus API.

    Requests carry ``Authorization: Bearer <sessionId>``. A 401 triggers one
    silent session refresh through the demo login endpoint followed by a
    single retry; if the refresh fails an ``AuthenticationError`` is raised.
    """

    def __init__(self, base_url: str = None, session_id: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: float = None):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip('/')
        self.session_id = session_id
        self.user: Optional[Dict[str, Any]] = None
        self.http = session or requests.Session()
        self.timeout = timeout or Config.API_TIMEOUT_SECONDS
        self._refresh_lock = threading.Lock()

    def _url(self, path: str) -> str:
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if self.session_id:
            headers['Authorization'] = f"Bearer {self.session_id}"
        return headers

    def _send(self, method: str, path: str, json: Any = None, params: Dict[str, Any] = None):
        try:
            return self.http.request(
                method,
                self._url(path),
                headers=self._headers(),
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(str(e)) from e

    def request(self, method: str, path: str, json: Any = None, params: Dict[str, Any] = None) -> Any:
        """Send a request and return the decoded JSON body."""
        used_session = self.session_id
        response = self._send(method, path, json=json, params=params)

        if response.status_code == 401:
            if not self._refresh_after_unauthorized(used_session):
                raise AuthenticationError()
            response = self._send(method, path, json=json, params=params)
            if response.status_code == 401:
                raise AuthenticationError()

        return self._decode(response)

    @staticmethod
    def _decode(response) -> Any:
        if not 200 <= response.status_code < 300:
            raise ApiError(_error_message(response), response.status_code)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Could not decode JSON body from {response.url}")
            return {}

    def _refresh_after_unauthorized(self, used_session: Optional[str]) -> bool:
        # Concurrent requests rejected with the same session share one refresh
        with self._refresh_lock:
            if self.session_id and self.session_id != used_session:
                return True
            return self.refresh_session()

    def refresh_session(self) -> bool:
        """Obtain a fresh session from the demo login endpoint."""
        self.session_id = None
        try:
            response = self._send('POST', '/api/auth/demo-login')
        except ApiError:
            return False
        if response.status_code != 200:
            logger.error(f"Failed to refresh session: {response.status_code}")
            return False
        try:
            data = response.json()
        except ValueError:
            return False
        self.session_id = data.get('sessionId')
        self.user = data.get('user')
        return bool(self.session_id)

    def login_demo(self) -> Dict[str, Any]:
        if not self.refresh_session():
            raise AuthenticationError("Demo login failed")
        return {'sessionId': self.session_id, 'user': self.user}

    def get(self, path: str, params: Dict[str, Any] = None) -> Any:
        return self.request('GET', path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request('POST', path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request('PATCH', path, json=json)

    def delete(self, path: str) -> Any:
        return self.request('DELETE', path)

    async def arequest(self, method: str, path: str, json: Any = None, params: Dict[str, Any] = None) -> Any:
        """``request`` run off the event loop."""
        return await asyncio.to_thread(self.request, method, path, json, params)

    async def aget(self, path: str, params: Dict[str, Any] = None) -> Any:
        return await self.arequest('GET', path, params=params)

    def close(self):
        self.http.close()


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or 'Request failed'
    if isinstance(body, dict):
        detail = body.get('detail') or body.get('error') or body.get('message')
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return response.text or 'Request failed'
