import logging
import os
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

_SECRET_GETTER = None
_USER_GETTER = None


class ApiError(RuntimeError):
    def __init__(self, status_code, message):
        super().__init__(f"API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _build_session():
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(502, 503, 504),
        allowed_methods=("GET", "PUT", "DELETE"),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


_SESSION = _build_session()


def configure(secret_getter, user_getter):
    global _SECRET_GETTER, _USER_GETTER
    _SECRET_GETTER = secret_getter
    _USER_GETTER = user_getter


def _get_secret(path, default=None):
    if _SECRET_GETTER is None:
        return default
    return _SECRET_GETTER(path, default)


def api_base_url():
    return _get_secret(("app", "API_BASE_URL")) or os.getenv("API_BASE_URL") or ""


def backend_token():
    return _get_secret(("app", "BACKEND_SESSION_SECRET")) or os.getenv("BACKEND_SESSION_SECRET") or ""


def is_enabled():
    return bool(api_base_url() and backend_token())


def _error_message(response):
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return str(payload)


def request(method: str, path: str, params: dict | None = None, json: dict | None = None, timeout: int = 15) -> Any:
    base = api_base_url().rstrip("/")
    if not base:
        raise ApiError(0, "API_BASE_URL not configured")
    token = backend_token()
    if not token:
        raise ApiError(0, "BACKEND_SESSION_SECRET not configured")
    user_id = _USER_GETTER() if _USER_GETTER else None
    if not user_id:
        raise ApiError(0, "Missing user id for API request")
    headers = {"X-User-Id": user_id, "X-Backend-Token": token}
    try:
        response = _SESSION.request(method, f"{base}{path}", params=params, json=json, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("%s %s failed: %s", method, path, exc)
        raise ApiError(0, "Backend unreachable") from exc
    if not response.ok:
        raise ApiError(response.status_code, _error_message(response))
    if response.status_code == 204:
        return None
    return response.json()


def image_proxy_url(url):
    """Browser-facing proxy link; the route needs no auth headers."""
    if not url:
        return None
    return requests.Request("GET", f"{api_base_url().rstrip('/')}/api/image-proxy", params={"url": url}).prepare().url
