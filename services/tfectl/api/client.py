"""HTTP session for the v2 API.

Wraps a synchronous httpx.Client with bearer auth, JSON:API content
negotiation, response-to-exception mapping and the retry policy applied to
every request: 429 is always retried, 5xx only when server-error retries are
enabled, transport failures always.
"""

from typing import Any

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from tfectl.api.errors import MalformedResponseError, NotFoundError, RemoteOperationError
from tfectl.api.models import Page
from tfectl.logging_config import get_logger

logger = get_logger(__name__)

JSONAPI_CONTENT_TYPE = "application/vnd.api+json"


def _error_detail(response: httpx.Response) -> str:
    """Pull a human-readable reason out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:500]

    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            parts = []
            for err in errors:
                if isinstance(err, dict):
                    parts.append(err.get("detail") or err.get("title") or str(err))
                else:
                    parts.append(str(err))
            return "; ".join(parts)
        if "detail" in body:
            return str(body["detail"])
    return str(body)[:500]


def next_page_number(document: dict[str, Any]) -> int:
    """Read meta.pagination.next-page; null or missing means there is no next page."""
    pagination = (document.get("meta") or {}).get("pagination") or {}
    return int(pagination.get("next-page") or 0)


class TFEClient:
    """Authenticated session against one service address."""

    def __init__(
        self,
        api_url: str,
        token: str,
        *,
        page_size: int = 100,
        timeout: float = 30.0,
        retry_server_errors: bool = True,
        retry_max_attempts: int = 10,
        retry_wait_min: float = 0.1,
        retry_wait_max: float = 0.4,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.page_size = page_size
        self._retry_server_errors = retry_server_errors
        self._retry_max_attempts = max(retry_max_attempts, 1)
        self._retry_wait_min = retry_wait_min
        self._retry_wait_max = retry_wait_max
        self._http = httpx.Client(
            base_url=api_url.rstrip("/") + "/",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": JSONAPI_CONTENT_TYPE,
            },
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TFEClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Transport ---

    def _should_retry(self, response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return self._retry_server_errors and response.status_code >= 500

    def _log_retry(self, retry_state: Any) -> None:
        outcome = retry_state.outcome
        if outcome.failed:
            reason = str(outcome.exception())
        else:
            reason = f"HTTP {outcome.result().status_code}"
        logger.warning(
            "Retrying request",
            attempt=retry_state.attempt_number,
            reason=reason,
        )

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying per policy, and return the final response.

        Non-2xx responses are returned, not raised; callers map them with
        raise_for_status() so a lookup can treat 404 as its own error.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_max_attempts),
            wait=wait_exponential(
                multiplier=self._retry_wait_min,
                min=self._retry_wait_min,
                max=self._retry_wait_max,
            ),
            retry=retry_if_exception_type(httpx.TransportError)
            | retry_if_result(self._should_retry),
            before_sleep=self._log_retry,
            retry_error_callback=lambda state: state.outcome.result(),
            reraise=True,
        )
        try:
            response = retrying(self._http.request, method, path, **kwargs)
        except httpx.TransportError as e:
            raise RemoteOperationError(f"{method} {path} failed", detail=str(e)) from e

        logger.debug(
            "API request",
            method=method,
            path=path,
            status=response.status_code,
        )
        return response

    @staticmethod
    def raise_for_status(
        response: httpx.Response,
        *,
        resource: str | None = None,
        identifier: str = "",
    ) -> None:
        """Map a non-2xx response to NotFoundError (for lookups) or RemoteOperationError."""
        if response.is_success:
            return
        if response.status_code == 404 and resource is not None:
            raise NotFoundError(resource, identifier)
        request = response.request
        raise RemoteOperationError(
            f"{request.method} {request.url.path} returned {response.status_code}",
            status_code=response.status_code,
            detail=_error_detail(response),
        )

    @staticmethod
    def _document(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Expected a JSON document from {response.request.url.path}"
            ) from e
        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Expected a JSON object from {response.request.url.path}"
            )
        return body

    # --- JSON:API helpers ---

    def get_resource(
        self,
        path: str,
        *,
        resource: str | None = None,
        identifier: str = "",
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """GET a single resource and return its primary data object."""
        response = self.request("GET", path, params=params)
        self.raise_for_status(response, resource=resource, identifier=identifier)
        data = self._document(response).get("data")
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a resource object from {path}")
        return data

    def get_page(
        self,
        path: str,
        page_number: int,
        params: dict[str, Any] | None = None,
    ) -> Page[dict[str, Any]]:
        """GET one page of a collection."""
        query = dict(params or {})
        query["page[number]"] = page_number
        query["page[size]"] = self.page_size
        response = self.request("GET", path, params=query)
        self.raise_for_status(response)
        document = self._document(response)
        data = document.get("data")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise MalformedResponseError(f"Expected a resource collection from {path}")
        return Page(items=data, next_page=next_page_number(document))

    def get_bytes(self, path: str, params: dict[str, Any] | None = None) -> bytes:
        """GET a non-JSON:API body verbatim."""
        response = self.request("GET", path, params=params)
        self.raise_for_status(response)
        return response.content

    def send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        *,
        resource: str | None = None,
        identifier: str = "",
    ) -> dict[str, Any] | None:
        """Send a write request; return the response's primary data, if any."""
        kwargs: dict[str, Any] = {"headers": {"Content-Type": JSONAPI_CONTENT_TYPE}}
        if body is not None:
            kwargs["json"] = body
        response = self.request(method, path, **kwargs)
        self.raise_for_status(response, resource=resource, identifier=identifier)
        if not response.content:
            return None
        data = self._document(response).get("data")
        return data if isinstance(data, dict) else None
