"""
Top-level test configuration for tfectl.

The remote service is replaced by FakeTFE, served to a real TFEClient
through httpx.MockTransport.
"""

import os
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from tfectl.api.client import TFEClient
from tfectl.logging_config import configure_logging

# Ensure test-friendly defaults
os.environ["TFECTL_CONFIG"] = "/nonexistent/tfectl/config.yaml"
for _name in ("TFE_URL", "TFE_TOKEN", "TFE_ORG", "TFE_LOG_LEVEL"):
    os.environ.pop(_name, None)

# Log through stdlib logging to stderr so nothing lands in captured stdout
configure_logging(log_level="DEBUG")

API_URL = "https://tfe.test/api/v2"
ORG = "acme"

Body = dict[str, Any] | bytes | None
Responder = Callable[[httpx.Request], httpx.Response]


def resource(
    resource_id: str,
    resource_type: str,
    attributes: dict[str, Any] | None = None,
    relationships: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a JSON:API resource object."""
    obj: dict[str, Any] = {
        "id": resource_id,
        "type": resource_type,
        "attributes": attributes or {},
    }
    if relationships:
        obj["relationships"] = relationships
    return obj


class FakeTFE:
    """In-memory stand-in for the v2 API.

    Routes are keyed by (method, path below /api/v2/). Each route holds a
    queue of responses; the last one keeps being served once the others are
    used up. Every request is recorded in order.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Responder]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *bodies: Body, status: int = 200) -> None:
        """Serve each body in turn: dicts as JSON, bytes verbatim, None as empty."""
        for body in bodies:
            self.on_request(method, path, _static(status, body))

    def on_request(self, method: str, path: str, responder: Responder) -> None:
        self.routes.setdefault((method, path.lstrip("/")), []).append(responder)

    def pages(self, path: str, pages: list[list[dict[str, Any]]]) -> None:
        """Serve a collection split into pages, with next-page links between them."""

        def respond(request: httpx.Request) -> httpx.Response:
            number = int(request.url.params.get("page[number]", "1"))
            items = pages[number - 1] if number <= len(pages) else []
            next_page = number + 1 if number < len(pages) else None
            return httpx.Response(
                200,
                json={
                    "data": items,
                    "meta": {
                        "pagination": {
                            "current-page": number,
                            "next-page": next_page,
                            "total-pages": len(pages),
                        }
                    },
                },
            )

        self.on_request("GET", path, respond)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/v2/")
        queue = self.routes.get((request.method, path))
        if not queue:
            return httpx.Response(
                404, json={"errors": [{"status": "404", "title": "not found"}]}
            )
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        return responder(request)

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method)
            and (path is None or r.url.path == f"/api/v2/{path.lstrip('/')}")
        ]


def _static(status: int, body: Body) -> Responder:
    def respond(request: httpx.Request) -> httpx.Response:
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=body or b"")

    return respond


@pytest.fixture
def fake_tfe() -> FakeTFE:
    return FakeTFE()


@pytest.fixture
def client(fake_tfe: FakeTFE) -> Iterator[TFEClient]:
    c = TFEClient(
        API_URL,
        "test-token",
        page_size=2,
        retry_max_attempts=3,
        retry_wait_min=0,
        retry_wait_max=0,
        transport=httpx.MockTransport(fake_tfe.handler),
    )
    yield c
    c.close()


@pytest.fixture
def make_resource() -> Callable[..., dict[str, Any]]:
    return resource
