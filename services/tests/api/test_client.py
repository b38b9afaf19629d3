"""Tests for the API session: auth headers, error mapping, pagination cursor, retries."""

import json

import httpx
import pytest

from tfectl.api.client import TFEClient, next_page_number
from tfectl.api.errors import MalformedResponseError, NotFoundError, RemoteOperationError


class TestRequestHeaders:
    def test_bearer_token_and_jsonapi_accept(self, client, fake_tfe, make_resource):
        fake_tfe.on("GET", "runs/run-1", {"data": make_resource("run-1", "runs")})

        client.get_resource("runs/run-1")

        request = fake_tfe.requests[0]
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Accept"] == "application/vnd.api+json"
        assert str(request.url) == "https://tfe.test/api/v2/runs/run-1"

    def test_writes_send_jsonapi_content_type(self, client, fake_tfe):
        fake_tfe.on("POST", "runs/run-1/actions/apply", None, status=202)

        client.send("POST", "runs/run-1/actions/apply", {"comment": "go"})

        request = fake_tfe.requests[0]
        assert request.headers["Content-Type"] == "application/vnd.api+json"
        assert json.loads(request.read()) == {"comment": "go"}


class TestErrorMapping:
    def test_lookup_404_is_not_found(self, client):
        with pytest.raises(NotFoundError) as exc_info:
            client.get_resource("runs/run-x", resource="run", identifier="run-x")

        assert exc_info.value.resource == "run"
        assert exc_info.value.identifier == "run-x"
        assert "run-x" in str(exc_info.value)

    def test_404_without_resource_is_remote_error(self, client):
        with pytest.raises(RemoteOperationError) as exc_info:
            client.get_bytes("plans/plan-x/json-output")

        assert exc_info.value.status_code == 404

    def test_jsonapi_error_detail_is_surfaced(self, client, fake_tfe):
        fake_tfe.on(
            "POST",
            "runs/run-1/actions/apply",
            {"errors": [{"status": "409", "title": "conflict", "detail": "Run is not confirmable"}]},
            status=409,
        )

        with pytest.raises(RemoteOperationError) as exc_info:
            client.send("POST", "runs/run-1/actions/apply")

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Run is not confirmable"
        assert "Run is not confirmable" in str(exc_info.value)

    def test_fastapi_style_detail_is_surfaced(self, client, fake_tfe):
        fake_tfe.on("POST", "runs", {"detail": "Workspace is locked"}, status=409)

        with pytest.raises(RemoteOperationError) as exc_info:
            client.send("POST", "runs", {"data": {}})

        assert exc_info.value.detail == "Workspace is locked"

    def test_plain_text_error_body(self, client, fake_tfe):
        fake_tfe.on("GET", "runs/run-1", b"Unauthorized\n", status=401)

        with pytest.raises(RemoteOperationError) as exc_info:
            client.get_resource("runs/run-1", resource="run", identifier="run-1")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Unauthorized"

    def test_non_json_success_body_is_malformed(self, client, fake_tfe):
        fake_tfe.on("GET", "runs/run-1", b"<html></html>")

        with pytest.raises(MalformedResponseError):
            client.get_resource("runs/run-1")

    def test_collection_where_resource_expected_is_malformed(self, client, fake_tfe):
        fake_tfe.on("GET", "runs/run-1", {"data": []})

        with pytest.raises(MalformedResponseError):
            client.get_resource("runs/run-1")


class TestNextPageNumber:
    def test_reads_pagination_meta(self):
        assert next_page_number({"meta": {"pagination": {"next-page": 3}}}) == 3

    def test_null_next_page_is_zero(self):
        assert next_page_number({"meta": {"pagination": {"next-page": None}}}) == 0

    def test_missing_meta_is_zero(self):
        assert next_page_number({"data": []}) == 0


class TestGetPage:
    def test_sends_page_params(self, client, fake_tfe, make_resource):
        fake_tfe.pages("organizations/acme/workspaces", [[make_resource("ws-1", "workspaces")]])

        page = client.get_page("organizations/acme/workspaces", 1)

        params = fake_tfe.requests[0].url.params
        assert params["page[number]"] == "1"
        assert params["page[size]"] == "2"
        assert [d["id"] for d in page.items] == ["ws-1"]
        assert page.next_page == 0

    def test_missing_data_is_empty_page(self, client, fake_tfe):
        fake_tfe.on("GET", "organizations/acme/varsets", {"meta": {}})

        page = client.get_page("organizations/acme/varsets", 1)

        assert page.items == []
        assert page.next_page == 0


class TestRetries:
    def test_server_error_is_retried(self, client, fake_tfe, make_resource):
        fake_tfe.on(
            "GET",
            "runs/run-1",
            {"errors": [{"title": "bad gateway"}]},
            status=502,
        )
        fake_tfe.on("GET", "runs/run-1", {"data": make_resource("run-1", "runs")})

        data = client.get_resource("runs/run-1")

        assert data["id"] == "run-1"
        assert len(fake_tfe.requests) == 2

    def test_rate_limit_is_retried(self, client, fake_tfe, make_resource):
        fake_tfe.on("GET", "runs/run-1", b"", status=429)
        fake_tfe.on("GET", "runs/run-1", {"data": make_resource("run-1", "runs")})

        client.get_resource("runs/run-1")

        assert len(fake_tfe.requests) == 2

    def test_gives_up_after_max_attempts(self, client, fake_tfe):
        fake_tfe.on("GET", "runs/run-1", {"errors": [{"title": "unavailable"}]}, status=503)

        with pytest.raises(RemoteOperationError) as exc_info:
            client.get_resource("runs/run-1")

        assert exc_info.value.status_code == 503
        assert len(fake_tfe.requests) == 3

    def test_client_errors_are_not_retried(self, client, fake_tfe):
        fake_tfe.on("POST", "runs/run-1/actions/discard", {"errors": [{"title": "nope"}]}, status=409)

        with pytest.raises(RemoteOperationError):
            client.send("POST", "runs/run-1/actions/discard")

        assert len(fake_tfe.requests) == 1

    def test_server_errors_not_retried_when_disabled(self, fake_tfe):
        fake_tfe.on("GET", "runs/run-1", b"", status=500)
        c = TFEClient(
            "https://tfe.test/api/v2",
            "test-token",
            retry_server_errors=False,
            retry_wait_min=0,
            retry_wait_max=0,
            transport=httpx.MockTransport(fake_tfe.handler),
        )

        with pytest.raises(RemoteOperationError):
            c.get_resource("runs/run-1")

        assert len(fake_tfe.requests) == 1

    def test_transport_error_is_wrapped_after_retries(self):
        attempts = []

        def refuse(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        c = TFEClient(
            "https://tfe.test/api/v2",
            "test-token",
            retry_max_attempts=2,
            retry_wait_min=0,
            retry_wait_max=0,
            transport=httpx.MockTransport(refuse),
        )

        with pytest.raises(RemoteOperationError) as exc_info:
            c.get_resource("runs/run-1")

        assert "connection refused" in str(exc_info.value)
        assert len(attempts) == 2
