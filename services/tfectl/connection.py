"""
Connection facade: one authenticated session scoped to one organization.

Read-style operations return the serialized payload the CLI prints; write
operations return nothing (or the created ID) and raise on failure.
"""

import json
from typing import Any

import httpx

from tfectl.api.client import TFEClient
from tfectl.api.errors import MalformedResponseError
from tfectl.api.models import LogPhase, VariableCategory, Workspace
from tfectl.config import Settings
from tfectl.services import log_service, resource_service, run_service, workspace_service


def dump_json(payload: Any) -> bytes:
    """Serialize a result for output."""
    try:
        return json.dumps(payload).encode()
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Could not serialize result: {e}") from e


class Connection:
    """All operations over a single session and organization."""

    def __init__(
        self,
        client: TFEClient,
        org: str,
        *,
        log_poll_min: float = 0.5,
        log_poll_max: float = 2.0,
    ) -> None:
        self.client = client
        self.org = org
        self._log_poll_min = log_poll_min
        self._log_poll_max = log_poll_max

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.BaseTransport | None = None
    ) -> "Connection":
        settings.require_credentials()
        client = TFEClient(
            settings.api_url,
            settings.token,
            page_size=settings.page_size,
            timeout=settings.request_timeout_seconds,
            retry_server_errors=settings.retry_server_errors,
            retry_max_attempts=settings.retry_max_attempts,
            retry_wait_min=settings.retry_wait_min_seconds,
            retry_wait_max=settings.retry_wait_max_seconds,
            transport=transport,
        )
        return cls(
            client,
            settings.org,
            log_poll_min=settings.log_poll_min_seconds,
            log_poll_max=settings.log_poll_max_seconds,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Workspaces ---

    def list_workspaces(self) -> list[str]:
        return [w.name for w in resource_service.list_workspaces(self.client, self.org)]

    def create_workspace(self, name: str, working_directory: str = "") -> Workspace:
        return workspace_service.create_workspace(self.client, self.org, name, working_directory)

    def read_workspace(self, name: str) -> Workspace:
        return resource_service.read_workspace(self.client, self.org, name)

    def get_workspace(self, name: str) -> bytes:
        ws = self.read_workspace(name)
        return dump_json(
            {
                "Name": ws.name,
                "WorkingDirectory": ws.working_directory,
                "Branch": ws.vcs_repo.branch if ws.vcs_repo else "",
                "RepoID": ws.vcs_repo.identifier if ws.vcs_repo else "",
                "Locked": ws.locked,
            }
        )

    def add_repo(
        self, workspace_name: str, oauth_client_id: str, branch: str, repo_identifier: str
    ) -> Workspace:
        return workspace_service.bind_vcs_repo(
            self.client, self.org, workspace_name, oauth_client_id, branch, repo_identifier
        )

    # --- OAuth clients ---

    def list_oauth_clients(self) -> bytes:
        clients = resource_service.list_oauth_clients(self.client, self.org)
        return dump_json([{"Name": c.name, "Id": c.id} for c in clients])

    def get_oauth_client(self, client_id: str) -> bytes:
        oc = resource_service.read_oauth_client(self.client, client_id)
        return dump_json(
            {
                "Id": oc.id,
                "Name": oc.name,
                "ServiceProvider": oc.service_provider,
                "OAuthTokens": [t.id for t in oc.oauth_tokens],
            }
        )

    # --- Variables ---

    def add_variable(
        self,
        name: str,
        workspace_name: str,
        value: str,
        description: str = "",
        is_hcl: bool = False,
        is_sensitive: bool = False,
        category: VariableCategory | str = VariableCategory.TERRAFORM,
    ) -> None:
        workspace_service.add_variable(
            self.client,
            self.org,
            workspace_name,
            key=name,
            value=value,
            description=description,
            hcl=is_hcl,
            sensitive=is_sensitive,
            category=category,
        )

    def add_terraform_variable(
        self,
        name: str,
        workspace_name: str,
        value: str,
        description: str = "",
        is_hcl: bool = False,
        is_sensitive: bool = False,
    ) -> None:
        self.add_variable(
            name, workspace_name, value, description, is_hcl, is_sensitive,
            VariableCategory.TERRAFORM,
        )

    def add_environment_variable(
        self,
        name: str,
        workspace_name: str,
        value: str,
        description: str = "",
        is_sensitive: bool = False,
    ) -> None:
        self.add_variable(
            name, workspace_name, value, description, False, is_sensitive,
            VariableCategory.ENV,
        )

    def assign_variable_set(self, workspace_name: str, variable_set_name: str) -> None:
        workspace_service.assign_variable_set(
            self.client, self.org, workspace_name, variable_set_name
        )

    def get_variable_set(self, name: str) -> bytes:
        varset = resource_service.find_variable_set_by_name(self.client, self.org, name)
        return dump_json(varset.to_dict())

    # --- Runs ---

    def create_run(self, workspace_name: str, message: str = "") -> str:
        return run_service.create_run(self.client, self.org, workspace_name, message)

    def plan(self, workspace_name: str, message: str = "") -> bytes:
        run_id = self.create_run(workspace_name, message)
        return dump_json({"RunID": run_id, "Status": "planning"})

    def apply_run(self, run_id: str, comment: str = "") -> None:
        run_service.apply_run(self.client, run_id, comment)

    def discard_run(self, run_id: str, comment: str = "") -> None:
        run_service.discard_run(self.client, run_id, comment)

    def cancel_run(self, run_id: str, comment: str = "") -> None:
        run_service.cancel_run(self.client, run_id, comment)

    def list_runs(self, workspace_name: str) -> bytes:
        runs = run_service.list_runs(self.client, self.org, workspace_name)
        return dump_json([r.to_dict() for r in runs])

    def get_plan(self, run_id: str) -> bytes:
        return run_service.read_plan_output(self.client, run_id)

    def get_apply(self, run_id: str) -> bytes:
        return dump_json(run_service.read_apply_output(self.client, run_id).to_dict())

    def get_logs(self, run_id: str, phase: LogPhase | str) -> bytes:
        bundle = log_service.fetch_logs(
            self.client,
            run_id,
            phase,
            poll_min=self._log_poll_min,
            poll_max=self._log_poll_max,
        )
        return dump_json(bundle.to_dict())
