"""Run lifecycle: create, transition and inspect runs.

Which transitions are legal is decided by the service; nothing is checked
locally. A rejected transition surfaces as RemoteOperationError.
"""

from functools import partial
from urllib.parse import quote as url_quote

from tfectl.api.client import TFEClient
from tfectl.api.errors import MalformedResponseError, NotFoundError
from tfectl.api.models import Apply, Page, Plan, Run, RunSummary
from tfectl.logging_config import get_logger
from tfectl.services.pagination import paginate
from tfectl.services.resource_service import read_workspace

logger = get_logger(__name__)

# Actions accepted by POST /runs/{id}/actions/{action}
RUN_ACTIONS = ("apply", "discard", "cancel")


def _run_path(run_id: str) -> str:
    return f"runs/{url_quote(run_id, safe='')}"


def read_run(client: TFEClient, run_id: str) -> Run:
    data = client.get_resource(_run_path(run_id), resource="run", identifier=run_id)
    return Run.from_json(data)


def create_run(client: TFEClient, org: str, workspace_name: str, message: str = "") -> str:
    """Queue a plan on the named workspace and return the new run's ID."""
    workspace = read_workspace(client, org, workspace_name)

    attributes = {}
    if message:
        attributes["message"] = message

    data = client.send(
        "POST",
        "runs",
        {
            "data": {
                "type": "runs",
                "attributes": attributes,
                "relationships": {
                    "workspace": {"data": {"type": "workspaces", "id": workspace.id}},
                },
            }
        },
    )
    if not data or "id" not in data:
        raise MalformedResponseError("Run creation response has no run ID")

    logger.info("Run created", run_id=data["id"], workspace=workspace.name)
    return data["id"]


def _run_action(client: TFEClient, run_id: str, action: str, comment: str = "") -> None:
    if action not in RUN_ACTIONS:
        raise ValueError(f"Unknown run action: {action}")
    body = {"comment": comment} if comment else None
    client.send(
        "POST",
        f"{_run_path(run_id)}/actions/{action}",
        body,
        resource="run",
        identifier=run_id,
    )
    logger.info("Run action requested", run_id=run_id, action=action)


def apply_run(client: TFEClient, run_id: str, comment: str = "") -> None:
    _run_action(client, run_id, "apply", comment)


def discard_run(client: TFEClient, run_id: str, comment: str = "") -> None:
    _run_action(client, run_id, "discard", comment)


def cancel_run(client: TFEClient, run_id: str, comment: str = "") -> None:
    _run_action(client, run_id, "cancel", comment)


def _fetch_runs(client: TFEClient, workspace_id: str, page_number: int) -> Page[RunSummary]:
    page = client.get_page(f"workspaces/{url_quote(workspace_id, safe='')}/runs", page_number)
    return Page(
        items=[RunSummary.from_run(Run.from_json(d)) for d in page.items],
        next_page=page.next_page,
    )


def list_runs(client: TFEClient, org: str, workspace_name: str) -> list[RunSummary]:
    """Summaries of every run on the workspace, in the order the service returns them."""
    workspace = read_workspace(client, org, workspace_name)
    return list(paginate(partial(_fetch_runs, client, workspace.id)))


def read_plan(client: TFEClient, plan_id: str) -> Plan:
    data = client.get_resource(
        f"plans/{url_quote(plan_id, safe='')}", resource="plan", identifier=plan_id
    )
    return Plan.from_json(data)


def read_apply(client: TFEClient, apply_id: str) -> Apply:
    data = client.get_resource(
        f"applies/{url_quote(apply_id, safe='')}", resource="apply", identifier=apply_id
    )
    return Apply.from_json(data)


def read_plan_output(client: TFEClient, run_id: str) -> bytes:
    """The run's plan in its structured JSON form, passed through untouched."""
    run = read_run(client, run_id)
    if not run.plan_id:
        raise NotFoundError("plan", run_id)
    return client.get_bytes(f"plans/{url_quote(run.plan_id, safe='')}/json-output")


def read_apply_output(client: TFEClient, run_id: str) -> Apply:
    """The run's apply record."""
    run = read_run(client, run_id)
    if not run.apply_id:
        raise NotFoundError("apply", run_id)
    return read_apply(client, run.apply_id)
