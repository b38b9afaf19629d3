"""Workspace mutations: creation, VCS binding, variables and variable sets."""

from urllib.parse import quote as url_quote

from tfectl.api.client import TFEClient
from tfectl.api.errors import MalformedResponseError, NotFoundError
from tfectl.api.models import Variable, VariableCategory, Workspace
from tfectl.logging_config import get_logger
from tfectl.services.resource_service import (
    find_variable_set_by_name,
    read_oauth_client,
    read_workspace,
)

logger = get_logger(__name__)


def _workspace_path(org: str, name: str) -> str:
    return f"organizations/{url_quote(org, safe='')}/workspaces/{url_quote(name, safe='')}"


def create_workspace(client: TFEClient, org: str, name: str, working_directory: str = "") -> Workspace:
    """Create a workspace with auto-apply disabled."""
    data = client.send(
        "POST",
        f"organizations/{url_quote(org, safe='')}/workspaces",
        {
            "data": {
                "type": "workspaces",
                "attributes": {
                    "name": name,
                    "auto-apply": False,
                    "working-directory": working_directory,
                },
            }
        },
    )
    if data is None:
        raise MalformedResponseError("Workspace creation response has no workspace")
    workspace = Workspace.from_json(data)
    logger.info("Workspace created", workspace=workspace.name, workspace_id=workspace.id)
    return workspace


def bind_vcs_repo(
    client: TFEClient,
    org: str,
    workspace_name: str,
    oauth_client_id: str,
    branch: str,
    repo_identifier: str,
) -> Workspace:
    """Point a workspace at a repository, authorized by the OAuth client's first token."""
    oauth_client = read_oauth_client(client, oauth_client_id)
    if not oauth_client.oauth_tokens:
        raise NotFoundError("OAuth token for client", oauth_client_id)
    token_id = oauth_client.oauth_tokens[0].id

    workspace = read_workspace(client, org, workspace_name)
    data = client.send(
        "PATCH",
        _workspace_path(org, workspace.name),
        {
            "data": {
                "type": "workspaces",
                "attributes": {
                    "vcs-repo": {
                        "branch": branch,
                        "identifier": repo_identifier,
                        "oauth-token-id": token_id,
                    },
                },
            }
        },
        resource="workspace",
        identifier=workspace.name,
    )
    logger.info(
        "Workspace bound to repository",
        workspace=workspace.name,
        repo=repo_identifier,
        branch=branch,
    )
    return Workspace.from_json(data) if data else workspace


def add_variable(
    client: TFEClient,
    org: str,
    workspace_name: str,
    key: str,
    value: str,
    description: str = "",
    hcl: bool = False,
    sensitive: bool = False,
    category: VariableCategory | str = VariableCategory.TERRAFORM,
) -> Variable:
    """Create a variable on the workspace.

    Environment variables are never HCL; hcl is forced off for them.
    """
    category = VariableCategory(category)
    if category is VariableCategory.ENV and hcl:
        logger.warning("HCL is not supported for environment variables, ignoring", key=key)
        hcl = False

    workspace = read_workspace(client, org, workspace_name)
    data = client.send(
        "POST",
        f"workspaces/{url_quote(workspace.id, safe='')}/vars",
        {
            "data": {
                "type": "vars",
                "attributes": {
                    "key": key,
                    "value": value,
                    "description": description,
                    "category": str(category),
                    "hcl": hcl,
                    "sensitive": sensitive,
                },
            }
        },
    )
    if data is None:
        raise MalformedResponseError("Variable creation response has no variable")
    logger.info(
        "Variable created",
        workspace=workspace.name,
        key=key,
        category=str(category),
    )
    return Variable.from_json(data)


def assign_variable_set(
    client: TFEClient, org: str, workspace_name: str, variable_set_name: str
) -> None:
    """Apply a variable set (found by name) to a workspace."""
    workspace = read_workspace(client, org, workspace_name)
    varset = find_variable_set_by_name(client, org, variable_set_name)
    client.send(
        "POST",
        f"varsets/{url_quote(varset.id, safe='')}/relationships/workspaces",
        {"data": [{"type": "workspaces", "id": workspace.id}]},
    )
    logger.info(
        "Variable set assigned",
        workspace=workspace.name,
        variable_set=varset.name,
        variable_set_id=varset.id,
    )
