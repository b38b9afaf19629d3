"""Read-only lookups of workspaces, OAuth clients and variable sets.

Names are lookup keys, not identifiers: every call asks the service again
and nothing is cached between calls.
"""

from functools import partial
from urllib.parse import quote as url_quote

from tfectl.api.client import TFEClient
from tfectl.api.errors import NotFoundError
from tfectl.api.models import OAuthClient, Page, VariableSet, Workspace
from tfectl.logging_config import get_logger
from tfectl.services.pagination import paginate

logger = get_logger(__name__)


def _org_path(org: str, collection: str) -> str:
    return f"organizations/{url_quote(org, safe='')}/{collection}"


def _fetch_workspaces(client: TFEClient, org: str, page_number: int) -> Page[Workspace]:
    page = client.get_page(_org_path(org, "workspaces"), page_number)
    return Page(items=[Workspace.from_json(d) for d in page.items], next_page=page.next_page)


def _fetch_oauth_clients(client: TFEClient, org: str, page_number: int) -> Page[OAuthClient]:
    page = client.get_page(_org_path(org, "oauth-clients"), page_number)
    return Page(items=[OAuthClient.from_json(d) for d in page.items], next_page=page.next_page)


def _fetch_variable_sets(client: TFEClient, org: str, page_number: int) -> Page[VariableSet]:
    page = client.get_page(_org_path(org, "varsets"), page_number)
    return Page(items=[VariableSet.from_json(d) for d in page.items], next_page=page.next_page)


def read_workspace(client: TFEClient, org: str, name: str) -> Workspace:
    """Read a workspace by its name within the organization."""
    data = client.get_resource(
        f"{_org_path(org, 'workspaces')}/{url_quote(name, safe='')}",
        resource="workspace",
        identifier=name,
    )
    return Workspace.from_json(data)


def list_workspaces(client: TFEClient, org: str) -> list[Workspace]:
    return list(paginate(partial(_fetch_workspaces, client, org)))


def read_oauth_client(client: TFEClient, client_id: str) -> OAuthClient:
    """Read an OAuth client with its tokens, in the order the service lists them."""
    data = client.get_resource(
        f"oauth-clients/{url_quote(client_id, safe='')}",
        resource="OAuth client",
        identifier=client_id,
    )
    return OAuthClient.from_json(data)


def list_oauth_clients(client: TFEClient, org: str) -> list[OAuthClient]:
    return list(paginate(partial(_fetch_oauth_clients, client, org)))


def find_variable_set_by_name(client: TFEClient, org: str, name: str) -> VariableSet:
    """Scan the organization's variable sets for an exact, case-sensitive name match.

    The service has no filter for this, so pages are walked in order and the
    first match wins; later pages are not requested once it is found.
    """
    for varset in paginate(partial(_fetch_variable_sets, client, org)):
        if varset.name == name:
            return varset
    logger.info("Variable set not found", org=org, name=name)
    raise NotFoundError("variable set", name)
