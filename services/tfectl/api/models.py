"""
Records parsed from the service's JSON:API documents.

Only the attributes tfectl reads are kept. Every record is immutable; a fresh
one is built from each response and never cached across calls.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

from tfectl.api.errors import MalformedResponseError

T = TypeVar("T")


class VariableCategory(StrEnum):
    """Where a workspace variable is exposed during a run."""

    TERRAFORM = "terraform"
    ENV = "env"


class LogPhase(StrEnum):
    """Run phase whose log stream is read."""

    PLAN = "plan"
    APPLY = "apply"


def _attributes(data: dict[str, Any]) -> dict[str, Any]:
    if "id" not in data:
        raise MalformedResponseError(f"Resource object without id: {data!r:.200}")
    return data.get("attributes") or {}


def _related_id(data: dict[str, Any], name: str) -> str | None:
    """ID of a to-one relationship, or None if absent."""
    rel = (data.get("relationships") or {}).get(name) or {}
    target = rel.get("data")
    if not target:
        return None
    return target.get("id")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a list endpoint. next_page of 0 means there are no more pages."""

    items: list[T]
    next_page: int = 0


@dataclass(frozen=True)
class VCSRepo:
    branch: str
    identifier: str
    oauth_token_id: str = ""


@dataclass(frozen=True)
class Workspace:
    id: str
    name: str
    working_directory: str = ""
    locked: bool = False
    vcs_repo: VCSRepo | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Workspace":
        attrs = _attributes(data)
        repo = attrs.get("vcs-repo")
        return cls(
            id=data["id"],
            name=attrs.get("name", ""),
            working_directory=attrs.get("working-directory") or "",
            locked=bool(attrs.get("locked", False)),
            vcs_repo=VCSRepo(
                branch=repo.get("branch") or "",
                identifier=repo.get("identifier") or "",
                oauth_token_id=repo.get("oauth-token-id") or "",
            )
            if repo
            else None,
        )


@dataclass(frozen=True)
class OAuthToken:
    id: str


@dataclass(frozen=True)
class OAuthClient:
    """A VCS integration. The first token is the one used for repo bindings."""

    id: str
    name: str = ""
    service_provider: str = ""
    oauth_tokens: tuple[OAuthToken, ...] = ()

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "OAuthClient":
        attrs = _attributes(data)
        rel = (data.get("relationships") or {}).get("oauth-tokens") or {}
        return cls(
            id=data["id"],
            name=attrs.get("name") or "",
            service_provider=attrs.get("service-provider") or "",
            oauth_tokens=tuple(OAuthToken(id=t["id"]) for t in rel.get("data") or []),
        )


@dataclass(frozen=True)
class Run:
    id: str
    status: str
    message: str = ""
    created_at: str = ""
    plan_id: str | None = None
    apply_id: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Run":
        attrs = _attributes(data)
        return cls(
            id=data["id"],
            status=attrs.get("status", ""),
            message=attrs.get("message") or "",
            created_at=attrs.get("created-at") or "",
            plan_id=_related_id(data, "plan"),
            apply_id=_related_id(data, "apply"),
        )


@dataclass(frozen=True)
class RunSummary:
    id: str
    status: str
    created_at: str

    @classmethod
    def from_run(cls, run: Run) -> "RunSummary":
        return cls(id=run.id, status=run.status, created_at=run.created_at)

    def to_dict(self) -> dict[str, str]:
        return {"ID": self.id, "Status": self.status, "CreatedAt": self.created_at}


@dataclass(frozen=True)
class Plan:
    id: str
    status: str = ""
    log_read_url: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Plan":
        attrs = _attributes(data)
        return cls(
            id=data["id"],
            status=attrs.get("status", ""),
            log_read_url=attrs.get("log-read-url") or "",
        )


@dataclass(frozen=True)
class Apply:
    id: str
    status: str = ""
    log_read_url: str = ""
    resource_additions: int = 0
    resource_changes: int = 0
    resource_destructions: int = 0
    status_timestamps: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Apply":
        attrs = _attributes(data)
        return cls(
            id=data["id"],
            status=attrs.get("status", ""),
            log_read_url=attrs.get("log-read-url") or "",
            resource_additions=attrs.get("resource-additions") or 0,
            resource_changes=attrs.get("resource-changes") or 0,
            resource_destructions=attrs.get("resource-destructions") or 0,
            status_timestamps=dict(attrs.get("status-timestamps") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ID": self.id,
            "LogReadURL": self.log_read_url,
            "ResourceAdditions": self.resource_additions,
            "ResourceChanges": self.resource_changes,
            "ResourceDestructions": self.resource_destructions,
            "Status": self.status,
            "StatusTimestamps": self.status_timestamps,
        }


@dataclass(frozen=True)
class Variable:
    id: str
    key: str
    value: str | None = ""
    description: str = ""
    category: VariableCategory = VariableCategory.TERRAFORM
    hcl: bool = False
    sensitive: bool = False

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Variable":
        attrs = _attributes(data)
        return cls(
            id=data["id"],
            key=attrs.get("key", ""),
            value=attrs.get("value"),
            description=attrs.get("description") or "",
            category=VariableCategory(attrs.get("category", VariableCategory.TERRAFORM)),
            hcl=bool(attrs.get("hcl", False)),
            sensitive=bool(attrs.get("sensitive", False)),
        )


@dataclass(frozen=True)
class VariableSet:
    id: str
    name: str
    description: str = ""
    is_global: bool = False

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "VariableSet":
        attrs = _attributes(data)
        return cls(
            id=data["id"],
            name=attrs.get("name", ""),
            description=attrs.get("description") or "",
            is_global=bool(attrs.get("global", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ID": self.id,
            "Name": self.name,
            "Description": self.description,
            "Global": self.is_global,
        }


@dataclass(frozen=True)
class LogBundle:
    """A run ID with the fully drained text of one of its log streams."""

    id: str
    logs: str

    def to_dict(self) -> dict[str, str]:
        return {"ID": self.id, "Logs": self.logs}
