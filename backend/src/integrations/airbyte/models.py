"""
Data models for Airbyte configuration API payloads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

# Prefixes of identifiers fabricated when the platform is not available
PLACEHOLDER_PREFIXES = ("mock-", "dev-")


def is_placeholder_id(value: Optional[str]) -> bool:
    """True for ids produced by mock mode or the development fallbacks."""
    return bool(value) and str(value).startswith(PLACEHOLDER_PREFIXES)


def _parse_timestamp(ts: Any) -> Optional[datetime]:
    if ts is None:
        return None
    if isinstance(ts, (int, float)):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    if isinstance(ts, str):
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    return None


class AirbyteJobStatus(str, Enum):
    """Status of an Airbyte job."""

    PENDING = "pending"
    RUNNING = "running"
    INCOMPLETE = "incomplete"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Any) -> "AirbyteJobStatus":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.PENDING


@dataclass
class AirbyteHealth:
    """Health check response."""

    available: bool

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AirbyteHealth":
        return cls(available=bool((data or {}).get("available", False)))


@dataclass
class AirbyteWorkspace:
    workspace_id: str
    name: str = ""
    email: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AirbyteWorkspace":
        return cls(
            workspace_id=data.get("workspaceId", ""),
            name=data.get("name", ""),
            email=data.get("email"),
        )


@dataclass
class ConnectorDefinition:
    """
    Source or destination connector definition.

    The configuration API names the id field sourceDefinitionId or
    destinationDefinitionId; both are read into definition_id.
    """

    definition_id: str
    name: str
    docker_repository: Optional[str] = None
    docker_image_tag: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectorDefinition":
        return cls(
            definition_id=(
                data.get("sourceDefinitionId")
                or data.get("destinationDefinitionId")
                or data.get("definitionId", "")
            ),
            name=data.get("name", ""),
            docker_repository=data.get("dockerRepository"),
            docker_image_tag=data.get("dockerImageTag"),
        )


@dataclass
class AirbyteSource:
    source_id: str
    name: str
    source_definition_id: Optional[str] = None
    workspace_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AirbyteSource":
        return cls(
            source_id=data.get("sourceId", ""),
            name=data.get("name", ""),
            source_definition_id=data.get("sourceDefinitionId"),
            workspace_id=data.get("workspaceId"),
        )


@dataclass
class AirbyteDestination:
    destination_id: str
    name: str
    destination_definition_id: Optional[str] = None
    workspace_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AirbyteDestination":
        return cls(
            destination_id=data.get("destinationId", ""),
            name=data.get("name", ""),
            destination_definition_id=data.get("destinationDefinitionId"),
            workspace_id=data.get("workspaceId"),
        )


@dataclass
class AirbyteConnection:
    """Airbyte connection (source -> destination pipeline)."""

    connection_id: str
    name: str
    source_id: str
    destination_id: str
    status: str = "active"
    prefix: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AirbyteConnection":
        return cls(
            connection_id=data.get("connectionId", ""),
            name=data.get("name", ""),
            source_id=data.get("sourceId", ""),
            destination_id=data.get("destinationId", ""),
            status=data.get("status", "active"),
            prefix=data.get("prefix"),
        )


@dataclass
class AirbyteJob:
    """Airbyte job as returned by connections/sync and jobs/get."""

    job_id: str
    status: AirbyteJobStatus
    config_id: str = ""
    created_at: Optional[datetime] = None
    attempts: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AirbyteJob":
        job_data = data.get("job", data) or {}
        job_id = job_data.get("id", job_data.get("jobId"))
        return cls(
            job_id=str(job_id) if job_id is not None else "",
            status=AirbyteJobStatus.parse(job_data.get("status", "pending")),
            config_id=job_data.get("configId", ""),
            created_at=_parse_timestamp(job_data.get("createdAt")),
            attempts=list(data.get("attempts", [])),
        )

    @property
    def is_running(self) -> bool:
        return self.status in (AirbyteJobStatus.PENDING, AirbyteJobStatus.RUNNING)

    @property
    def is_complete(self) -> bool:
        return self.status in (
            AirbyteJobStatus.SUCCEEDED,
            AirbyteJobStatus.FAILED,
            AirbyteJobStatus.CANCELLED,
        )
