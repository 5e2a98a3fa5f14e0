"""Deployment record persisted between deploy and rollback."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List
from pydantic import BaseModel, Field, field_validator

# Written in the stack's working directory
STATE_FILE_NAME = ".compose-state.json"

_FRACTION = re.compile(r"\.(\d+)")


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as RFC 3339, using Z for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp.

    Fractional seconds beyond microsecond precision are truncated.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DeploymentRecord(BaseModel):
    """The last successful non-dry-run deployment of a stack."""

    last_tag: str = Field(..., description="Image tag that was deployed")
    deployed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the deployment completed",
    )
    services: List[str] = Field(default_factory=list, description="Sorted service names")
    compose_files: List[str] = Field(
        default_factory=list, description="Compose files as given on the command line"
    )
    project_name: str = Field("", description="Resolved compose project name")

    @field_validator("deployed_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk JSON form."""
        return {
            "lastTag": self.last_tag,
            "deployedAt": format_timestamp(self.deployed_at),
            "services": list(self.services),
            "composeFiles": list(self.compose_files),
            "projectName": self.project_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentRecord":
        """Create a DeploymentRecord from the on-disk JSON form."""
        return cls(
            last_tag=data["lastTag"],
            deployed_at=parse_timestamp(data["deployedAt"]),
            services=data.get("services") or [],
            compose_files=data.get("composeFiles") or [],
            project_name=data.get("projectName", "") or "",
        )
