"""Pydantic models for stack descriptors, reconcile options and policies."""

import os
from pathlib import Path
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Interpolation variable that selects which image tag the manifests run
IMAGE_TAG_VARIABLE = "IMAGE_TAG"

RecreatePolicy = Literal["always", "never", "missing", "diverged"]


class ProjectContext(BaseModel):
    """Identity and location of a compose stack.

    Constructed once per invocation from CLI flags and never persisted.
    ``variables`` is the interpolation map handed to the backend when the
    manifests are parsed; it is how the image tag reaches the manifests.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field("", description="Compose project name")
    compose_files: List[str] = Field(
        default_factory=list, description="Ordered compose file paths"
    )
    env_file: Optional[str] = Field(None, description="Environment file path")
    project_dir: Optional[str] = Field(None, description="Working directory for the project")
    variables: Dict[str, str] = Field(
        default_factory=dict, description="Manifest interpolation variables"
    )

    @field_validator("compose_files")
    @classmethod
    def strip_compose_files(cls, v: List[str]) -> List[str]:
        """Drop blank entries left over from comma-separated flags."""
        return [f.strip() for f in v if f and f.strip()]

    @field_validator("env_file", "project_dir")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    def working_dir(self) -> Path:
        """Resolve the project working directory.

        Explicit directory if given, else the directory of the first
        compose file, else the process current directory.
        """
        if self.project_dir:
            return Path(os.path.abspath(os.path.expanduser(self.project_dir)))
        if self.compose_files:
            first = os.path.expanduser(self.compose_files[0])
            return Path(os.path.abspath(os.path.dirname(first) or os.curdir))
        return Path.cwd()

    def resolve_path(self, path: str) -> Path:
        """Resolve a path against the working directory; absolute paths pass through.

        Without a project directory the working directory is the first compose
        file's directory, so a relative ``deploy/docker-compose.yml`` resolves to
        ``deploy/deploy/docker-compose.yml``. Pass ``project_dir`` or absolute paths
        to avoid this.
        """
        expanded = Path(os.path.expanduser(path))
        if expanded.is_absolute():
            return expanded
        return Path(os.path.normpath(self.working_dir() / expanded))

    def with_variables(self, **variables: str) -> "ProjectContext":
        """Return a copy with the given interpolation variables set."""
        return self.model_copy(update={"variables": {**self.variables, **variables}})


class HealthWaitPolicy(BaseModel):
    """Parameters governing the health poll loop."""

    timeout: float = Field(..., gt=0, description="Overall wait timeout in seconds")
    poll_interval: float = Field(..., gt=0, description="Seconds between status checks")
    jitter: bool = Field(True, description="Add 0-500ms random delay per poll")

    @model_validator(mode="after")
    def validate_interval(self):
        """A poll interval at or beyond the timeout would never poll."""
        if self.poll_interval >= self.timeout:
            raise ValueError(
                f"poll_interval ({self.poll_interval}s) must be shorter than "
                f"timeout ({self.timeout}s)"
            )
        return self

    @classmethod
    def fast(cls) -> "HealthWaitPolicy":
        """Development preset: 60s timeout, 2s interval."""
        return cls(timeout=60, poll_interval=2, jitter=True)

    @classmethod
    def production(cls) -> "HealthWaitPolicy":
        """Production preset: 120s timeout, 3s interval."""
        return cls(timeout=120, poll_interval=3, jitter=True)


class CreateOptions(BaseModel):
    """Container creation options for an up pass."""

    recreate: RecreatePolicy = "diverged"
    remove_orphans: bool = False
    quiet: bool = False


class StartOptions(BaseModel):
    """Container start options for an up pass."""

    wait: bool = False
    wait_timeout: int = Field(0, ge=0, description="Seconds to wait for healthy containers")


class UpOptions(BaseModel):
    """Operator intent for one up reconciliation pass."""

    create: CreateOptions = Field(default_factory=CreateOptions)
    start: StartOptions = Field(default_factory=StartOptions)
    dry_run: bool = False


class DownOptions(BaseModel):
    """Options for stopping and removing a stack."""

    remove_volumes: bool = False
    remove_orphans: bool = False
    timeout: int = Field(0, description="Stop timeout in seconds; ignored when not positive")


class PullOptions(BaseModel):
    """Options for pulling service images."""

    quiet: bool = False
    ignore_buildable: bool = False


class BuildOptions(BaseModel):
    """Options for building service images."""

    pull: bool = False
    no_cache: bool = False
    quiet: bool = False
    services: List[str] = Field(default_factory=list)
    deps: bool = False


class ReconcileProfile(BaseModel):
    """Named preset of create/start options used by callers of up."""

    recreate: RecreatePolicy = "diverged"
    remove_orphans: bool = False
    quiet: bool = False
    wait: bool = True
    wait_timeout: int = Field(120, ge=0)

    @classmethod
    def dev(cls) -> "ReconcileProfile":
        return cls(recreate="missing", remove_orphans=False, wait=True, wait_timeout=60)

    @classmethod
    def prod(cls) -> "ReconcileProfile":
        return cls(recreate="diverged", remove_orphans=True, wait=True, wait_timeout=120)

    def to_up_options(self, dry_run: bool = False) -> UpOptions:
        """Build UpOptions for this profile."""
        return UpOptions(
            create=CreateOptions(
                recreate=self.recreate,
                remove_orphans=self.remove_orphans,
                quiet=self.quiet,
            ),
            start=StartOptions(wait=self.wait, wait_timeout=self.wait_timeout),
            dry_run=dry_run,
        )


class EnvironmentProfile(BaseModel):
    """Per-environment defaults for the dev and prod command groups."""

    project_name: str = Field(..., min_length=1, pattern="^[a-z0-9][a-z0-9_-]*$")
    compose_files: List[str] = Field(..., min_length=1)
    env_file: Optional[str] = ".env"
    project_dir: Optional[str] = None
    reconcile: ReconcileProfile = Field(default_factory=ReconcileProfile)
    health: HealthWaitPolicy = Field(default_factory=HealthWaitPolicy.production)
    down_timeout: int = Field(10, ge=0)

    @classmethod
    def dev(cls) -> "EnvironmentProfile":
        return cls(
            project_name="goforms-dev",
            compose_files=["docker-compose.yml"],
            reconcile=ReconcileProfile.dev(),
            health=HealthWaitPolicy.fast(),
        )

    @classmethod
    def prod(cls) -> "EnvironmentProfile":
        return cls(
            project_name="goforms",
            compose_files=["docker-compose.prod.yml"],
            reconcile=ReconcileProfile.prod(),
            health=HealthWaitPolicy.production(),
        )
