"""Compose backend interface and the types exchanged with it."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, TextIO


@dataclass
class LoadRequest:
    """Fully resolved inputs for parsing a stack's manifests."""
    config_paths: List[str]
    project_name: str
    working_dir: str
    env_files: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)


@dataclass
class BackendProject:
    """A parsed stack as returned by the backend.

    ``services`` holds the compose-spec form of each service (the shape
    printed by ``docker compose config --format json``). ``handle`` is
    whatever the backend needs to act on the project later.
    """
    name: str
    services: Dict[str, Dict[str, Any]]
    handle: Any


@dataclass
class BackendCreateOptions:
    recreate: str
    remove_orphans: bool
    quiet_pull: bool


@dataclass
class BackendStartOptions:
    wait: bool
    wait_timeout: timedelta


@dataclass
class BackendDownOptions:
    volumes: bool
    remove_orphans: bool
    timeout: Optional[timedelta] = None


@dataclass
class BackendPullOptions:
    quiet: bool
    ignore_buildable: bool


@dataclass
class BackendBuildOptions:
    pull: bool
    no_cache: bool
    quiet: bool
    services: List[str]
    deps: bool


@dataclass
class LiveServiceStatus:
    """Point-in-time observation of one container backing a service."""
    name: str
    service: str
    state: str
    status: str = ""
    health: str = ""
    ports: List[str] = field(default_factory=list)
    image: str = ""

    def is_healthy(self) -> bool:
        """Healthy, or running without a defined health check."""
        if self.health == "healthy":
            return True
        return not self.health and self.state == "running"


class ComposeBackend(ABC):
    """Capability interface over the container runtime and manifest parser."""

    def ping(self) -> None:
        """Check that the container runtime is reachable.

        Backends without a separate runtime have nothing to check.
        """
        pass

    @abstractmethod
    def load_stack(self, request: LoadRequest) -> BackendProject:
        """Parse the manifests described by the request.

        Args:
            request: Resolved paths, project name and interpolation variables

        Returns:
            BackendProject with the raw service graph
        """
        pass

    @abstractmethod
    def up(
        self,
        handle: Any,
        create: BackendCreateOptions,
        start: BackendStartOptions,
    ) -> None:
        """Create and start the project's containers."""
        pass

    @abstractmethod
    def down(self, handle: Any, options: BackendDownOptions) -> None:
        """Stop and remove the project's containers."""
        pass

    @abstractmethod
    def pull(self, handle: Any, options: BackendPullOptions) -> None:
        """Pull service images."""
        pass

    @abstractmethod
    def build(self, handle: Any, options: BackendBuildOptions) -> None:
        """Build service images."""
        pass

    @abstractmethod
    def query_status(
        self, handle: Any, services: Optional[List[str]] = None
    ) -> List[LiveServiceStatus]:
        """Report live container state, optionally filtered to some services."""
        pass

    @abstractmethod
    def stream_logs(
        self,
        handle: Any,
        services: List[str],
        follow: bool,
        writer: TextIO,
    ) -> None:
        """Write container logs for the given services (all if empty) to writer."""
        pass
