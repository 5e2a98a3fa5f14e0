"""Manifest loading: resolve a ProjectContext and project the backend's service graph."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from compose_deploy.backend.base import ComposeBackend, LoadRequest
from compose_deploy.config.models import ProjectContext
from compose_deploy.utils.errors import (
    BackendError,
    ConfigurationError,
    DeploymentError,
    ErrorContext,
)
from compose_deploy.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BuildSpec:
    """Build configuration for a service image."""

    context: str
    dockerfile: str = ""
    args: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServiceSpec:
    """One service's declared configuration."""

    name: str
    image: str = ""
    build: Optional[BuildSpec] = None
    ports: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)


@dataclass
class LoadedStack:
    """Parsed, resolved view of a stack, owned by one invocation."""

    name: str
    services: Dict[str, ServiceSpec]
    handle: Any
    working_dir: Path

    def service_names(self) -> List[str]:
        """Service names in sorted order."""
        return sorted(self.services)

    def has_service(self, name: str) -> bool:
        return name in self.services


def _format_ports(ports: Optional[List[Any]]) -> List[str]:
    formatted = []
    for port in ports or []:
        if isinstance(port, str):
            # Short syntax that the backend did not normalize
            if ":" in port:
                formatted.append(port if "/" in port else f"{port}/tcp")
            continue
        published = port.get("published")
        target = port.get("target") or 0
        if published in (None, "") or not target:
            continue
        formatted.append(f"{published}:{target}/{port.get('protocol') or 'tcp'}")
    return formatted


def _defined_values(values: Any) -> Dict[str, str]:
    """Keep only entries that carry a value (mapping or KEY=VALUE list form)."""
    if not values:
        return {}
    if isinstance(values, Mapping):
        return {k: str(v) for k, v in values.items() if v is not None}
    result = {}
    for item in values:
        if "=" in item:
            key, value = item.split("=", 1)
            result[key] = value
    return result


def _dependencies(depends_on: Any) -> List[str]:
    if not depends_on:
        return []
    if isinstance(depends_on, Mapping):
        return list(depends_on.keys())
    return list(depends_on)


def _build_spec(build: Any) -> Optional[BuildSpec]:
    if not build:
        return None
    if isinstance(build, str):
        return BuildSpec(context=build)
    return BuildSpec(
        context=build.get("context", "") or "",
        dockerfile=build.get("dockerfile", "") or "",
        args=_defined_values(build.get("args")),
    )


def project_service(name: str, raw: Mapping[str, Any]) -> ServiceSpec:
    """Project one compose-spec service definition into a ServiceSpec."""
    return ServiceSpec(
        name=name,
        image=raw.get("image", "") or "",
        build=_build_spec(raw.get("build")),
        ports=_format_ports(raw.get("ports")),
        environment=_defined_values(raw.get("environment")),
        depends_on=_dependencies(raw.get("depends_on")),
    )


class ManifestLoader:
    """Resolves stack paths and delegates manifest parsing to the backend."""

    def __init__(self, backend: ComposeBackend):
        """Initialize manifest loader.

        Args:
            backend: Compose backend used to parse manifests
        """
        self.backend = backend
        self.logger = get_logger(__name__)

    def build_request(self, context: ProjectContext) -> LoadRequest:
        """Resolve a ProjectContext into a backend LoadRequest.

        Raises:
            ConfigurationError: If no compose file is declared or a path cannot be resolved
        """
        error_context = ErrorContext(stack=context.name or None, operation="load")

        if not context.compose_files:
            raise ConfigurationError(
                "At least one compose file is required",
                context=error_context,
                suggestions=["Pass --compose-file (comma-separated for multiple files)"],
            )

        try:
            working_dir = context.working_dir()
            config_paths = [str(context.resolve_path(f)) for f in context.compose_files]
            env_files = [str(context.resolve_path(context.env_file))] if context.env_file else []
        except OSError as e:
            raise ConfigurationError(
                f"Failed to resolve project paths: {e}", context=error_context, cause=e
            ) from e

        return LoadRequest(
            config_paths=config_paths,
            project_name=context.name,
            working_dir=str(working_dir),
            env_files=env_files,
            variables=dict(context.variables),
        )

    def load(self, context: ProjectContext) -> LoadedStack:
        """Load a stack.

        Args:
            context: Stack descriptor

        Returns:
            LoadedStack with one ServiceSpec per service

        Raises:
            ConfigurationError: If paths cannot be resolved
            BackendError: If the backend fails to parse the manifests
        """
        request = self.build_request(context)

        try:
            project = self.backend.load_stack(request)
        except DeploymentError as e:
            raise BackendError(
                f"Failed to load project: {e.message}",
                context=ErrorContext(stack=context.name or None, operation="load"),
                cause=e,
                suggestions=e.suggestions,
            ) from e
        except Exception as e:
            raise BackendError(
                f"Failed to load project: {e}",
                context=ErrorContext(stack=context.name or None, operation="load"),
                cause=e,
            ) from e

        services = {
            name: project_service(name, raw or {})
            for name, raw in project.services.items()
        }
        stack = LoadedStack(
            name=project.name,
            services=services,
            handle=project.handle,
            working_dir=Path(request.working_dir),
        )

        self.logger.info(f"Loaded project '{stack.name}' with {len(stack.services)} services")
        return stack
