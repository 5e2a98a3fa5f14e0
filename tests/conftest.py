"""Shared fixtures: an in-memory compose backend and stack descriptors."""

import copy

import pytest

from compose_deploy.backend.base import BackendProject, ComposeBackend, LiveServiceStatus
from compose_deploy.config.models import IMAGE_TAG_VARIABLE, ProjectContext


SAMPLE_SERVICES = {
    "api": {
        "image": "ghcr.io/goformx/goforms:${IMAGE_TAG}",
        "ports": [{"published": "8090", "target": 8090, "protocol": "tcp"}],
        "environment": {"APP_ENV": "production", "UNSET": None},
        "depends_on": {"db": {"condition": "service_healthy"}},
    },
    "db": {
        "image": "postgres:16",
        "environment": {"POSTGRES_DB": "goforms"},
    },
}


class FakeBackend(ComposeBackend):
    """Records every call and answers from in-memory data."""

    def __init__(self, services=None, name="goforms"):
        self.services = copy.deepcopy(SAMPLE_SERVICES if services is None else services)
        self.name = name
        self.calls = []
        self.load_requests = []
        self.statuses = []
        self.status_script = []
        self.failures = {}
        self.log_lines = []
        self.ping_error = None

    def call_names(self):
        return [name for name, _ in self.calls]

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error

    def load_stack(self, request):
        self.load_requests.append(request)
        self._record("load_stack", request)
        tag = request.variables.get(IMAGE_TAG_VARIABLE, "latest")
        services = copy.deepcopy(self.services)
        for raw in services.values():
            if "image" in raw:
                raw["image"] = raw["image"].replace("${IMAGE_TAG}", tag)
        name = request.project_name or self.name
        return BackendProject(
            name=name,
            services=services,
            handle={"name": name, "variables": dict(request.variables)},
        )

    def up(self, handle, create, start):
        self._record("up", handle, create, start)

    def down(self, handle, options):
        self._record("down", handle, options)

    def pull(self, handle, options):
        self._record("pull", handle, options)

    def build(self, handle, options):
        self._record("build", handle, options)

    def query_status(self, handle, services=None):
        self._record("query_status", handle, services)
        if self.status_script:
            result = self.status_script.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        if services:
            return [s for s in self.statuses if s.service in services]
        return list(self.statuses)

    def stream_logs(self, handle, services, follow, writer):
        self._record("stream_logs", handle, services, follow)
        for line in self.log_lines:
            writer.write(line)

    def up_tags(self):
        """IMAGE_TAG seen by each up call."""
        return [
            args[0]["variables"].get(IMAGE_TAG_VARIABLE)
            for name, args in self.calls
            if name == "up"
        ]


def running(service, health=""):
    return LiveServiceStatus(
        name=f"goforms-{service}-1",
        service=service,
        state="running",
        status="Up 5 seconds",
        health=health,
    )


@pytest.fixture(autouse=True)
def _clean_image_tag(monkeypatch):
    monkeypatch.delenv(IMAGE_TAG_VARIABLE, raising=False)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def project_dir(tmp_path):
    (tmp_path / "docker-compose.prod.yml").write_text("services: {}\n")
    return tmp_path


@pytest.fixture
def context(project_dir):
    return ProjectContext(
        name="goforms",
        compose_files=[str(project_dir / "docker-compose.prod.yml")],
        env_file=".env",
    )
