"""ComposeBackend implementation that drives the ``docker compose`` CLI."""

import json
import os
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO

from compose_deploy.backend.base import (
    BackendBuildOptions,
    BackendCreateOptions,
    BackendDownOptions,
    BackendProject,
    BackendPullOptions,
    BackendStartOptions,
    ComposeBackend,
    LiveServiceStatus,
    LoadRequest,
)
from compose_deploy.utils.errors import BackendError, ErrorContext, error_handler
from compose_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# Recreate policy -> docker compose up flag (diverged is the CLI default)
RECREATE_FLAGS = {
    "always": ["--force-recreate"],
    "never": ["--no-recreate"],
    "missing": ["--no-recreate"],
    "diverged": [],
}


@dataclass
class ComposeInvocation:
    """Everything needed to address one project on the command line."""
    project_name: str
    working_dir: str
    config_paths: List[str]
    env_files: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)

    def base_args(self) -> List[str]:
        args = ["--project-directory", self.working_dir]
        if self.project_name:
            args = ["-p", self.project_name] + args
        for path in self.config_paths:
            args += ["-f", path]
        for env_file in self.env_files:
            args += ["--env-file", env_file]
        return args


def parse_ps_output(output: str) -> List[Dict[str, Any]]:
    """Parse ``docker compose ps --format json`` output.

    Older releases print a JSON array, newer ones one object per line.
    """
    output = output.strip()
    if not output:
        return []
    if output.startswith("["):
        return json.loads(output)
    return [json.loads(line) for line in output.splitlines() if line.strip()]


def format_publishers(publishers: Optional[Sequence[Mapping[str, Any]]]) -> List[str]:
    """Format container port publishers as ``[host:]published:target/protocol``."""
    ports = []
    for pub in publishers or []:
        published = pub.get("PublishedPort") or 0
        if published <= 0:
            continue
        port = f"{published}:{pub.get('TargetPort', 0)}/{pub.get('Protocol') or 'tcp'}"
        url = pub.get("URL")
        ports.append(f"{url}:{port}" if url else port)
    return ports


class ComposeCLIBackend(ComposeBackend):
    """Runs ``docker compose`` as a subprocess for every operation."""

    def __init__(self, executable: Sequence[str] = ("docker", "compose")):
        """Initialize the backend.

        Args:
            executable: Command prefix used to invoke compose
        """
        self.executable = list(executable)
        self.logger = get_logger(__name__)

    def _run(
        self,
        invocation: ComposeInvocation,
        args: List[str],
        operation: str,
        capture: bool = False,
    ) -> subprocess.CompletedProcess:
        cmd = self.executable + invocation.base_args() + args
        # Interpolation variables go to the child only, never to os.environ
        env = {**os.environ, **invocation.variables}
        self.logger.debug(f"Running: {' '.join(cmd)}")

        # stderr is always captured so failures can be categorized
        if capture:
            output = {"capture_output": True}
        else:
            output = {"stderr": subprocess.PIPE}

        try:
            result = subprocess.run(
                cmd,
                cwd=invocation.working_dir,
                env=env,
                check=True,
                text=True,
                **output,
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            raise error_handler.handle_exception(
                e,
                ErrorContext(stack=invocation.project_name, operation=operation),
            ) from e

        # Progress output from compose is relayed once the command finishes
        if not capture and result.stderr:
            sys.stderr.write(result.stderr)
            sys.stderr.flush()
        return result

    def ping(self) -> None:
        """Run ``docker info`` to check the daemon is reachable."""
        cmd = [self.executable[0], "info", "--format", "{{.ServerVersion}}"]
        self.logger.debug(f"Running: {' '.join(cmd)}")
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            raise error_handler.handle_exception(e, ErrorContext(operation="ping")) from e

    def load_stack(self, request: LoadRequest) -> BackendProject:
        invocation = ComposeInvocation(
            project_name=request.project_name,
            working_dir=request.working_dir,
            config_paths=list(request.config_paths),
            env_files=list(request.env_files),
            variables=dict(request.variables),
        )
        result = self._run(invocation, ["config", "--format", "json"], "load", capture=True)

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise BackendError(
                f"Could not parse compose config output: {e}",
                context=ErrorContext(stack=request.project_name, operation="load"),
                cause=e,
            ) from e

        # Compose derives a name from the directory when none was given
        if not invocation.project_name:
            invocation.project_name = data.get("name", "")

        return BackendProject(
            name=data.get("name") or invocation.project_name,
            services=data.get("services") or {},
            handle=invocation,
        )

    def up(
        self,
        handle: ComposeInvocation,
        create: BackendCreateOptions,
        start: BackendStartOptions,
    ) -> None:
        args = ["up", "--detach"]
        args += RECREATE_FLAGS.get(create.recreate, [])
        if create.remove_orphans:
            args.append("--remove-orphans")
        if create.quiet_pull:
            args.append("--quiet-pull")
        if start.wait:
            args.append("--wait")
            seconds = int(start.wait_timeout.total_seconds())
            if seconds > 0:
                args += ["--wait-timeout", str(seconds)]
        self._run(handle, args, "up")

    def down(self, handle: ComposeInvocation, options: BackendDownOptions) -> None:
        args = ["down"]
        if options.volumes:
            args.append("--volumes")
        if options.remove_orphans:
            args.append("--remove-orphans")
        if options.timeout is not None:
            args += ["--timeout", str(int(options.timeout.total_seconds()))]
        self._run(handle, args, "down")

    def pull(self, handle: ComposeInvocation, options: BackendPullOptions) -> None:
        args = ["pull"]
        if options.quiet:
            args.append("--quiet")
        if options.ignore_buildable:
            args.append("--ignore-buildable")
        self._run(handle, args, "pull")

    def build(self, handle: ComposeInvocation, options: BackendBuildOptions) -> None:
        args = ["build"]
        if options.pull:
            args.append("--pull")
        if options.no_cache:
            args.append("--no-cache")
        if options.quiet:
            args.append("--quiet")
        if options.deps:
            args.append("--with-dependencies")
        args += options.services
        self._run(handle, args, "build")

    def query_status(
        self, handle: ComposeInvocation, services: Optional[List[str]] = None
    ) -> List[LiveServiceStatus]:
        args = ["ps", "--all", "--format", "json"] + list(services or [])
        result = self._run(handle, args, "status", capture=True)

        try:
            containers = parse_ps_output(result.stdout)
        except json.JSONDecodeError as e:
            raise BackendError(
                f"Could not parse compose ps output: {e}",
                context=ErrorContext(stack=handle.project_name, operation="status"),
                cause=e,
            ) from e

        return [
            LiveServiceStatus(
                name=c.get("Name", ""),
                service=c.get("Service", ""),
                state=c.get("State", ""),
                status=c.get("Status", ""),
                health=c.get("Health", "") or "",
                ports=format_publishers(c.get("Publishers")),
                image=c.get("Image", ""),
            )
            for c in containers
        ]

    def stream_logs(
        self,
        handle: ComposeInvocation,
        services: List[str],
        follow: bool,
        writer: TextIO,
    ) -> None:
        cmd = self.executable + handle.base_args() + ["logs", "--no-color"]
        if follow:
            cmd.append("--follow")
        cmd += services
        env = {**os.environ, **handle.variables}

        try:
            process = subprocess.Popen(
                cmd,
                cwd=handle.working_dir,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise error_handler.handle_exception(
                e, ErrorContext(stack=handle.project_name, operation="logs")
            ) from e

        try:
            for line in process.stdout:
                writer.write(line)
                writer.flush()
        except BaseException:
            # A follow-mode child never exits on its own
            process.kill()
            raise
        finally:
            process.stdout.close()
            return_code = process.wait()

        if return_code != 0:
            raise BackendError(
                f"docker compose logs exited with status {return_code}",
                context=ErrorContext(stack=handle.project_name, operation="logs"),
            )
