"""Deployment state store: one JSON record per stack working directory."""

import fcntl
import json
import os
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

from compose_deploy.config.models import ProjectContext
from compose_deploy.utils.errors import (
    ErrorContext,
    StateError,
    StateLockError,
    StateNotFoundError,
)
from compose_deploy.utils.logging import get_logger

from .models import STATE_FILE_NAME, DeploymentRecord

if TYPE_CHECKING:
    from compose_deploy.orchestrator.loader import LoadedStack

logger = get_logger(__name__)


class DeploymentStateStore:
    """Reads and writes the deployment record with file locking."""

    def __init__(self, lock_timeout: float = 30):
        """
        Initialize DeploymentStateStore.

        Args:
            lock_timeout: Seconds to wait for the state lock
        """
        self.lock_timeout = lock_timeout
        self.logger = get_logger(__name__)

    def state_path(self, context: ProjectContext) -> Path:
        """Path of the state file for a stack.

        Raises:
            StateError: If the working directory cannot be resolved
        """
        try:
            return context.working_dir() / STATE_FILE_NAME
        except OSError as e:
            raise StateError(
                f"Failed to resolve working directory: {e}",
                context=ErrorContext(stack=context.name or None, operation="state"),
                cause=e,
            ) from e

    def save(
        self,
        context: ProjectContext,
        stack: "LoadedStack",
        tag: str,
        deployed_at: Optional[datetime] = None,
    ) -> DeploymentRecord:
        """
        Record a completed deployment, replacing any previous record.

        Args:
            context: Stack descriptor the deployment was made from
            stack: Stack that was reconciled
            tag: Image tag that was deployed
            deployed_at: Completion time (defaults to now)

        Returns:
            The record that was written

        Raises:
            StateError: If the record cannot be written
        """
        record_data = {
            "last_tag": tag,
            "services": stack.service_names(),
            "compose_files": list(context.compose_files),
            "project_name": stack.name,
        }
        if deployed_at is not None:
            record_data["deployed_at"] = deployed_at
        record = DeploymentRecord(**record_data)

        path = self.state_path(context)
        with self._locked(path):
            temp_path = path.with_name(path.name + ".tmp")
            try:
                # Write to temporary file first
                with open(temp_path, "w") as f:
                    json.dump(record.to_dict(), f, indent=2)

                # Atomic rename
                temp_path.replace(path)
            except OSError as e:
                try:
                    temp_path.unlink()
                except OSError:
                    pass
                raise StateError(
                    f"Failed to save state file: {e}",
                    context=ErrorContext(stack=stack.name, operation="state"),
                    cause=e,
                ) from e

        self.logger.info(f"Saved deployment state: {path}")
        return record

    def load(self, context: ProjectContext) -> DeploymentRecord:
        """
        Load the deployment record for a stack.

        Raises:
            StateNotFoundError: If no state file exists
            StateError: If the state file is corrupted or unreadable
        """
        path = self.state_path(context)
        error_context = ErrorContext(stack=context.name or None, operation="state")

        if not path.exists():
            raise StateNotFoundError(
                f"No deployment state found at {path}",
                context=error_context,
            )

        try:
            with open(path, "r") as f:
                data = json.load(f)
            return DeploymentRecord.from_dict(data)
        except json.JSONDecodeError as e:
            raise StateError(
                f"Failed to parse state file: {e}", context=error_context, cause=e
            ) from e
        except Exception as e:
            raise StateError(
                f"Failed to load state file: {e}", context=error_context, cause=e
            ) from e

    @contextmanager
    def _locked(self, path: Path) -> Iterator[None]:
        """Hold an exclusive advisory lock on the sibling lock file."""
        lock_path = path.with_name(Path(STATE_FILE_NAME).stem + ".lock")
        error_context = ErrorContext(operation="state")

        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)
        except OSError as e:
            raise StateLockError(
                f"Failed to open lock file {lock_path}: {e}", context=error_context, cause=e
            ) from e

        try:
            start_time = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() - start_time > self.lock_timeout:
                        raise StateLockError(
                            f"Failed to acquire lock on state file after {self.lock_timeout:g}s",
                            context=error_context,
                            suggestions=["Check for another compose-deploy process on this project"],
                        )
                    time.sleep(0.1)

            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
