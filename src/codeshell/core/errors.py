"""Codeshell error types and utilities."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using temp file + rename.

    Writes to a temporary file in the same directory, fsyncs it,
    then atomically replaces the target path.
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        os.write(fd, content.encode())
        os.fsync(fd)
        os.close(fd)
        os.replace(tmp, str(path))
    except BaseException:
        os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class CodeshellError(Exception):
    """Base exception for Codeshell."""

    pass


class BackendError(CodeshellError):
    """A model backend failed to serve a request.

    Carries the model id and operation so callers can tell the user what
    failed without exposing request payloads or credentials.
    """

    reason = "backend error"

    def __init__(self, model_id: str, operation: str, detail: str | None = None):
        self.model_id = model_id
        self.operation = operation
        self.detail = detail
        message = f"{self.reason} ({model_id}, {operation})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BackendUnavailable(BackendError):
    """The adapter is not ready or its backend cannot be reached."""

    reason = "backend unavailable"


class BackendTimeout(BackendError):
    """The backend did not answer within the per-call time bound."""

    reason = "backend timed out"


class BackendRejected(BackendError):
    """The backend answered with an error status."""

    reason = "backend rejected request"

    def __init__(
        self,
        model_id: str,
        operation: str,
        detail: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(model_id, operation, detail)


class NoModelAvailable(CodeshellError):
    """Selection found no ready adapter for the task."""

    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(f"No AI model available for task {task_type!r}")


class UnknownModel(CodeshellError):
    """A switch or removal targeted a model id that is not registered."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model {model_id!r} not found")


class DimensionMismatch(CodeshellError, ValueError):
    """Two embedding vectors have different lengths."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vectors must have the same length ({left} != {right})")


class IndexingFailure(CodeshellError):
    """Symbol extraction or storage failed for a single file."""

    def __init__(self, file_path: str, detail: str):
        self.file_path = file_path
        super().__init__(f"Failed to index {file_path}: {detail}")
