"""Tests for the error taxonomy and atomic_write."""

from __future__ import annotations

import pytest

from codeshell.core.errors import (
    BackendError,
    BackendRejected,
    BackendTimeout,
    BackendUnavailable,
    CodeshellError,
    DimensionMismatch,
    IndexingFailure,
    NoModelAvailable,
    UnknownModel,
    atomic_write,
)


class TestBackendErrors:
    @pytest.mark.parametrize(
        "cls, reason",
        [
            (BackendUnavailable, "backend unavailable"),
            (BackendTimeout, "backend timed out"),
            (BackendRejected, "backend rejected request"),
        ],
    )
    def test_message_names_model_and_operation(self, cls, reason):
        exc = cls("claude-code", "chat", "details")
        assert isinstance(exc, BackendError)
        assert isinstance(exc, CodeshellError)
        assert str(exc) == f"{reason} (claude-code, chat): details"
        assert exc.model_id == "claude-code"
        assert exc.operation == "chat"

    def test_no_detail(self):
        assert str(BackendTimeout("m", "inline-completion")) == "backend timed out (m, inline-completion)"

    def test_rejected_status_code(self):
        exc = BackendRejected("m", "chat", "HTTP 401", status_code=401)
        assert exc.status_code == 401


class TestOtherErrors:
    def test_no_model_available(self):
        exc = NoModelAvailable("chat")
        assert exc.task_type == "chat"
        assert "chat" in str(exc)

    def test_unknown_model(self):
        assert str(UnknownModel("nope")) == "Model 'nope' not found"

    def test_dimension_mismatch_is_value_error(self):
        exc = DimensionMismatch(3, 4)
        assert isinstance(exc, ValueError)
        assert (exc.left, exc.right) == (3, 4)

    def test_indexing_failure(self):
        exc = IndexingFailure("a.py", "boom")
        assert exc.file_path == "a.py"
        assert str(exc) == "Failed to index a.py: boom"


class TestAtomicWrite:
    def test_writes_and_replaces(self, tmp_path):
        target = tmp_path / "out.json"
        atomic_write(target, "one")
        atomic_write(target, "two")
        assert target.read_text() == "two"
        assert list(tmp_path.glob("*.tmp")) == []
