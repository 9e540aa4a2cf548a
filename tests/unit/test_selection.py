"""Tests for the model registry and the selection policy."""

from __future__ import annotations

import pytest

from codeshell.ai.registry import ModelRegistry
from codeshell.ai.selection import SelectionPolicy, is_fast
from codeshell.core.config import Preferences
from codeshell.core.errors import NoModelAvailable, UnknownModel
from codeshell.core.models import ChatMessage, TaskContext
from tests.helpers.fakes import make_descriptor


@pytest.fixture
def add(registry, ready_adapter):
    """Register a descriptor with a FakeAdapter; ready unless told otherwise."""

    def _add(model_id, ready=True, **overrides):
        descriptor = make_descriptor(model_id, **overrides)
        registry.register(descriptor, ready_adapter(descriptor, ready=ready))
        return descriptor

    return _add


# ---------------------------------------------------------------------------
# ModelRegistry
# ---------------------------------------------------------------------------


class TestModelRegistry:
    def test_registration_order(self, registry, add):
        add("b")
        add("a")
        add("c")
        assert registry.ids() == ["b", "a", "c"]

    def test_list_ready_excludes_unavailable(self, registry, add):
        add("up")
        add("down", ready=False)
        assert [e.descriptor.id for e in registry.list_ready()] == ["up"]
        assert len(registry) == 2
        assert registry.is_ready("up")
        assert not registry.is_ready("down")
        assert not registry.is_ready("missing")

    def test_reregister_keeps_position(self, registry, add):
        add("a")
        add("b")
        add("a", latency="high")
        assert registry.ids() == ["a", "b"]
        assert registry.get("a").descriptor.latency == "high"

    def test_unregister(self, registry, add):
        add("a")
        entry = registry.unregister("a")
        assert entry.descriptor.id == "a"
        assert "a" not in registry

    def test_unregister_unknown(self, registry):
        with pytest.raises(UnknownModel):
            registry.unregister("ghost")

    def test_get_unknown(self, registry):
        with pytest.raises(UnknownModel):
            registry.get("ghost")


# ---------------------------------------------------------------------------
# SelectionPolicy
# ---------------------------------------------------------------------------


class TestIsFast:
    @pytest.mark.parametrize(
        "latency, locality, expected",
        [
            ("low", "cloud", True),
            ("low", "local", True),
            ("medium", "local", True),
            ("medium", "cloud", False),
            ("high", "local", False),
        ],
    )
    def test_fast_path(self, latency, locality, expected):
        assert is_fast(make_descriptor("m", latency=latency, locality=locality)) is expected


class TestSelectionPolicy:
    def test_prefer_local_scenario(self, registry, add):
        add("A", locality="local", latency="low", specialties={"chat"})
        add("B", locality="cloud", latency="low", specialties={"chat"})
        policy = SelectionPolicy(registry)
        assert policy.select("chat", TaskContext(), Preferences(prefer_local=True)) == "A"

    def test_prefer_local_off_uses_registration_order(self, registry, add):
        add("cloud", locality="cloud")
        add("local", locality="local")
        policy = SelectionPolicy(registry)
        assert policy.select("chat", None, Preferences(prefer_local=False)) == "cloud"
        assert policy.select("chat", None, Preferences(prefer_local=True)) == "local"

    def test_deterministic(self, registry, add):
        add("x", locality="cloud", specialties={"general-coding"})
        add("y", locality="local", latency="medium", specialties={"chat"})
        add("z", locality="local", specialties={"code-review"})
        policy = SelectionPolicy(registry)
        ctx = TaskContext(language="python")
        prefs = Preferences()
        picks = {policy.select("chat", ctx, prefs) for _ in range(10)}
        assert picks == {"y"}

    def test_specialty_filter(self, registry, add):
        add("reviewer", specialties={"code-review"})
        add("completer", specialties={"code-completion"})
        policy = SelectionPolicy(registry)
        assert policy.select("completion") == "completer"

    def test_specialty_fallback_tags(self, registry, add):
        add("reviewer", specialties={"code-review"})
        add("generalist", specialties={"general-coding"})
        assert SelectionPolicy(registry).select("inline-completion") == "generalist"

    def test_latency_filter_for_interactive_tasks(self, registry, add):
        add("slow", latency="high", specialties={"chat"})
        add("fast", latency="low", specialties={"chat"})
        policy = SelectionPolicy(registry)
        assert policy.select("chat") == "fast"
        assert policy.select("completion") == "slow"

    def test_local_medium_counts_as_fast(self, registry, add):
        add("cloud-medium", locality="cloud", latency="medium")
        add("local-medium", locality="local", latency="medium")
        policy = SelectionPolicy(registry)
        assert policy.select("chat", None, Preferences(prefer_local=False)) == "local-medium"

    def test_latency_filter_skipped_when_nothing_fast(self, registry, add):
        add("slow", latency="high")
        assert SelectionPolicy(registry).select("chat") == "slow"

    def test_context_window_filter(self, registry, add):
        add("small", context_window=4096)
        add("large", context_window=200000)
        policy = SelectionPolicy(registry, context_threshold=2048)
        big = TaskContext(code="x" * 4 * 10000)  # ~10k tokens
        assert policy.select("chat", TaskContext()) == "small"
        assert policy.select("chat", big) == "large"

    def test_payload_counts_toward_context_size(self, registry, add):
        add("small", context_window=4096)
        add("large", context_window=200000)
        policy = SelectionPolicy(registry, context_threshold=2048)
        pasted = "x" * 4 * 10000
        assert policy.select("chat", TaskContext(), payload="short") == "small"
        assert policy.select("chat", TaskContext(), payload=pasted) == "large"

    def test_context_filter_skipped_when_it_empties(self, registry, add):
        add("small", context_window=4096)
        huge = TaskContext(history=[ChatMessage("user", "x" * 4 * 50000)])
        assert SelectionPolicy(registry).select("chat", huge) == "small"

    def test_pinned_model_wins(self, registry, add):
        add("first", latency="low")
        add("pinned", latency="high", locality="cloud", specialties={"code-review"})
        policy = SelectionPolicy(registry)
        assert policy.select("chat", None, Preferences(pinned_model="pinned")) == "pinned"

    def test_pinned_model_ignored_when_not_ready(self, registry, add):
        add("first")
        add("pinned", ready=False)
        assert SelectionPolicy(registry).select("chat", None, Preferences(pinned_model="pinned")) == "first"

    def test_no_model_available(self, registry, add):
        add("down", ready=False)
        with pytest.raises(NoModelAvailable):
            SelectionPolicy(registry).select("chat")

    def test_no_suitable_specialty(self, registry, add):
        add("reviewer", specialties={"code-review"})
        with pytest.raises(NoModelAvailable):
            SelectionPolicy(registry).select("completion")

    def test_reflects_registry_changes(self, registry, add):
        add("a")
        add("b")
        policy = SelectionPolicy(registry)
        assert policy.select("chat") == "a"
        registry.unregister("a")
        assert policy.select("chat") == "b"

    def test_fresh_registry_is_empty(self):
        with pytest.raises(NoModelAvailable):
            SelectionPolicy(ModelRegistry()).select("chat")
