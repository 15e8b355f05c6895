"""
Trust Debt Pipeline Tests - Artifacts and Orchestration

Tests the artifact envelope, read-side validation, namespace
isolation, byte-identical reruns, failed-stage propagation and the
full run end to end.

Run with: pytest tests/test_pipeline.py -v
"""

import dataclasses
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustdebt_engine.artifacts import ArtifactStore, SCHEMA_VERSION, STAGES
from trustdebt_engine.core.config import TrustDebtConfig
from trustdebt_engine.core.types import ArtifactStatus
from trustdebt_engine.git_history import Commit
from trustdebt_engine.errors import (
    ArtifactValidationError,
    CommitReplayError,
    ConfigurationError,
    HistoryError,
    MissingFieldError,
    ValidationError,
)
from trustdebt_engine.pipeline import PipelineContext, new_context, run_full, run_stage


FIXED = datetime(2025, 3, 1, 9, 30, 0, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "artifacts", namespace="test-run", clock=fixed_clock)


@pytest.fixture
def project(tmp_path):
    """Small project whose docs promise performance the code never shows."""
    docs = tmp_path / "project" / "docs"
    src = tmp_path / "project" / "src"
    docs.mkdir(parents=True)
    src.mkdir(parents=True)
    (docs / "README.md").write_text(
        "# Service\n\nPerformance and latency are the main goals. "
        "Security: every token is checked and every password hashed.\n"
        "Testing uses pytest with a fixture per module.\n"
    )
    (src / "auth.py").write_text(
        "# security: token and password checks\n"
        "def check(token, password):\n    return token and password\n"
    )
    (src / "test_auth.py").write_text(
        "import pytest\n\n@pytest.fixture\ndef token():\n    return 'x'\n"
    )
    return docs, src


# =============================================================================
# ARTIFACT STORE
# =============================================================================

def test_artifact_path_layout(store):
    assert store.path_for("corpus").name == "00-corpus.json"
    assert store.path_for("narrative").name == f"{len(STAGES) - 1:02d}-narrative.json"
    assert store.path_for("grade").parent == store.directory


def test_unknown_stage_is_rejected(store):
    with pytest.raises(ValidationError):
        store.path_for("scoring")


@pytest.mark.parametrize("namespace", ["", "../escape", "a/b", ".hidden", "x" * 65, "a..b"])
def test_invalid_namespace_is_rejected(tmp_path, namespace):
    with pytest.raises(ValidationError):
        ArtifactStore(tmp_path, namespace=namespace)


def test_envelope_round_trip(store):
    store.write("grade", {"grade": "B"}, ArtifactStatus.DEGRADED, ["one note"])
    envelope = store.read("grade", required_fields=("grade",))

    assert envelope["schema_version"] == SCHEMA_VERSION
    assert envelope["stage_id"] == "grade"
    assert envelope["generated_at"] == "2025-03-01T09:30:00Z"
    assert envelope["status"] == "degraded"
    assert envelope["notes"] == ["one note"]
    assert envelope["payload"] == {"grade": "B"}


def test_written_artifact_is_sorted_and_indented(store):
    path = store.write("taxonomy", {"b": 1, "a": 2})
    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert text.index('"a"') < text.index('"b"')
    assert not list(store.directory.glob("*.tmp"))


def test_missing_artifact_is_a_validation_error(store):
    with pytest.raises(ArtifactValidationError):
        store.read("matrix")


def test_failed_artifact_cannot_be_read(store):
    store.write("matrix", {}, ArtifactStatus.FAILED, ["boom"])
    with pytest.raises(ArtifactValidationError, match="failed"):
        store.read("matrix")


def test_missing_required_field_is_reported(store):
    store.write("grade", {"grade": "A"})
    with pytest.raises(ArtifactValidationError, match="total_drift_units"):
        store.read("grade", required_fields=("grade", "total_drift_units"))


@pytest.mark.parametrize("content,fragment", [
    ("not json", "unreadable"),
    ("[1, 2]", "not a JSON object"),
    (json.dumps({"stage_id": "grade"}), "envelope missing"),
    (json.dumps({"schema_version": "0.9", "stage_id": "grade", "generated_at": "",
                 "status": "ok", "notes": [], "payload": {}}), "schema version"),
    (json.dumps({"schema_version": SCHEMA_VERSION, "stage_id": "matrix", "generated_at": "",
                 "status": "ok", "notes": [], "payload": {}}), "belongs to stage"),
    (json.dumps({"schema_version": SCHEMA_VERSION, "stage_id": "grade", "generated_at": "",
                 "status": "maybe", "notes": [], "payload": {}}), "unknown status"),
    (json.dumps({"schema_version": SCHEMA_VERSION, "stage_id": "grade", "generated_at": "",
                 "status": "ok", "notes": [], "payload": []}), "payload is not"),
])
def test_malformed_artifacts_are_rejected(store, content, fragment):
    path = store.path_for("grade")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ArtifactValidationError, match=fragment):
        store.read("grade")


def test_namespaces_are_isolated(tmp_path):
    first = ArtifactStore(tmp_path, namespace="one", clock=fixed_clock)
    second = ArtifactStore(tmp_path, namespace="two", clock=fixed_clock)
    first.write("corpus", {"intent": []})

    assert first.exists("corpus")
    assert not second.exists("corpus")


# =============================================================================
# CONTEXT
# =============================================================================

def test_context_is_immutable(store):
    context = new_context(TrustDebtConfig.for_testing(), store)
    extended = context.with_artifact("corpus", store.path_for("corpus"))

    assert context.artifacts == ()
    assert extended.has("corpus") and not context.has("corpus")
    with pytest.raises(dataclasses.FrozenInstanceError):
        context.run_id = "other"


def test_context_requires_store():
    with pytest.raises(MissingFieldError):
        new_context(TrustDebtConfig())


def test_invalid_config_fails_before_any_stage(store):
    with pytest.raises(ConfigurationError):
        new_context(TrustDebtConfig(target_count=0), store)
    assert not store.directory.exists()


def test_run_id_follows_the_clock(store):
    assert new_context(TrustDebtConfig(), store).run_id == "run-20250301T093000000000Z"


# =============================================================================
# STAGES
# =============================================================================

def test_stage_without_upstream_writes_failed_artifact(store):
    context = new_context(TrustDebtConfig.for_testing(), store)

    with pytest.raises(ArtifactValidationError):
        run_stage("keyword_index", context)

    raw = json.loads(store.path_for("keyword_index").read_text(encoding="utf-8"))
    assert raw["status"] == "failed"
    with pytest.raises(ArtifactValidationError):
        store.read("keyword_index")


def test_timeline_stage_requires_repo(store, project):
    docs, src = project
    context = run_full([docs], [src], TrustDebtConfig.for_testing(), store)
    with pytest.raises(MissingFieldError):
        run_stage("timeline", context)


def test_unknown_stage_id(store):
    with pytest.raises(ValidationError):
        run_stage("scoring", new_context(TrustDebtConfig(), store))


# =============================================================================
# FULL RUN
# =============================================================================

def test_full_run_writes_every_stage(store, project):
    docs, src = project
    context = run_full([docs], [src], TrustDebtConfig.for_testing(), store)

    written = [stage for stage, _ in context.artifacts]
    assert written == ["corpus", "keyword_index", "taxonomy", "matrix", "grade", "narrative"]
    for stage in written:
        assert store.exists(stage)

    summary = store.read_summary()
    assert summary["run_id"] == context.run_id
    assert summary["namespace"] == "test-run"
    assert [s["stage_id"] for s in summary["stages"]] == written
    assert summary["grade"] in {"A", "B", "C", "D"}
    assert summary["total_drift_units"] >= 0


def test_full_run_is_byte_identical(tmp_path, project):
    docs, src = project
    outputs = []
    for root in ("first", "second"):
        store = ArtifactStore(tmp_path / root, namespace="same", clock=fixed_clock)
        run_full([docs], [src], TrustDebtConfig.for_testing(), store)
        outputs.append({p.name: p.read_bytes() for p in sorted(store.directory.glob("*.json"))})

    assert outputs[0].keys() == outputs[1].keys()
    assert outputs[0] == outputs[1]


def test_identical_corpora_score_zero(tmp_path, store):
    docs = tmp_path / "same"
    docs.mkdir()
    (docs / "README.md").write_text(
        "Performance matters: the cache keeps latency low. Security: token checks.\n"
    )
    config = TrustDebtConfig.for_testing()
    config.reality_globs = ["*.md"]

    run_full([docs], [docs], config, store)
    grade_payload = store.read("grade")["payload"]
    corpus = store.read("corpus")

    assert grade_payload["total_drift_units"] == 0.0
    assert grade_payload["grade"] == "A"
    assert any("both corpora" in n for n in corpus["notes"])


def test_timeline_degrades_when_history_is_unavailable(store, project):
    class BrokenRepo:
        def list_commits(self):
            raise HistoryError("not a git repository")

    docs, src = project
    run_full([docs], [src], TrustDebtConfig.for_testing(), store, repo=BrokenRepo())

    timeline = store.read("timeline")
    assert timeline["status"] == "degraded"
    assert timeline["payload"]["entries"] == []
    assert store.read("narrative")["payload"]["summary"]


def test_empty_corpora_fail_at_taxonomy(tmp_path, store):
    empty = tmp_path / "empty"
    empty.mkdir()

    with pytest.raises(ValidationError):
        run_full([empty], [empty], TrustDebtConfig.for_testing(), store)

    assert store.read("keyword_index")["status"] == "ok"
    with pytest.raises(ArtifactValidationError, match="failed"):
        store.read("taxonomy")


# =============================================================================
# STAGE BY STAGE
# =============================================================================

class UnreplayableRepo:
    """History with a single commit that cannot be replayed."""

    def list_commits(self):
        return [Commit(hash="a" * 40, timestamp="2025-01-01T00:00:00+00:00", subject="broken")]

    def read_state(self, commit):
        raise CommitReplayError(commit.hash, "tree unreadable")


def run_through_grade(store, project, config):
    docs, src = project
    context = run_stage("corpus", new_context(config, store), intent_paths=[docs], reality_paths=[src])
    for stage_id in ("keyword_index", "taxonomy", "matrix", "grade"):
        context = run_stage(stage_id, context)
    return context


def test_resumed_narrative_reads_the_stored_timeline(store, project):
    config = TrustDebtConfig.for_testing()
    context = run_through_grade(store, project, config)
    run_stage("timeline", context, repo=UnreplayableRepo())

    run_stage("narrative", new_context(config, store))

    notices = store.read("narrative")["payload"]["notices"]
    assert any("Timeline skipped 1 commit" in n for n in notices)


def test_resumed_narrative_ignores_a_failed_timeline(store, project):
    config = TrustDebtConfig.for_testing()
    run_through_grade(store, project, config)
    store.write("timeline", {}, ArtifactStatus.FAILED, ["history unavailable"])

    run_stage("narrative", new_context(config, store))

    assert store.read_status("timeline") == ArtifactStatus.FAILED
    assert not any("Timeline" in n for n in store.read("narrative")["payload"]["notices"])


def test_full_run_without_repo_ignores_an_older_timeline(store, project):
    config = TrustDebtConfig.for_testing()
    context = run_through_grade(store, project, config)
    run_stage("timeline", context, repo=UnreplayableRepo())

    docs, src = project
    run_full([docs], [src], config, store)

    assert not any("Timeline" in n for n in store.read("narrative")["payload"]["notices"])
