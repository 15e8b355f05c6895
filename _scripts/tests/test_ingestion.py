"""
Trust Debt Ingestion Tests - Corpus Loading

Tests file discovery, glob and directory filtering, skip-with-warning
for unreadable inputs, overlap reporting and historical corpus states.

Run with: pytest tests/test_ingestion.py -v
"""

import logging
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustdebt_engine.core.config import TrustDebtConfig
from trustdebt_engine.core.types import Domain
from trustdebt_engine.errors import CommitReplayError, UnreadableFileError
from trustdebt_engine.git_history import GitRepository
from ingestion.loader import (
    GitCorpusSource,
    collect_files,
    load_corpus,
    parse_content,
    read_corpus_file,
)
from ingestion.types import Corpus


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "project"
    (root / "docs").mkdir(parents=True)
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "node_modules" / "dep").mkdir(parents=True)

    (root / "docs" / "README.md").write_text("# Readme\n\nPerformance goals.\n")
    (root / "docs" / "guide.rst").write_text("Guide\n=====\n\nSecurity first.\n")
    (root / "docs" / "empty.md").write_text("   \n")
    (root / "docs" / "logo.png").write_bytes(b"\x89PNG\x00")
    (root / "src" / "pkg" / "cache.py").write_text("def warmCache():\n    pass\n")
    (root / "src" / "blob.py").write_bytes(b"\x00\x01binary")
    (root / "node_modules" / "dep" / "index.js").write_text("// vendored latency hack\n")
    return root


# =============================================================================
# DISCOVERY
# =============================================================================

def test_collect_files_filters_by_glob(tree):
    found = [source for _, source in collect_files([tree / "docs"], ["*.md", "*.rst"])]
    assert found == ["docs/README.md", "docs/empty.md", "docs/guide.rst"]


def test_collect_files_skips_excluded_dirs(tree):
    found = [source for _, source in collect_files([tree], ["*.py", "*.js"], ["node_modules"])]
    assert found == ["project/src/blob.py", "project/src/pkg/cache.py"]


def test_explicit_file_is_always_included(tree):
    found = collect_files([tree / "docs" / "logo.png"], ["*.md"])
    assert [source for _, source in found] == ["logo.png"]


def test_files_with_the_same_name_are_told_apart(tmp_path):
    for folder in ("a", "b"):
        (tmp_path / folder).mkdir()
        (tmp_path / folder / "README.md").write_text(f"# {folder}\n\nLatency.\n")

    found = collect_files([tmp_path / "a" / "README.md", tmp_path / "b" / "README.md"], ["*.md"])

    assert [source for _, source in found] == ["README.md", "b/README.md"]
    assert {path.parent.name for path, _ in found} == {"a", "b"}


def test_directories_with_the_same_name_are_told_apart(tmp_path):
    for folder in ("a", "b"):
        (tmp_path / folder / "docs").mkdir(parents=True)
        (tmp_path / folder / "docs" / "guide.md").write_text("Security.\n")

    found = collect_files([tmp_path / "a" / "docs", tmp_path / "b" / "docs"], ["*.md"])

    assert [source for _, source in found] == ["b/docs/guide.md", "docs/guide.md"]


def test_same_file_named_twice_is_collected_once(tree):
    readme = tree / "docs" / "README.md"
    assert len(collect_files([readme, readme], ["*.md"])) == 1


def test_same_named_inputs_all_reach_the_corpus(tmp_path):
    for folder in ("a", "b"):
        (tmp_path / folder).mkdir()
        (tmp_path / folder / "README.md").write_text(f"# {folder}\n\nLatency.\n")
    (tmp_path / "x.py").write_text("cache = {}\n")

    corpus = load_corpus(
        [tmp_path / "a" / "README.md", tmp_path / "b" / "README.md"],
        [tmp_path / "x.py"],
        TrustDebtConfig.for_testing(),
    )

    assert [f.title for f in corpus.intent] == ["a", "b"]
    assert corpus.skipped == ()


# =============================================================================
# READING
# =============================================================================

def test_read_corpus_file(tree):
    corpus_file = read_corpus_file(tree / "docs" / "README.md", "docs/README.md", Domain.INTENT, 1000)
    assert corpus_file.file_type == "markdown"
    assert corpus_file.title == "Readme"
    assert len(corpus_file.content_hash) == 64


@pytest.mark.parametrize("name,max_bytes,reason", [
    ("docs/empty.md", 1000, "empty"),
    ("src/blob.py", 1000, "binary"),
    ("docs/README.md", 5, "exceeds limit"),
    ("docs/missing.md", 1000, ""),
])
def test_unreadable_files_raise(tree, name, max_bytes, reason):
    with pytest.raises(UnreadableFileError) as exc_info:
        read_corpus_file(tree / name, name, Domain.INTENT, max_bytes)
    assert reason in exc_info.value.reason


def test_parse_content_rejects_binary_blob():
    with pytest.raises(UnreadableFileError):
        parse_content("a.py", "abc\x00def", "a.py", Domain.REALITY)


def test_parse_content_keeps_file_with_invalid_frontmatter_date():
    corpus_file = parse_content("README.md", "---\ndate: 2025-13-45\n---\nLatency goals.\n",
                                "README.md", Domain.INTENT)
    assert corpus_file.text.strip() == "Latency goals."


def test_parse_content_wraps_parser_errors(monkeypatch):
    from ingestion.parsers import MarkdownParser

    def failing_parse(self, text, name=""):
        raise ValueError("cannot parse")

    monkeypatch.setattr(MarkdownParser, "parse_text", failing_parse)
    with pytest.raises(UnreadableFileError) as exc_info:
        parse_content("README.md", "text", "docs/README.md", Domain.INTENT)
    assert exc_info.value.reason == "cannot parse"
    assert exc_info.value.path == "docs/README.md"


# =============================================================================
# CORPUS
# =============================================================================

def test_load_corpus_skips_with_warning(tree, caplog):
    with caplog.at_level(logging.WARNING):
        corpus = load_corpus([tree / "docs"], [tree / "src"], TrustDebtConfig.for_testing())

    assert [f.source_path for f in corpus.intent] == ["docs/README.md", "docs/guide.rst"]
    assert [f.source_path for f in corpus.reality] == ["src/pkg/cache.py"]
    assert sorted(corpus.skipped) == [
        "intent:docs/empty.md: empty file",
        "reality:src/blob.py: binary content",
    ]
    assert any("empty.md" in r.getMessage() for r in caplog.records)


def test_source_identifiers_reach_the_corpus(tree):
    corpus = load_corpus([tree / "docs"], [tree / "src"], TrustDebtConfig.for_testing())
    assert "warm cache" in corpus.reality[0].text


def test_overlapping_file_sets_are_noted(tree):
    config = TrustDebtConfig.for_testing()
    config.reality_globs = ["*.md"]
    corpus = load_corpus([tree / "docs"], [tree / "docs"], config)

    assert {f.source_path for f in corpus.intent} == {f.source_path for f in corpus.reality}
    assert any("both corpora" in n for n in corpus.notes)


def test_corpus_round_trip(tree):
    corpus = load_corpus([tree / "docs"], [tree / "src"], TrustDebtConfig.for_testing())
    assert Corpus.from_dict(corpus.to_dict()) == corpus


def test_load_is_deterministic(tree):
    config = TrustDebtConfig.for_testing()
    assert load_corpus([tree], [tree], config) == load_corpus([tree], [tree], config)


# =============================================================================
# HISTORICAL STATES
# =============================================================================

def git(repo: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=repo, check=True, capture_output=True,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_git_corpus_source_reads_each_commit(tmp_path):
    git(tmp_path, "init", "-q")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "README.md").write_text("Latency matters.\n")
    git(tmp_path, "add", ".")
    git(tmp_path, "commit", "-q", "-m", "docs only")

    (tmp_path / "app.py").write_text("def checkToken():\n    pass\n")
    (tmp_path / "image.png").write_bytes(b"\x89PNG\x00")
    git(tmp_path, "add", ".")
    git(tmp_path, "commit", "-q", "-m", "add code")

    source = GitCorpusSource(GitRepository(tmp_path), TrustDebtConfig.for_testing())
    first, second = source.list_commits()

    before = source.read_state(first)
    after = source.read_state(second)

    assert [f.source_path for f in before.intent] == ["docs/README.md"]
    assert before.reality == ()
    assert [f.source_path for f in after.reality] == ["app.py"]
    assert "check token" in after.reality[0].text


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_commit_without_corpus_files_is_a_replay_error(tmp_path):
    git(tmp_path, "init", "-q")
    (tmp_path / "data.bin").write_bytes(b"\x00\x01")
    git(tmp_path, "add", ".")
    git(tmp_path, "commit", "-q", "-m", "binary only")

    source = GitCorpusSource(GitRepository(tmp_path))
    with pytest.raises(CommitReplayError):
        source.read_state(source.list_commits()[0])


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_commit_messages_join_reality_when_enabled(tmp_path):
    git(tmp_path, "init", "-q")
    (tmp_path / "README.md").write_text("Latency goals.\n")
    git(tmp_path, "add", ".")
    git(tmp_path, "commit", "-q", "-m", "Add cache to cut latency")

    config = TrustDebtConfig.for_testing()
    config.include_commit_messages = True
    corpus = load_corpus([tmp_path / "README.md"], [], config, repo_path=tmp_path)

    assert [f.file_type for f in corpus.reality] == ["commit"]
    assert "cut latency" in corpus.reality[0].text
    assert any("1 commit message" in n for n in corpus.notes)


def test_missing_repository_only_adds_a_note(tmp_path):
    config = TrustDebtConfig.for_testing()
    config.include_commit_messages = True
    (tmp_path / "README.md").write_text("Latency goals.\n")

    corpus = load_corpus([tmp_path / "README.md"], [], config, repo_path=tmp_path / "absent")

    assert corpus.reality == ()
    assert any("unavailable" in n for n in corpus.notes)
