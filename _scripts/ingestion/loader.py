"""
Corpus Loader - Intent and Reality file sets.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3

Reads the two file sets a drift run compares: Intent (docs, specs,
READMEs) and Reality (source files, optionally commit messages).
Files are read in parallel; every read is a pure function of its path.
Unreadable inputs are skipped with a warning, never fatal.
"""

import fnmatch
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from trustdebt_engine.core.config import TrustDebtConfig
from trustdebt_engine.core.types import Domain
from trustdebt_engine.errors import UnreadableFileError, HistoryError, CommitReplayError
from trustdebt_engine.git_history import Commit, GitRepository

from .parsers import get_parser, PlaintextParser
from .types import CorpusFile, Corpus

logger = logging.getLogger(__name__)


# =============================================================================
# FILE DISCOVERY
# =============================================================================

def _matches(name: str, globs: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch.fnmatchcase(lowered, g.lower()) for g in globs)


def _excluded(parts: Iterable[str], exclude_dirs: Sequence[str]) -> bool:
    return any(part in exclude_dirs for part in parts)


def _claim(found: dict, anchor: Tuple[str, ...], depth: int,
           rel: Tuple[str, ...], path: Path) -> None:
    """
    Record path under the shortest unclaimed source_path.

    The name starts with depth trailing components of anchor and grows
    until it no longer collides with a different file. Naming the same
    file twice keeps the first entry.
    """
    resolved = path.resolve()
    for size in range(min(depth, len(anchor)), len(anchor) + 1):
        source_path = "/".join(anchor[len(anchor) - size:] + rel)
        claimed = found.get(source_path)
        if claimed is None:
            found[source_path] = path
            return
        if claimed.resolve() == resolved:
            return
    logger.warning(f"Ignored {path}: its full path is already taken by {found[source_path]}")


def collect_files(paths: Sequence[Path], globs: Sequence[str],
                  exclude_dirs: Sequence[str] = ()) -> List[Tuple[Path, str]]:
    """
    Expand files and directories into (path, source_path) pairs.

    Directories are walked recursively and filtered by glob; explicitly
    named files are always included. source_path is POSIX and relative
    to the named root, so artifacts do not depend on the checkout location.
    Inputs that would share a source_path (two README.md files, two
    directories called docs) are told apart by their parent directories.
    Missing paths are returned as-is and fail at read time.
    """
    found = {}
    for raw in paths:
        root = Path(raw)
        if root.is_dir():
            resolved = root.resolve()
            anchor = resolved.relative_to(resolved.anchor).parts
            for path in sorted(root.rglob("*")):
                if not path.is_file():
                    continue
                rel = path.relative_to(root)
                if _excluded(rel.parts[:-1], exclude_dirs) or not _matches(path.name, globs):
                    continue
                _claim(found, anchor, 1, rel.parts, path)
        else:
            parent = root.parent.resolve()
            anchor = parent.relative_to(parent.anchor).parts
            _claim(found, anchor, 0, (root.name,), root)

    return [(path, source_path) for source_path, path in sorted(found.items())]


# =============================================================================
# READING
# =============================================================================

def parse_content(name: str, text: str, source_path: str, domain: Domain) -> CorpusFile:
    """
    Parse already-loaded text into a CorpusFile.

    Raises:
        UnreadableFileError: binary, unparseable or empty
    """
    if "\x00" in text:
        raise UnreadableFileError(source_path, "binary content")

    parser = get_parser(Path(name)) or PlaintextParser()
    try:
        parsed = parser.parse_text(text, Path(name).stem)
    except ValueError as e:
        raise UnreadableFileError(source_path, str(e)) from e

    if not parsed.text.strip():
        raise UnreadableFileError(source_path, "empty file")

    return CorpusFile.create(
        source_path=source_path,
        domain=domain,
        text=parsed.text,
        file_type=parser.get_file_type(),
        title=parsed.title,
    )


def read_corpus_file(path: Path, source_path: str, domain: Domain,
                     max_bytes: int) -> CorpusFile:
    """
    Read and parse one corpus file.

    Raises:
        UnreadableFileError: missing, too large, binary or empty
    """
    try:
        size = path.stat().st_size
    except OSError as e:
        raise UnreadableFileError(source_path, e.strerror or str(e)) from e

    if size > max_bytes:
        raise UnreadableFileError(source_path, f"{size} bytes exceeds limit {max_bytes}")

    parser = get_parser(path) or PlaintextParser()
    try:
        parsed = parser.parse(path)
    except (OSError, ValueError) as e:
        raise UnreadableFileError(source_path, str(e)) from e

    if not parsed.text.strip():
        raise UnreadableFileError(source_path, "empty file")

    return CorpusFile.create(
        source_path=source_path,
        domain=domain,
        text=parsed.text,
        file_type=parser.get_file_type(),
        title=parsed.title,
    )


def load_file_set(paths: Sequence[Path], domain: Domain,
                  config: TrustDebtConfig) -> Tuple[List[CorpusFile], List[str]]:
    """Read one domain's files in parallel. Returns (files, skipped)."""
    globs = config.intent_globs if domain == Domain.INTENT else config.reality_globs
    targets = collect_files(paths, globs, config.exclude_dirs)

    def _read(target: Tuple[Path, str]):
        path, source_path = target
        try:
            return read_corpus_file(path, source_path, domain, config.max_file_bytes), None
        except UnreadableFileError as e:
            logger.warning(e.user_message, extra={"source_path": source_path})
            return None, f"{domain.value}:{source_path}: {e.reason}"

    with ThreadPoolExecutor(max_workers=config.workers) as pool:
        results = list(pool.map(_read, targets))

    files = [f for f, _ in results if f is not None]
    skipped = [s for _, s in results if s is not None]
    return files, skipped


# =============================================================================
# COMMIT MESSAGES
# =============================================================================

def commit_documents(repo: GitRepository, limit: int) -> List[CorpusFile]:
    """Recent commit messages as Reality documents."""
    documents = []
    for commit in repo.recent_commits(limit):
        if not commit.message:
            continue
        documents.append(CorpusFile.create(
            source_path=f"commit:{commit.hash[:12]}",
            domain=Domain.REALITY,
            text=commit.message,
            file_type="commit",
            title=commit.subject,
        ))
    return sorted(documents, key=lambda f: f.source_path)


# =============================================================================
# CORPUS
# =============================================================================

def load_corpus(intent_paths: Sequence[Path], reality_paths: Sequence[Path],
                config: Optional[TrustDebtConfig] = None,
                repo_path: Optional[Path] = None) -> Corpus:
    """
    Load the Intent and Reality corpora.

    Args:
        intent_paths: Documentation files or directories
        reality_paths: Source files or directories
        config: Pipeline config (globs, limits, workers)
        repo_path: Repository for commit messages, when enabled

    Returns:
        Corpus with both file sets, skipped inputs and notes
    """
    config = config or TrustDebtConfig()
    notes = []

    intent, intent_skipped = load_file_set(intent_paths, Domain.INTENT, config)
    reality, reality_skipped = load_file_set(reality_paths, Domain.REALITY, config)

    # The sets are meant to be disjoint; overlap is reported, not repaired
    shared = {f.source_path for f in intent} & {f.source_path for f in reality}
    if shared:
        note = f"{len(shared)} file(s) appear in both corpora, e.g. {sorted(shared)[0]}"
        logger.warning(note)
        notes.append(note)

    if config.include_commit_messages and repo_path is not None:
        try:
            commits = commit_documents(GitRepository(repo_path), config.commit_limit)
            reality.extend(commits)
            notes.append(f"Included {len(commits)} commit message(s) in Reality")
        except HistoryError as e:
            logger.warning(f"Commit messages unavailable: {e}")
            notes.append(f"Commit messages unavailable: {e}")

    logger.info(
        f"Loaded corpus: {len(intent)} intent, {len(reality)} reality, "
        f"{len(intent_skipped) + len(reality_skipped)} skipped"
    )

    return Corpus(
        intent=tuple(intent),
        reality=tuple(sorted(reality, key=lambda f: f.source_path)),
        skipped=tuple(intent_skipped + reality_skipped),
        notes=tuple(notes),
    )


# =============================================================================
# HISTORICAL STATES
# =============================================================================

class GitCorpusSource:
    """
    Corpus snapshots at historical commits of one repository.

    Implements the repo protocol the timeline walks: list_commits()
    and read_state(commit).
    """

    def __init__(self, repo: GitRepository, config: Optional[TrustDebtConfig] = None,
                 intent_prefixes: Sequence[str] = (), reality_prefixes: Sequence[str] = ()):
        self.repo = repo
        self.config = config or TrustDebtConfig()
        self.intent_prefixes = tuple(intent_prefixes)
        self.reality_prefixes = tuple(reality_prefixes)

    def list_commits(self) -> List[Commit]:
        return self.repo.list_commits()

    def _domain_for(self, path: str) -> Optional[Domain]:
        parts = path.split("/")
        if _excluded(parts[:-1], self.config.exclude_dirs):
            return None
        name = parts[-1]
        if _matches(name, self.config.intent_globs) and (
                not self.intent_prefixes or path.startswith(self.intent_prefixes)):
            return Domain.INTENT
        if _matches(name, self.config.reality_globs) and (
                not self.reality_prefixes or path.startswith(self.reality_prefixes)):
            return Domain.REALITY
        return None

    def read_state(self, commit: Commit) -> Corpus:
        """
        Build the corpus as it stood at a commit.

        Raises:
            CommitReplayError: tree unreadable or no corpus files at all
        """
        try:
            paths = self.repo.list_files(commit.hash)
        except HistoryError as e:
            raise CommitReplayError(commit.hash, str(e)) from e

        intent, reality, skipped = [], [], []
        for path in paths:
            domain = self._domain_for(path)
            if domain is None:
                continue
            try:
                text = self.repo.read_file(commit.hash, path)
                if len(text) > self.config.max_file_bytes:
                    raise UnreadableFileError(path, "exceeds size limit")
                corpus_file = parse_content(path.split("/")[-1], text, path, domain)
            except (HistoryError, UnreadableFileError) as e:
                skipped.append(f"{domain.value}:{path}: {e}")
                continue
            (intent if domain == Domain.INTENT else reality).append(corpus_file)

        if not intent and not reality:
            raise CommitReplayError(commit.hash, "no intent or reality files at this commit")

        return Corpus(intent=tuple(intent), reality=tuple(reality), skipped=tuple(skipped))


__all__ = [
    "collect_files",
    "parse_content",
    "read_corpus_file",
    "load_file_set",
    "commit_documents",
    "load_corpus",
    "GitCorpusSource",
]
