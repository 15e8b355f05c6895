"""
Trust Debt Engine - Git History v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Read-only access to a repository's commit history through the git
command line. Every call is a short subprocess; nothing is written.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import HistoryError

logger = logging.getLogger(__name__)

# Unit/record separators keep subjects with '|' intact
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Commit:
    """One commit, as reported by git log."""
    hash: str
    timestamp: str      # Committer date, strict ISO 8601
    subject: str
    body: str = ""

    @property
    def message(self) -> str:
        return f"{self.subject}\n\n{self.body}".strip()


# =============================================================================
# REPOSITORY
# =============================================================================

class GitRepository:
    """
    Thin wrapper over the git CLI for one working copy.

    Handles:
    - Commit listing (oldest to newest, or recent messages)
    - Tree listing and blob reads at a given commit
    """

    def __init__(self, path: Path, git_binary: str = "git", timeout: int = 60):
        self.path = Path(path)
        self.git_binary = git_binary
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                [self.git_binary, *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise HistoryError(f"git executable not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise HistoryError(f"git {args[0]} timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise HistoryError(f"git {args[0]} failed: {result.stderr.strip()}")
        return result.stdout

    def is_repository(self) -> bool:
        try:
            return self._run("rev-parse", "--is-inside-work-tree").strip() == "true"
        except HistoryError:
            return False

    def _parse_log(self, output: str, with_body: bool) -> List[Commit]:
        commits = []
        for record in output.split(RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            parts = record.split(FIELD_SEP)
            if len(parts) < 3:
                logger.warning(f"Skipping malformed git log record: {record[:60]!r}")
                continue
            commits.append(Commit(
                hash=parts[0].strip(),
                timestamp=parts[1].strip(),
                subject=parts[2].strip(),
                body=parts[3].strip() if with_body and len(parts) > 3 else "",
            ))
        return commits

    def list_commits(self, limit: Optional[int] = None) -> List[Commit]:
        """Commits reachable from HEAD, oldest first."""
        args = ["log", "--reverse", f"--format=%H{FIELD_SEP}%cI{FIELD_SEP}%s{RECORD_SEP}"]
        if limit:
            # -n selects the newest commits before --reverse flips them
            args.insert(1, f"-n{limit}")
        return self._parse_log(self._run(*args), with_body=False)

    def recent_commits(self, limit: int) -> List[Commit]:
        """Newest commits with their bodies, newest first."""
        output = self._run(
            "log", f"-n{limit}",
            f"--format=%H{FIELD_SEP}%cI{FIELD_SEP}%s{FIELD_SEP}%b{RECORD_SEP}",
        )
        return self._parse_log(output, with_body=True)

    def list_files(self, commit: str) -> List[str]:
        output = self._run("ls-tree", "-r", "--name-only", commit)
        return sorted(line for line in output.splitlines() if line)

    def read_file(self, commit: str, path: str) -> str:
        return self._run("show", f"{commit}:{path}")


__all__ = [
    "Commit",
    "GitRepository",
]
