"""
Trust Debt Engine - Artifact Store v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Versioned JSON artifacts, one file per pipeline stage.

Layout: <root>/<namespace>/<NN>-<stage_id>.json. Every artifact is
wrapped in the same envelope and written atomically. Readers validate
the envelope and the required payload fields; nothing is defaulted.
"""

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Any, Iterable, Optional, Sequence

from .core.types import ArtifactStatus
from .errors import ArtifactValidationError, ValidationError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"

STAGES = (
    "corpus",
    "keyword_index",
    "taxonomy",
    "matrix",
    "grade",
    "timeline",
    "narrative",
)

ENVELOPE_FIELDS = ("schema_version", "stage_id", "generated_at", "status", "notes", "payload")
SUMMARY_FILENAME = "pipeline-summary.json"

NAMESPACE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _dumps(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


class ArtifactStore:
    """
    Filesystem store for stage artifacts of one run namespace.

    Separate namespaces never share files, so parallel runs stay
    isolated. Inject a fixed clock for byte-identical output.
    """

    def __init__(self, root: Path, namespace: str = "default",
                 clock: Optional[Callable[[], datetime]] = None):
        if not isinstance(namespace, str) or not NAMESPACE_PATTERN.match(namespace) or ".." in namespace:
            raise ValidationError(
                "namespace",
                f"must be 1-64 letters, digits, '.', '_' or '-' (got {namespace!r})"
            )
        self.root = Path(root)
        self.namespace = namespace
        self.clock = clock or utc_now

    @property
    def directory(self) -> Path:
        return self.root / self.namespace

    def path_for(self, stage_id: str) -> Path:
        if stage_id not in STAGES:
            raise ValidationError("stage_id", f"unknown stage {stage_id!r}")
        return self.directory / f"{STAGES.index(stage_id):02d}-{stage_id}.json"

    def _timestamp(self) -> str:
        return self.clock().astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def _write_atomic(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", encoding="utf-8", dir=path.parent,
            prefix=f".{path.stem}-", suffix=".tmp", delete=False,
        ) as tmp:
            tmp.write(text)
            tmp_path = tmp.name
        try:
            os.replace(tmp_path, path)
        except OSError:
            os.unlink(tmp_path)
            raise

    # =========================================================================
    # WRITE
    # =========================================================================

    def write(self, stage_id: str, payload: Dict[str, Any],
              status: ArtifactStatus = ArtifactStatus.OK,
              notes: Iterable[str] = ()) -> Path:
        """Write one stage artifact. Returns its path."""
        path = self.path_for(stage_id)
        envelope = {
            "schema_version": SCHEMA_VERSION,
            "stage_id": stage_id,
            "generated_at": self._timestamp(),
            "status": status.value,
            "notes": list(notes),
            "payload": payload,
        }
        self._write_atomic(path, _dumps(envelope))
        logger.debug(f"Wrote {path.name}", extra={"stage_id": stage_id, "status": status.value})
        return path

    def write_summary(self, summary: Dict[str, Any]) -> Path:
        path = self.directory / SUMMARY_FILENAME
        self._write_atomic(path, _dumps(dict(summary, generated_at=self._timestamp())))
        return path

    # =========================================================================
    # READ
    # =========================================================================

    def exists(self, stage_id: str) -> bool:
        return self.path_for(stage_id).is_file()

    def read_status(self, stage_id: str) -> ArtifactStatus:
        """Status recorded in an artifact's envelope, failed ones included."""
        path = self.path_for(stage_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
            return ArtifactStatus(envelope["status"])
        except (OSError, json.JSONDecodeError) as e:
            raise ArtifactValidationError(stage_id, f"unreadable artifact: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactValidationError(stage_id, f"envelope has no valid status: {e}") from e

    def read(self, stage_id: str, required_fields: Sequence[str] = ()) -> Dict[str, Any]:
        """
        Load and validate an artifact envelope.

        Raises:
            ArtifactValidationError: missing, unparseable, wrong stage or
                schema, failed status, or a required payload field absent
        """
        path = self.path_for(stage_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
        except FileNotFoundError:
            raise ArtifactValidationError(stage_id, f"artifact not found at {path}")
        except (OSError, json.JSONDecodeError) as e:
            raise ArtifactValidationError(stage_id, f"unreadable artifact: {e}") from e

        if not isinstance(envelope, dict):
            raise ArtifactValidationError(stage_id, "artifact is not a JSON object")
        missing = [k for k in ENVELOPE_FIELDS if k not in envelope]
        if missing:
            raise ArtifactValidationError(stage_id, f"envelope missing {', '.join(missing)}")
        if envelope["stage_id"] != stage_id:
            raise ArtifactValidationError(stage_id, f"artifact belongs to stage {envelope['stage_id']!r}")
        if envelope["schema_version"] != SCHEMA_VERSION:
            raise ArtifactValidationError(
                stage_id, f"schema version {envelope['schema_version']!r}, expected {SCHEMA_VERSION!r}"
            )
        if envelope["status"] not in {s.value for s in ArtifactStatus}:
            raise ArtifactValidationError(stage_id, f"unknown status {envelope['status']!r}")
        if envelope["status"] == ArtifactStatus.FAILED.value:
            raise ArtifactValidationError(stage_id, "upstream stage failed")

        payload = envelope["payload"]
        if not isinstance(payload, dict):
            raise ArtifactValidationError(stage_id, "payload is not a JSON object")
        absent = [f for f in required_fields if f not in payload]
        if absent:
            raise ArtifactValidationError(stage_id, f"payload missing {', '.join(absent)}")

        return envelope

    def read_summary(self) -> Dict[str, Any]:
        path = self.directory / SUMMARY_FILENAME
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ArtifactValidationError("summary", f"unreadable pipeline summary: {e}") from e


__all__ = [
    "ArtifactStore",
    "STAGES",
    "SCHEMA_VERSION",
    "ENVELOPE_FIELDS",
    "SUMMARY_FILENAME",
]
