"""Batching, tallying and reporting for publishing many releases in one run."""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

SAFETY_MARGIN = 200
CALLS_PER_RELEASE = 8
DEFAULT_RATE_LIMIT = 5000
DEFAULT_MAX_RELEASES = 50
MINIMUM_BATCH_SIZE = 25

_FILE_MODE = 0o600
_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

T = TypeVar("T")


@dataclass
class ReleaseReport:
    """Labels of releases created, skipped as existing, or failed."""

    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def total(self) -> int:
        """Return how many packages were processed."""
        return len(self.created) + len(self.skipped) + len(self.failed)

    def success_rate(self) -> float:
        """Return the percentage of processed packages created or skipped."""
        total = self.total()
        if total == 0:
            return 0.0
        return (len(self.created) + len(self.skipped)) * 100.0 / total

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form; empty lists become ``None``."""
        return {
            "created": list(self.created) or None,
            "skipped": list(self.skipped) or None,
            "failed": list(self.failed) or None,
            "total": self.total(),
            "success_rate": self.success_rate(),
        }


@dataclass
class ArtifactCounts:
    """Artifacts of a release sorted by kind."""

    tarballs: list[str] = field(default_factory=list)
    others: list[str] = field(default_factory=list)
    checksums: int = 0
    sboms: int = 0
    provenances: int = 0


def count_artifact_kinds(artifacts: Iterable[str]) -> ArtifactCounts:
    """Sort artifact paths into tarballs, checksums, SBOMs, provenance and others."""
    counts = ArtifactCounts()
    for artifact in artifacts:
        basename = os.path.basename(artifact)
        if basename.endswith(".tar.gz"):
            counts.tarballs.append(basename)
        elif basename.endswith(".sha256"):
            counts.checksums += 1
        elif basename.endswith(".sbom.json"):
            counts.sboms += 1
        elif basename.endswith(".provenance.json"):
            counts.provenances += 1
        else:
            counts.others.append(basename)
    return counts


def calculate_max_safe_releases(remaining: int, max_configured: int) -> int:
    """Return how many releases fit in the remaining API calls, keeping a margin."""
    if remaining <= SAFETY_MARGIN:
        return 0
    return min((remaining - SAFETY_MARGIN) // CALLS_PER_RELEASE, max_configured)


def split_into_batches(packages: Sequence[T], max_releases: int) -> list[list[T]]:
    """Split packages into consecutive batches of at most *max_releases* each."""
    if not packages:
        return []
    size = max_releases
    if size <= 0:
        size = calculate_max_safe_releases(DEFAULT_RATE_LIMIT, DEFAULT_MAX_RELEASES)
    if size == 0:
        size = MINIMUM_BATCH_SIZE
    return [list(packages[start : start + size]) for start in range(0, len(packages), size)]


def _write_text(filename: str, text: str) -> None:
    def opener(path: str, flags: int) -> int:
        return os.open(path, flags, _FILE_MODE)

    with open(filename, "w", encoding="utf-8", newline="", opener=opener) as handle:
        handle.write(text)


def _report_json(report: ReleaseReport) -> str:
    data = report.to_dict()
    rate = data["success_rate"]
    if isinstance(rate, float) and rate.is_integer():
        data["success_rate"] = int(rate)
    text = json.dumps(data, indent=2, ensure_ascii=False)
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def write_release_files(
    report: ReleaseReport,
    failure_details: Sequence[str],
    failures_file: str = "",
    successes_file: str = "",
    report_file: str = "",
) -> None:
    """Write the failures, successes and JSON report files of a release run.

    Failing to write the failures or successes file only prints a warning;
    failing to write the report raises OSError.
    """
    if failure_details and failures_file:
        try:
            _write_text(failures_file, "\n".join(failure_details) + "\n")
        except OSError as exc:
            print(f"Warning: failed to write failures file: {exc}", file=sys.stderr)

    if report.created and successes_file:
        try:
            _write_text(successes_file, "\n".join(report.created) + "\n")
        except OSError as exc:
            print(f"Warning: failed to write successes file: {exc}", file=sys.stderr)

    if report_file:
        try:
            _write_text(report_file, _report_json(report))
        except OSError as exc:
            raise OSError(f"failed to write report file: {exc}") from exc