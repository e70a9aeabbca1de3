"""Locating built package artifacts on disk."""

from __future__ import annotations

import glob
import os
from collections.abc import Iterator

ARTIFACT_SUFFIXES = (".tar.gz", ".sha256", ".sha512", ".sbom.json", ".provenance.json")
_GLOB_SUFFIXES = (
    ".tar.gz",
    ".tar.gz.sha256",
    ".tar.gz.sha512",
    ".tar.gz.sbom.json",
    ".tar.gz.provenance.json",
)


def _strip_v(version: str) -> str:
    return version[1:] if version.startswith("v") else version


def _walk_files(root: str) -> Iterator[str]:
    """Yield non-directory paths under *root*, depth first in lexical order."""
    if not os.path.isdir(root):
        yield root
        return
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(entry.path)
        else:
            yield entry.path


def find_recursive(artifacts_dir: str, package_name: str, version: str) -> list[str]:
    """Find artifact files for a package version anywhere under *artifacts_dir*."""
    if not os.path.exists(artifacts_dir):
        raise FileNotFoundError(f"artifacts directory does not exist: {artifacts_dir}")
    prefix = f"{package_name}-{_strip_v(version)}-"
    return [
        path
        for path in _walk_files(os.fspath(artifacts_dir))
        if os.path.basename(path).startswith(prefix)
        and os.path.basename(path).endswith(ARTIFACT_SUFFIXES)
    ]


def find_by_glob(binaries_dir: str, package_name: str, version: str) -> list[str]:
    """Find tarballs and their companion files directly inside *binaries_dir*."""
    stem = f"{package_name}-{_strip_v(version)}-*"
    base = glob.escape(os.fspath(binaries_dir))
    artifacts: list[str] = []
    for suffix in _GLOB_SUFFIXES:
        artifacts.extend(sorted(glob.glob(os.path.join(base, stem + suffix))))
    return artifacts