"""Release descriptions, tags and package lists for publishing releases."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DOWNLOAD_BASE_URL = "https://example.com/potions/releases/download"


@dataclass(frozen=True)
class PackageRelease:
    """A package and version requested for release."""

    package: str = ""
    version: str = ""

    def tag(self) -> str:
        """Return the release tag, ``package-version``."""
        return f"{self.package}-{self.version}"

    def label(self) -> str:
        """Return the ``package vversion`` label used in reports."""
        return f"{self.package} v{self.version}"


def _string_field(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _decode(text: str) -> list[PackageRelease]:
    data = json.loads(text)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("packages JSON must be an array")
    releases = []
    for item in data:
        if item is None:
            releases.append(PackageRelease())
        elif isinstance(item, dict):
            releases.append(
                PackageRelease(
                    package=_string_field(item, "package"),
                    version=_string_field(item, "version"),
                )
            )
        else:
            raise ValueError("each package entry must be an object")
    return releases


def _read_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise OSError(f"failed to read packages file: {exc}") from exc


def _decode_file(path: str) -> list[PackageRelease]:
    text = _read_file(path)
    try:
        return _decode(text)
    except ValueError as exc:
        raise ValueError(f"failed to parse packages JSON from file: {exc}") from exc


def parse_package_releases(packages_json: str) -> list[PackageRelease]:
    """Parse packages to release from JSON, ``@path`` or the path of a file.

    Raises OSError when a file cannot be read and ValueError on bad JSON.
    """
    if packages_json.startswith("@"):
        return _decode_file(packages_json[1:])
    if os.path.isfile(packages_json):
        return _decode_file(packages_json)
    try:
        return _decode(packages_json)
    except ValueError as exc:
        raise ValueError(f"failed to parse packages JSON: {exc}") from exc


def release_tag(package_name: str, version: str) -> str:
    """Return the tag of a single release; the version is given a leading ``v``."""
    if not version.startswith("v"):
        version = "v" + version
    return f"{package_name}-{version}"


def _describe(filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    if filename.endswith(".tar.gz"):
        return "Binary tarball"
    if ext == ".sha256":
        return "SHA256 checksum"
    if ext == ".json" and "sbom" in filename:
        return "SBOM (Software Bill of Materials)"
    if ext == ".json" and "provenance" in filename:
        return "SLSA Provenance attestation"
    return "Artifact"


def _group_by_platform(artifacts: Iterable[str]) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = {}
    for artifact in artifacts:
        basename = os.path.basename(artifact)
        parts = basename.split("-")
        if len(parts) >= 3:
            platform = parts[-1].split(".")[0].lower()
            groups.setdefault(platform, []).append(basename)
    return groups


def generate_release_body(
    package_name: str, version: str, artifacts: Sequence[str]
) -> str:
    """Render the Markdown description of a release and its artifacts."""
    bare = version[1:] if version.startswith("v") else version
    lines = [
        f"# {package_name} {version}",
        "",
        "Prebuilt binaries with security scanning and attestations.",
        "",
    ]

    groups = _group_by_platform(artifacts)
    if groups:
        lines += ["## Platform Support", ""]
        for platform, files in groups.items():
            lines += [f"### {platform}", ""]
            lines += [f"- `{name}` - {_describe(name)}" for name in files]
            lines.append("")

    base = f"{DOWNLOAD_BASE_URL}/{package_name}-{version}"
    tarball = f"{package_name}-{bare}-<platform>.tar.gz"
    lines += [
        "## Installation",
        "",
        "```bash",
        "# Download for your platform",
        f"curl -LO {base}/{tarball}",
        "",
        "# Verify checksum",
        f"curl -LO {base}/{tarball}.sha256",
        f"shasum -a 256 -c {tarball}.sha256",
        "",
        "# Extract and install",
        f"tar xzf {tarball}",
        "```",
        "",
        "## Security",
        "",
        "All binaries are:",
        "- ✅ Scanned for vulnerabilities using OSV",
        "- ✅ Analyzed for suspicious patterns",
        "- ✅ Provided with SBOM (CycloneDX format)",
        "- ✅ Attested with SLSA provenance",
    ]
    return "\n".join(lines) + "\n"


def partial_release_note(available: int, expected: int, missing: Sequence[str]) -> str:
    """Return the warning put in front of a release that lacks some platforms."""
    note = (
        "\n> ⚠️ **Note**: This release is missing some platforms. "
        f"Available: {available}/{expected}\n"
    )
    if missing:
        note += f"> Missing: {', '.join(str(p) for p in missing)}\n"
    return note