"""Fetching package artifacts over HTTP or git and unpacking tarballs safely."""

from __future__ import annotations

import gzip
import os
import re
import subprocess
import sys
import tarfile
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterator
from dataclasses import dataclass, field

USER_AGENT = "potions/1.0"
DEFAULT_TIMEOUT = 300.0
MAX_FILE_SIZE = 1 << 30
_CHUNK_SIZE = 1 << 16
_STDERR_FD = 2

_INVALID_FILENAME_CHARS = re.compile(r'[":<>|*?\r\n]')
_SAFE_TAG = re.compile(r"[a-zA-Z0-9._/-]+")
_SHELL_METACHARS = set("|&;`$(){}[]<>\n\r")


class DownloadError(Exception):
    """Raised when an artifact cannot be downloaded or unpacked."""


class ExtractionSecurityError(ValueError):
    """Raised when an archive entry would be written outside its destination."""


@dataclass
class PlatformConfig:
    os: str = ""
    arch: str = ""
    suffix: str = ""
    custom: dict[str, str] = field(default_factory=dict)


@dataclass
class RecipeDownload:
    method: str = ""
    download_url: str = ""
    git_url: str = ""
    git_tag_prefix: str = ""
    platforms: dict[str, PlatformConfig] = field(default_factory=dict)


@dataclass
class Recipe:
    name: str
    download: RecipeDownload = field(default_factory=RecipeDownload)


@dataclass
class Artifact:
    name: str
    version: str
    platform: str
    path: str = ""
    download_path: str = ""
    type: str = "binary"


def validate_path_within_base(path: str, base: str) -> str:
    """Return the absolute form of *path*, refusing paths that escape *base*."""
    abs_path = os.path.abspath(os.path.normpath(path))
    abs_base = os.path.abspath(os.path.normpath(base))
    if abs_path != abs_base and not abs_path.startswith(abs_base + os.sep):
        raise ExtractionSecurityError(f"path traversal detected: {path} escapes {base}")
    return abs_path


def validate_git_url(url: str) -> str:
    """Return *url* if it is a safe https:// or git@ repository URL."""
    if not (url.startswith("https://") or url.startswith("git@")):
        raise ValueError(f"only https:// and git@ URLs allowed, got: {url}")
    if any(char in _SHELL_METACHARS for char in url):
        raise ValueError("invalid characters in URL")
    if url.startswith("https://"):
        try:
            urllib.parse.urlsplit(url)
        except ValueError as exc:
            raise ValueError(f"invalid URL format: {exc}") from exc
    return url


def validate_git_tag(tag: str) -> str:
    """Return *tag* if it is a safe git tag or branch name."""
    if not tag:
        raise ValueError("tag cannot be empty")
    if not _SAFE_TAG.fullmatch(tag):
        raise ValueError(f"tag contains invalid characters: {tag}")
    if ".." in tag:
        raise ValueError("tag contains path traversal")
    return tag


def build_download_url(
    template: str, version: str, platform_config: PlatformConfig | None
) -> str:
    """Fill the placeholders of a download URL template."""
    url = template.replace("{version}", version)
    os_name, arch, suffix = "linux", "amd64", ""
    if platform_config is not None:
        os_name = platform_config.os or os_name
        arch = platform_config.arch or arch
        if platform_config.suffix:
            suffix = platform_config.suffix.replace("{version}", version)
        for key, value in platform_config.custom.items():
            url = url.replace("{" + key + "}", value)
    return url.replace("{os}", os_name).replace("{arch}", arch).replace("{suffix}", suffix)


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def sanitize_filename(raw_url: str) -> str:
    """Derive a safe local filename from a URL, dropping query and fragment."""
    try:
        parts = urllib.parse.urlsplit(raw_url)
    except ValueError:
        path = raw_url
    else:
        if parts.scheme and not parts.netloc and not parts.path.startswith("/"):
            # An opaque URL such as "scheme:data" has no path.
            path = ""
        else:
            path = urllib.parse.unquote(parts.path)
    filename = _base_name(path)
    if filename in ("", "/", "."):
        filename = "download"
    return _INVALID_FILENAME_CHARS.sub("_", filename)


def download_file(url: str, dest: str, timeout: float = DEFAULT_TIMEOUT) -> int:
    """Download *url* to *dest* and return the number of bytes written."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        response = urllib.request.urlopen(request, timeout=timeout)
    except urllib.error.HTTPError as exc:
        exc.close()
        raise DownloadError(
            f"HTTP {exc.code}: {exc.code} {exc.reason} (URL: {url})"
        ) from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise DownloadError(f"HTTP request failed: {exc}") from exc

    with response:
        if response.status != 200:
            raise DownloadError(
                f"HTTP {response.status}: {response.status} {response.reason} (URL: {url})"
            )
        written = 0
        with open(dest, "wb") as out:
            for chunk in iter(lambda: response.read(_CHUNK_SIZE), b""):
                out.write(chunk)
                written += len(chunk)

    print(f"Downloaded {os.path.basename(dest)} ({written} bytes)", file=sys.stderr)
    return written


def _members(archive: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
    iterator = iter(archive)
    while True:
        try:
            member = next(iterator)
        except StopIteration:
            return
        except (tarfile.TarError, OSError, EOFError) as exc:
            raise DownloadError(f"tar read error: {exc}") from exc
        yield member


def _check_entry(name: str, target: str, dest_dir: str) -> None:
    if os.path.isabs(name):
        raise ExtractionSecurityError(
            f"security: tar entry contains absolute path: {name}"
        )
    if ".." in name.replace("\\", "/").split("/"):
        raise ExtractionSecurityError(
            f"security: tar entry contains path traversal: {name}"
        )
    try:
        validate_path_within_base(target, dest_dir)
    except ExtractionSecurityError as exc:
        raise ExtractionSecurityError(f"security: path traversal attempt: {exc}") from exc


def _file_mode(member_mode: int) -> int:
    if 0 <= member_mode <= 0o777 and member_mode & 0o111:
        return 0o750
    return 0o640


def _write_member(source, target: str, mode: int) -> None:
    def opener(path: str, flags: int) -> int:
        return os.open(path, flags, mode)

    with open(target, "wb", opener=opener) as out:
        remaining = MAX_FILE_SIZE
        while remaining > 0:
            chunk = source.read(min(_CHUNK_SIZE, remaining))
            if not chunk:
                break
            out.write(chunk)
            remaining -= len(chunk)


def extract_tar_gz(tar_path: str, dest_dir: str) -> None:
    """Unpack a .tar.gz into *dest_dir*, refusing entries that escape it."""
    try:
        raw = open(tar_path, "rb")
    except OSError as exc:
        raise DownloadError(f"failed to open tar.gz: {exc}") from exc

    with raw, gzip.GzipFile(fileobj=raw, mode="rb") as compressed:
        try:
            archive = tarfile.open(fileobj=compressed, mode="r|")
        except (tarfile.TarError, OSError, EOFError) as exc:
            raise DownloadError(f"failed to create gzip reader: {exc}") from exc

        os.makedirs(dest_dir, mode=0o750, exist_ok=True)
        symlinks: list[tuple[str, str]] = []

        with archive:
            for member in _members(archive):
                target = os.path.join(dest_dir, member.name)
                _check_entry(member.name, target, dest_dir)

                if member.isdir():
                    os.makedirs(target, mode=0o750, exist_ok=True)
                elif member.isreg():
                    os.makedirs(os.path.dirname(target) or ".", mode=0o750, exist_ok=True)
                    source = archive.extractfile(member)
                    if source is None:
                        raise DownloadError(f"tar read error: cannot read {member.name}")
                    with source:
                        _write_member(source, target, _file_mode(member.mode))
                elif member.issym():
                    symlinks.append((target, member.linkname))
                else:
                    flag = member.type.decode("latin-1")
                    print(
                        f"Warning: ignoring unsupported file type {flag}: {member.name}",
                        file=sys.stderr,
                    )

    for target, linkname in symlinks:
        os.makedirs(os.path.dirname(target) or ".", mode=0o750, exist_ok=True)
        try:
            os.symlink(linkname, target)
        except OSError as exc:
            print(
                f"Warning: failed to create symlink {target} -> {linkname}: {exc}",
                file=sys.stderr,
            )

    print(f"Extracted to {dest_dir}", file=sys.stderr)


def clone_git_repo(git_url: str, tag: str, dest_dir: str) -> None:
    """Shallow-clone *git_url* at *tag* into the absolute path *dest_dir*."""
    if not os.path.isabs(dest_dir):
        raise ValueError("destination directory must be absolute path")
    if os.path.normpath(dest_dir) != dest_dir:
        raise ValueError("destination directory contains path traversal elements")
    validate_git_url(git_url)
    validate_git_tag(tag)

    command = ["git", "clone", "--depth=1", f"--branch={tag}", git_url, dest_dir]
    try:
        subprocess.run(command, stdout=_STDERR_FD, stderr=_STDERR_FD, check=True)
    except (subprocess.CalledProcessError, OSError) as exc:
        raise DownloadError(f"git clone failed: {exc}") from exc

    print(f"Cloned {git_url} (tag: {tag}) to {dest_dir}", file=sys.stderr)


class Downloader:
    """Downloads recipe artifacts for a platform into a working directory."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def download_artifact(
        self, recipe: Recipe, version: str, platform: str, output_dir: str
    ) -> Artifact:
        """Fetch the recipe's artifact and return where it was placed."""
        platform_config = recipe.download.platforms.get(platform)
        if platform_config is None:
            raise DownloadError(f"platform {platform} not supported")

        os.makedirs(output_dir, mode=0o750, exist_ok=True)
        download_path = ""

        if recipe.download.method == "git" and recipe.download.git_url:
            tag = recipe.download.git_tag_prefix + version
            clone_dir = os.path.abspath(os.path.join(output_dir, f"{recipe.name}-{version}"))
            clone_git_repo(recipe.download.git_url, tag, clone_dir)
            final_path = clone_dir
        else:
            url = build_download_url(recipe.download.download_url, version, platform_config)
            filename = sanitize_filename(url)
            output_path = os.path.join(output_dir, filename)
            download_file(url, output_path, self.timeout)
            download_path = output_path

            if filename.endswith((".tar.gz", ".tgz")):
                base = filename.removesuffix(".tar.gz").removesuffix(".tgz")
                extract_dir = os.path.join(output_dir, base + "-extracted")
                extract_tar_gz(output_path, extract_dir)
                with os.scandir(extract_dir) as it:
                    entries = list(it)
                if len(entries) == 1 and entries[0].is_dir():
                    final_path = os.path.join(extract_dir, entries[0].name)
                else:
                    final_path = extract_dir
            else:
                final_path = output_path

        return Artifact(
            name=recipe.name,
            version=version,
            platform=platform,
            path=final_path,
            download_path=download_path,
            type="binary",
        )