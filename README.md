# potions

A library for the steps around shipping prebuilt software binaries: fetching
upstream archives, inspecting binaries for hardening, finding the built
artifacts of a release, and writing release notes and reports.

## Modules

### `potions.downloader`

- `build_download_url(template, version, platform_config)` fills the
  `{version}`, `{os}`, `{arch}` and `{suffix}` placeholders of a URL template,
  plus any custom placeholders from `PlatformConfig.custom`. Without a config,
  `os` defaults to `linux` and `arch` to `amd64`.
- `sanitize_filename(raw_url)` turns a URL into a local filename, dropping the
  query and fragment, replacing `" : < > | * ?` and line breaks with `_`, and
  falling back to `download` when the URL has no file name.
- `download_file(url, dest, timeout)` fetches a URL with the user agent
  `potions/1.0` and returns the number of bytes written; failures raise
  `DownloadError`.
- `extract_tar_gz(tar_path, dest_dir)` unpacks a `.tar.gz`. Entries with
  absolute paths or `..` components raise `ExtractionSecurityError`; files are
  written with mode `0o750` (executables) or `0o640`, capped at 1 GiB each;
  symlinks are created after all files, and a failing symlink only prints a
  warning.
- `validate_git_url`, `validate_git_tag` and `validate_path_within_base`
  refuse unsafe repository URLs, tag names and paths.
- `clone_git_repo(git_url, tag, dest_dir)` runs a shallow `git clone` of a tag
  into an absolute directory (it needs `git` on the `PATH`).
- `Downloader(timeout=300.0).download_artifact(recipe, version, platform, output_dir)`
  uses a `Recipe` (with its `RecipeDownload` and per-platform `PlatformConfig`)
  to clone or download the artifact, extracts tarballs into
  `<name>-extracted`, and returns an `Artifact` with `path` and
  `download_path`.

### `potions.binary_analyzer`

- `analyze_binary_hardening(binary_path, platform)` reads an ELF binary for
  `linux*` platforms or a Mach-O binary for `darwin*` platforms and returns a
  `BinaryAnalysis` holding `HardeningFeatures` (PIE, stack canaries, NX bit,
  RELRO, FORTIFY_SOURCE, code signing, hardened runtime) and a
  `SecurityScore`. Other platforms raise `UnsupportedPlatformError`; files
  that cannot be read or parsed raise `BinaryFormatError`.
- `analyze_linux_binary` and `analyze_darwin_binary` do the same for a known
  format.
- `calculate_hardening_score(features)` scores seven pass/fail checks on a
  0–10 scale, with the number passed and an integer percentage.

### `potions.artifact_finder`

- `find_recursive(artifacts_dir, package_name, version)` walks a directory
  tree for `<package>-<version>-*` files ending in `.tar.gz`, `.sha256`,
  `.sha512`, `.sbom.json` or `.provenance.json`. A leading `v` on the version
  is ignored. A missing directory raises `FileNotFoundError`.
- `find_by_glob(binaries_dir, package_name, version)` looks only directly
  inside one directory for the tarball and its companion files.

### `potions.release_notes`

- `PackageRelease` with `tag()` (`package-version`) and `label()`
  (`package vversion`).
- `parse_package_releases(packages_json)` accepts a JSON array, `@path`, or the
  path of an existing file.
- `release_tag(package_name, version)` adds a leading `v` to the version.
- `generate_release_body(package_name, version, artifacts)` writes Markdown
  notes grouping artifacts by platform, with installation and security
  sections.
- `partial_release_note(available, expected, missing)` writes the warning for
  a release that lacks some platforms.

### `potions.release_batches`

- `ReleaseReport` collects created, skipped and failed labels, with
  `total()`, `success_rate()` and `to_dict()`.
- `count_artifact_kinds(artifacts)` sorts artifacts into an `ArtifactCounts`.
- `calculate_max_safe_releases(remaining, max_configured)` keeps 200 API calls
  in reserve and budgets 8 calls per release.
- `split_into_batches(packages, max_releases)` splits a list into consecutive
  batches.
- `write_release_files(report, failure_details, failures_file, successes_file, report_file)`
  writes the failures, successes and JSON report files.

### `potions.monitor_report`

- `UpdateInfo` describes the update state of one package.
- `format_updates_json` and `format_updates_human` render a list of them;
  `has_errors` tells whether any check failed; `recipe_file_path` gives
  `<recipes_dir>/<package>.yml`.

## Example

```python
from potions.downloader import PlatformConfig, build_download_url, sanitize_filename

url = build_download_url(
    "https://downloads.example.com/v{version}/tool-{os}-{arch}.tar.gz",
    "1.0.0",
    PlatformConfig(os="darwin", arch="arm64"),
)
# "https://downloads.example.com/v1.0.0/tool-darwin-arm64.tar.gz"
sanitize_filename(url)  # "tool-darwin-arm64.tar.gz"
```

## What it does not do

- There is no command-line program; everything is used as a library.
- It does not compute or verify checksums of files.
- It does not run builds or write build result files.
- It does not load recipes from disk; `Recipe` objects are built in code.
- It does not talk to a release hosting service: it prepares release notes,
  batches and report files but does not create releases or upload assets,
  and it does not look up latest upstream versions.
- It does not scan for vulnerabilities or generate SBOMs.

## Installation

```
pip install .
```

## Tests

```
pip install .[test]
pytest
```