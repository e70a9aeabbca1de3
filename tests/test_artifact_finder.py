import os

import pytest

from potions.artifact_finder import find_by_glob, find_recursive


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"data")
    return str(path)


def test_find_recursive_missing_directory(tmp_path):
    missing = tmp_path / "nope"
    with pytest.raises(FileNotFoundError, match="artifacts directory does not exist"):
        find_recursive(str(missing), "kubectl", "v1.28.0")


def test_find_recursive_collects_nested_matches(tmp_path):
    wanted = {
        _touch(tmp_path / "linux" / "kubectl-1.28.0-linux-x86_64.tar.gz"),
        _touch(tmp_path / "linux" / "kubectl-1.28.0-linux-x86_64.tar.gz.sha256"),
        _touch(tmp_path / "darwin" / "deep" / "kubectl-1.28.0-darwin-arm64.tar.gz.sbom.json"),
        _touch(tmp_path / "kubectl-1.28.0-darwin-arm64.tar.gz.provenance.json"),
        _touch(tmp_path / "kubectl-1.28.0-darwin-arm64.tar.gz.sha512"),
    }
    _touch(tmp_path / "kubectl-1.28.0-darwin-arm64.txt")
    _touch(tmp_path / "helm-1.28.0-darwin-arm64.tar.gz")
    _touch(tmp_path / "kubectl-1.28.1-darwin-arm64.tar.gz")
    found = find_recursive(str(tmp_path), "kubectl", "v1.28.0")
    assert set(found) == wanted
    assert len(found) == len(wanted)


def test_find_recursive_version_prefix_is_optional(tmp_path):
    path = _touch(tmp_path / "age-1.1.1-linux-x86_64.tar.gz")
    assert find_recursive(str(tmp_path), "age", "1.1.1") == [path]
    assert find_recursive(str(tmp_path), "age", "v1.1.1") == [path]


def test_find_recursive_lexical_walk_order(tmp_path):
    b = _touch(tmp_path / "b" / "pkg-1.0-b.tar.gz")
    a = _touch(tmp_path / "a" / "pkg-1.0-a.tar.gz")
    top = _touch(tmp_path / "pkg-1.0-top.tar.gz")
    found = find_recursive(str(tmp_path), "pkg", "1.0")
    assert found == [a, b, top]


def test_find_recursive_empty_directory(tmp_path):
    assert find_recursive(str(tmp_path), "pkg", "1.0") == []


def test_find_by_glob_groups_by_kind(tmp_path):
    tar_b = _touch(tmp_path / "pkg-1.0-linux.tar.gz")
    tar_a = _touch(tmp_path / "pkg-1.0-darwin.tar.gz")
    sha = _touch(tmp_path / "pkg-1.0-darwin.tar.gz.sha256")
    sbom = _touch(tmp_path / "pkg-1.0-darwin.tar.gz.sbom.json")
    prov = _touch(tmp_path / "pkg-1.0-darwin.tar.gz.provenance.json")
    sha512 = _touch(tmp_path / "pkg-1.0-linux.tar.gz.sha512")
    found = find_by_glob(str(tmp_path), "pkg", "v1.0")
    assert found == [tar_a, tar_b, sha, sha512, sbom, prov]


def test_find_by_glob_ignores_subdirectories_and_other_packages(tmp_path):
    _touch(tmp_path / "nested" / "pkg-1.0-linux.tar.gz")
    _touch(tmp_path / "other-1.0-linux.tar.gz")
    _touch(tmp_path / "pkg-1.0-linux.zip")
    assert find_by_glob(str(tmp_path), "pkg", "1.0") == []


def test_find_by_glob_missing_directory_returns_empty(tmp_path):
    assert find_by_glob(os.path.join(str(tmp_path), "missing"), "pkg", "1.0") == []