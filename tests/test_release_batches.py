import json

import pytest

from potions.release_batches import (
    ArtifactCounts,
    ReleaseReport,
    calculate_max_safe_releases,
    count_artifact_kinds,
    split_into_batches,
    write_release_files,
)


def test_max_safe_releases_zero_at_or_below_margin():
    assert calculate_max_safe_releases(200, 50) == 0
    assert calculate_max_safe_releases(10, 50) == 0


def test_max_safe_releases_capped_by_configured():
    assert calculate_max_safe_releases(5000, 50) == 50


@pytest.mark.parametrize("remaining", [201, 300, 999, 1500])
def test_max_safe_releases_fits_budget(remaining):
    result = calculate_max_safe_releases(remaining, 10_000)
    assert result * 8 <= remaining - 200
    assert (result + 1) * 8 > remaining - 200


def test_split_empty():
    assert split_into_batches([], 10) == []


@pytest.mark.parametrize("size,count", [(1, 5), (3, 10), (10, 10), (7, 3)])
def test_split_preserves_order_and_bounds(size, count):
    packages = [f"pkg{n}" for n in range(count)]
    batches = split_into_batches(packages, size)
    assert [p for batch in batches for p in batch] == packages
    assert all(0 < len(batch) <= size for batch in batches)
    assert all(len(batch) == size for batch in batches[:-1])


def test_split_uses_default_when_not_configured():
    packages = list(range(120))
    batches = split_into_batches(packages, 0)
    assert len(batches[0]) == 50
    assert [p for batch in batches for p in batch] == packages


def test_count_artifact_kinds():
    counts = count_artifact_kinds(
        [
            "dist/kubectl-1.28.0-linux-amd64.tar.gz",
            "dist/kubectl-1.28.0-linux-amd64.tar.gz.sha256",
            "dist/kubectl-1.28.0-linux-amd64.tar.gz.sha512",
            "dist/kubectl-1.28.0-linux-amd64.tar.gz.sbom.json",
            "dist/kubectl-1.28.0-linux-amd64.tar.gz.provenance.json",
        ]
    )
    assert counts == ArtifactCounts(
        tarballs=["kubectl-1.28.0-linux-amd64.tar.gz"],
        others=["kubectl-1.28.0-linux-amd64.tar.gz.sha512"],
        checksums=1,
        sboms=1,
        provenances=1,
    )


def test_count_artifact_kinds_empty():
    counts = count_artifact_kinds([])
    assert counts.tarballs == [] and counts.checksums == 0


def test_report_totals_and_rate():
    report = ReleaseReport(created=["a v1"], skipped=["b v1"], failed=["c v1", "d v1"])
    assert report.total() == 4
    assert report.success_rate() == pytest.approx(50.0)


def test_report_rate_zero_when_empty():
    report = ReleaseReport()
    assert report.total() == 0
    assert report.success_rate() == 0.0


def test_report_to_dict_empty_lists_are_none():
    data = ReleaseReport(created=["a v1"]).to_dict()
    assert data["created"] == ["a v1"]
    assert data["skipped"] is None
    assert data["failed"] is None
    assert data["total"] == 1
    assert data["success_rate"] == pytest.approx(100.0)


def test_write_release_files(tmp_path):
    report = ReleaseReport(created=["a v1", "b v2"], failed=["c v3"])
    details = ["c v3 - NO_RECIPE: missing"]
    failures = tmp_path / "failures.txt"
    successes = tmp_path / "successes.txt"
    report_path = tmp_path / "report.json"
    write_release_files(report, details, str(failures), str(successes), str(report_path))
    assert failures.read_text() == "c v3 - NO_RECIPE: missing\n"
    assert successes.read_text() == "a v1\nb v2\n"
    loaded = json.loads(report_path.read_text())
    assert loaded["created"] == ["a v1", "b v2"]
    assert loaded["skipped"] is None
    assert loaded["total"] == report.total()
    assert loaded["success_rate"] == pytest.approx(report.success_rate())


def test_write_release_files_skips_empty(tmp_path):
    failures = tmp_path / "failures.txt"
    successes = tmp_path / "successes.txt"
    write_release_files(ReleaseReport(), [], str(failures), str(successes), "")
    assert not failures.exists()
    assert not successes.exists()


def test_write_release_files_report_error(tmp_path):
    bad = tmp_path / "missing" / "report.json"
    with pytest.raises(OSError, match="failed to write report file"):
        write_release_files(ReleaseReport(), [], "", "", str(bad))