import json

from potions.monitor_report import (
    UpdateInfo,
    format_updates_human,
    format_updates_json,
    has_errors,
    recipe_file_path,
)


def _sample():
    return [
        UpdateInfo("kubectl", latest_version="1.29.0", update_needed=True,
                   recipe_file=recipe_file_path("recipes", "kubectl")),
        UpdateInfo("helm", latest_version="3.13.0", current_version="3.13.0",
                   recipe_file=recipe_file_path("recipes", "helm")),
        UpdateInfo("age", recipe_file=recipe_file_path("recipes", "age"),
                   error="no version_source configured"),
    ]


def test_recipe_file_path():
    assert recipe_file_path("recipes", "kubectl") == "recipes/kubectl.yml"


def test_to_dict_omits_empty_optional_fields():
    data = UpdateInfo("kubectl", latest_version="1.29.0", update_needed=True).to_dict()
    assert "current_version" not in data
    assert "error" not in data
    assert data["update_needed"] is True
    assert list(data) == ["package", "latest_version", "update_needed", "recipe_file"]


def test_to_dict_includes_optional_fields_when_set():
    info = UpdateInfo("helm", latest_version="3.13.0", current_version="3.13.0",
                      error="could not verify release status: boom")
    data = info.to_dict()
    assert data["current_version"] == "3.13.0"
    assert data["error"] == info.error
    assert list(data) == [
        "package", "current_version", "latest_version",
        "update_needed", "recipe_file", "error",
    ]


def test_has_errors():
    updates = _sample()
    assert has_errors(updates) is True
    assert has_errors(updates[:2]) is False
    assert has_errors([]) is False


def test_format_json_round_trip():
    updates = _sample()
    text = format_updates_json(updates)
    assert text.endswith("\n")
    assert json.loads(text) == [u.to_dict() for u in updates]
    assert text.startswith('[\n  {\n    "package": "kubectl"')


def test_format_json_empty_is_null():
    assert json.loads(format_updates_json([])) is None


def test_format_json_escapes_html_characters():
    info = UpdateInfo("pkg", error="failed: <a&b>")
    text = format_updates_json([info])
    assert "<" not in text and ">" not in text and "&" not in text
    assert "\\u003c" in text
    assert json.loads(text)[0]["error"] == "failed: <a&b>"


def test_format_human_lines():
    updates = _sample()
    lines = format_updates_human(updates).splitlines()
    assert lines[0] == "Package Update Check Results"
    assert lines[1] == "=" * 60
    assert lines[3] == "📦 " + "kubectl".ljust(20) + " 1.29.0 (new version available)"
    assert lines[4] == "✅ " + "helm".ljust(20) + " 3.13.0 (up to date)"
    assert lines[5] == "❌ " + "age".ljust(20) + " ERROR: no version_source configured"
    assert lines[-1] == (
        f"Summary: {len(updates)} packages checked, 1 updates available, 1 errors"
    )


def test_format_human_empty():
    lines = format_updates_human([]).splitlines()
    assert lines[-1] == "Summary: 0 packages checked, 0 updates available, 0 errors"
    assert len(lines) == 5