"""Update-check results for packages and their JSON and text renderings."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class UpdateInfo:
    """Whether a newer version of a package is waiting to be released."""

    package: str
    latest_version: str = ""
    current_version: str = ""
    update_needed: bool = False
    recipe_file: str = ""
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form, leaving out empty optional fields."""
        data: dict[str, Any] = {"package": self.package}
        if self.current_version:
            data["current_version"] = self.current_version
        data["latest_version"] = self.latest_version
        data["update_needed"] = self.update_needed
        data["recipe_file"] = self.recipe_file
        if self.error:
            data["error"] = self.error
        return data


def recipe_file_path(recipes_dir: str, package_name: str) -> str:
    """Return the recipe file path reported for a package."""
    return f"{recipes_dir}/{package_name}.yml"


def has_errors(updates: Iterable[UpdateInfo]) -> bool:
    """Tell whether any update check ended with an error."""
    return any(update.error for update in updates)


def format_updates_json(updates: Sequence[UpdateInfo]) -> str:
    """Render the updates as indented JSON followed by a newline.

    No updates at all render as ``null``; HTML-significant characters are
    escaped as unicode sequences.
    """
    if not updates:
        return "null\n"
    text = json.dumps([u.to_dict() for u in updates], indent=2, ensure_ascii=False)
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text + "\n"


def format_updates_human(updates: Sequence[UpdateInfo]) -> str:
    """Render the updates as a readable table with a closing summary line."""
    lines = ["Package Update Check Results", "=" * 60, ""]
    available = 0
    errors = 0
    for update in updates:
        if update.error:
            lines.append(f"❌ {update.package:<20} ERROR: {update.error}")
            errors += 1
        elif update.update_needed:
            lines.append(
                f"📦 {update.package:<20} {update.latest_version} (new version available)"
            )
            available += 1
        else:
            lines.append(f"✅ {update.package:<20} {update.current_version} (up to date)")
    lines.append("")
    lines.append(
        f"Summary: {len(updates)} packages checked, "
        f"{available} updates available, {errors} errors"
    )
    return "\n".join(lines) + "\n"