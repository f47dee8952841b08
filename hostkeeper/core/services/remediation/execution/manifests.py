"""
L4 Execution — Manifest edits.

Removes a package entry from a dependency manifest using a real parser
for the format, never a blind text substitution:

    package.json        json, every dependency section
    requirements*.txt   line-wise PEP 508 name parsing, comments kept

Anything else (Gemfile, pyproject.toml, lock files) is refused with
``UnsupportedManifestError``.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_JS_SECTIONS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)

# PEP 508 distribution name at the start of a requirement line
_REQ_NAME = re.compile(r"^\s*([A-Za-z0-9](?:[A-Za-z0-9._-]*[A-Za-z0-9])?)")


class UnsupportedManifestError(ValueError):
    """The manifest format is not one we edit."""


def canonicalize_name(name: str) -> str:
    """PEP 503 normalization: case-folded, runs of ``-_.`` become ``-``."""
    return re.sub(r"[-_.]+", "-", name).lower()


def manifest_kind(path: Path) -> str:
    name = path.name.lower()
    if name == "package.json":
        return "package.json"
    if name.startswith("requirements") and name.endswith(".txt"):
        return "requirements"
    raise UnsupportedManifestError(f"Refusing to edit {path.name}: unsupported manifest format")


def remove_package(path: Path, package: str) -> bool:
    """Remove ``package`` from the manifest at ``path``.

    Returns:
        True if an entry was removed, False if the package was not listed.

    Raises:
        UnsupportedManifestError: For formats we do not parse.
        OSError: If the file cannot be read or written.
        ValueError: If ``package.json`` is not valid JSON.
    """
    kind = manifest_kind(path)
    if kind == "package.json":
        return _remove_from_package_json(path, package)
    return _remove_from_requirements(path, package)


def _detect_indent(text: str) -> int:
    for line in text.splitlines()[1:]:
        stripped = line.lstrip(" ")
        if stripped and len(stripped) < len(line):
            return len(line) - len(stripped)
    return 2


def _remove_from_package_json(path: Path, package: str) -> bool:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"{path}: invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level value is not an object")

    removed = False
    for section in _JS_SECTIONS:
        deps = data.get(section)
        if isinstance(deps, dict) and package in deps:
            del deps[package]
            removed = True

    if removed:
        out = json.dumps(data, indent=_detect_indent(text), ensure_ascii=False)
        path.write_text(out + "\n", encoding="utf-8")
        logger.info("Removed %s from %s", package, path)
    return removed


def _remove_from_requirements(path: Path, package: str) -> bool:
    target = canonicalize_name(package)
    lines = path.read_text(encoding="utf-8").splitlines(keepends=True)

    kept: list[str] = []
    removed = False
    for line in lines:
        stripped = line.strip()
        # Comments, options (-r, -e, --index-url) and blanks pass through
        if not stripped or stripped.startswith(("#", "-")):
            kept.append(line)
            continue
        m = _REQ_NAME.match(line)
        if m and canonicalize_name(m.group(1)) == target:
            removed = True
            continue
        kept.append(line)

    if removed:
        path.write_text("".join(kept), encoding="utf-8")
        logger.info("Removed %s from %s", package, path)
    return removed
