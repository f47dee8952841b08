"""
L1 Domain — Signature loading and matching (pure).

Turns the L0 dict tables into validated ``ErrorSignature`` models and
picks the signature for a failure. Selection is first-match in
declaration order; overlapping patterns are resolved by nothing else.

No I/O, no subprocess.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from pydantic import ValidationError

from hostkeeper.core.models.remediation import Ecosystem, ErrorSignature
from hostkeeper.core.services.remediation.data.signatures import (
    SIGNATURE_TABLES,
    VALID_CATEGORIES,
)

logger = logging.getLogger(__name__)


class SignatureTableError(ValueError):
    """A signature table is malformed (duplicate id, bad regex, bad step)."""


def _to_signature(ecosystem: Ecosystem, entry: dict) -> ErrorSignature:
    failure_id = entry.get("failure_id", "")
    if not failure_id:
        raise SignatureTableError(f"{ecosystem.value}: signature without failure_id")

    category = entry.get("category", "")
    if category and category not in VALID_CATEGORIES:
        raise SignatureTableError(f"{failure_id}: unknown category '{category}'")

    try:
        return ErrorSignature(
            id=failure_id,
            ecosystem=ecosystem,
            pattern=entry.get("pattern", ""),
            label=entry.get("label", failure_id),
            description=entry.get("description", ""),
            category=category,
            remediation=tuple(entry.get("steps", [])),
            terminal=entry.get("terminal", False),
            example=entry.get("example_stderr", ""),
        )
    except ValidationError as e:
        raise SignatureTableError(f"{failure_id}: {e}") from e


def load_signatures(
    tables: Mapping[str, Sequence[dict]] | None = None,
) -> dict[Ecosystem, list[ErrorSignature]]:
    """Validate signature tables, preserving declaration order.

    Args:
        tables: Ecosystem name → list of signature dicts. Defaults to
            the built-in ``SIGNATURE_TABLES``.

    Raises:
        SignatureTableError: On unknown ecosystems, duplicate ids, or
            entries that fail validation.
    """
    tables = SIGNATURE_TABLES if tables is None else tables

    loaded: dict[Ecosystem, list[ErrorSignature]] = {eco: [] for eco in Ecosystem}
    seen: set[str] = set()
    for name, entries in tables.items():
        try:
            ecosystem = Ecosystem(name)
        except ValueError as e:
            raise SignatureTableError(f"Unknown ecosystem '{name}'") from e

        for entry in entries:
            signature = _to_signature(ecosystem, entry)
            if signature.id in seen:
                raise SignatureTableError(f"Duplicate signature id '{signature.id}'")
            seen.add(signature.id)
            loaded[ecosystem].append(signature)

    logger.debug(
        "Loaded %d signature(s) across %d ecosystem(s)",
        len(seen), sum(1 for sigs in loaded.values() if sigs),
    )
    return loaded


def classify(
    ecosystem: Ecosystem,
    text: str,
    signatures: Mapping[Ecosystem, Sequence[ErrorSignature]],
) -> tuple[ErrorSignature | None, dict[str, str]]:
    """First signature of ``ecosystem`` whose pattern matches ``text``.

    Returns:
        ``(signature, captures)``; ``(None, {})`` when nothing matches.
        Unmatched optional groups are left out of ``captures``.
    """
    for signature in signatures.get(ecosystem, ()):
        match = signature.search(text)
        if match is None:
            continue
        captures = {k: v for k, v in match.groupdict().items() if v is not None}
        logger.debug("Classified %s failure as %s", ecosystem.value, signature.id)
        return signature, captures
    return None, {}


def find_signature(
    signature_id: str,
    signatures: Mapping[Ecosystem, Sequence[ErrorSignature]],
) -> ErrorSignature | None:
    for sigs in signatures.values():
        for signature in sigs:
            if signature.id == signature_id:
                return signature
    return None


_FIELD = re.compile(r"\{(\w+)\}")


def template_fields(signature: ErrorSignature) -> set[str]:
    """Every ``{name}`` placeholder used by the signature's steps."""
    names: set[str] = set()
    for step in signature.remediation:
        for text in (*step.argv, step.path, step.version, step.manifest,
                     step.package, step.only_if_exists):
            names.update(_FIELD.findall(text))
    return names
