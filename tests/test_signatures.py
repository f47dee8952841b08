"""
Tests for signature tables, classification and version picking.
"""

import pytest

from hostkeeper.core.models.remediation import Ecosystem, StepKind
from hostkeeper.core.services.remediation.data.signatures import SIGNATURE_TABLES
from hostkeeper.core.services.remediation.domain.matching import (
    SignatureTableError,
    classify,
    find_signature,
    load_signatures,
    template_fields,
)
from hostkeeper.core.services.remediation.domain.versions import (
    parse_version,
    pick_runtime_version,
    satisfies,
)

ALL_ENTRIES = [
    (eco, entry) for eco, entries in SIGNATURE_TABLES.items() for entry in entries
]


def _entry(failure_id: str, pattern: str, **extra) -> dict:
    return {"failure_id": failure_id, "pattern": pattern, **extra}


class TestBuiltinTables:
    def test_tables_load(self):
        tables = load_signatures()
        assert set(tables) == set(Ecosystem)
        assert all(tables[eco] for eco in Ecosystem)

    @pytest.mark.parametrize(
        "ecosystem,entry", ALL_ENTRIES, ids=[e["failure_id"] for _, e in ALL_ENTRIES],
    )
    def test_example_classifies_as_itself(self, ecosystem, entry):
        signature, _ = classify(Ecosystem(ecosystem), entry["example_stderr"], load_signatures())
        assert signature is not None
        assert signature.id == entry["failure_id"]

    def test_every_signature_has_steps(self):
        for sigs in load_signatures().values():
            for sig in sigs:
                assert sig.remediation, sig.id

    def test_captures(self):
        tables = load_signatures()
        sig, captures = classify(
            Ecosystem.RUBY,
            "Ignoring nokogiri-1.15.4 because its extensions are not built.",
            tables,
        )
        assert sig.id == "gem_extensions_not_built"
        assert captures == {"package": "nokogiri", "version": "1.15.4"}

    def test_npm_engine_requirement(self):
        sig = find_signature("npm_engine_unsupported", load_signatures())
        _, captures = classify(Ecosystem.JS, sig.example, load_signatures())
        assert captures["version"] == "^18.0.0 || >=20.0.0"

    def test_xcode_is_terminal(self):
        assert find_signature("xcode_clt_missing", load_signatures()).terminal

    def test_template_fields(self):
        sig = find_signature("pep668", load_signatures())
        assert template_fields(sig) == {"venv", "packages"}


class TestClassify:
    def test_no_match(self):
        assert classify(Ecosystem.PYTHON, "Segmentation fault", load_signatures()) == (None, {})

    def test_only_own_ecosystem(self):
        text = "error: externally-managed-environment"
        assert classify(Ecosystem.JS, text, load_signatures())[0] is None

    def test_case_insensitive(self):
        sig, _ = classify(Ecosystem.PYTHON, "ERROR: EXTERNALLY-MANAGED-ENVIRONMENT", load_signatures())
        assert sig.id == "pep668"

    def test_first_match_wins(self):
        tables = load_signatures({
            "os": [
                _entry("broad", r"Error", steps=[{"kind": "command", "argv": ["true"]}]),
                _entry("narrow", r"Error: disk", steps=[{"kind": "command", "argv": ["true"]}]),
            ],
        })
        sig, _ = classify(Ecosystem.OS, "Error: disk full", tables)
        assert sig.id == "broad"

    def test_unmatched_optional_groups_dropped(self):
        tables = load_signatures({"os": [_entry("opt", r"fail(?: in (?P<where>\w+))?")]})
        _, captures = classify(Ecosystem.OS, "fail", tables)
        assert captures == {}


class TestTableValidation:
    def test_duplicate_id(self):
        with pytest.raises(SignatureTableError, match="Duplicate"):
            load_signatures({
                "os": [_entry("dup", "a")],
                "js": [_entry("dup", "b")],
            })

    def test_bad_regex(self):
        with pytest.raises(SignatureTableError):
            load_signatures({"os": [_entry("bad", "(unclosed")]})

    def test_empty_pattern(self):
        with pytest.raises(SignatureTableError):
            load_signatures({"os": [_entry("empty", "")]})

    def test_unknown_ecosystem(self):
        with pytest.raises(SignatureTableError, match="Unknown ecosystem"):
            load_signatures({"go": [_entry("x", "a")]})

    def test_unknown_category(self):
        with pytest.raises(SignatureTableError, match="category"):
            load_signatures({"os": [_entry("x", "a", category="weather")]})

    def test_unknown_step_kind(self):
        with pytest.raises(SignatureTableError):
            load_signatures({"os": [_entry("x", "a", steps=[{"kind": "reboot"}])]})

    def test_unknown_step_field(self):
        with pytest.raises(SignatureTableError):
            load_signatures({
                "os": [_entry("x", "a", steps=[{"kind": "command", "argv": ["ls"], "shell": True}])],
            })

    def test_missing_id(self):
        with pytest.raises(SignatureTableError):
            load_signatures({"os": [{"pattern": "a"}]})

    def test_steps_are_typed(self):
        tables = load_signatures({
            "os": [_entry("x", "a", steps=[{"kind": "take_ownership", "path": "{home}/x"}])],
        })
        assert tables[Ecosystem.OS][0].remediation[0].kind == StepKind.TAKE_OWNERSHIP


class TestVersions:
    def test_parse(self):
        assert parse_version("v18.2.0") == (18, 2, 0)
        assert parse_version("3") == (3,)
        assert parse_version("latest") is None

    @pytest.mark.parametrize(
        "version,requirement,expected",
        [
            ("3.3.0", ">= 2.7.0", True),
            ("2.6.10", ">= 2.7.0", False),
            ("16.20.0", "^18.0.0 || >=20.0.0", False),
            ("18.19.0", "^18.0.0 || >=20.0.0", True),
            ("21.1.0", "^18.0.0 || >=20.0.0", True),
            ("3.2.9", "~> 3.2", True),
            ("4.0.0", "~> 3.2", False),
            ("3.11", ">=3.9, <3.13", True),
            ("3.13", ">=3.9, <3.13", False),
            ("3.2.2", "3.2", True),
            ("nope", ">=1", False),
        ],
    )
    def test_satisfies(self, version, requirement, expected):
        assert satisfies(version, requirement) is expected

    def test_default_kept_when_it_satisfies(self):
        assert pick_runtime_version(">= 2.7.0", "3.3.0") == "3.3.0"

    def test_lowest_bound_otherwise(self):
        assert pick_runtime_version("^18.0.0 || >=20.0.0", "16") == "18.0.0"

    def test_strict_bound_bumped(self):
        assert pick_runtime_version("> 3.0", "2.7") == "3.1"

    def test_exact_version(self):
        assert pick_runtime_version("v3.2.2", "3.3.0") == "3.2.2"

    def test_unparseable_falls_back_to_default(self):
        assert pick_runtime_version("lts/*", "20") == "20"
        assert pick_runtime_version("", "20") == "20"
