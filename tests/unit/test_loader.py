"""Unit tests for assertion file loading and serialization."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from netsert.core.assertion import Assertion, AssertionFile, Predicate, PredicateKind, Target
from netsert.core.exceptions import AssertionFileError, MalformedPathError
from netsert.core.loader import dump, load_file, parse, to_dict

SAMPLE = """
targets:
  - host: spine1:6030
    username: admin
    password: admin
    insecure: true
    assertions:
      - name: Uplink is up
        path: interface[Ethernet1]/state/oper-status
        equals: UP
      - path: /system/state/hostname
        matches: "^spine"
      - path: interface[Ethernet1]/state/counters/in-octets
        gt: 100
  - address: leaf1:6030
    assertions:
      - path: bgp[default]/neighbors/neighbor[neighbor-address=10.0.0.1]
        exists: true
"""


class TestParse:
    """Tests for parsing assertion YAML."""

    def test_sample_file(self) -> None:
        assertion_file = parse(SAMPLE)

        assert len(assertion_file.targets) == 2
        assert assertion_file.assertion_count == 4
        spine = assertion_file.targets[0]
        assert (spine.host, spine.username, spine.password, spine.insecure) == (
            "spine1:6030",
            "admin",
            "admin",
            True,
        )
        first = spine.assertions[0]
        assert first.name == "Uplink is up"
        assert first.path == "/interfaces/interface[name=Ethernet1]/state/oper-status"
        assert first.predicate == Predicate(PredicateKind.EQUALS, "UP")

    def test_numeric_scalar_normalized_to_text(self) -> None:
        assertion = parse(SAMPLE).targets[0].assertions[2]
        assert assertion.predicate == Predicate(PredicateKind.GT, "100")

    def test_address_is_accepted_for_host(self) -> None:
        leaf = parse(SAMPLE).targets[1]
        assert leaf.host == "leaf1:6030"
        assert leaf.assertions[0].predicate == Predicate(PredicateKind.EXISTS, True)
        assert leaf.assertions[0].path.startswith("/network-instances/")

    def test_boolean_equals_operand(self) -> None:
        text = "targets:\n  - host: h\n    assertions:\n      - path: /a/enabled\n        equals: true\n"
        assertion = parse(text).targets[0].assertions[0]
        assert assertion.predicate == Predicate(PredicateKind.EQUALS, "true")

    def test_empty_document(self) -> None:
        assert parse("") == AssertionFile()

    def test_target_without_assertions(self) -> None:
        assertion_file = parse("targets:\n  - host: spine1:6030\n")
        assert assertion_file.targets == (Target(host="spine1:6030"),)

    def test_group_reference_target(self) -> None:
        target = parse("targets:\n  - host: '@spines'\n").targets[0]
        assert target.is_group_reference


class TestParseErrors:
    """Tests for rejected files."""

    def test_invalid_yaml(self) -> None:
        with pytest.raises(AssertionFileError, match="parsing YAML"):
            parse("targets: [unclosed")

    def test_non_mapping(self) -> None:
        with pytest.raises(AssertionFileError, match="must be a mapping"):
            parse("- a\n- b\n")

    def test_targets_not_list(self) -> None:
        with pytest.raises(AssertionFileError, match="'targets' must be a list"):
            parse("targets: spine1\n")

    def test_missing_host(self) -> None:
        with pytest.raises(AssertionFileError, match="target 0: host is required"):
            parse("targets:\n  - assertions: []\n")

    def test_missing_path(self) -> None:
        text = "targets:\n  - host: h\n    assertions:\n      - equals: UP\n"
        with pytest.raises(AssertionFileError, match="target 0, assertion 0: path is required"):
            parse(text)

    def test_malformed_path(self) -> None:
        text = "targets:\n  - host: h\n    assertions:\n      - path: /a[name=x/b\n        equals: UP\n"
        with pytest.raises(MalformedPathError):
            parse(text)

    def test_non_numeric_threshold(self) -> None:
        text = "targets:\n  - host: h\n    assertions:\n      - path: /a\n        lt: lots\n"
        with pytest.raises(AssertionFileError, match="threshold is not numeric"):
            parse(text)

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(AssertionFileError, match="reading file"):
            load_file(tmp_path / "missing.yaml")


class TestPredicateSelection:
    """Tests for assertions declaring more than one predicate."""

    def _predicate(self, body: str) -> Predicate | None:
        text = f"targets:\n  - host: h\n    assertions:\n      - path: /a\n{body}"
        return parse(text).targets[0].assertions[0].predicate

    def test_true_exists_wins(self) -> None:
        predicate = self._predicate("        equals: UP\n        exists: true\n")
        assert predicate == Predicate(PredicateKind.EXISTS, True)

    def test_equals_beats_contains(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="netsert.core.loader"):
            predicate = self._predicate("        contains: U\n        equals: UP\n")
        assert predicate == Predicate(PredicateKind.EQUALS, "UP")
        assert "several predicates" in caplog.text

    def test_false_exists_falls_through(self) -> None:
        predicate = self._predicate("        exists: false\n        contains: U\n")
        assert predicate == Predicate(PredicateKind.CONTAINS, "U")

    def test_only_false_exists_is_inert(self) -> None:
        predicate = self._predicate("        exists: false\n")
        assert predicate is not None and not predicate.is_active

    def test_no_predicate(self) -> None:
        assert self._predicate("        name: bare\n") is None


class TestDump:
    """Tests for serialization."""

    def test_dump_compacts_paths_and_omits_empty_fields(self) -> None:
        assertion_file = AssertionFile(
            targets=(
                Target(
                    host="spine1:6030",
                    assertions=(
                        Assertion(
                            path="/interfaces/interface[name=Ethernet1]/state/oper-status",
                            predicate=Predicate(PredicateKind.EQUALS, "UP"),
                            name="Interface Ethernet1 is UP",
                        ),
                    ),
                ),
            )
        )

        data = to_dict(assertion_file)

        assert data == {
            "targets": [
                {
                    "host": "spine1:6030",
                    "assertions": [
                        {
                            "name": "Interface Ethernet1 is UP",
                            "path": "interface[Ethernet1]/state/oper-status",
                            "equals": "UP",
                        }
                    ],
                }
            ]
        }

    def test_dump_then_parse_preserves_file(self) -> None:
        original = parse(SAMPLE)
        text = dump(original, header="# generated\n")
        assert text.startswith("# generated\n")
        reparsed = parse(text)
        assert reparsed.targets[0] == original.targets[0]
        assert reparsed.targets[1].assertions == original.targets[1].assertions

    def test_canonical_paths_kept_when_requested(self) -> None:
        original = parse(SAMPLE)
        data = to_dict(original, short_paths=False)
        assert data["targets"][0]["assertions"][0]["path"].startswith("/interfaces/")

    def test_load_file(self, write_file) -> None:
        path = write_file("assertions.yaml", SAMPLE)
        assert load_file(path) == parse(SAMPLE)
