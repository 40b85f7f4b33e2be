from __future__ import annotations

from brushmesh.validation import (
    ALL_RULES,
    CapacityExceeded,
    ConversionError,
    ConversionReport,
    ConversionStage,
    Severity,
    get_rule,
)
from brushmesh.validation import rules


def test_rule_issue_formats_message_and_location() -> None:
    issue = rules.FACE_001.issue(entity=0, brush=3, face=5, plane=4, count=2)

    assert issue.severity == Severity.WARN
    assert issue.message == "Face on plane 4 has 2 vertices, dropped"
    assert issue.format().startswith("[WARN] FACE-001 entity=0 brush=3 face=5 :: ")


def test_rule_lookup() -> None:
    assert get_rule("MESH-001") is rules.MESH_001
    assert get_rule("NOPE-999") is None
    assert all(code == rule.code for code, rule in ALL_RULES.items())


def test_report_pass_fail_and_merge() -> None:
    report = ConversionReport(stage=ConversionStage.FACES)
    report.add_issue(rules.GEOM_002.issue(brush=1, count=2))
    report.add_issue(rules.FACE_002.issue(texture="skip", targets="visual and collision"))
    assert report.passed
    assert len(report.warnings) == 1
    assert len(report.infos) == 1

    failing = ConversionReport()
    failing.add_issue(rules.MESH_001.issue(texture="wood01", count=70000, limit=65535))
    report.merge(failing)

    assert report.failed
    assert report.codes() == ["GEOM-002", "FACE-002", "MESH-001"]
    data = report.to_dict()
    assert data["counts"] == {"info": 1, "warn": 1, "fail": 1}
    assert data["issues"][0]["location"] == [None, 1, None]
    assert data["stage"] == "faces"
    assert "FAILED" in report.report()


def test_empty_report_text() -> None:
    assert ConversionReport().report() == "Conversion passed: No issues found"


def test_capacity_error_carries_counts() -> None:
    error = CapacityExceeded(70000, 65535, "wood01")
    assert isinstance(error, ConversionError)
    assert error.code == "MESH-001"
    assert "70000" in str(error)


def test_report_groups_issues_by_entity() -> None:
    report = ConversionReport()
    report.add_issue(rules.PROP_001.issue(entity=2, error="bad alpha"))
    report.add_issue(rules.GEOM_001.issue(brush=0, face=1, points="0 0 0"))

    lines = report.report().splitlines()
    assert lines[0] == "Conversion FAILED: 1 failed, 1 skipped, 0 notes"
    assert lines[1] == "entity -:"
    assert lines[2].startswith("  [WARN] GEOM-001")
    assert lines[3] == "entity 2:"
