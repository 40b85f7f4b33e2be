"""
Core data structures for conversion reporting and failure.

Defines the fundamental types used throughout the package:
- Severity: Issue severity levels (INFO, WARN, FAIL)
- ConversionStage: Pipeline stages where issues are recorded
- ConversionIssue: Individual non-fatal finding (skipped face, dropped plane)
- ConversionReport: Collection of issues with pass/fail status
- ConversionError and subclasses: fatal conditions that abort an entity
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional


class Severity(Enum):
    """Issue severity levels.

    - INFO: Informational, logged but doesn't affect pass/fail
    - WARN: Geometry was skipped, output is still produced
    - FAIL: The entity could not be converted
    """
    INFO = auto()
    WARN = auto()
    FAIL = auto()

    def __str__(self) -> str:
        return self.name


class ConversionStage(Enum):
    """Pipeline stages where issues are recorded.

    - FACES: Brush derivation in MapData.build (planes, faces, triangles, textures)
    - SPLIT: Per-entity submesh building and scene assembly
    """
    FACES = "faces"
    SPLIT = "split"

    def __str__(self) -> str:
        return self.value


@dataclass
class ConversionIssue:
    """Represents a single conversion finding.

    Attributes:
        severity: Issue severity (INFO, WARN, FAIL)
        code: Rule code (e.g., "FACE-001")
        message: Human-readable description
        remediation: Optional suggested fix
        entity: Optional entity index
        brush: Optional brush id
        face: Optional face index within the brush
    """
    severity: Severity
    code: str
    message: str
    remediation: Optional[str] = None
    entity: Optional[int] = None
    brush: Optional[int] = None
    face: Optional[int] = None

    def format(self) -> str:
        """Format issue for display.

        Returns:
            [SEVERITY] RULE_ID entity=E brush=B face=F :: message :: fix=FIX
        """
        entity = '-' if self.entity is None else self.entity
        brush = '-' if self.brush is None else self.brush
        face = '-' if self.face is None else self.face
        fix = self.remediation or 'N/A'

        return (
            f"[{self.severity}] {self.code} "
            f"entity={entity} brush={brush} face={face} :: "
            f"{self.message} :: fix={fix}"
        )

    def __str__(self) -> str:
        return self.format()


@dataclass
class ConversionReport:
    """Collection of conversion issues with pass/fail determination.

    Attributes:
        issues: List of ConversionIssue objects
        stage: Pipeline stage this report is from
    """
    issues: List[ConversionIssue] = field(default_factory=list)
    stage: Optional[ConversionStage] = None

    def _with_severity(self, severity: Severity) -> List[ConversionIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def passed(self) -> bool:
        """True while no issue is FAIL; skipped geometry alone still passes."""
        return not self._with_severity(Severity.FAIL)

    @property
    def failed(self) -> bool:
        return not self.passed

    @property
    def warnings(self) -> List[ConversionIssue]:
        return self._with_severity(Severity.WARN)

    @property
    def errors(self) -> List[ConversionIssue]:
        return self._with_severity(Severity.FAIL)

    @property
    def infos(self) -> List[ConversionIssue]:
        return self._with_severity(Severity.INFO)

    def codes(self) -> List[str]:
        return [i.code for i in self.issues]

    def add_issue(self, issue: ConversionIssue) -> None:
        self.issues.append(issue)

    def merge(self, other: 'ConversionReport') -> 'ConversionReport':
        """Append another report's issues; returns self for chaining."""
        self.issues.extend(other.issues)
        return self

    def report(self) -> str:
        """Render every issue, one per line, grouped by entity.

        Brush-level findings recorded without an entity come first.
        """
        if not self.issues:
            return "Conversion passed: No issues found"

        status = "PASSED" if self.passed else "FAILED"
        at = f" at {self.stage}" if self.stage else ""
        lines = [
            f"Conversion {status}{at}: {len(self.errors)} failed, "
            f"{len(self.warnings)} skipped, {len(self.infos)} notes"
        ]

        by_entity: Dict[Optional[int], List[ConversionIssue]] = {}
        for issue in self.issues:
            by_entity.setdefault(issue.entity, []).append(issue)
        for entity in sorted(by_entity, key=lambda e: -1 if e is None else e):
            lines.append(f"entity {'-' if entity is None else entity}:")
            lines.extend(f"  {issue.format()}" for issue in by_entity[entity])
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Plain-data form of the report, suitable for json.dump."""
        return {
            'passed': self.passed,
            'stage': None if self.stage is None else self.stage.value,
            'counts': {s.name.lower(): len(self._with_severity(s)) for s in Severity},
            'issues': [
                {
                    'severity': issue.severity.name,
                    'code': issue.code,
                    'message': issue.message,
                    'remediation': issue.remediation,
                    'location': [issue.entity, issue.brush, issue.face],
                }
                for issue in self.issues
            ],
        }


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConversionError(Exception):
    """Base class for conditions that abort an entity's conversion."""

    code = "CONV-000"


class DegenerateGeometry(ConversionError):
    """Collinear plane points or a singular plane triple."""

    code = "GEOM-001"


class MissingDerivedData(ConversionError):
    """A face lacks triangle indices, UVs or normals that were promised."""

    code = "DATA-001"


class CapacityExceeded(ConversionError):
    """A submesh needs more vertices than a 16-bit index can address."""

    code = "MESH-001"

    def __init__(self, vertex_count: int, limit: int, texture: str = ""):
        self.vertex_count = vertex_count
        self.limit = limit
        self.texture = texture
        super().__init__(
            f"Submesh '{texture}' needs {vertex_count} vertices, "
            f"16-bit indices address at most {limit}"
        )


class ResourceNotFound(ConversionError):
    """A referenced texture is missing from every search path."""

    code = "TEX-001"

    def __init__(self, name: str, searched: Optional[List[str]] = None):
        self.name = name
        self.searched = list(searched or [])
        super().__init__(f"Texture not found: {name}")


class InvalidProperty(ConversionError):
    """An entity property is present but cannot be parsed."""

    code = "PROP-001"

    def __init__(self, key: str, value: str, reason: str):
        self.key = key
        self.value = value
        super().__init__(f"Invalid value for '{key}': {value!r} ({reason})")


class ConfigError(ConversionError):
    """Settings file is unreadable or has unknown keys."""

    code = "CONF-001"
