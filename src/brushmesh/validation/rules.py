"""
Conversion rule definitions.

Each rule has:
- Code: Unique identifier (e.g., "FACE-001")
- Severity: FAIL, WARN, or INFO
- Message template: Human-readable description
- Remediation: Suggested fix

Rules are organized by category:
- GEOM: Plane and brush geometry
- FACE: Per-face derivation and classification
- MESH: Submesh buffer limits
- DATA: Derived per-face artifacts
- TEX: Texture resolution
- PROP: Entity property parsing
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .core import ConversionIssue, Severity


@dataclass(frozen=True)
class ConversionRule:
    """Definition of a conversion rule.

    Attributes:
        code: Unique rule code (e.g., "FACE-001")
        severity: Default severity for this rule
        message_template: Template for the issue message (use {placeholders})
        remediation_template: Template for suggested fix
    """
    code: str
    severity: Severity
    message_template: str
    remediation_template: Optional[str] = None

    def format_message(self, **kwargs) -> str:
        """Format the message template with provided values."""
        return self.message_template.format(**kwargs)

    def format_remediation(self, **kwargs) -> Optional[str]:
        """Format the remediation template with provided values."""
        if self.remediation_template:
            return self.remediation_template.format(**kwargs)
        return None

    def issue(self, entity: Optional[int] = None, brush: Optional[int] = None,
              face: Optional[int] = None, **kwargs) -> ConversionIssue:
        """Build an issue for this rule, formatting both templates with kwargs."""
        return ConversionIssue(
            severity=self.severity,
            code=self.code,
            message=self.format_message(**kwargs),
            remediation=self.format_remediation(**kwargs),
            entity=entity,
            brush=brush,
            face=face,
        )


# =============================================================================
# GEOMETRY RULES (GEOM)
# =============================================================================

GEOM_001 = ConversionRule(
    code="GEOM-001",
    severity=Severity.WARN,
    message_template="Collinear points in plane definition: {points}",
    remediation_template="Move one of the three plane points off the line through the others",
)

GEOM_002 = ConversionRule(
    code="GEOM-002",
    severity=Severity.WARN,
    message_template="Brush has {count} usable planes, at least 4 are needed for a solid",
    remediation_template="Delete or rebuild the brush in the editor",
)

# =============================================================================
# FACE RULES (FACE)
# =============================================================================

FACE_001 = ConversionRule(
    code="FACE-001",
    severity=Severity.WARN,
    message_template="Face on plane {plane} has {count} vertices, dropped",
    remediation_template="Remove the sliver plane or widen the brush",
)

FACE_002 = ConversionRule(
    code="FACE-002",
    severity=Severity.INFO,
    message_template="Face textured '{texture}' excluded from {targets}",
)

# =============================================================================
# MESH / DATA / TEX / PROP RULES
# =============================================================================

MESH_001 = ConversionRule(
    code="MESH-001",
    severity=Severity.FAIL,
    message_template="Submesh '{texture}' needs {count} vertices (limit {limit})",
    remediation_template="Split the brush so each texture group stays under {limit} vertices",
)

DATA_001 = ConversionRule(
    code="DATA-001",
    severity=Severity.FAIL,
    message_template="Face {face} is missing derived {artifact}",
)

TEX_001 = ConversionRule(
    code="TEX-001",
    severity=Severity.FAIL,
    message_template="Texture not found: {texture}",
    remediation_template="Add Textures/{texture} with one of the extensions {extensions}",
)

PROP_001 = ConversionRule(
    code="PROP-001",
    severity=Severity.FAIL,
    message_template="{error}",
)


ALL_RULES: Dict[str, ConversionRule] = {
    rule.code: rule
    for rule in [
        GEOM_001, GEOM_002,
        FACE_001, FACE_002,
        MESH_001, DATA_001, TEX_001, PROP_001,
    ]
}


def get_rule(code: str) -> Optional[ConversionRule]:
    """Look up a rule by its code."""
    return ALL_RULES.get(code)
