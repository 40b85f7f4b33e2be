"""
Conversion reporting package.

Public API:
    - ConversionReport, ConversionIssue, Severity: Non-fatal findings
    - ConversionStage: Pipeline stage enumeration
    - ConversionError and subclasses: Fatal conditions
    - ConversionRule, get_rule: Rule code definitions
"""

from .core import (
    Severity,
    ConversionStage,
    ConversionIssue,
    ConversionReport,
    ConversionError,
    DegenerateGeometry,
    MissingDerivedData,
    CapacityExceeded,
    ResourceNotFound,
    InvalidProperty,
    ConfigError,
)
from .rules import ALL_RULES, ConversionRule, get_rule

__all__ = [
    # Core types
    'Severity',
    'ConversionStage',
    'ConversionIssue',
    'ConversionReport',
    # Errors
    'ConversionError',
    'DegenerateGeometry',
    'MissingDerivedData',
    'CapacityExceeded',
    'ResourceNotFound',
    'InvalidProperty',
    'ConfigError',
    # Rules
    'ALL_RULES',
    'ConversionRule',
    'get_rule',
]
