"""
Brush entity conversion pipeline.

Converts brush entities into finalized visual/collision scene graphs.
"""

from .entity_pipeline import (
    EntityConverter,
    EntityResult,
    PipelineStage,
)

__all__ = [
    'EntityConverter',
    'EntityResult',
    'PipelineStage',
]
