"""
Entity conversion pipeline.

Turns each brush-owning entity of a MapData into one finalized Mesh plus
its placement anchor and rotation.  A fatal ConversionError aborts only
the entity it was raised for.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from brushmesh.conversion.map_data import MapData
from brushmesh.conversion.mesh_splitter import BrushNode, split_brush
from brushmesh.conversion.plane_math import Vec3
from brushmesh.conversion.scene import Mesh
from brushmesh.conversion.settings import ConversionSettings, EntityConfig
from brushmesh.conversion.textures import TextureResolver
from brushmesh.validation import rules
from brushmesh.validation.core import (
    CapacityExceeded, ConversionError, ConversionIssue, ConversionReport, ConversionStage,
    InvalidProperty, ResourceNotFound, Severity,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PipelineStage(Enum):
    PROPERTIES = "properties"
    SPLIT = "split"
    ASSEMBLE = "assemble"
    FINALIZE = "finalize"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class EntityResult:
    entity_index: int
    classname: str
    success: bool = False
    mesh: Optional[Mesh] = None
    anchor: Optional[Vec3] = None
    rotation: Optional[Vec3] = None
    report: ConversionReport = field(default_factory=lambda: ConversionReport(stage=ConversionStage.SPLIT))
    stages_completed: List[PipelineStage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, error: str, stage: Optional[PipelineStage] = None):
        if stage:
            error = f"[{stage.value}] {error}"
        self.errors.append(error)


# ---------------------------------------------------------------------------
# Converter
# ---------------------------------------------------------------------------

class EntityConverter:
    """Converts the brush entities of one MapData.

    Each call to convert() builds a fresh Mesh; nothing is shared between
    entities, so separate converters may run in parallel on separate
    MapData instances.
    """

    def __init__(self, map_data: MapData, settings: Optional[ConversionSettings] = None,
                 resolver: Optional[TextureResolver] = None):
        self.map_data = map_data
        self.settings = settings or map_data.settings
        self.resolver = resolver

    def build_nodes(self, entity_index: int, config: EntityConfig,
                    report: ConversionReport) -> List[BrushNode]:
        nodes: List[BrushNode] = []
        for geometry in self.map_data.entity_brushes(entity_index):
            nodes.extend(split_brush(geometry, config, self.settings, report, entity_index))
        return nodes

    def _failure_issue(self, error: ConversionError, entity_index: int) -> ConversionIssue:
        if isinstance(error, CapacityExceeded):
            return rules.MESH_001.issue(entity=entity_index, texture=error.texture,
                                        count=error.vertex_count, limit=error.limit)
        if isinstance(error, ResourceNotFound):
            return rules.TEX_001.issue(entity=entity_index, texture=error.name,
                                       extensions=", ".join(self.settings.texture_extensions))
        if isinstance(error, InvalidProperty):
            return rules.PROP_001.issue(entity=entity_index, error=str(error))
        return ConversionIssue(severity=Severity.FAIL, code=error.code,
                               message=str(error), entity=entity_index)

    def convert(self, entity_index: int) -> EntityResult:
        """
        Convert one entity.

        Returns:
            EntityResult; success is False and errors holds the reason when
            a ConversionError aborted the entity
        """
        entity = self.map_data.entities[entity_index]
        result = EntityResult(entity_index=entity_index, classname=entity.classname)
        start = time.time()
        stage = PipelineStage.PROPERTIES

        try:
            config = EntityConfig.from_properties(entity.properties)
            result.stages_completed.append(stage)

            stage = PipelineStage.SPLIT
            texture_error = self.map_data.entity_error(entity_index)
            if texture_error is not None:
                raise texture_error
            nodes = self.build_nodes(entity_index, config, result.report)
            result.stages_completed.append(stage)

            stage = PipelineStage.ASSEMBLE
            mesh = Mesh.from_nodes(nodes, self.settings, self.resolver)
            result.stages_completed.append(stage)

            stage = PipelineStage.FINALIZE
            mesh.finalize(config.mangle)
            result.stages_completed.append(stage)
        except ConversionError as e:
            logger.error(f"Entity {entity_index} ({entity.classname}) aborted at {stage.value}: {e}")
            result.add_error(str(e), stage)
            result.report.add_issue(self._failure_issue(e, entity_index))
            return result

        result.mesh = mesh
        result.anchor, result.rotation = mesh.placement()
        result.success = True
        result.stages_completed.append(PipelineStage.COMPLETE)
        result.metrics = {
            "submeshes": len(nodes),
            "visual_shapes": len(mesh.visual_shapes()),
            "collision_shapes": len(mesh.collision_shapes()),
            "scene_objects": len(mesh.stream),
            "total_time": time.time() - start,
        }
        logger.info(
            f"Entity {entity_index} ({entity.classname}): {len(nodes)} submeshes, "
            f"anchor {result.anchor}"
        )
        return result

    def convert_all(self) -> List[EntityResult]:
        """Convert every entity that owns at least one brush."""
        return [
            self.convert(index)
            for index, entity in enumerate(self.map_data.entities)
            if entity.brushes
        ]
