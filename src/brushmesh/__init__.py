"""
Brush geometry to game mesh conversion.

Reconstructs convex brushes from their planes, triangulates and
classifies their faces, and assembles per-texture visual and collision
submeshes into one scene graph per entity.
"""

__version__ = "0.1.0"
