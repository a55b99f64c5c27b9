"""
Pathfinding on the target mesh.
"""

from .virtual_astar import find_virtual_path, VirtualPathResult

__all__ = [
    "find_virtual_path",
    "VirtualPathResult",
]
