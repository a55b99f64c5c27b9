"""
Input bundle for layout embedding.

EmbeddingInput groups a layout mesh, a target mesh and the matching between
them, and provides the preprocessing applied before an embedding is built:
scaling the target to unit surface area, centering it at the origin,
flipping the layout orientation, and random matchings for stress tests.
"""

from typing import List, Optional, Sequence, TYPE_CHECKING
import logging

import numpy as np

from .embedding import Embedding
from .errors import ensure
from .mesh import HalfEdgeMesh
from .primitives import nearest_vertices

if TYPE_CHECKING:
    import trimesh

logger = logging.getLogger(__name__)


class EmbeddingInput:
    """
    Layout mesh, target mesh and matching.

    Parameters
    ----------
    layout_mesh : HalfEdgeMesh
        Layout mesh. Its positions, if any, are kept in sync with
        ``layout_positions``.
    target_mesh : HalfEdgeMesh
        Target triangle mesh with positions.
    matching : sequence of int
        Target vertex for each layout vertex.
    layout_positions : array-like, optional
        Positions of the layout vertices (e.g. landmark coordinates).
        Defaults to the positions of the matching target vertices.
    """

    def __init__(
        self,
        layout_mesh: HalfEdgeMesh,
        target_mesh: HalfEdgeMesh,
        matching: Sequence[int],
        layout_positions: Optional[np.ndarray] = None,
    ):
        if target_mesh.positions is None:
            raise ValueError("Target mesh needs vertex positions")
        matching = [int(t_v) for t_v in matching]
        if len(matching) != layout_mesh.n_vertices:
            raise ValueError(
                f"Expected {layout_mesh.n_vertices} matching vertices, got {len(matching)}"
            )

        if layout_positions is None:
            if layout_mesh.positions is not None:
                layout_positions = layout_mesh.positions
            else:
                layout_positions = target_mesh.positions[matching]

        self.target_mesh = target_mesh
        self.matching: List[int] = matching
        self.layout_mesh = layout_mesh.with_positions(np.array(layout_positions, dtype=float))

    @property
    def layout_positions(self) -> np.ndarray:
        return self.layout_mesh.positions

    @classmethod
    def from_trimesh(
        cls,
        layout_faces: Sequence[Sequence[int]],
        target: "trimesh.Trimesh",
        matching: Sequence[int],
        layout_positions: Optional[np.ndarray] = None,
    ) -> "EmbeddingInput":
        """Build an input from layout face indices and a trimesh target."""
        target_mesh = HalfEdgeMesh.from_trimesh(target)
        layout_mesh = HalfEdgeMesh(layout_faces, n_vertices=len(matching))
        return cls(layout_mesh, target_mesh, matching, layout_positions)

    @classmethod
    def from_landmarks(
        cls,
        layout_mesh: HalfEdgeMesh,
        target_mesh: HalfEdgeMesh,
        landmarks: np.ndarray,
    ) -> "EmbeddingInput":
        """
        Match each layout vertex to the target vertex nearest to its landmark.

        Raises
        ------
        ValueError
            If two landmarks snap to the same target vertex.
        """
        landmarks = np.asarray(landmarks, dtype=float).reshape(-1, 3)
        matching = nearest_vertices(target_mesh, landmarks)
        if len(set(matching)) != len(matching):
            raise ValueError("Two landmarks snap to the same target vertex")
        return cls(layout_mesh, target_mesh, matching, landmarks)

    def normalize_surface_area(self) -> float:
        """
        Scale target and layout positions so the target has unit area.

        Returns
        -------
        float
            Applied scale factor.
        """
        area = self.target_mesh.surface_area()
        ensure(area > 0.0, "Target mesh has zero surface area")
        scale = 1.0 / np.sqrt(area)
        self.target_mesh = self.target_mesh.with_positions(self.target_mesh.positions * scale)
        self.layout_mesh = self.layout_mesh.with_positions(self.layout_positions * scale)
        logger.debug(f"Scaled target mesh by {scale:.6g} to unit surface area")
        return float(scale)

    def center_translation(self) -> np.ndarray:
        """
        Translate target and layout positions so the target centroid is at the origin.

        Returns
        -------
        np.ndarray
            Applied translation.
        """
        translation = -self.target_mesh.positions.mean(axis=0)
        self.target_mesh = self.target_mesh.with_positions(self.target_mesh.positions + translation)
        self.layout_mesh = self.layout_mesh.with_positions(self.layout_positions + translation)
        return translation

    def invert_layout(self) -> None:
        """
        Reverse the orientation of all layout faces.

        Edge indices of the new layout mesh generally differ from the old
        ones, so this must happen before an embedding is built.
        """
        faces = [face[::-1] for face in self.layout_mesh.faces]
        self.layout_mesh = HalfEdgeMesh(
            faces,
            n_vertices=self.layout_mesh.n_vertices,
            positions=self.layout_positions,
        )

    def make_embedding(self) -> Embedding:
        return Embedding(self.layout_mesh, self.target_mesh, self.matching)

    def __repr__(self) -> str:
        return f"EmbeddingInput(layout={self.layout_mesh!r}, target={self.target_mesh!r})"


def randomize_matching_vertices(inp: EmbeddingInput, seed: Optional[int] = None) -> None:
    """
    Replace the matching with distinct, uniformly random target vertices.

    Layout positions are moved to the new matching vertices.
    """
    n_layout = inp.layout_mesh.n_vertices
    n_target = inp.target_mesh.n_vertices
    if n_layout > n_target:
        raise ValueError(
            f"Cannot match {n_layout} layout vertices to {n_target} target vertices"
        )
    rng = np.random.default_rng(seed)
    matching = rng.choice(n_target, size=n_layout, replace=False)
    inp.matching = [int(t_v) for t_v in matching]
    inp.layout_mesh = inp.layout_mesh.with_positions(inp.target_mesh.positions[inp.matching])


__all__ = [
    "EmbeddingInput",
    "randomize_matching_vertices",
]
