"""
Error types for layout embedding.

Two tiers are distinguished:

- EmbeddingInvariantError signals that the embedding machinery itself is
  in an inconsistent state (double embedding, malformed paths, sweeps
  reaching unexpected sector boundaries). It is never caught by the core.
- Data-dependent infeasibility (no path between two matching vertices) is
  not an exception; it is reported as an empty path and prunes the branch.
"""


class EmbeddingInvariantError(RuntimeError):
    """Raised when an embedding invariant is violated."""


class NoFeasibleEmbeddingError(RuntimeError):
    """
    Raised on request when a search finished without a feasible embedding.

    Search functions return a result with ``success=False`` instead of
    raising; call ``result.raise_for_status()`` to turn that into this error.
    """


def ensure(condition: bool, message: str) -> None:
    """Raise EmbeddingInvariantError with message unless condition holds."""
    if not condition:
        raise EmbeddingInvariantError(message)


__all__ = [
    "EmbeddingInvariantError",
    "NoFeasibleEmbeddingError",
    "ensure",
]
