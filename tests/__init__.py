"""
Tests for Layout Embedding

This package contains tests for:
- Half-edge meshes, virtual paths and path commitment
- Virtual path tracing
- Conflict detection and embedding states
- Branch and bound, stochastic and greedy embedding
- Policies and input preprocessing
"""
