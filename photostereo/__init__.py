"""Uncalibrated photometric stereo from a fixed-viewpoint image stack.

Recovers surface normals up to a linear ambiguity with a rank-3 SVD, resolves
the ambiguity against approximate light directions, and integrates the normal
field into a depth map, exposing every linear algebra step in plain numpy.
"""

from __future__ import annotations

__version__ = "0.1.0"
