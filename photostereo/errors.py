"""Exception types raised by the reconstruction pipeline.

Input errors abort a run before any numerical work is done. Degenerate
computation errors are raised when the image stack or the supplied light
directions cannot determine the reconstruction.
"""

from __future__ import annotations


class ReconstructionError(Exception):
    """Base class for all reconstruction failures."""


class InputError(ReconstructionError, ValueError):
    """Malformed or inconsistent input data."""


class EmptyInputError(InputError):
    """No image could be decoded."""


class DimensionMismatchError(InputError):
    """Array shapes disagree (images with each other, or lights with images)."""


class InsufficientImagesError(InputError):
    """Fewer than three images, so a rank-3 factorization is impossible."""


class LightDirectionParseError(InputError):
    """The light-direction file could not be parsed."""


class DegenerateComputationError(ReconstructionError, ArithmeticError):
    """A matrix needed by the pipeline is singular or nearly so."""


class DegenerateIlluminationError(DegenerateComputationError):
    """One of the three leading singular values vanishes."""


class SingularTransformError(DegenerateComputationError):
    """The ambiguity transform cannot be inverted."""
