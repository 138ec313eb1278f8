"""Synthetic Lambertian scenes for checking the reconstruction."""

from __future__ import annotations

from typing import List, Tuple

import numpy as np


def ring_light_directions(n_lights: int = 12, tilt_deg: float = 30.0) -> np.ndarray:
    """Unit light directions evenly spaced on a cone around the viewing axis.

    Args:
        n_lights: Number of lights
        tilt_deg: Angle between each light and the z axis

    Returns:
        n_lights x 3 array
    """
    tilt = np.radians(tilt_deg)
    azimuth = np.linspace(0.0, 2.0 * np.pi, n_lights, endpoint=False)
    return np.stack([
        np.sin(tilt) * np.cos(azimuth),
        np.sin(tilt) * np.sin(azimuth),
        np.full(n_lights, np.cos(tilt)),
    ], axis=1)


def sphere_normals(
    shape: Tuple[int, int] = (64, 64),
    radius: float = 0.9,
    max_slope_deg: float = 90.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Normals of a sphere centred in the image, viewed along -z.

    Args:
        shape: Image size (R, C)
        radius: Sphere radius relative to the half-width of the image
        max_slope_deg: Only keep surface points whose normal is within this
            angle of the z axis

    Returns:
        Tuple of (normals, mask): RxCx3 unit normals (zero outside the
        object) and the RxC object mask
    """
    rows, cols = shape
    y = np.linspace(-1.0, 1.0, rows)
    x = np.linspace(-1.0, 1.0, cols)
    X, Y = np.meshgrid(x, y, indexing="xy")

    r2 = X ** 2 + Y ** 2
    max_r = radius * np.sin(np.radians(min(max_slope_deg, 90.0)))
    inside = (r2 < radius ** 2) & (r2 <= max_r ** 2)

    normals = np.zeros((rows, cols, 3))
    normals[inside, 0] = X[inside] / radius
    normals[inside, 1] = Y[inside] / radius
    normals[inside, 2] = np.sqrt(radius ** 2 - r2[inside]) / radius
    return normals, inside


def render_lambertian(
    normals: np.ndarray, light_directions: np.ndarray, albedo: float = 200.0
) -> List[np.ndarray]:
    """Render one image per light under the Lambertian model.

    Intensity is albedo * max(0, n . l); pixels with zero normals stay black.

    Args:
        normals: RxCx3 normal field
        light_directions: Kx3 light directions
        albedo: Uniform albedo on the 0-255 intensity scale

    Returns:
        List of K float64 RxC images
    """
    shading = np.einsum("rcx,kx->krc", normals, light_directions)
    return [albedo * np.clip(image, 0.0, None) for image in shading]
