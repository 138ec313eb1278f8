"""Visualization utilities for photometric stereo results.

This module renders depth maps as pseudo-colour images, turns point fields
into point clouds, and shows or saves them with Open3D.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)

COLORMAPS = {
    "jet": cv2.COLORMAP_JET,
    "turbo": cv2.COLORMAP_TURBO,
    "viridis": cv2.COLORMAP_VIRIDIS,
    "inferno": cv2.COLORMAP_INFERNO,
}


def normalize_depth(depth: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Scale a depth map to [0, 1] over its valid pixels.

    Pixels with non-positive or non-finite depth are invalid and do not take
    part in the colour range.

    Args:
        depth: RxC depth map

    Returns:
        Tuple of (normalized, valid): RxC floats in [0, 1] (zero on invalid
        pixels) and the RxC boolean validity flags
    """
    valid = np.isfinite(depth) & (depth > 0)
    normalized = np.zeros(depth.shape, dtype=np.float64)

    if not np.any(valid):
        logger.warning("Depth map has no positive values to normalize")
        return normalized, valid

    min_depth = np.min(depth[valid])
    max_depth = np.max(depth[valid])
    if max_depth > min_depth:
        normalized[valid] = (depth[valid] - min_depth) / (max_depth - min_depth)

    return normalized, valid


def colorize_depth(depth: np.ndarray, colormap: str = "jet") -> np.ndarray:
    """Render a depth map as an 8-bit BGR pseudo-colour image.

    Args:
        depth: RxC depth map
        colormap: One of the names in COLORMAPS

    Returns:
        RxCx3 uint8 image, black where depth is invalid
    """
    if colormap not in COLORMAPS:
        raise ValueError(f"Unknown colormap: {colormap}")

    normalized, valid = normalize_depth(depth)
    depth8 = np.round(normalized * 255).astype(np.uint8)
    colored = cv2.applyColorMap(depth8, COLORMAPS[colormap])
    colored[~valid] = 0
    return colored


def point_field_to_cloud(points: np.ndarray) -> np.ndarray:
    """Flatten an RxCx3 point field into an Nx3 cloud of points with z > 0."""
    cloud = points.reshape(-1, 3)
    keep = np.isfinite(cloud[:, 2]) & (cloud[:, 2] > 0)
    return cloud[keep]


def normals_to_image(normals: np.ndarray) -> np.ndarray:
    """Map unit normals from [-1, 1] to an 8-bit RGB normal map."""
    return np.round((np.clip(normals, -1.0, 1.0) + 1.0) / 2.0 * 255).astype(np.uint8)


def array_to_pcd(points: np.ndarray, colors: Optional[np.ndarray] = None):
    """Convert numpy arrays to an Open3D point cloud.

    Args:
        points: Nx3 array of point coordinates
        colors: Nx3 array of RGB colors (optional)

    Returns:
        Open3D PointCloud object
    """
    import open3d as o3d

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)

    if colors is not None:
        if np.max(colors) > 1.0:
            colors = colors / 255.0
        pcd.colors = o3d.utility.Vector3dVector(colors)

    return pcd


def depth_colors(cloud: np.ndarray, colormap: str = "jet") -> np.ndarray:
    """RGB colours in [0, 1] for cloud points, coloured by depth."""
    z = cloud[:, 2:3]
    colored = colorize_depth(z, colormap).reshape(-1, 3)
    return colored[:, ::-1] / 255.0


def save_point_cloud(points: np.ndarray, output_path: str, colormap: str = "jet") -> None:
    """Save the valid points of a point field as a PLY file.

    Args:
        points: RxCx3 point field
        output_path: Destination path (.ply)
        colormap: Colormap used to colour points by depth
    """
    import open3d as o3d

    cloud = point_field_to_cloud(points)
    if cloud.shape[0] == 0:
        logger.warning("Point field has no points with positive depth; nothing saved")
        return

    pcd = array_to_pcd(cloud, depth_colors(cloud, colormap))
    o3d.io.write_point_cloud(output_path, pcd)
    logger.info(f"Point cloud with {cloud.shape[0]} points saved to {output_path}")


def show_point_field(
    points: np.ndarray,
    window_name: str = "Reconstructed 3D Shape",
    colormap: str = "jet",
    point_size: float = 2.0,
    window_size: Tuple[int, int] = (1280, 720),
) -> None:
    """Show the valid points of a point field in an interactive window.

    Args:
        points: RxCx3 point field
        window_name: Window title
        colormap: Colormap used to colour points by depth
        point_size: Rendered point size
        window_size: Visualization window size
    """
    import open3d as o3d

    cloud = point_field_to_cloud(points)
    if cloud.shape[0] == 0:
        logger.warning("Point field has no points with positive depth; nothing to show")
        return

    vis = o3d.visualization.Visualizer()
    vis.create_window(window_name=window_name, width=window_size[0], height=window_size[1])
    vis.add_geometry(array_to_pcd(cloud, depth_colors(cloud, colormap)))

    opt = vis.get_render_option()
    opt.background_color = np.array([0.1, 0.1, 0.1])
    opt.point_size = point_size

    vis.run()
    vis.destroy_window()


def create_depth_map_visualization(
    normals: np.ndarray,
    depth: np.ndarray,
    output_path: str,
    colormap: str = "jet",
) -> None:
    """Save a figure with the normal map next to the depth map.

    Args:
        normals: RxCx3 unit normal field
        depth: RxC depth map
        output_path: Path to save the visualization
        colormap: Matplotlib colormap for the depth
    """
    fig, axs = plt.subplots(1, 2, figsize=(16, 8))

    axs[0].imshow(normals_to_image(normals))
    axs[0].set_title("Normal Map")
    axs[0].axis("off")

    normalized, valid = normalize_depth(depth)

    colormap_fn = plt.get_cmap(colormap)
    depth_colored = colormap_fn(normalized)
    # Transparent where depth is invalid
    depth_colored[~valid, 3] = 0

    axs[1].imshow(depth_colored)
    if np.any(valid):
        axs[1].set_title(
            f"Depth Map (min: {np.min(depth[valid]):.3f}, max: {np.max(depth[valid]):.3f})"
        )
    else:
        axs[1].set_title("Depth Map (empty)")
    axs[1].axis("off")

    sm = plt.cm.ScalarMappable(cmap=colormap_fn)
    sm.set_array([])
    cbar = plt.colorbar(sm, ax=axs[1], fraction=0.046, pad=0.04)
    cbar.set_label("Relative depth")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Depth map visualization saved to {output_path}")
