#!/usr/bin/env python3
"""
Photometric Stereo Reconstruction Pipeline

This script reconstructs surface normals and a depth map from a folder of
images taken under varying lighting, using the light directions listed in a
text file to resolve the reconstruction ambiguity.
"""

from __future__ import annotations

import argparse
import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional

import cv2

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from photostereo import evaluate, io, pipeline, visualise
from photostereo.config import load_config


LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("pipeline")


def run_pipeline(
    image_dir: str,
    output_dir: str,
    light_file: Optional[str] = None,
    extensions: Optional[list] = None,
    termination: Optional[str] = None,
    max_sweeps: Optional[int] = None,
    visualise_results: bool = False,
    config_path: Optional[str] = None,
) -> Dict:
    """Run the complete photometric stereo pipeline.

    Args:
        image_dir: Path to directory containing images
        output_dir: Path to output directory
        light_file: Path to the light-direction file
            (defaults to the configured file inside image_dir)
        extensions: Image file extensions to read
        termination: Depth integration termination rule
        max_sweeps: Depth integration sweep cap
        visualise_results: Whether to open the interactive point cloud viewer
        config_path: Path to configuration file

    Returns:
        Dictionary of reconstruction metrics
    """
    os.makedirs(output_dir, exist_ok=True)

    # Set up file logging
    file_handler = logging.FileHandler(os.path.join(output_dir, "log.txt"))
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)

    try:
        config = load_config(config_path)

        # Update configuration with command-line arguments
        config["io"]["input_dir"] = image_dir
        config["io"]["output_dir"] = output_dir
        if extensions:
            config["io"]["image_extensions"] = extensions
        if termination is not None:
            config["integration"]["termination"] = termination
        if max_sweeps is not None:
            config["integration"]["max_sweeps"] = max_sweeps
        if light_file is None:
            light_file = os.path.join(image_dir, config["io"]["light_file"])

        with evaluate.Timer("Read Inputs") as timer:
            images, paths = io.read_images(image_dir, config["io"]["image_extensions"])
            light_directions = io.read_light_directions(light_file)
            read_time = timer.elapsed

        for path, light in zip(paths, light_directions):
            logger.debug(f"{path.name}: light {light}")

        result = pipeline.reconstruct(images, light_directions, config)
        result.metrics.update_stage_timing("read_inputs", read_time)

        metrics = result.metrics.to_dict()
        metrics["datetime"] = datetime.datetime.now().isoformat()

        io.save_results(
            output_dir, result.normals, result.valid, result.depth, result.points, metrics
        )

        colormap = config["visualise"]["colormap"]
        depth_path = os.path.join(output_dir, "depth.png")
        cv2.imwrite(depth_path, visualise.colorize_depth(result.depth, colormap))
        logger.info(f"Depth image saved to {depth_path}")

        visualise.create_depth_map_visualization(
            result.normals, result.depth, os.path.join(output_dir, "summary.png"), colormap
        )
        if config["visualise"]["save_point_cloud"]:
            visualise.save_point_cloud(
                result.points, os.path.join(output_dir, "points.ply"), colormap
            )

        logger.info("\n" + result.metrics.summary())

        if visualise_results:
            visualise.show_point_field(
                result.points,
                colormap=colormap,
                point_size=config["visualise"]["point_size"],
            )
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()

    return metrics


def main():
    """Main function to parse arguments and run the pipeline."""
    parser = argparse.ArgumentParser(description="Photometric Stereo Reconstruction")
    parser.add_argument(
        "--images", "-i", dest="image_dir", required=True,
        help="Path to directory containing images"
    )
    parser.add_argument(
        "--lights", "-l", dest="light_file", default=None,
        help="Path to light-direction file (default: <images>/light_directions.txt)"
    )
    parser.add_argument(
        "--output", "-o", dest="output_dir", default="results/run1",
        help="Path to output directory"
    )
    parser.add_argument(
        "--ext", dest="extensions", nargs="+", default=None,
        help="Image file extensions to read (default from config)"
    )
    parser.add_argument(
        "--termination", "-t", dest="termination", default=None,
        choices=["coverage", "first_nonzero"],
        help="Depth integration termination rule"
    )
    parser.add_argument(
        "--max-sweeps", dest="max_sweeps", type=int, default=None,
        help="Maximum number of depth propagation sweeps"
    )
    parser.add_argument(
        "--visualise", "-v", dest="visualise", action="store_true",
        help="Show the reconstructed point cloud"
    )
    parser.add_argument(
        "--config", "-c", dest="config_path", default=None,
        help="Path to configuration file"
    )

    args = parser.parse_args()

    try:
        run_pipeline(
            args.image_dir,
            args.output_dir,
            light_file=args.light_file,
            extensions=args.extensions,
            termination=args.termination,
            max_sweeps=args.max_sweeps,
            visualise_results=args.visualise,
            config_path=args.config_path,
        )
    except Exception as e:
        logger.exception(f"Error running pipeline: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
