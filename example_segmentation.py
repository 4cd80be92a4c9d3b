#!/usr/bin/env python3
# example_segmentation.py

import sys
import argparse
import logging
import yaml

from connectedness.errors import ConnectednessError
from connectedness.utils.visualization import select_slice
from pipeline.data_sources import load_grid, save_mask, save_connectedness
from pipeline.segmentation_pipeline import create_controller

logger = logging.getLogger(__name__)


def load_configs(config_path):
    """Load configuration from YAML file."""
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def parse_seed(text):
    """Parse a seed given as comma-separated indices, e.g. '12,40' or '3,12,40'."""
    try:
        return tuple(int(part) for part in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid seed '{text}', expected integers like 12,40") from None


def apply_overrides(config, args):
    """Merge command line options over the loaded configuration."""
    config = dict(config)
    config["input"] = dict(config.get("input") or {})
    config["output"] = dict(config.get("output") or {})
    config["estimation"] = dict(config.get("estimation") or {})

    if args.input:
        config["input"]["path"] = args.input
    if args.seed is not None:
        config["seed"] = args.seed
    if args.threshold is not None:
        config["threshold"] = args.threshold
    if args.output_mask:
        config["output"]["mask"] = args.output_mask
    if args.output_scores:
        config["output"]["connectedness"] = args.output_scores
    if args.figure:
        config["output"]["figure"] = args.figure
    if args.estimate_radius is not None:
        config["estimation"]["enabled"] = True
        config["estimation"]["radius"] = args.estimate_radius

    return config


def run_segmentation(config):
    """Segment the configured input and write the requested outputs."""
    input_config = dict(config["input"])
    input_path = input_config.pop("path", None)
    if not input_path:
        raise ValueError("No input specified. Use --input or set input.path in the config")

    # Scalar models work on intensity images
    affinity_config = config.get("affinity") or {}
    if affinity_config.get("model") == "scalar":
        input_config.setdefault("grayscale", True)

    controller = create_controller(config)

    grid = load_grid(input_path, input_config)
    logger.info(f"Loaded input {grid.shape} from {input_path}")
    controller.set_input(grid)

    estimation = config["estimation"]
    if estimation.get("enabled", False):
        controller.estimate_affinity(
            radius=estimation.get("radius", 3),
            regularization=estimation.get("regularization", 1e-3),
        )

    result = controller.execute()
    mask = controller.get_binary_mask()
    logger.info(f"Mask covers {int(mask.sum())} of {mask.size} pixels "
                f"at threshold {controller.threshold}")

    output = config["output"]
    if output.get("mask"):
        save_mask(output["mask"], mask)
    if output.get("connectedness"):
        save_connectedness(output["connectedness"], result.connectedness)
    if output.get("figure"):
        image, scores, figure_mask, seed = grid, result.connectedness, mask, result.seed
        if scores.ndim == 3:
            image, index = select_slice(grid, result.seed[0])
            scores, _ = select_slice(scores, index)
            figure_mask, _ = select_slice(mask, index)
            seed = result.seed[1:]
        controller.visualizer.save_summary_figure(
            output["figure"], image, scores, figure_mask,
            threshold=controller.threshold, seed=seed
        )

    logger.info(f"Performance: {controller.report_performance()}")
    return controller


def main(argv=None):
    """Main function."""

    # Parse command line arguments
    parser = argparse.ArgumentParser(description="Fuzzy connectedness segmentation")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to configuration file")
    parser.add_argument("--input", type=str, default=None,
                        help="Input image, .npy/.npz array or directory")
    parser.add_argument("--seed", type=parse_seed, default=None,
                        help="Seed index as row,col (or slice,row,col for volumes)")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Connectedness threshold (0-65535)")
    parser.add_argument("--output-mask", type=str, default=None,
                        help="Output path for the binary mask")
    parser.add_argument("--output-scores", type=str, default=None,
                        help="Output path for the connectedness grid")
    parser.add_argument("--figure", type=str, default=None,
                        help="Output path for a summary figure")
    parser.add_argument("--estimate-radius", type=int, default=None,
                        help="Estimate affinity profiles from a box of this radius around the seed")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")

    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler()]
    )

    # Load configuration
    config = {}
    if args.config:
        try:
            config = load_configs(args.config)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load configuration: {e}")
            return 1

    config = apply_overrides(config, args)

    try:
        run_segmentation(config)
    except (ConnectednessError, ValueError, TypeError, OSError, RuntimeError) as e:
        logger.error(f"Segmentation failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
