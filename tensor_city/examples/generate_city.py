#!/usr/bin/env python3
"""
Example script for generating a city from a tensor field.

Usage:
    python generate_city.py --size 400 --seed 7 --radial
    python generate_city.py --config custom_config.json --grid --verbose
"""

import argparse
import logging
import math
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from tensor_city import CityGenerator, GeneratorConfig, TensorField, Vector
from tensor_city.validation import NetworkValidator


def build_field(config: GeneratorConfig, radial: bool) -> TensorField:
    """A field with one or two primitives centred in the world."""
    field = TensorField(noise_params=config.noise_params, seed=config.seed)
    width, height = config.world_size
    centre = Vector(config.origin[0] + width / 2, config.origin[1] + height / 2)
    size = max(width, height)

    if radial:
        field.add_radial(centre, size, 1.0)
    else:
        field.add_grid(centre, size, 1.0, math.pi / 8)
        field.add_grid(centre + Vector(width / 3, height / 3), size / 3, 2.0, 0.0)
    return field


def main():
    parser = argparse.ArgumentParser(
        description="Generate roads, blocks and lots from a tensor field"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config JSON (optional)"
    )
    parser.add_argument(
        "--size",
        type=float,
        default=None,
        help="World width and height (overrides config)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (overrides config)"
    )
    layout = parser.add_mutually_exclusive_group()
    layout.add_argument(
        "--radial",
        dest="radial",
        action="store_true",
        help="Radial field around the centre"
    )
    layout.add_argument(
        "--grid",
        dest="radial",
        action="store_false",
        help="Blend of two grid fields (default)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show library log output"
    )
    parser.set_defaults(radial=False)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Load configuration
    if args.config:
        print(f"Loading config from {args.config}")
        config = GeneratorConfig.from_json(args.config)
    else:
        print("Using default configuration")
        config = GeneratorConfig()

    if args.size is not None:
        config.world_size = (args.size, args.size)
    if args.seed is not None:
        config.seed = args.seed

    print(f"\n{'='*60}")
    print("Tensor Field City Generator")
    print(f"{'='*60}")
    print(f"World: {config.world_size[0]:.0f} x {config.world_size[1]:.0f}")
    print(f"Field: {'radial' if args.radial else 'grid'}")
    print(f"Seed: {config.seed}")
    print(f"{'='*60}\n")

    print("Step 1: Generating roads, blocks and lots...")
    city = CityGenerator(build_field(config, args.radial), config)
    city.generate()

    for tier in ("main", "major", "minor"):
        print(f"  - {tier} roads: {len(city.roads(tier))}")
    print(f"  - Parks: {len(city.parks)}")
    print(f"  - Blocks: {len(city.blocks)}")
    print(f"  - Lots: {len(city.lots)}")
    print()

    print("Step 2: Validating...")
    validator = NetworkValidator(config)
    result = validator.validate(city)
    print(validator.format_report(result))

    if result["valid"]:
        print("✓ All checks passed")
        return 0
    print("✗ Some checks failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
