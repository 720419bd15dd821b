#!/usr/bin/env python

import argparse
import logging
import os

from .generator import OUTPUT_FORMATS, Generator

# Define default paths relative to the current file's location
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
DEFAULT_INPUT_DIR = os.path.join(PROJECT_ROOT, "inputs")
DEFAULT_OUTPUT_DIR = os.path.join(PROJECT_ROOT, "outputs")


def main():
    """
    Main function to parse command-line arguments and run the template generator.
    """
    parser = argparse.ArgumentParser(
        prog="generate",
        description="Generates CloudFormation custom resources that perform AWS SDK calls.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,  # Shows default values in help
    )

    parser.add_argument(
        "--config",
        default=os.path.join(DEFAULT_INPUT_DIR, "custom_resources.yaml"),
        help="Path to the custom resource config file.",
    )
    parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIR,
        help="Directory to save the generated template.",
    )
    parser.add_argument(
        "--catalog",
        action="append",
        default=[],
        help="Additional service catalog file mapping SDK calls to IAM permissions. "
        "May be given multiple times.",
    )
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="yaml",
        help="Output format of the generated template.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every resource and grant as it is built.",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not os.path.exists(args.output_dir):
        os.makedirs(args.output_dir)

    generator = Generator.from_files(
        config_path=args.config, catalog_paths=args.catalog
    )

    generator.generate(output_dir=args.output_dir, output_format=args.format)
    print("\nGeneration complete.")


if __name__ == "__main__":
    main()
