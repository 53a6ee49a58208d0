"""
Command-line entry point.

Usage:
    barscan shelf.jpg
    barscan https://example.com/shelf.jpg --preset gradient_close --json
    barscan shelf.jpg --config my_config.yaml --isolate-failures --workers 4
"""

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

import yaml

from barscan.acquisition import read_gray_image
from barscan.common.errors import BarcodeError
from barscan.pipeline import (
    BarcodePipeline,
    FailurePolicy,
    PipelineConfig,
    get_default_config,
    get_preset_config,
    list_presets,
    load_config,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="barscan",
        description="Detect and decode barcodes in an image",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "image",
        type=str,
        help="Image path, http(s) URL or data: URI",
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Pipeline configuration YAML (bundled config.yaml if omitted)",
    )
    source.add_argument(
        "--preset",
        type=str,
        choices=list_presets(),
        default=None,
        help="Named preset configuration",
    )

    parser.add_argument(
        "--debug-dir",
        type=Path,
        default=None,
        help="Save rectified/enhanced rasters of every candidate here",
    )
    parser.add_argument(
        "--isolate-failures",
        action="store_true",
        help="Keep processing other candidates when one fails",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker threads for candidate processing (config value if omitted)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    """Build the pipeline configuration from the parsed arguments."""
    if args.preset:
        config = get_preset_config(args.preset)
    elif args.config:
        config = load_config(args.config)
    else:
        config = get_default_config()

    execution_updates = {}
    if args.isolate_failures:
        execution_updates["failure_policy"] = FailurePolicy.ISOLATE
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError(f"--workers must be >= 1, got {args.workers}")
        execution_updates["max_workers"] = args.workers
    if execution_updates:
        config = config.model_copy(
            update={"execution": config.execution.model_copy(update=execution_updates)}
        )

    if args.debug_dir is not None:
        config = config.model_copy(
            update={
                "debug": config.debug.model_copy(
                    update={"enabled": True, "output_dir": str(args.debug_dir)}
                )
            }
        )
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = resolve_config(args)
        image = read_gray_image(args.image)
        result = BarcodePipeline(config=config).process(image)
    except BarcodeError as e:
        logger.error(f"Scan failed: {e}")
        print(f"Error {e.code}: {e.message}")
        raise SystemExit(1) from e
    except (OSError, ValueError, RuntimeError, yaml.YAMLError) as e:
        logger.error(f"Scan failed: {e}")
        print(f"Error: {e}")
        raise SystemExit(1) from e

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        for info in result.codes:
            print(info.code)
        for failure in result.failures:
            print(f"Candidate {failure.index}: error {failure.error.code}: {failure.error.message}")

    return 0


if __name__ == "__main__":
    main()
