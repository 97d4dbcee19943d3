"""Command line entry point for analyzing images with a PEKAT VISION server."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import Analyzer, AnalyzerConfig, AnalyzerError, ResultType, SettingsStore
from .results import AnalysisResult
from .settings_store import DEFAULT_PROFILE
from .utils.paths import collect_images

logger = logging.getLogger("pekat_vision_sdk")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="PEKAT VISION client")
    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        nargs="+",
        required=True,
        help="Image files or directories to analyze.",
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        help="Also look for images in sub-directories of directory inputs.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Profiles file to use instead of the per-user one.",
    )
    parser.add_argument(
        "--profile",
        default=DEFAULT_PROFILE,
        help="Connection profile to start from.",
    )
    parser.add_argument(
        "--save-profile",
        metavar="NAME",
        help="Store the effective settings under NAME before analyzing.",
    )
    parser.add_argument(
        "--remote",
        metavar="HOST:PORT",
        help="Attach to a running server instead of starting one.",
    )
    parser.add_argument("--dist", type=Path, help="Server distribution directory.")
    parser.add_argument("--project", type=Path, help="Project directory for a local server.")
    parser.add_argument("--api-key", help="API key expected by the server.")
    parser.add_argument("--options", help="Extra options passed to a local server.")
    parser.add_argument(
        "--result-type",
        choices=[member.value for member in ResultType],
        help="Override the requested result type.",
    )
    parser.add_argument("--data", help="Opaque string forwarded to the server with each image.")
    parser.add_argument(
        "--context-in-body",
        action="store_true",
        help="Request the context appended to the image payload.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory where returned images are written.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = SettingsStore(args.config) if args.config else SettingsStore()
    try:
        config = store.load(args.profile)
    except (KeyError, ValueError) as exc:
        parser.error(str(exc).strip("'\""))
    _apply_overrides(parser, config, args)
    if args.save_profile:
        store.save(config, args.save_profile)

    try:
        image_paths = collect_images(args.input, recursive=config.recursive)
    except FileNotFoundError as exc:
        parser.error(f"Input does not exist: {exc}")

    try:
        analyzer = Analyzer.from_config(config)
    except AnalyzerError as exc:
        parser.exit(1, f"{parser.prog}: {exc}\n")

    with analyzer:
        output = [_analyze_one(analyzer, path, config, args) for path in image_paths]

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")


def _apply_overrides(
    parser: argparse.ArgumentParser, config: AnalyzerConfig, args: argparse.Namespace
) -> None:
    if args.remote:
        host, _, port = args.remote.rpartition(":")
        if not host or not port.isdigit():
            parser.error("--remote must look like HOST:PORT")
        config.remote_host = host
        config.remote_port = int(port)
    if args.dist:
        config.distribution_path = args.dist
    if args.project:
        config.project_path = args.project
    if args.api_key:
        config.api_key = args.api_key
    if args.options:
        config.server_options = args.options
    if args.result_type:
        config.result_type = ResultType(args.result_type)
    if args.context_in_body:
        config.context_in_body = True
    if args.recursive:
        config.recursive = True


def _analyze_one(
    analyzer: Analyzer,
    path: Path,
    config: AnalyzerConfig,
    args: argparse.Namespace,
) -> dict[str, Any]:
    try:
        result = analyzer.analyze(path, config.result_type, args.data)
    except (AnalyzerError, OSError) as exc:
        logger.warning("Failed to analyze %s: %s", path, exc)
        return {"path": str(path), "context": None, "image_path": None, "error": str(exc)}

    image_path: Path | None = None
    if result.image is not None and args.output_dir is not None:
        target = args.output_dir / f"{path.stem}.{result.result_type.value}{result.image_suffix()}"
        image_path = result.save_image(target)

    return {
        "path": str(path),
        "context": _context_payload(result),
        "image_path": str(image_path) if image_path else None,
        "error": None,
    }


def _context_payload(result: AnalysisResult) -> Any:
    try:
        return result.context_json()
    except json.JSONDecodeError:
        return result.context


if __name__ == "__main__":  # pragma: no cover
    main()
