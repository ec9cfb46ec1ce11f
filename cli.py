#!/usr/bin/env python3
"""
cli.py
Command-line entrypoint: wrap a circom template in a main component, build it
and run it on an input file.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from config import load_config, DEFAULT_CONFIG
from errors import CircuitError
from runner import run_pipeline
from synthesizer import include_path_for, render_main
from utils import read_json, setup_basic_logger


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Build a main component around a circom template and check a witness."
    )
    p.add_argument(
        "--template-file",
        "-f",
        required=True,
        help="Path to the .circom file defining the template.",
    )
    p.add_argument(
        "--template",
        "-t",
        required=True,
        help="Name of the template to instantiate as main.",
    )
    p.add_argument(
        "--public",
        "-p",
        action="append",
        default=[],
        help="Public signal of main (repeatable).",
    )
    p.add_argument(
        "--params",
        default="[]",
        help="Template parameters as a JSON list. Default: []",
    )
    p.add_argument(
        "--input",
        "-i",
        default=None,
        help="JSON file with the input assignment.",
    )
    p.add_argument(
        "--config",
        "-c",
        default=None,
        help="Optional JSON config file to override defaults.",
    )
    p.add_argument(
        "--out-dir",
        "-o",
        default=None,
        help="Keep compiled artifacts in this directory instead of a temp dir.",
    )
    p.add_argument(
        "--render-only",
        action="store_true",
        help="Print the generated main circuit and exit.",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Minimize console output.",
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging.",
    )
    return p


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    setup_basic_logger("", level=logging.DEBUG if args.verbose else logging.WARNING)

    cfg = DEFAULT_CONFIG.copy()
    if args.config:
        cfg = load_config(args.config, base=cfg)

    try:
        params = json.loads(args.params)
    except ValueError as e:
        parser.error(f"--params is not valid JSON: {e}")
    if not isinstance(params, list):
        parser.error("--params must be a JSON list")

    if args.render_only:
        # include path relative to the working directory
        print(render_main(include_path_for("main.circom", args.template_file), args.template, args.public, params,
                          version=cfg.get("pragma_version", DEFAULT_CONFIG["pragma_version"])), end="")
        return 0

    if not args.input:
        parser.error("--input is required unless --render-only is given")
    inputs = read_json(args.input)
    if inputs is None:
        print(f"ERROR: input file not found: {args.input}", file=sys.stderr)
        sys.exit(2)

    build_config = {}
    if args.out_dir:
        Path(args.out_dir).mkdir(parents=True, exist_ok=True)
        build_config["output"] = args.out_dir

    try:
        asyncio.run(run_pipeline(args.template_file, args.template, inputs, args.public, params,
                                 config=cfg, build_config=build_config, quiet=args.quiet))
    except CircuitError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
