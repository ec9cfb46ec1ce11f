"""
config.py
Default configuration and loader. Very small helper to override defaults via JSON files.
"""

import json
from pathlib import Path
from typing import Any, Dict

# Default constants used by the harness and the default wasm tester.
DEFAULT_CONFIG: Dict[str, Any] = {
    "pragma_version": "2.0.0",     # emitted as `pragma circom <version>;`
    "circuit_suffix": ".circom",
    "tester": {
        "circom": "circom",        # compiler binary, resolved on PATH
        "node": "node",            # runs the generated generate_witness.js
        "output": None,            # build dir; None -> tracked temp dir
        "recompile": True,
        "include": [],             # extra `-l` library directories
        "prime": None,             # e.g. "bn128"; None -> circom default
        "O": None,                 # simplification level 0/1/2
        "json": False,             # also emit constraints json
        "verbose": False,
    },
}


def load_config(path: str, base: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Load a JSON config file and merge it into base.

    Top-level keys are replaced; the "tester" section is merged key by key so a
    config file can override a single tester option.

    :param path: path to JSON config file
    :param base: base configuration dictionary to update (if None use DEFAULT_CONFIG)
    :return: merged configuration dictionary
    """
    base = base.copy() if base is not None else DEFAULT_CONFIG.copy()
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with p.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    for k, v in data.items():
        if k == "tester" and isinstance(v, dict):
            merged = dict(base.get("tester", {}))
            merged.update(v)
            base[k] = merged
        else:
            base[k] = v
    return base


def tester_options(cfg: Dict[str, Any] = None, overrides: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Resolve wasm tester options: defaults, then cfg["tester"], then per-build overrides.
    """
    opts = dict(DEFAULT_CONFIG["tester"])
    if cfg:
        opts.update(cfg.get("tester", {}))
    if overrides:
        opts.update(overrides)
    return opts
