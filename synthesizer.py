"""
synthesizer.py

Wrap a parameterized circom template in a throwaway main circuit and build it.

    harness = HarnessSynthesizer(registry)
    circuit = await harness.synthesize("circuits/multiplier.circom", "Multiplier", ["c"])

writes a temp file like

    pragma circom 2.0.0;
    include "../home/me/circuits/multiplier.circom";
    component main { public [c] } = Multiplier ();

and returns whatever the builder (by default the wasm tester) makes of it.

Nothing here validates the template name, the params or the template file:
mistakes surface as errors from the builder when it compiles the wrapper.
"""

import json
import logging
import os
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from circom_tester import WasmTester
from config import DEFAULT_CONFIG
from tempfiles import TempRegistry
from utils import maybe_await

log = logging.getLogger(__name__)

# (circuit_path, build_config) -> circuit artifact, or an awaitable of one
Builder = Callable[[str, Dict[str, Any]], Any]


def _json_default(obj: Any) -> Any:
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not a circom parameter")


def format_params(params: Sequence[Any]) -> str:
    """
    Compact JSON of the parameter list without the enclosing brackets.

    [3, 5] -> "3,5"; [[1, 2], 3] -> "[1,2],3"; [] -> "".
    """
    return json.dumps(list(params), separators=(",", ":"), default=_json_default)[1:-1]


def format_public_clause(public_signals: Sequence[str]) -> str:
    if not public_signals:
        return ""
    return " { public [" + ",".join(public_signals) + "] }"


def include_path_for(circuit_path: str, template_file: str) -> str:
    """
    Path of template_file relative to the directory holding circuit_path.

    circom resolves an include against the including file's directory.
    """
    rel = os.path.relpath(os.path.abspath(template_file), os.path.dirname(os.path.abspath(circuit_path)))
    return rel.replace(os.sep, "/")


def render_main(include_path: str, template_name: str, public_signals: Sequence[str] = (),
                params: Sequence[Any] = (), version: str = DEFAULT_CONFIG["pragma_version"]) -> str:
    lines = [
        f"pragma circom {version};",
        f'include "{include_path}";',
        f"component main{format_public_clause(public_signals)} = {template_name} ({format_params(params)});",
    ]
    return "\n".join(lines) + "\n"


class HarnessSynthesizer:
    """
    Builds main-component wrappers around templates.

    The registry owns the generated files; call registry.cleanup() (or use the
    registry as a context manager) once the circuits are no longer needed.
    """

    def __init__(self, registry: Optional[TempRegistry] = None, build: Optional[Builder] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.registry = registry if registry is not None else TempRegistry()
        self.config = config if config is not None else DEFAULT_CONFIG
        self.build = build if build is not None else WasmTester(self.registry, self.config)

    def write_main(self, template_file: str, template_name: str,
                   public_signals: Sequence[str] = (), params: Sequence[Any] = ()) -> str:
        """
        Write the wrapper source to a fresh temp file and return its path.
        """
        suffix = self.config.get("circuit_suffix", ".circom")
        tmp = self.registry.open(prefix=template_name, suffix=suffix)
        with os.fdopen(tmp.fd, "w", encoding="utf-8") as fh:
            fh.write(render_main(
                include_path_for(tmp.path, template_file),
                template_name,
                public_signals,
                params,
                version=self.config.get("pragma_version", DEFAULT_CONFIG["pragma_version"]),
            ))
        return tmp.path

    async def synthesize(self, template_file: str, template_name: str,
                         public_signals: Sequence[str] = (), params: Sequence[Any] = (),
                         build_config: Optional[Dict[str, Any]] = None,
                         build: Optional[Builder] = None) -> Any:
        """
        Generate the wrapper for template_name and hand it to the builder.

        :param template_file: file defining the template
        :param template_name: template to instantiate as main
        :param public_signals: signals listed in `{ public [...] }`; none -> no clause
        :param params: template arguments, in declaration order
        :param build_config: passed untouched to the builder
        :param build: builder for this call only (defaults to the synthesizer's)
        :return: the builder's result, unmodified
        """
        log.info("synthesizing main for %s", template_name)
        path = self.write_main(template_file, template_name, public_signals, params)
        build_config = build_config if build_config is not None else {}
        log.debug("wrapper %s, build config %s", path, build_config)
        builder = build if build is not None else self.build
        return await maybe_await(builder(path, build_config))


# Demo
if __name__ == "__main__":
    print(render_main("multiplier.circom", "Multiplier", ["c"], []), end="")
    print(render_main("tpl.circom", "Tpl", [], [2, 3]), end="")
