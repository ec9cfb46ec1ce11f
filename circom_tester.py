"""
circom_tester.py

Default circuit builder: compiles a .circom file with the circom CLI into
r1cs + wasm + sym, and wraps the result in a WasmCircuit that can compute
witnesses (via node and the generated generate_witness.js), check them
against the constraints, and look signals up by name.

Usage:
    tester = WasmTester(registry)
    circuit = await tester("multiplier.circom", {"include": ["node_modules"]})
    w = await circuit.calculate_witness({"a": 3, "b": 4}, True)
    await circuit.check_constraints(w)
    await circuit.assert_out(w, {"c": 12})
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from binfile import read_wtns
from config import DEFAULT_CONFIG, tester_options
from errors import CompilationError, ConstraintError, ToolNotFound, WitnessError
from r1cs_utils import constraint_summary, find_violations, input_wire_range, read_r1cs
from symbols import Symbol, base_name, flatten_signals, input_signals, qualify, read_sym, to_field
from tempfiles import TempRegistry
from utils import write_json_atomic

log = logging.getLogger(__name__)


def _which(binary: str, how: str) -> str:
    path = shutil.which(binary)
    if not path:
        raise ToolNotFound(binary, how)
    return path


async def _run(cmd: List[str], cwd: Optional[str] = None) -> Tuple[int, str, str]:
    log.debug("exec %s", " ".join(cmd))
    proc = await asyncio.create_subprocess_exec(
        *cmd, cwd=cwd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    out, err = await proc.communicate()
    return proc.returncode, out.decode("utf-8", "replace"), err.decode("utf-8", "replace")


def compile_command(circom: str, circuit_path: str, output: str, opts: Dict[str, Any]) -> List[str]:
    cmd = [circom, circuit_path, "--r1cs", "--wasm", "--sym", "-o", output]
    for inc in opts.get("include") or []:
        cmd += ["-l", str(inc)]
    if opts.get("prime"):
        cmd += ["--prime", str(opts["prime"])]
    if opts.get("O") is not None:
        cmd.append(f"--O{int(opts['O'])}")
    if opts.get("json"):
        cmd.append("--json")
    return cmd


class WasmTester:
    """
    Builder callable `(circuit_path, options) -> WasmCircuit`.
    """

    def __init__(self, registry: Optional[TempRegistry] = None, config: Optional[Dict[str, Any]] = None):
        self.registry = registry if registry is not None else TempRegistry()
        self.config = config if config is not None else DEFAULT_CONFIG

    async def __call__(self, circuit_path: str, options: Optional[Dict[str, Any]] = None) -> "WasmCircuit":
        opts = tester_options(self.config, options)
        owns_output = not opts.get("output")
        output = self.registry.mkdir(prefix="circom_") if owns_output else str(opts["output"])
        Path(output).mkdir(parents=True, exist_ok=True)

        circuit = WasmCircuit(circuit_path, output, self.registry, opts, owns_output=owns_output)
        if opts.get("recompile", True) or not circuit.artifacts_exist():
            await self.compile(circuit_path, output, opts)
        else:
            log.info("reusing compiled artifacts in %s", output)
        return circuit

    async def compile(self, circuit_path: str, output: str, opts: Dict[str, Any]) -> None:
        circom = _which(opts.get("circom") or "circom", "install circom 2 and put it on PATH")
        cmd = compile_command(circom, str(circuit_path), output, opts)
        code, out, err = await _run(cmd)
        if opts.get("verbose") and out:
            log.info("circom output:\n%s", out.rstrip())
        if code != 0:
            # circom reports most errors on stdout
            raise CompilationError(str(circuit_path), code, err or out)
        log.debug("compiled %s into %s", circuit_path, output)


class WasmCircuit:
    """
    A compiled circuit: the wasm witness generator plus its .r1cs and .sym files.
    """

    def __init__(self, circuit_path: str, output_dir: str, registry: TempRegistry,
                 options: Dict[str, Any], owns_output: bool = False):
        self.circuit_path = str(circuit_path)
        self.name = Path(circuit_path).stem
        self.dir = Path(output_dir)
        self.registry = registry
        self.options = options
        self.owns_output = owns_output
        self.symbols: Optional[Dict[str, Symbol]] = None
        self.constraints: Optional[Dict[str, Any]] = None

    @property
    def js_dir(self) -> Path:
        return self.dir / f"{self.name}_js"

    @property
    def wasm_path(self) -> Path:
        return self.js_dir / f"{self.name}.wasm"

    @property
    def r1cs_path(self) -> Path:
        return self.dir / f"{self.name}.r1cs"

    @property
    def sym_path(self) -> Path:
        return self.dir / f"{self.name}.sym"

    def artifacts_exist(self) -> bool:
        return all(p.exists() for p in (self.wasm_path, self.r1cs_path, self.sym_path))

    @property
    def prime(self) -> int:
        if self.constraints is None:
            raise RuntimeError("constraints not loaded")
        return self.constraints["prime"]

    async def load_constraints(self) -> Dict[str, Any]:
        if self.constraints is None:
            self.constraints = read_r1cs(self.r1cs_path)
            log.debug("%s: %d wires, %d constraints", self.name,
                      self.constraints["n_vars"], len(self.constraints["constraints"]))
        return self.constraints

    async def load_symbols(self) -> Dict[str, Symbol]:
        if self.symbols is None:
            self.symbols = read_sym(self.sym_path)
        return self.symbols

    async def calculate_witness(self, inputs: Dict[str, Any], sanity_check: bool = False) -> List[int]:
        """
        Run the wasm witness generator on inputs and return the witness values.

        With sanity_check, inputs must name exactly the main component's input
        signals, with the right number of elements for arrays.
        """
        r1cs = await self.load_constraints()
        prime = r1cs["prime"]
        if sanity_check:
            await self._check_inputs(inputs, r1cs)

        node = _which(self.options.get("node") or "node", "install Node.js and put `node` on PATH")
        work = self.registry.mkdir(prefix=f"{self.name}_wtns_")
        input_path = Path(work) / "input.json"
        wtns_path = Path(work) / "witness.wtns"
        write_json_atomic(str(input_path), {k: _json_input(v, prime) for k, v in inputs.items()})

        cmd = [node, str(self.js_dir / "generate_witness.js"), str(self.wasm_path), str(input_path), str(wtns_path)]
        code, out, err = await _run(cmd, cwd=str(self.js_dir))
        if code != 0 or not wtns_path.exists():
            raise WitnessError(f"witness generation failed for {self.name} (exit {code})", err or out)

        _, witness = read_wtns(wtns_path)
        shutil.rmtree(work, ignore_errors=True)
        if sanity_check and len(witness) != r1cs["n_vars"]:
            raise WitnessError(f"witness has {len(witness)} values, circuit has {r1cs['n_vars']} wires")
        return witness

    async def _check_inputs(self, inputs: Dict[str, Any], r1cs: Dict[str, Any]) -> None:
        symbols = await self.load_symbols()
        expected = input_signals(symbols, *input_wire_range(r1cs))
        provided = set()
        for key, value in inputs.items():
            provided.update(name for name, _ in flatten_signals(qualify(key), value))
        unknown = sorted(provided - set(expected))
        if unknown:
            raise WitnessError(f"unknown or mis-sized input signals: {', '.join(unknown)}")
        missing = [name for name in expected if name not in provided]
        if missing:
            raise WitnessError(f"input signals not set: {', '.join(missing)}")

    async def check_constraints(self, witness: Sequence[int]) -> None:
        r1cs = await self.load_constraints()
        prime = r1cs["prime"]
        if len(witness) < r1cs["n_vars"]:
            raise ConstraintError(f"witness has {len(witness)} values, circuit has {r1cs['n_vars']} wires")
        if witness[0] % prime != 1:
            raise ConstraintError("witness[0] must be 1")
        bad = find_violations(r1cs, witness, limit=1)
        if bad:
            idx = bad[0]
            summary = constraint_summary(r1cs["constraints"][idx])
            wires = self._wire_names(summary["support"])
            raise ConstraintError(
                f"constraint {idx} doesn't match ({summary['nz_count']} terms over {', '.join(wires)})", index=idx
            )

    def _wire_names(self, wires) -> List[str]:
        if self.symbols is None:
            return [f"w{w}" for w in sorted(wires)]
        by_wire = {}
        for name, sym in self.symbols.items():
            by_wire.setdefault(sym.var_idx, name)
        return [by_wire.get(w, f"w{w}") for w in sorted(wires)]

    async def get_output(self, witness: Sequence[int], names: Sequence[str]) -> Dict[str, int]:
        """
        Values of the named signals (main. prefix optional). Removed signals map to None.
        """
        symbols = await self.load_symbols()
        out = {}
        for name in names:
            sym = symbols.get(qualify(name))
            if sym is None:
                raise KeyError(f"unknown signal {name}")
            out[name] = witness[sym.var_idx] if sym.var_idx >= 0 else None
        return out

    async def get_decorated_output(self, witness: Sequence[int]) -> str:
        """
        One `main.x --> value` line per signal of the main component.
        """
        symbols = await self.load_symbols()
        lines = []
        for name, sym in symbols.items():
            if sym.var_idx < 0 or base_name(name).count(".") != 1:
                continue
            lines.append(f"{name} --> {witness[sym.var_idx]}")
        return "\n".join(lines)

    async def assert_out(self, witness: Sequence[int], expected: Dict[str, Any]) -> None:
        symbols = await self.load_symbols()
        prime = (await self.load_constraints())["prime"]
        for key, value in expected.items():
            for name, leaf in flatten_signals(qualify(key), value):
                sym = symbols.get(name)
                if sym is None or sym.var_idx < 0:
                    raise AssertionError(f"signal {name} not found in witness")
                got = witness[sym.var_idx] % prime
                want = to_field(leaf, prime)
                if got != want:
                    raise AssertionError(f"{name}: expected {want}, got {got}")

    def release(self) -> None:
        if self.owns_output:
            shutil.rmtree(self.dir, ignore_errors=True)


def _json_input(value: Any, prime: int) -> Any:
    # generate_witness.js takes decimal strings so values beyond 2**53 survive
    if isinstance(value, np.ndarray):
        value = value.tolist()
    if isinstance(value, (list, tuple)):
        return [_json_input(v, prime) for v in value]
    return str(to_field(value, prime))
