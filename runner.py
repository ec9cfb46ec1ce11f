"""
runner.py
Drive a compiled circuit through witness computation and constraint checking.

execute_circuit() is the three-step protocol every test goes through:
compute the witness (strict), check it against the constraints, load the
symbol table. run_pipeline() wires the synthesizer and execute_circuit()
together for the command line and prints a compact summary.
"""

from typing import Any, Dict, List, Optional, Sequence

from config import DEFAULT_CONFIG
from synthesizer import HarnessSynthesizer
from tempfiles import TempRegistry
from utils import maybe_await


async def execute_circuit(circuit: Any, inputs: Dict[str, Any]) -> List[int]:
    """
    Compute and verify a witness for inputs.

    Each step waits for the previous one; any error propagates as raised and
    the later steps do not run.
    """
    witness = await maybe_await(circuit.calculate_witness(inputs, True))
    await maybe_await(circuit.check_constraints(witness))
    await maybe_await(circuit.load_symbols())
    return witness


async def run_pipeline(template_file: str, template_name: str, inputs: Dict[str, Any],
                       public_signals: Sequence[str] = (), params: Sequence[Any] = (),
                       config: Dict[str, Any] = None, build_config: Optional[Dict[str, Any]] = None,
                       registry: Optional[TempRegistry] = None, quiet: bool = False) -> List[int]:
    """
    Synthesize, build and execute template_name on inputs.

    :param template_file: path to the .circom file defining the template
    :param template_name: template to instantiate as main
    :param inputs: input assignment, signal name -> value
    :param public_signals: public signals of the main component
    :param params: template parameters
    :param config: configuration dictionary
    :param build_config: per-build tester options
    :param registry: temp registry; a private one is created and cleaned up if None
    :param quiet: if True, suppress verbose printing
    :return: the witness
    """
    cfg = DEFAULT_CONFIG.copy()
    if config:
        cfg.update(config)

    own_registry = registry is None
    registry = registry if registry is not None else TempRegistry()
    try:
        harness = HarnessSynthesizer(registry, config=cfg)
        if not quiet:
            print(f"[runner] Building {template_name} from {template_file} ...")
        circuit = await harness.synthesize(template_file, template_name, public_signals, params, build_config)

        witness = await execute_circuit(circuit, inputs)
        if not quiet:
            print(f"[runner] Witness ok: {len(witness)} values")
            await print_summary(circuit, witness)
        return witness
    finally:
        if own_registry:
            registry.cleanup()


async def print_summary(circuit: Any, witness: Sequence[int]) -> None:
    """
    Print the main component's signals with their values.
    """
    print("=== Witness Summary ===")
    decorated = getattr(circuit, "get_decorated_output", None)
    if decorated is not None:
        print(await maybe_await(decorated(witness)))
    else:
        for i, v in enumerate(witness):
            print(f"  [{i}] {v}")
    print("=======================")
