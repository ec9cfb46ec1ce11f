"""
symbols.py

Signal symbol tables (.sym files) and input flattening.

A .sym file has one line per signal:
    labelIdx,varIdx,componentIdx,fully.qualified.name
varIdx is the signal's position in the witness, or -1 when the optimizer
removed it.
"""

from pathlib import Path
from typing import Any, Dict, Iterator, List, NamedTuple, Tuple, Union

import numpy as np

from errors import FormatError


class Symbol(NamedTuple):
    label_idx: int
    var_idx: int
    component_idx: int


def read_sym(path: Union[str, Path]) -> Dict[str, Symbol]:
    symbols: Dict[str, Symbol] = {}
    with Path(path).open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line:
                continue
            parts = line.split(",", 3)
            if len(parts) != 4:
                raise FormatError(f"{path}:{lineno}: expected 4 fields, got {len(parts)}")
            try:
                label_idx, var_idx, component_idx = (int(x) for x in parts[:3])
            except ValueError as e:
                raise FormatError(f"{path}:{lineno}: {e}") from e
            symbols[parts[3]] = Symbol(label_idx, var_idx, component_idx)
    return symbols


def qualify(name: str) -> str:
    return name if name.startswith("main.") or name == "main" else f"main.{name}"


def flatten_signals(prefix: str, value: Any) -> Iterator[Tuple[str, Any]]:
    """
    Expand nested list values into (name[i][j], leaf) pairs, in row-major order.
    """
    if isinstance(value, np.ndarray):
        value = value.tolist()
    if isinstance(value, (list, tuple)):
        for i, v in enumerate(value):
            yield from flatten_signals(f"{prefix}[{i}]", v)
    else:
        yield prefix, value


def to_field(value: Any, prime: int) -> int:
    """
    Convert an input leaf (int, bool, decimal or 0x string) into a field element.
    Negative numbers wrap around the prime; non-integral floats are rejected.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        value = int(s, 16) if s.lower().lstrip("-").startswith("0x") else int(s)
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"signal value {value!r} is not an integer")
        value = int(value)
    return int(value) % prime


def input_signals(symbols: Dict[str, Symbol], first_wire: int, end_wire: int) -> List[str]:
    """
    Names of the main component's input signals, ordered by wire.
    """
    names = [
        (sym.var_idx, name)
        for name, sym in symbols.items()
        if first_wire <= sym.var_idx < end_wire and name.count(".") == 1 and name.startswith("main.")
    ]
    return [name for _, name in sorted(names)]


def base_name(signal: str) -> str:
    """
    'main.a[1][0]' -> 'main.a'
    """
    idx = signal.find("[")
    return signal if idx < 0 else signal[:idx]
