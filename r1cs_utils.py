"""
r1cs_utils.py

Reading and inspecting circom .r1cs files.

In-memory format produced by read_r1cs():
{
  "prime": 218882...617,
  "n8": 32,
  "n_vars": 4,           # wires, including the constant wire 0
  "n_outputs": 1,
  "n_pub_inputs": 0,
  "n_prv_inputs": 2,
  "n_labels": 4,
  "constraints": [
      {"A": {2: p-1}, "B": {3: 1}, "C": {1: p-1}},   # wire index -> coefficient
      ...
  ],
}

Every constraint reads A(w) * B(w) = C(w) over GF(prime).
"""

import struct
from pathlib import Path
from typing import Any, Dict, List, Sequence, Set, Tuple, Union

from binfile import decode_field_element, read_sections, section
from errors import FormatError

HEADER_SECTION = 1
CONSTRAINTS_SECTION = 2
WIRE2LABEL_SECTION = 3

PARTS = ("A", "B", "C")


def read_r1cs(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Parse a binary .r1cs file (version 1) into the dict format above.
    """
    name = str(path)
    _, sections = read_sections(path, b"r1cs")
    header = parse_header(section(sections, HEADER_SECTION, name))
    header["constraints"] = parse_constraints(
        section(sections, CONSTRAINTS_SECTION, name), header["n8"], header["n_constraints"]
    )
    return header


def parse_header(buf: bytes) -> Dict[str, Any]:
    (n8,) = struct.unpack_from("<I", buf, 0)
    prime = decode_field_element(buf, n8, 4)
    pos = 4 + n8
    n_vars, n_outputs, n_pub_inputs, n_prv_inputs = struct.unpack_from("<IIII", buf, pos)
    (n_labels,) = struct.unpack_from("<Q", buf, pos + 16)
    (n_constraints,) = struct.unpack_from("<I", buf, pos + 24)
    return {
        "prime": prime,
        "n8": n8,
        "n_vars": n_vars,
        "n_outputs": n_outputs,
        "n_pub_inputs": n_pub_inputs,
        "n_prv_inputs": n_prv_inputs,
        "n_labels": n_labels,
        "n_constraints": n_constraints,
    }


def parse_constraints(buf: bytes, n8: int, count: int) -> List[Dict[str, Dict[int, int]]]:
    constraints = []
    pos = 0
    try:
        for _ in range(count):
            c = {}
            for part in PARTS:
                (n_terms,) = struct.unpack_from("<I", buf, pos)
                pos += 4
                lc = {}
                for _ in range(n_terms):
                    (wire,) = struct.unpack_from("<I", buf, pos)
                    lc[wire] = decode_field_element(buf, n8, pos + 4)
                    pos += 4 + n8
                c[part] = lc
            constraints.append(c)
    except struct.error as e:
        raise FormatError(f"truncated constraints section: {e}") from e
    return constraints


def input_wire_range(r1cs: Dict[str, Any]) -> Tuple[int, int]:
    """
    [start, end) of the wires holding main inputs (public first, then private).
    Wire 0 is the constant one, followed by the outputs.
    """
    start = 1 + r1cs["n_outputs"]
    return start, start + r1cs["n_pub_inputs"] + r1cs["n_prv_inputs"]


def eval_linear_form(linear: Dict[int, int], witness: Sequence[int], prime: int) -> int:
    """
    Evaluate a linear combination wire->coeff over the witness, mod prime.
    """
    s = 0
    for wire, coeff in linear.items():
        s += coeff * witness[wire]
    return s % prime


def eval_constraint(constraint: Dict[str, Any], witness: Sequence[int], prime: int) -> int:
    """
    Evaluate A(w) * B(w) - C(w) mod prime. Zero for a satisfied constraint.
    """
    a_val = eval_linear_form(constraint.get("A", {}), witness, prime)
    b_val = eval_linear_form(constraint.get("B", {}), witness, prime)
    c_val = eval_linear_form(constraint.get("C", {}), witness, prime)
    return (a_val * b_val - c_val) % prime


def find_violations(r1cs: Dict[str, Any], witness: Sequence[int], limit: int = 0) -> List[int]:
    """
    Indices of constraints not satisfied by witness. Stops after `limit` hits when limit > 0.
    """
    prime = r1cs["prime"]
    bad = []
    for i, c in enumerate(r1cs.get("constraints", [])):
        if eval_constraint(c, witness, prime) != 0:
            bad.append(i)
            if limit and len(bad) >= limit:
                break
    return bad


def constraint_support(constraint: Dict[str, Any]) -> Set[int]:
    """
    Return the set of wires that appear in the constraint (A or B or C).
    """
    s = set()
    for part in PARTS:
        s.update(constraint.get(part, {}).keys())
    return s


def constraint_nz_count(constraint: Dict[str, Any]) -> int:
    """
    Number of non-zero coefficient entries across A,B,C.
    """
    cnt = 0
    for part in PARTS:
        cnt += len([v for v in constraint.get(part, {}).values() if v != 0])
    return cnt


def constraint_summary(constraint: Dict[str, Any]) -> Dict[str, Any]:
    supp = constraint_support(constraint)
    return {
        "support_size": len(supp),
        "nz_count": constraint_nz_count(constraint),
        "support": sorted(supp),
    }

