import shutil
import struct
from pathlib import Path

import pytest

from tempfiles import TempRegistry

BN128 = 21888242871839275222246405745257275088548364400416034343698204186575808495617

CIRCUITS = Path(__file__).parent / "circuits"

needs_toolchain = pytest.mark.skipif(
    shutil.which("circom") is None or shutil.which("node") is None,
    reason="circom and node are required",
)


def _container(magic, sections, version=1):
    out = magic + struct.pack("<II", version, len(sections))
    for stype, payload in sections:
        out += struct.pack("<IQ", stype, len(payload)) + payload
    return out


def r1cs_bytes(constraints, n_vars, n_outputs=0, n_pub=0, n_prv=0, prime=BN128, n8=32):
    header = struct.pack("<I", n8) + prime.to_bytes(n8, "little")
    header += struct.pack("<IIIIQI", n_vars, n_outputs, n_pub, n_prv, n_vars, len(constraints))
    body = b""
    for c in constraints:
        for part in ("A", "B", "C"):
            lc = c.get(part, {})
            body += struct.pack("<I", len(lc))
            for wire, coeff in sorted(lc.items()):
                body += struct.pack("<I", wire) + (coeff % prime).to_bytes(n8, "little")
    wire2label = b"".join(struct.pack("<Q", i) for i in range(n_vars))
    return _container(b"r1cs", [(1, header), (2, body), (3, wire2label)])


def wtns_bytes(values, prime=BN128, n8=32):
    header = struct.pack("<I", n8) + prime.to_bytes(n8, "little") + struct.pack("<I", len(values))
    body = b"".join((v % prime).to_bytes(n8, "little") for v in values)
    return _container(b"wtns", [(1, header), (2, body)], version=2)


# c <== a * b, wires: 0 one, 1 c, 2 a, 3 b
MULTIPLIER_CONSTRAINTS = [{"A": {2: BN128 - 1}, "B": {3: 1}, "C": {1: BN128 - 1}}]
MULTIPLIER_SYM = "1,1,0,main.c\n2,2,0,main.a\n3,3,0,main.b\n"


@pytest.fixture
def registry():
    reg = TempRegistry()
    yield reg
    reg.cleanup()


@pytest.fixture
def circuits_dir():
    return CIRCUITS


@pytest.fixture
def make_r1cs():
    return r1cs_bytes


@pytest.fixture
def make_wtns():
    return wtns_bytes


@pytest.fixture
def multiplier_build(tmp_path):
    """
    Output directory laid out like a circom build of mult.circom (without the wasm).
    """
    (tmp_path / "mult.r1cs").write_bytes(r1cs_bytes(MULTIPLIER_CONSTRAINTS, n_vars=4, n_outputs=1, n_prv=2))
    (tmp_path / "mult.sym").write_text(MULTIPLIER_SYM, encoding="utf-8")
    return tmp_path
