import asyncio
import json
import os
import stat

import numpy as np
import pytest

from circom_tester import WasmCircuit, WasmTester, compile_command
from conftest import BN128, wtns_bytes
from errors import ConstraintError, ToolNotFound, WitnessError
from runner import execute_circuit


def circuit_for(build_dir, registry):
    return WasmCircuit(str(build_dir / "mult.circom"), str(build_dir), registry, {})


def test_compile_command_flags():
    cmd = compile_command("circom", "m.circom", "/out", {"include": ["node_modules", "lib"], "prime": "bn128", "O": 1, "json": True})
    assert cmd == [
        "circom", "m.circom", "--r1cs", "--wasm", "--sym", "-o", "/out",
        "-l", "node_modules", "-l", "lib", "--prime", "bn128", "--O1", "--json",
    ]


def test_compile_command_defaults():
    assert compile_command("circom", "m.circom", "/out", {"O": None, "prime": None}) == [
        "circom", "m.circom", "--r1cs", "--wasm", "--sym", "-o", "/out",
    ]


def test_artifact_paths(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    assert c.wasm_path == multiplier_build / "mult_js" / "mult.wasm"
    assert c.r1cs_path == multiplier_build / "mult.r1cs"
    assert c.sym_path == multiplier_build / "mult.sym"
    assert not c.artifacts_exist()


def test_check_constraints_accepts_good_witness(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    asyncio.run(c.check_constraints([1, 12, 3, 4]))


def test_check_constraints_rejects_bad_witness(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    asyncio.run(c.load_symbols())
    with pytest.raises(ConstraintError) as info:
        asyncio.run(c.check_constraints([1, 13, 3, 4]))
    assert info.value.index == 0
    assert "3 terms over main.c, main.a, main.b" in str(info.value)


def test_check_constraints_requires_one_wire(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    with pytest.raises(ConstraintError):
        asyncio.run(c.check_constraints([0, 0, 0, 0]))


def test_check_constraints_short_witness(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    with pytest.raises(ConstraintError):
        asyncio.run(c.check_constraints([1, 12]))


def test_sanity_check_rejects_missing_input(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    with pytest.raises(WitnessError, match="main.b"):
        asyncio.run(c.calculate_witness({"a": 3}, True))


def test_sanity_check_rejects_unknown_input(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    with pytest.raises(WitnessError, match="main.d"):
        asyncio.run(c.calculate_witness({"a": 3, "b": 4, "d": 1}, True))


def test_sanity_check_rejects_output_as_input(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    with pytest.raises(WitnessError, match="main.c"):
        asyncio.run(c.calculate_witness({"a": 3, "b": 4, "c": 12}, True))


def test_output_helpers(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    witness = [1, 12, 3, 4]
    assert asyncio.run(c.get_output(witness, ["c", "main.a"])) == {"c": 12, "main.a": 3}
    assert asyncio.run(c.get_decorated_output(witness)).splitlines() == [
        "main.c --> 12",
        "main.a --> 3",
        "main.b --> 4",
    ]
    asyncio.run(c.assert_out(witness, {"c": 12}))
    with pytest.raises(AssertionError):
        asyncio.run(c.assert_out(witness, {"c": 13}))
    with pytest.raises(AssertionError):
        asyncio.run(c.assert_out(witness, {"nope": 1}))
    with pytest.raises(KeyError):
        asyncio.run(c.get_output(witness, ["nope"]))


def test_assert_out_wraps_negative_values(multiplier_build, registry):
    c = circuit_for(multiplier_build, registry)
    asyncio.run(c.assert_out([1, BN128 - 12, 3, BN128 - 4], {"c": -12}))


def test_missing_compiler(tmp_path, registry):
    tester = WasmTester(registry)
    with pytest.raises(ToolNotFound):
        asyncio.run(tester(str(tmp_path / "m.circom"), {"circom": "definitely-not-circom-xyz"}))


def test_reuses_existing_artifacts(multiplier_build, registry):
    js = multiplier_build / "mult_js"
    js.mkdir()
    (js / "mult.wasm").write_bytes(b"\x00asm")
    tester = WasmTester(registry)
    c = asyncio.run(tester(str(multiplier_build / "mult.circom"),
                           {"output": str(multiplier_build), "recompile": False, "circom": "definitely-not-circom-xyz"}))
    assert c.artifacts_exist()
    assert not c.owns_output
    c.release()
    assert multiplier_build.exists()


def fake_node(tmp_path, body):
    """
    Stand-in for `node generate_witness.js <wasm> <input.json> <out.wtns>`.
    """
    script = tmp_path / "fake-node"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


def witness_circuit(build_dir, registry, node):
    (build_dir / "mult_js").mkdir(exist_ok=True)
    return WasmCircuit(str(build_dir / "mult.circom"), str(build_dir), registry, {"node": node})


@pytest.mark.skipif(os.name != "posix", reason="shell script stands in for node")
def test_execute_multiplier_with_generated_witness(multiplier_build, registry, tmp_path):
    wtns = tmp_path / "good.wtns"
    wtns.write_bytes(wtns_bytes([1, 12, 3, 4]))
    seen = tmp_path / "seen_input.json"
    node = fake_node(tmp_path, f'cp "$3" "{seen}" && cp "{wtns}" "$4"')
    circuit = witness_circuit(multiplier_build, registry, node)

    witness = asyncio.run(execute_circuit(circuit, {"a": 3, "b": np.int64(4)}))

    assert witness == [1, 12, 3, 4]
    assert asyncio.run(circuit.get_output(witness, ["c"])) == {"c": 12}
    assert circuit.symbols is not None
    assert json.loads(seen.read_text(encoding="utf-8")) == {"a": "3", "b": "4"}


@pytest.mark.skipif(os.name != "posix", reason="shell script stands in for node")
def test_negative_inputs_are_sent_as_field_elements(multiplier_build, registry, tmp_path):
    wtns = tmp_path / "neg.wtns"
    wtns.write_bytes(wtns_bytes([1, BN128 - 12, BN128 - 3, 4]))
    seen = tmp_path / "seen_input.json"
    node = fake_node(tmp_path, f'cp "$3" "{seen}" && cp "{wtns}" "$4"')
    circuit = witness_circuit(multiplier_build, registry, node)

    asyncio.run(execute_circuit(circuit, {"a": -3, "b": 4}))

    assert json.loads(seen.read_text(encoding="utf-8"))["a"] == str(BN128 - 3)


@pytest.mark.skipif(os.name != "posix", reason="shell script stands in for node")
def test_failing_witness_generator_raises(multiplier_build, registry, tmp_path):
    node = fake_node(tmp_path, 'echo "Error: Assert Failed." >&2; exit 1')
    circuit = witness_circuit(multiplier_build, registry, node)

    with pytest.raises(WitnessError, match="Assert Failed"):
        asyncio.run(execute_circuit(circuit, {"a": 3, "b": 4}))
    assert circuit.symbols is not None
    assert circuit.constraints is not None


@pytest.mark.skipif(os.name != "posix", reason="shell script stands in for node")
def test_short_witness_rejected_in_strict_mode(multiplier_build, registry, tmp_path):
    wtns = tmp_path / "short.wtns"
    wtns.write_bytes(wtns_bytes([1, 12, 3]))
    node = fake_node(tmp_path, f'cp "{wtns}" "$4"')
    circuit = witness_circuit(multiplier_build, registry, node)

    with pytest.raises(WitnessError, match="3 values"):
        asyncio.run(circuit.calculate_witness({"a": 3, "b": 4}, True))


@pytest.mark.skipif(os.name != "posix", reason="shell script stands in for node")
def test_unsatisfying_witness_fails_constraint_check(multiplier_build, registry, tmp_path):
    wtns = tmp_path / "bad.wtns"
    wtns.write_bytes(wtns_bytes([1, 13, 3, 4]))
    node = fake_node(tmp_path, f'cp "{wtns}" "$4"')
    circuit = witness_circuit(multiplier_build, registry, node)

    with pytest.raises(ConstraintError):
        asyncio.run(execute_circuit(circuit, {"a": 3, "b": 4}))
