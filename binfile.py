"""
binfile.py

Readers for the iden3 binary container used by circom outputs (.r1cs, .wtns).

Layout:
  magic (4 bytes) | version u32 | n_sections u32 |
  n_sections * ( type u32 | size u64 | payload[size] )

All integers are little-endian. Field elements are n8-byte little-endian
unsigned integers; n8 is a multiple of 8 for every prime circom supports,
so they are decoded as arrays of 64-bit limbs with numpy.
"""

import struct
from pathlib import Path
from typing import Dict, List, Tuple, Union

import numpy as np

from errors import FormatError


def read_sections(path: Union[str, Path], magic: bytes) -> Tuple[int, Dict[int, List[bytes]]]:
    """
    Split a container file into its sections.

    Returns (version, {section_type: [payload, ...]}). A section type may repeat.
    """
    data = Path(path).read_bytes()
    return parse_sections(data, magic, name=str(path))


def parse_sections(data: bytes, magic: bytes, name: str = "<bytes>") -> Tuple[int, Dict[int, List[bytes]]]:
    if len(data) < 12 or data[:4] != magic:
        raise FormatError(f"{name}: not a {magic.decode('ascii')} file")
    version, n_sections = struct.unpack_from("<II", data, 4)
    sections: Dict[int, List[bytes]] = {}
    pos = 12
    for _ in range(n_sections):
        if pos + 12 > len(data):
            raise FormatError(f"{name}: truncated section header at offset {pos}")
        stype, size = struct.unpack_from("<IQ", data, pos)
        pos += 12
        if pos + size > len(data):
            raise FormatError(f"{name}: section {stype} overruns file")
        sections.setdefault(stype, []).append(data[pos:pos + size])
        pos += size
    return version, sections


def section(sections: Dict[int, List[bytes]], stype: int, name: str = "<bytes>") -> bytes:
    payloads = sections.get(stype)
    if not payloads:
        raise FormatError(f"{name}: missing section {stype}")
    return payloads[0]


def decode_field_elements(buf: bytes, n8: int, count: int, offset: int = 0) -> List[int]:
    """
    Decode `count` consecutive n8-byte little-endian integers starting at offset.
    """
    if n8 % 8:
        raise FormatError(f"unsupported field element size {n8}")
    end = offset + n8 * count
    if end > len(buf):
        raise FormatError(f"expected {count} field elements of {n8} bytes, buffer too short")
    limbs = np.frombuffer(buf, dtype="<u8", count=count * (n8 // 8), offset=offset).reshape(count, n8 // 8)
    out = []
    for row in limbs:
        v = 0
        for limb in reversed(row.tolist()):
            v = (v << 64) | limb
        out.append(v)
    return out


def decode_field_element(buf: bytes, n8: int, offset: int = 0) -> int:
    return int.from_bytes(buf[offset:offset + n8], "little")


def read_wtns(path: Union[str, Path]) -> Tuple[int, List[int]]:
    """
    Read a .wtns file and return (prime, witness values).

    Section 1: n8 u32 | prime[n8] | n_witness u32
    Section 2: n_witness * value[n8]
    """
    name = str(path)
    _, sections = read_sections(path, b"wtns")
    header = section(sections, 1, name)
    (n8,) = struct.unpack_from("<I", header, 0)
    prime = decode_field_element(header, n8, 4)
    (n_witness,) = struct.unpack_from("<I", header, 4 + n8)
    values = decode_field_elements(section(sections, 2, name), n8, n_witness)
    return prime, values
