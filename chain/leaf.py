"""Classify the covenant leaf used to spend a contract's funding output."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from app.domain import ClassificationError

OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E


class LeafKind(str, Enum):
    LIQUIDATE = "liquidate"
    REDEEM = "redeem"
    TOPUP = "topup"
    UNRECOGNIZED = "unrecognized"


# Item count of each covenant leaf once decompiled. Post-spend this is the only
# signal telling the branches apart.
LEAF_FINGERPRINTS: dict[int, LeafKind] = {
    37: LeafKind.LIQUIDATE,
    47: LeafKind.REDEEM,
    27: LeafKind.TOPUP,
}


def decompile(script: bytes) -> list[int | bytes]:
    """Split a script into opcodes (ints) and pushed data (bytes)."""

    items: list[int | bytes] = []
    cursor = 0
    length = len(script)
    while cursor < length:
        opcode = script[cursor]
        cursor += 1

        if 0 < opcode < OP_PUSHDATA1:
            size = opcode
        elif opcode == OP_PUSHDATA1:
            size_width = 1
        elif opcode == OP_PUSHDATA2:
            size_width = 2
        elif opcode == OP_PUSHDATA4:
            size_width = 4
        else:
            items.append(opcode)
            continue

        if opcode >= OP_PUSHDATA1:
            if cursor + size_width > length:
                raise ClassificationError(
                    f"truncated PUSHDATA length at offset {cursor - 1}"
                )
            size = int.from_bytes(script[cursor : cursor + size_width], "little")
            cursor += size_width

        if cursor + size > length:
            raise ClassificationError(
                f"push of {size} bytes at offset {cursor} overruns script of {length} bytes"
            )
        items.append(script[cursor : cursor + size])
        cursor += size
    return items


def leaf_script(witness: Sequence[bytes]) -> bytes:
    """Return the leaf script of a taproot script-path witness (second to last item)."""

    if len(witness) < 2:
        raise ClassificationError(
            f"witness has {len(witness)} item(s); a script-path spend needs at least 2"
        )
    return witness[len(witness) - 2]


def classify_leaf(script: bytes | str) -> LeafKind:
    if isinstance(script, str):
        try:
            script = bytes.fromhex(script)
        except ValueError as exc:
            raise ClassificationError(f"leaf script is not valid hex: {exc}") from exc
    return LEAF_FINGERPRINTS.get(len(decompile(script)), LeafKind.UNRECOGNIZED)


def classify_witness(witness: Sequence[bytes]) -> LeafKind:
    return classify_leaf(leaf_script(witness))


__all__ = [
    "LEAF_FINGERPRINTS",
    "LeafKind",
    "classify_leaf",
    "classify_witness",
    "decompile",
    "leaf_script",
]
