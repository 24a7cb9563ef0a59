"""Instruction set of the decimal accumulator machine."""

from enum import IntEnum
from typing import Optional

WORD_MIN = -999
WORD_MAX = 999
MEMORY_SIZE = 100


class Opcode(IntEnum):
    """Canonical numeric opcodes."""

    HALT = 0
    ADD = 1
    SUB = 2
    STORE = 3
    NOP = 4
    LOAD = 5
    BRANCH = 6
    BRZ = 7
    BRP = 8
    IN = 901
    OUT = 902


# Every accepted spelling, aliases included
MNEMONICS: dict[str, Opcode] = {
    "HALT": Opcode.HALT,
    "HLT": Opcode.HALT,
    "COB": Opcode.HALT,
    "ADD": Opcode.ADD,
    "SUB": Opcode.SUB,
    "STORE": Opcode.STORE,
    "STO": Opcode.STORE,
    "STA": Opcode.STORE,
    "NOP": Opcode.NOP,
    "NUL": Opcode.NOP,
    "LOAD": Opcode.LOAD,
    "LDA": Opcode.LOAD,
    "BRANCH": Opcode.BRANCH,
    "BR": Opcode.BRANCH,
    "BRU": Opcode.BRANCH,
    "JMP": Opcode.BRANCH,
    "BRZ": Opcode.BRZ,
    "BRP": Opcode.BRP,
    "IN": Opcode.IN,
    "INP": Opcode.IN,
    "OUT": Opcode.OUT,
    "PRN": Opcode.OUT,
}

# Opcodes that are a whole word by themselves
FULL_WORD_OPCODES = {Opcode.IN, Opcode.OUT}


def opcode_names(opcode: Opcode) -> str:
    """Return all spellings of an opcode joined with '/', e.g. 'HALT/HLT/COB'."""
    return "/".join(name for name, op in MNEMONICS.items() if op == opcode)


def in_word_range(value: int) -> bool:
    return WORD_MIN <= value <= WORD_MAX


def encode(opcode: Opcode, operand: int = 0) -> int:
    """Encode an instruction into a decimal word.

    IN and OUT encode to their own three-digit value; everything else is
    one opcode digit followed by a two-digit operand.
    """
    if opcode in FULL_WORD_OPCODES:
        return int(opcode)
    return int(opcode) * 100 + operand % 100


def decode(word: int) -> tuple[int, int]:
    """Split an instruction word into (opcode value, operand).

    The opcode value is returned as a plain int; callers map it onto
    Opcode and treat a miss as an unknown opcode.
    """
    if word in (Opcode.IN, Opcode.OUT):
        return word, 0
    magnitude = abs(word)
    return (magnitude // 100) % 10, magnitude % 100


def lookup(value: int) -> Optional[Opcode]:
    """Map a decoded opcode value onto Opcode, or None if undefined."""
    try:
        return Opcode(value)
    except ValueError:
        return None
