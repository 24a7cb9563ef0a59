"""Instruction execution for the Visual Von-Neumann Machine."""

from collections import deque
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Union
from .errors import (
    InputCancelledError,
    InvalidInputError,
    WordOverflowError,
)
from .isa import WORD_MIN, WORD_MAX, Opcode, in_word_range

if TYPE_CHECKING:
    from .cpu import CPU


# Answer to an input request; None means the request was cancelled
InputValue = Optional[Union[int, str]]
InputProvider = Callable[[str], InputValue]

INPUT_PROMPT = f"Enter a value ({WORD_MIN} to {WORD_MAX}):"


class QueueInput:
    """Input provider that serves a fixed list of values in order.

    Once the values run out every further request is cancelled.
    """

    def __init__(self, values: Iterable[InputValue] = ()):
        self._values = deque(values)

    def __call__(self, prompt: str) -> InputValue:
        if not self._values:
            return None
        return self._values.popleft()

    def push(self, value: InputValue) -> None:
        self._values.append(value)

    @property
    def remaining(self) -> int:
        return len(self._values)


class IOChannel:
    """Input/Output channel for IN/OUT instructions."""

    def __init__(self, input_provider: Optional[InputProvider] = None):
        self.input_provider: InputProvider = input_provider or QueueInput()
        self.outputs: list[int] = []

    def read_value(self) -> int:
        """Request one word from the environment."""
        raw = self.input_provider(INPUT_PROMPT)
        if raw is None:
            raise InputCancelledError("User canceled input")
        if isinstance(raw, str):
            try:
                value = int(raw.strip(), 10)
            except ValueError:
                raise InvalidInputError(f"Invalid input: {raw!r}") from None
        elif isinstance(raw, int) and not isinstance(raw, bool):
            value = raw
        else:
            # Floats and other types are refused rather than truncated
            raise InvalidInputError(f"Invalid input: {raw!r}")
        if not in_word_range(value):
            raise WordOverflowError(
                f"Invalid input: {value} (range: {WORD_MIN} to +{WORD_MAX})"
            )
        return value

    def write_value(self, value: int) -> None:
        self.outputs.append(value)

    def clear(self) -> None:
        self.outputs.clear()


# Narration for the cycle log: (level, text)
Narration = tuple[str, str]

InstructionExecutor = Callable[["CPU", int], Narration]


def execute_halt(cpu: "CPU", operand: int) -> Narration:
    """HALT: stop the machine"""
    cpu.halted = True
    return "success", "Program terminated (HALT)"


def execute_add(cpu: "CPU", operand: int) -> Narration:
    """ADD a: AC := AC + MEM[a]"""
    cpu.set_register("MAR", operand)
    cpu.read_into_mbr(operand)
    cpu.set_ac(cpu.ac + cpu.mbr)
    return "info", f"ADD: AC <- AC + Memory[{operand}] ({cpu.ac})"


def execute_sub(cpu: "CPU", operand: int) -> Narration:
    """SUB a: AC := AC - MEM[a]"""
    cpu.set_register("MAR", operand)
    cpu.read_into_mbr(operand)
    cpu.set_ac(cpu.ac - cpu.mbr)
    return "info", f"SUB: AC <- AC - Memory[{operand}] ({cpu.ac})"


def execute_store(cpu: "CPU", operand: int) -> Narration:
    """STORE a: MEM[a] := AC"""
    cpu.set_register("MAR", operand)
    cpu.set_register("MBR", cpu.ac)
    cpu.write_from_mbr(operand)
    return "info", f"STORE: Memory[{operand}] <- AC ({cpu.ac})"


def execute_nop(cpu: "CPU", operand: int) -> Narration:
    """NOP: nothing"""
    return "info", "NOP: No operation"


def execute_load(cpu: "CPU", operand: int) -> Narration:
    """LOAD a: AC := MEM[a]"""
    cpu.set_register("MAR", operand)
    cpu.read_into_mbr(operand)
    cpu.set_ac(cpu.mbr)
    return "info", f"LOAD: AC <- Memory[{operand}] ({cpu.ac})"


def execute_branch(cpu: "CPU", operand: int) -> Narration:
    """BRANCH a: PC := a"""
    cpu.set_register("PC", operand)
    return "warning", f"BRANCH: Jump to address {operand}"


def execute_brz(cpu: "CPU", operand: int) -> Narration:
    """BRZ a: if AC == 0, PC := a"""
    if cpu.ac == 0:
        cpu.set_register("PC", operand)
        return "warning", f"BRZ: Jump to address {operand} (AC = 0)"
    return "info", "BRZ: No jump (AC != 0)"


def execute_brp(cpu: "CPU", operand: int) -> Narration:
    """BRP a: if AC >= 0, PC := a"""
    if cpu.ac >= 0:
        cpu.set_register("PC", operand)
        return "warning", f"BRP: Jump to address {operand} (AC >= 0)"
    return "info", "BRP: No jump (AC < 0)"


def execute_in(cpu: "CPU", operand: int) -> Narration:
    """IN: AC := value supplied by the environment"""
    cpu.set_ac(cpu.io.read_value())
    return "info", f"IN: User input -> AC ({cpu.ac})"


def execute_out(cpu: "CPU", operand: int) -> Narration:
    """OUT: emit AC"""
    cpu.emit_output(cpu.ac)
    return "success", f"OUT: Output = {cpu.ac}"


# Instruction dispatch table, one executor per Opcode member
INSTRUCTION_EXECUTORS: dict[Opcode, InstructionExecutor] = {
    Opcode.HALT: execute_halt,
    Opcode.ADD: execute_add,
    Opcode.SUB: execute_sub,
    Opcode.STORE: execute_store,
    Opcode.NOP: execute_nop,
    Opcode.LOAD: execute_load,
    Opcode.BRANCH: execute_branch,
    Opcode.BRZ: execute_brz,
    Opcode.BRP: execute_brp,
    Opcode.IN: execute_in,
    Opcode.OUT: execute_out,
}


def execute_instruction(opcode: Opcode, operand: int, cpu: "CPU") -> Narration:
    """Execute a single decoded instruction.

    Returns:
        (level, text) narration describing what the instruction did
    """
    return INSTRUCTION_EXECUTORS[opcode](cpu, operand)
