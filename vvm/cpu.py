"""CPU state and the fetch-decode-execute cycle."""

import logging
from dataclasses import dataclass, asdict
from typing import Optional
from .errors import OutOfProgramError, UnknownOpcodeError, VVMRuntimeError, WordOverflowError
from .events import (
    EventBus,
    FlagsChanged,
    MemoryRead,
    MemoryWritten,
    Message,
    OutputProduced,
    RegisterChanged,
)
from .instructions import IOChannel, execute_instruction
from .isa import WORD_MIN, WORD_MAX, Opcode, decode, in_word_range, lookup
from .memory import Memory

logger = logging.getLogger(__name__)

REGISTER_NAMES = ("PC", "AC", "IR", "MAR", "MBR")


@dataclass
class Registers:
    """Register file. Z and N mirror AC after every AC write."""
    pc: int = 0
    ac: int = 0
    ir: int = 0
    mar: int = 0
    mbr: int = 0
    z: bool = False
    n: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class CPU:
    """Decimal accumulator CPU.

    The CPU knows nothing about Ready/Running; it only reports when the
    machine has halted or errored. Every register, flag and memory access
    is published on the bus in the order it happens.
    """

    def __init__(
        self,
        memory: Memory,
        bus: Optional[EventBus] = None,
        io: Optional[IOChannel] = None,
    ):
        self.memory = memory
        self.bus = bus or EventBus()
        self.io = io or IOChannel()
        self.registers = Registers()
        self.halted: bool = False
        self.error: Optional[VVMRuntimeError] = None
        self.warnings: list[OutOfProgramError] = []
        self.program_length: int = 0
        # Address of the instruction fetched by the latest step
        self.last_address: Optional[int] = None
        self._cycle: int = 0

    # Register access

    @property
    def pc(self) -> int:
        return self.registers.pc

    @property
    def ac(self) -> int:
        return self.registers.ac

    @property
    def ir(self) -> int:
        return self.registers.ir

    @property
    def mar(self) -> int:
        return self.registers.mar

    @property
    def mbr(self) -> int:
        return self.registers.mbr

    @property
    def stopped(self) -> bool:
        return self.halted or self.error is not None

    def set_register(self, name: str, value: int) -> None:
        setattr(self.registers, name.lower(), value)
        self.bus.publish(RegisterChanged(name, value))

    def set_ac(self, value: int) -> None:
        """Set AC and the flags; out-of-range results are never committed."""
        if not in_word_range(value):
            raise WordOverflowError(
                f"Data overflow: AC = {value} (range: {WORD_MIN} to +{WORD_MAX})"
            )
        self.set_register("AC", value)
        self.registers.z = value == 0
        self.registers.n = value < 0
        self.bus.publish(FlagsChanged(self.registers.z, self.registers.n))

    # Memory transfers

    def read_into_mbr(self, addr: int) -> int:
        """MBR := MEM[addr]"""
        value = self.memory.read(addr)
        self.bus.publish(MemoryRead(addr))
        self.set_register("MBR", value)
        return value

    def write_from_mbr(self, addr: int) -> None:
        """MEM[addr] := MBR"""
        self.memory.write(addr, self.mbr)
        self.bus.publish(MemoryWritten(addr, self.mbr))

    def emit_output(self, value: int) -> None:
        self.io.write_value(value)
        self.bus.publish(OutputProduced(value))

    # Cycle

    def fetch(self) -> int:
        """MAR := PC; MBR := MEM[MAR]; IR := MBR; PC := PC + 1"""
        self.set_register("MAR", self.pc)
        self.read_into_mbr(self.mar)
        self.set_register("IR", self.mbr)
        self.set_register("PC", self.pc + 1)
        return self.ir

    def decode(self, word: int) -> tuple[Opcode, int]:
        value, operand = decode(word)
        opcode = lookup(value)
        if opcode is None:
            raise UnknownOpcodeError(f"Unknown opcode: {value} (IR = {word})")
        return opcode, operand

    def step(self, cycle: int = 0) -> bool:
        """Run one fetch-decode-execute cycle.

        Returns:
            False once the machine has halted or errored
        """
        if self.stopped:
            return False

        self._cycle = cycle
        self.last_address = self.pc
        try:
            opcode, operand = self.decode(self.fetch())
            level, text = execute_instruction(opcode, operand, self)
        except VVMRuntimeError as e:
            e.cycle = cycle
            e.addr = self.last_address
            self.error = e
            logger.error("Cycle %d at address %d: %s", cycle, e.addr, e.message)
            self.narrate("error", e.describe())
            return False

        logger.debug(
            "Cycle %d: [%02d] %s %02d, AC=%d", cycle, self.last_address, opcode.name, operand, self.ac
        )
        self.narrate(level, text)

        if not self.halted and (
            self.pc >= self.program_length or self.pc >= self.memory.size
        ):
            warning = OutOfProgramError(
                "Program ended (reached end of code)", cycle=cycle, addr=self.pc,
            )
            self.halted = True
            self.warnings.append(warning)
            logger.warning("Cycle %d: ran off the end of the program at PC=%d", cycle, self.pc)
            self.narrate("warning", warning.message)

        return not self.halted

    def narrate(self, level: str, text: str) -> None:
        self.bus.publish(Message(level, text, self._cycle))

    def get_state(self) -> dict:
        """Get current register state as dictionary."""
        return self.registers.to_dict()

    def reset(self) -> None:
        """Zero every register and flag and forget halt/error status."""
        self.registers = Registers()
        self.halted = False
        self.error = None
        self.warnings = []
        self.last_address = None
        self._cycle = 0
        self.io.clear()
        for name in REGISTER_NAMES:
            self.bus.publish(RegisterChanged(name, 0))
        self.bus.publish(FlagsChanged(False, False))
