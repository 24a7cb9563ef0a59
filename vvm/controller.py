"""Execution controller: load, run, pause, step and reset a machine."""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional
from .assembler import AssemblyResult, ProgramEntry, assemble
from .cpu import CPU
from .errors import ControllerBusyError
from .events import (
    CycleAdvanced,
    EventBus,
    LineExecuted,
    Message,
    RunState,
    RunStateChanged,
)
from .instructions import InputProvider, IOChannel
from .isa import MEMORY_SIZE
from .memory import Memory

logger = logging.getLogger(__name__)

DEFAULT_RATE = 1.0


@dataclass
class MachineState:
    """Everything one machine instance owns."""
    cpu: CPU
    memory: Memory
    program: Optional[AssemblyResult] = None
    entries_by_address: dict[int, ProgramEntry] = field(default_factory=dict)


class ExecutionController:
    """Drives a CPU cycle by cycle.

    The controller owns the run state and the cycle counter. All cycles run
    on the caller's thread; run() paces them cooperatively on the asyncio
    event loop and never interrupts a cycle once it has begun.
    """

    def __init__(
        self,
        memory_size: int = MEMORY_SIZE,
        rate: float = DEFAULT_RATE,
        input_provider: Optional[InputProvider] = None,
        bus: Optional[EventBus] = None,
    ):
        self.bus = bus or EventBus()
        memory = Memory(size=memory_size)
        cpu = CPU(memory, bus=self.bus, io=IOChannel(input_provider))
        self.machine = MachineState(cpu=cpu, memory=memory)
        self.run_state = RunState.READY
        self.cycle = 0
        self.current_line: Optional[int] = None
        self._rate = DEFAULT_RATE
        self.set_rate(rate)
        self._running = False
        self._wakeup: Optional[asyncio.Event] = None
        # Bumped by every run() so a paused loop can tell it was superseded
        self._generation = 0

    @property
    def cpu(self) -> CPU:
        return self.machine.cpu

    @property
    def memory(self) -> Memory:
        return self.machine.memory

    @property
    def program(self) -> Optional[AssemblyResult]:
        return self.machine.program

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def is_running(self) -> bool:
        return self._running

    def set_rate(self, cycles_per_second: float) -> None:
        if not math.isfinite(cycles_per_second) or cycles_per_second <= 0:
            raise ValueError(f"Rate must be a positive number: {cycles_per_second}")
        self._rate = float(cycles_per_second)

    def _set_run_state(self, state: RunState) -> None:
        if state == self.run_state:
            return
        self.run_state = state
        self.bus.publish(RunStateChanged(state))

    def _narrate(self, level: str, text: str) -> None:
        self.bus.publish(Message(level, text, self.cycle))

    def load_program(self, text: str) -> AssemblyResult:
        """Assemble text and load it into a freshly reset machine.

        Nothing is loaded when assembly reports errors; the result carries
        them for the caller.
        """
        self.reset()
        result = assemble(text, memory_size=self.memory.size)
        if not result.ok:
            for error in result.errors:
                self._narrate("error", str(error))
            logger.info("Assembly failed with %d errors", len(result.errors))
            return result

        self.memory.load_image(result.memory_image(self.memory.size))
        self.machine.program = result
        self.machine.entries_by_address = {e.address: e for e in result.entries}
        self.cpu.program_length = len(result.entries)
        self._narrate("success", f"Program loaded: {len(result.entries)} instructions")
        logger.info("Loaded program with %d entries", len(result.entries))
        return result

    def reset(self) -> None:
        """Zero memory, registers, flags and the cycle counter; drop the program."""
        self.pause()
        self.memory.reset()
        self.cpu.reset()
        self.cpu.program_length = 0
        self.machine.program = None
        self.machine.entries_by_address = {}
        self.cycle = 0
        self.current_line = None
        self.bus.publish(CycleAdvanced(0))
        self._set_run_state(RunState.READY)
        logger.info("Machine reset")

    def _run_cycle(self) -> bool:
        """Execute exactly one cycle and update run state."""
        self.cycle += 1
        self.bus.publish(CycleAdvanced(self.cycle))
        can_continue = self.cpu.step(self.cycle)

        entry = self.machine.entries_by_address.get(self.cpu.last_address)
        if entry is not None:
            self.current_line = entry.source_line_no
            self.bus.publish(LineExecuted(entry.source_line_no, entry.address))

        error = self.cpu.error
        if error is not None:
            if entry is not None:
                error.source_line_no = entry.source_line_no
                error.source_text = entry.source_text
            self._running = False
            self._set_run_state(RunState.ERRORED)
        elif self.cpu.halted:
            self._running = False
            self._set_run_state(RunState.HALTED)
        return can_continue

    def single_step(self) -> bool:
        """Perform one cycle. Not allowed while run() is active.

        Returns:
            False once the machine has halted or errored
        """
        if self._running:
            raise ControllerBusyError("Cannot single-step while running", cycle=self.cycle)
        if self.run_state.is_terminal:
            return False
        return self._run_cycle()

    async def run(self) -> RunState:
        """Run cycles at the configured rate until halt, error or pause.

        Calling run() while already running, or on a halted or errored
        machine, does nothing. A loop left over from an earlier run that
        was paused stops at its next wakeup and never drives cycles for
        the new run.
        """
        if self._running or self.run_state.is_terminal:
            return self.run_state

        self._generation += 1
        generation = self._generation
        wakeup = asyncio.Event()
        self._running = True
        self._wakeup = wakeup
        self._set_run_state(RunState.RUNNING)
        logger.info("Running at %.2f cycles/s", self._rate)
        try:
            while self._running and generation == self._generation:
                if not self._run_cycle():
                    break
                try:
                    await asyncio.wait_for(wakeup.wait(), timeout=1.0 / self._rate)
                except asyncio.TimeoutError:
                    pass
        finally:
            if generation == self._generation:
                self._running = False
                self._wakeup = None
                if self.run_state == RunState.RUNNING:
                    self._set_run_state(RunState.READY)
        return self.run_state

    def pause(self) -> None:
        """Stop pacing before the next cycle begins."""
        if not self._running:
            return
        self._running = False
        if self._wakeup is not None:
            self._wakeup.set()
        if self.run_state == RunState.RUNNING:
            self._set_run_state(RunState.READY)
        logger.info("Paused at cycle %d", self.cycle)

    def run_until_stopped(
        self,
        max_cycles: int,
        on_cycle: Optional[Callable[[], None]] = None,
    ) -> int:
        """Run unpaced until halt, error or max_cycles.

        Args:
            max_cycles: Upper bound on cycles executed by this call
            on_cycle: Called after every cycle, once its events are published

        Returns:
            Number of cycles executed
        """
        executed = 0
        while executed < max_cycles and not self.run_state.is_terminal:
            self.single_step()
            executed += 1
            if on_cycle is not None:
                on_cycle()
        return executed
