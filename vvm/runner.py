"""Batch program runner with tracing for the Visual Von-Neumann Machine."""

from dataclasses import dataclass, field
from typing import Iterable, Optional
from .controller import ExecutionController
from .errors import ErrorInfo, StepLimitExceeded, VVMError
from .events import EventBus, EventRecorder, Message, event_to_dict
from .instructions import InputValue, QueueInput
from .isa import MEMORY_SIZE


@dataclass
class RunOptions:
    """Options for program execution."""
    memory_size: int = MEMORY_SIZE
    max_cycles: int = 10000
    trace: bool = True
    trace_events: bool = False
    trace_watch: list[int] = field(default_factory=list)
    initial_memory: dict[int, int] = field(default_factory=dict)


@dataclass
class TraceRow:
    """Machine state after one cycle."""
    cycle: int
    addr: int
    source_line_no: Optional[int]
    ir: int
    pc: int
    acc: int
    z: bool
    n: bool
    mem: dict[str, int]
    out: Optional[int] = None
    instr_text: str = ""

    def to_dict(self) -> dict:
        return {
            "cycle": self.cycle,
            "addr": self.addr,
            "source_line_no": self.source_line_no,
            "ir": self.ir,
            "pc": self.pc,
            "acc": self.acc,
            "z": self.z,
            "n": self.n,
            "mem": self.mem,
            "out": self.out,
            "instr_text": self.instr_text,
        }


@dataclass
class RunResult:
    """Result of program execution."""
    status: str  # "ok" | "error"
    run_state: str
    outputs: list[int]
    cycles_executed: int
    final_state: dict
    memory: list[int]
    trace_watch: list[int]
    trace: list[dict]
    messages: list[dict] = field(default_factory=list)
    warnings: list[ErrorInfo] = field(default_factory=list)
    events: list[dict] = field(default_factory=list)
    error: Optional[ErrorInfo] = None
    assembly_errors: list[ErrorInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {
            "status": self.status,
            "run_state": self.run_state,
            "outputs": self.outputs,
            "cycles_executed": self.cycles_executed,
            "final_state": self.final_state,
            "memory": self.memory,
            "trace_watch": self.trace_watch,
            "trace": self.trace,
            "messages": self.messages,
            "warnings": [w.to_dict() for w in self.warnings],
            "assembly_errors": [e.to_dict() for e in self.assembly_errors],
        }
        if self.events:
            result["events"] = self.events
        if self.error:
            result["error"] = self.error.to_dict()
        return result


def run_program(
    program_text: str,
    inputs: Iterable[InputValue] = (),
    options: Optional[RunOptions] = None,
) -> RunResult:
    """Assemble, load and run a VVM program to completion.

    Args:
        program_text: Program source code
        inputs: Values answered to IN requests, in order; once exhausted
            the next IN is cancelled
        options: Execution options

    Returns:
        RunResult with execution status, outputs, and trace
    """
    if options is None:
        options = RunOptions()

    bus = EventBus()
    messages = EventRecorder()
    bus.subscribe(messages, Message)
    recorder: Optional[EventRecorder] = None
    if options.trace_events:
        recorder = EventRecorder()
        bus.subscribe(recorder)

    controller = ExecutionController(
        memory_size=options.memory_size,
        input_provider=QueueInput(inputs),
        bus=bus,
    )
    cpu = controller.cpu

    def build_result(error: Optional[ErrorInfo], cycles: int, trace_watch: list[int],
                     trace_rows: list[dict], assembly_errors: list[ErrorInfo]) -> RunResult:
        return RunResult(
            status="ok" if error is None and not assembly_errors else "error",
            run_state=controller.run_state.value,
            outputs=list(cpu.io.outputs),
            cycles_executed=cycles,
            final_state=cpu.get_state(),
            memory=controller.memory.snapshot(),
            trace_watch=trace_watch,
            trace=trace_rows,
            messages=[event_to_dict(m) for m in messages.events],
            warnings=[w.to_error_info() for w in cpu.warnings],
            events=[event_to_dict(e) for e in recorder.events] if recorder else [],
            error=error,
            assembly_errors=assembly_errors,
        )

    # Assemble and load
    assembly = controller.load_program(program_text)
    if not assembly.ok:
        infos = [e.to_error_info() for e in assembly.errors]
        return build_result(infos[0], 0, list(options.trace_watch), [], infos)

    try:
        for addr, val in options.initial_memory.items():
            controller.memory.write(addr, val)
    except VVMError as e:
        return build_result(e.to_error_info(), 0, list(options.trace_watch), [], [])

    # Watch every data cell plus anything preset or asked for
    watch = set(options.trace_watch) | set(options.initial_memory)
    watch |= {e.address for e in assembly.entries if e.mnemonic in ("DAT", "DATA")}
    trace_watch = sorted(watch)

    trace_rows: list[dict] = []
    outputs_seen = 0

    def record_cycle() -> None:
        nonlocal outputs_seen
        if not options.trace:
            return
        addr = cpu.last_address if cpu.last_address is not None else 0
        entry = controller.machine.entries_by_address.get(addr)
        out = cpu.io.outputs[-1] if len(cpu.io.outputs) > outputs_seen else None
        outputs_seen = len(cpu.io.outputs)
        row = TraceRow(
            cycle=controller.cycle,
            addr=addr,
            source_line_no=entry.source_line_no if entry else None,
            ir=cpu.ir,
            pc=cpu.pc,
            acc=cpu.ac,
            z=cpu.registers.z,
            n=cpu.registers.n,
            mem=controller.memory.get_watched(trace_watch),
            out=out,
            instr_text=entry.source_text if entry else "",
        )
        trace_rows.append(row.to_dict())

    cycles = controller.run_until_stopped(options.max_cycles, on_cycle=record_cycle)

    error_info: Optional[ErrorInfo] = None
    if cpu.error is not None:
        error_info = cpu.error.to_error_info()
    elif not controller.run_state.is_terminal:
        error_info = StepLimitExceeded(
            f"Cycle limit exceeded: {options.max_cycles}",
            cycle=controller.cycle,
            addr=cpu.pc,
        ).to_error_info()

    return build_result(error_info, cycles, trace_watch, trace_rows, [])
