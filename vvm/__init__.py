"""Visual Von-Neumann Machine core package."""

from .assembler import assemble, AssemblyResult, ProgramEntry
from .controller import ExecutionController, MachineState
from .events import EventBus, EventRecorder, RunState
from .runner import run_program, RunOptions, RunResult
from .errors import (
    VVMError,
    AssemblyError,
    VVMRuntimeError,
    WordOverflowError,
    UnknownOpcodeError,
    InputCancelledError,
    OutOfProgramError,
)

__all__ = [
    "assemble",
    "AssemblyResult",
    "ProgramEntry",
    "ExecutionController",
    "MachineState",
    "EventBus",
    "EventRecorder",
    "RunState",
    "run_program",
    "RunOptions",
    "RunResult",
    "VVMError",
    "AssemblyError",
    "VVMRuntimeError",
    "WordOverflowError",
    "UnknownOpcodeError",
    "InputCancelledError",
    "OutOfProgramError",
]
