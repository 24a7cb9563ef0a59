"""Error taxonomy for the Visual Von-Neumann Machine.

Every error carries where the machine was when it happened. Assembly errors
point at a source line; runtime errors point at a cycle and an address, and
the controller adds the source line once it knows which entry was fetched.
"""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class ErrorInfo:
    """Serializable snapshot of an error, as returned by the API."""
    type: str
    severity: str  # "error" | "warning"
    message: str
    cycle: int
    addr: int
    source_line_no: Optional[int] = None
    source_text: Optional[str] = None

    @classmethod
    def from_error(cls, error: "VVMError") -> "ErrorInfo":
        return cls(
            type=type(error).__name__,
            severity=error.severity,
            message=error.message,
            cycle=error.cycle,
            addr=error.addr,
            source_line_no=error.source_line_no,
            source_text=error.source_text,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class VVMError(Exception):
    """Base exception for all VVM errors."""

    severity = "error"

    def __init__(
        self,
        message: str,
        cycle: int = 0,
        addr: int = 0,
        source_line_no: Optional[int] = None,
        source_text: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cycle = cycle
        self.addr = addr
        self.source_line_no = source_line_no
        self.source_text = source_text

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo.from_error(self)


class AssemblyError(VVMError):
    """Line-level error found while assembling a program."""

    def __str__(self) -> str:
        if self.source_line_no is None:
            return self.message
        return f"Line {self.source_line_no}: {self.message}"


class VVMRuntimeError(VVMError):
    """Error during program execution. Always terminal for the run."""

    def describe(self) -> str:
        """Message plus the address of the failing instruction."""
        return f"{self.message} at address {self.addr:02d}"


class MemoryAccessError(VVMRuntimeError):
    """Memory address out of bounds."""


class WordOverflowError(VVMRuntimeError):
    """Value left the -999..999 word range."""


class UnknownOpcodeError(VVMRuntimeError):
    """Decoded instruction word has no opcode."""


class InputCancelledError(VVMRuntimeError):
    """IN instruction did not receive a value."""


class InvalidInputError(VVMRuntimeError):
    """IN instruction received something that is not an integer."""


class StepLimitExceeded(VVMRuntimeError):
    """Maximum cycle count exceeded."""


class OutOfProgramError(VVMError):
    """Control fell past the loaded program without a HALT.

    The machine treats it as an implicit halt, so it is only a warning.
    """

    severity = "warning"


class ControllerBusyError(VVMError):
    """Single step requested while the controller is running."""
