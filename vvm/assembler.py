"""Two-pass assembler for VVM decimal assembly.

Source format, one statement per line:

    // comment            full-line comment (';' works too)
    LDA 10    load        mnemonic, optional decimal operand, free text
    *10                   set the load address to 10
    DAT -001              data word at the load address
    510                   bare word, same as DAT 510

There are no symbolic labels; every address is explicit.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from .errors import AssemblyError
from .isa import (
    MEMORY_SIZE,
    MNEMONICS,
    WORD_MIN,
    WORD_MAX,
    encode,
    in_word_range,
)

logger = logging.getLogger(__name__)

COMMENT_MARKERS = ("//", ";")
ADDRESS_MARKER = "*"
DATA_DIRECTIVE = "DAT"

# Highest address the load-address directive accepts
MAX_LOAD_ADDRESS = 99

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_BARE_INT_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class ProgramEntry:
    """One emitted word together with where it came from."""
    address: int
    word: int
    source_line_no: int
    source_text: str
    mnemonic: str
    operand: int

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "word": self.word,
            "source_line_no": self.source_line_no,
            "source_text": self.source_text,
            "mnemonic": self.mnemonic,
            "operand": self.operand,
        }


@dataclass
class AssemblyResult:
    """Result of assembling a program."""
    entries: list[ProgramEntry] = field(default_factory=list)
    errors: list[AssemblyError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def __len__(self) -> int:
        return len(self.entries)

    def memory_image(self, size: int = MEMORY_SIZE) -> list[int]:
        """Build the memory image; later entries at an address win."""
        image = [0] * size
        for entry in self.entries:
            image[entry.address] = entry.word
        return image

    def entry_at(self, address: int) -> Optional[ProgramEntry]:
        """Return the entry that ends up at address, if any."""
        found = None
        for entry in self.entries:
            if entry.address == address:
                found = entry
        return found

    def source_line_for(self, address: int) -> Optional[int]:
        entry = self.entry_at(address)
        return entry.source_line_no if entry else None

    def error_messages(self) -> list[str]:
        return [str(e) for e in self.errors]


def assemble(text: str, memory_size: int = MEMORY_SIZE) -> AssemblyResult:
    """Assemble program text.

    Args:
        text: Program source code
        memory_size: Number of addressable words

    Returns:
        AssemblyResult with every emitted entry and every line error.
        Errors never stop assembly; the caller decides whether to load.
    """
    result = AssemblyResult()

    # First pass: drop blank and comment-only lines, strip inline comments
    statements: list[tuple[int, str, str]] = []
    for line_no, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_MARKERS):
            continue
        code = _strip_comment(stripped).strip()
        if not code:
            continue
        statements.append((line_no, stripped, code))

    # Second pass: assign addresses and encode
    address = 0
    for line_no, source_text, code in statements:
        if code.startswith(ADDRESS_MARKER):
            target = _leading_int(code[1:])
            if target is not None and 0 <= target <= MAX_LOAD_ADDRESS:
                address = target
            else:
                logger.debug("Line %d: ignoring load address %r", line_no, code)
            continue

        parts = code.split()
        head = parts[0].upper()

        if head == DATA_DIRECTIVE:
            value = _leading_int(code[len(DATA_DIRECTIVE):])
            if value is None:
                logger.warning("Line %d: DAT without a value ignored: %r", line_no, code)
                continue
            entry = ProgramEntry(address, value, line_no, source_text, DATA_DIRECTIVE, value)
        elif _BARE_INT_RE.fullmatch(code):
            value = int(code, 10)
            entry = ProgramEntry(address, value, line_no, source_text, "DATA", value)
        else:
            opcode = MNEMONICS.get(head)
            if opcode is None:
                result.errors.append(AssemblyError(
                    f"Unknown instruction '{head}'",
                    addr=address,
                    source_line_no=line_no,
                    source_text=source_text,
                ))
                continue
            operand = 0
            if len(parts) > 1:
                # Anything after the mnemonic that is not a number is commentary
                parsed = _leading_int(parts[1])
                if parsed is not None:
                    operand = parsed
            entry = ProgramEntry(
                address, encode(opcode, operand), line_no, source_text, head, operand,
            )

        if not in_word_range(entry.word):
            result.errors.append(AssemblyError(
                f"Data word {entry.word} out of range ({WORD_MIN} to +{WORD_MAX})",
                addr=address,
                source_line_no=line_no,
                source_text=source_text,
            ))
            continue
        if address >= memory_size:
            result.errors.append(AssemblyError(
                f"Address {address} is outside memory (0 to {memory_size - 1})",
                addr=address,
                source_line_no=line_no,
                source_text=source_text,
            ))
            continue

        result.entries.append(entry)
        address += 1

    logger.debug(
        "Assembled %d entries with %d errors", len(result.entries), len(result.errors)
    )
    return result


def _strip_comment(line: str) -> str:
    """Remove everything from the first comment marker on."""
    cut = len(line)
    for marker in COMMENT_MARKERS:
        idx = line.find(marker)
        if 0 <= idx < cut:
            cut = idx
    return line[:cut]


def _leading_int(text: str) -> Optional[int]:
    """Parse the signed decimal integer at the start of text, if any."""
    match = _LEADING_INT_RE.match(text)
    if match is None:
        return None
    return int(match.group(1), 10)
