"""Memory model for the Visual Von-Neumann Machine."""

from typing import Iterable
from .errors import MemoryAccessError, WordOverflowError
from .isa import MEMORY_SIZE, WORD_MIN, WORD_MAX, in_word_range


class Memory:
    """Fixed-size array of signed decimal words."""

    def __init__(self, size: int = MEMORY_SIZE):
        if size <= 0:
            raise ValueError(f"Memory size must be positive: {size}")
        self._size = size
        self._data: list[int] = [0] * size

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def _check_bounds(self, addr: int) -> None:
        """Check if address is within valid range."""
        if addr < 0 or addr >= self._size:
            raise MemoryAccessError(f"Memory address out of range: {addr}", addr=addr)

    def _check_value(self, addr: int, value: int) -> None:
        if not in_word_range(value):
            raise WordOverflowError(
                f"Word overflow at address {addr}: {value} "
                f"(range: {WORD_MIN} to +{WORD_MAX})",
                addr=addr,
            )

    def read(self, addr: int) -> int:
        """Read value from memory address."""
        self._check_bounds(addr)
        return self._data[addr]

    def write(self, addr: int, value: int) -> None:
        """Write value to memory address, rejecting out-of-range words."""
        self._check_bounds(addr)
        self._check_value(addr, value)
        self._data[addr] = value

    def reset(self) -> None:
        """Zero-fill every cell."""
        self._data = [0] * self._size

    def load_image(self, words: Iterable[int]) -> None:
        """Replace memory contents from address 0 upwards; the rest is zeroed."""
        image = list(words)
        if len(image) > self._size:
            raise MemoryAccessError(
                f"Image of {len(image)} words does not fit in {self._size} cells",
                addr=self._size,
            )
        for addr, value in enumerate(image):
            self._check_value(addr, value)
        self._data = image + [0] * (self._size - len(image))

    def get_watched(self, addresses: list[int]) -> dict[str, int]:
        """Get values at watched addresses as string-keyed dict."""
        result = {}
        for addr in addresses:
            if 0 <= addr < self._size:
                result[str(addr)] = self._data[addr]
        return result

    def snapshot(self) -> list[int]:
        """Return a copy of the entire memory."""
        return self._data.copy()
