"""
CHIP-8 Peripheral / Device Layer
================================
The two devices the interpreter drives:

  Screen  : 64×32 monochrome framebuffer, XOR sprite blit with collision
            reporting, and a dirty flag for the presentation layer
  Keypad  : 16-key hex keypad state, plus the host-keyboard mapping

Layout of the original COSMAC VIP keypad and the host keys that stand in
for it:

    1 2 3 C        1 2 3 4
    4 5 6 D   <-   Q W E R
    7 8 9 E        A S D F
    A 0 B F        Z X C V

Device key numbers follow the host block in row-major order
(1234/QWER/ASDF/ZXCV -> 0123/4567/89AB/CDEF).
"""

from __future__ import annotations
import threading
from typing import Optional

# ---------------------------------------------------------------------------
#  Host key map
# ---------------------------------------------------------------------------

KEY_MAP: dict[str, int] = {
    "1": 0x0, "2": 0x1, "3": 0x2, "4": 0x3,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0x7,
    "a": 0x8, "s": 0x9, "d": 0xA, "f": 0xB,
    "z": 0xC, "x": 0xD, "c": 0xE, "v": 0xF,
}

NUM_KEYS = 16


def map_key(name: str, default: Optional[int] = None) -> Optional[int]:
    """Translate a host key name to a device key.

    Unmapped keys return *default*.  The reference front end mapped every
    unknown key to 0x0; pass ``default=0`` to get that behavior.
    """
    return KEY_MAP.get(name.lower(), default) if name else default


# ---------------------------------------------------------------------------
#  Screen: 64×32 monochrome framebuffer
# ---------------------------------------------------------------------------

class Screen:
    """One byte per pixel (0 or 1), row-major."""

    WIDTH = 64
    HEIGHT = 32

    def __init__(self):
        self.buffer = bytearray(self.WIDTH * self.HEIGHT)
        self._dirty = True

    def clear(self):
        self.buffer = bytearray(self.WIDTH * self.HEIGHT)
        self._dirty = True

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < self.WIDTH and 0 <= y < self.HEIGHT):
            raise IndexError(f"Pixel ({x}, {y}) outside "
                             f"{self.WIDTH}x{self.HEIGHT} screen")
        return y * self.WIDTH + x

    def get_pixel(self, x: int, y: int) -> int:
        return self.buffer[self._index(x, y)]

    def set_pixel(self, x: int, y: int, value: bool | int):
        self.buffer[self._index(x, y)] = 1 if value else 0
        self._dirty = True

    def draw(self, origin: tuple[int, int], sprite: bytes | bytearray) -> bool:
        """XOR an 8-pixel-wide sprite onto the screen at origin.

        Each byte is one row, MSB leftmost.  Coordinates wrap at the
        edges.  Only set bits touch the screen.  Returns True if any set
        bit landed on a pixel that was already lit.
        """
        ox, oy = origin
        collision = False
        for row, bits in enumerate(sprite):
            py = (oy + row) % self.HEIGHT
            base = py * self.WIDTH
            for col in range(8):
                if not (bits >> (7 - col)) & 1:
                    continue
                idx = base + (ox + col) % self.WIDTH
                if self.buffer[idx]:
                    collision = True
                self.buffer[idx] ^= 1
                self._dirty = True
        return collision

    # -- Dirty tracking --

    def is_dirty(self) -> bool:
        return self._dirty

    def set_dirty(self, value: bool):
        self._dirty = value

    def acknowledge_dirty(self):
        """Called by the presenter after it has picked up the pixels."""
        self._dirty = False

    # -- Views --

    def rows(self) -> list[bytes]:
        w = self.WIDTH
        return [bytes(self.buffer[y * w:(y + 1) * w]) for y in range(self.HEIGHT)]

    def lit_count(self) -> int:
        return sum(self.buffer)

    def to_text(self, on: str = "#", off: str = ".") -> str:
        return "\n".join(
            "".join(on if p else off for p in row) for row in self.rows())


# ---------------------------------------------------------------------------
#  Keypad: 16-key hex input
# ---------------------------------------------------------------------------

class Keypad:
    """Pressed/released state for keys 0x0-0xF.

    The presenter writes from its event loop while the interpreter reads
    mid-cycle, so every access goes through one lock.
    """

    def __init__(self):
        self._keys = [False] * NUM_KEYS
        self._lock = threading.Lock()

    def is_key_pressed(self, key: int) -> bool:
        with self._lock:
            return self._keys[key & 0xF]

    def get_pressed_key(self) -> Optional[int]:
        """Lowest-numbered key currently held, or None."""
        with self._lock:
            for k, down in enumerate(self._keys):
                if down:
                    return k
        return None

    def set(self, key: int, pressed: bool):
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Invalid device key: {key!r}")
        with self._lock:
            self._keys[key] = bool(pressed)

    def release_all(self):
        with self._lock:
            self._keys = [False] * NUM_KEYS

    def pressed_keys(self) -> list[int]:
        with self._lock:
            return [k for k, down in enumerate(self._keys) if down]
