"""
CHIP-8 System
=============
Wires the interpreter (chip8.py) to the outside world:
  - a frame clock that feeds real elapsed time to the 60 Hz timers
  - ROM files on disk (reading and discovery)
  - host keyboard transitions, mapped onto the hex keypad

The presentation layer (display.py) or the CLI calls ``frame()`` once per
rendered frame and re-presents the screen when it reports dirty.

The display window may drive frames from its own thread while the monitor
steps, loads or resets from the main thread.  Every entry point that runs
or replaces machine state holds ``lock``; callers that need several reads
to agree with one step (e.g. PC before and word after) take it themselves.
"""

from __future__ import annotations
import random
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from chip8 import Chip8, RomReadFailure, TIMER_PERIOD
from devices import map_key

ROM_PATTERN = "**/*.ch8"


def find_roms(root: str | Path, pattern: str = ROM_PATTERN) -> list[Path]:
    """All ROM files under root, sorted by path."""
    root = Path(root)
    if not root.is_dir():
        return []
    return sorted(p for p in root.glob(pattern) if p.is_file())


class Chip8System:
    """Frame driver around one ``Chip8`` instance."""

    def __init__(self, rng: Optional[random.Random] = None,
                 stack_limit: Optional[int] = None,
                 instructions_per_frame: int = 1,
                 clock: Callable[[], float] = time.perf_counter):
        if instructions_per_frame < 1:
            raise ValueError("instructions_per_frame must be >= 1")
        self.cpu = Chip8(rng=rng, stack_limit=stack_limit)
        self.instructions_per_frame = instructions_per_frame
        self.clock = clock
        self.lock = threading.RLock()
        self._last_tick: Optional[float] = None
        self.rom_path: Optional[Path] = None
        self.frame_count: int = 0

    # -- Shortcuts --

    @property
    def screen(self):
        return self.cpu.screen

    @property
    def keypad(self):
        return self.cpu.keypad

    @property
    def paused(self) -> bool:
        return self.cpu.paused

    # -- ROM loading --

    def load_rom(self, data: bytes | bytearray):
        with self.lock:
            self.rom_path = None
            self._last_tick = None
            self.cpu.load_rom(data)

    def load_rom_file(self, path: str | Path) -> int:
        """Read a ROM from disk and load it.  Returns its size in bytes."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise RomReadFailure(str(path), e.strerror or str(e)) from e
        with self.lock:
            self.load_rom(data)
            self.rom_path = path
        return len(data)

    def reset(self):
        with self.lock:
            self.cpu.reset()
            self.rom_path = None
            self._last_tick = None
            self.frame_count = 0

    # -- Frame stepping --

    def frame(self, elapsed: Optional[float] = None) -> bool:
        """Run one display frame.  Returns True if the screen needs redrawing.

        With elapsed=None the delta is measured from ``clock``.  Timers see
        the delta once; any extra instructions in the frame run with 0.0.
        """
        with self.lock:
            now = self.clock()
            if elapsed is None:
                elapsed = 0.0 if self._last_tick is None else now - self._last_tick
            self._last_tick = now

            self.cpu.execute_cycle(elapsed)
            for _ in range(self.instructions_per_frame - 1):
                self.cpu.execute_cycle(0.0)
            self.frame_count += 1

            dirty = self.screen.is_dirty()
            if dirty:
                self.screen.acknowledge_dirty()
            return dirty

    def run_frames(self, n: int, elapsed: float = TIMER_PERIOD,
                   breakpoints: Optional[set[int]] = None) -> int:
        """Fixed-step batch.  Stops early at a breakpoint PC.  Returns frames run."""
        with self.lock:
            for done in range(n):
                if breakpoints and self.cpu.pc in breakpoints:
                    return done
                self.frame(elapsed)
            return n

    # -- Controls (PAUSE / START / STEP) --

    def pause(self):
        with self.lock:
            self.cpu.paused = True

    def resume(self):
        with self.lock:
            self.cpu.paused = False
            self._last_tick = None

    def single_step(self, elapsed: float = 0.0) -> int:
        """Execute one instruction even while paused.  Returns the word."""
        with self.lock:
            return self.cpu.step(elapsed)

    # -- Input --

    def host_key(self, name: str, pressed: bool) -> Optional[int]:
        """Forward a host key transition.  Unmapped keys are ignored."""
        key = map_key(name)
        if key is not None:
            self.keypad.set(key, pressed)
        return key

    # -- Debug / introspection --

    def dump_state(self) -> str:
        with self.lock:
            cpu = self.cpu
            rom = self.rom_path.name if self.rom_path else "(none)"
            keys = " ".join(f"{k:X}" for k in self.keypad.pressed_keys()) or "-"
            lines = [
                "=== CHIP-8 System ===",
                f"  ROM: {rom}  ({cpu.rom_len} bytes)",
                f"  Frames: {self.frame_count}  Cycles: {cpu.cycle_count}"
                f"  Invalid opcodes: {cpu.invalid_count}",
                cpu.dump_regs(),
                f"  Screen dirty: {self.screen.is_dirty()}  "
                f"lit: {self.screen.lit_count()}",
                f"  Keys down: {keys}",
                f"  Sound: {'on' if cpu.sound_active else 'off'}",
            ]
            return "\n".join(lines)
