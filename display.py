"""
CHIP-8 Display Window
=====================
Presents the interpreter's 64×32 screen in a pygame window and acts as
the frame driver: every rendered frame it forwards key transitions, calls
``Chip8System.frame()`` with the real frame delta, and re-uploads pixels
only when the screen reports dirty.

Controls:
  1234 / QWER / ASDF / ZXCV   hex keypad
  F5                          pause / resume
  F6                          single step (while paused)
  F7                          toggle register overlay
  Esc                         quit

Usage (programmatic):
    from display import Chip8Display
    disp = Chip8Display(system, scale=10)
    disp.run()          # blocks until the window closes
    # or: disp.start() ... disp.stop() for a background thread

Usage (CLI):
    python cli.py game.ch8 --display
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from devices import Screen

if TYPE_CHECKING:
    from system import Chip8System

STATUS_HEIGHT = 20       # pixels for the status bar
OVERLAY_BG = (0, 0, 0, 170)
BG_COLOR = (8, 8, 8)     # unlit pixels
STATUS_BG = (24, 24, 30)
STATUS_FG = (200, 200, 215)
DEFAULT_COLOR = (48, 168, 96)


def parse_color(text: str) -> tuple[int, int, int]:
    """'RRGGBB' or '#RRGGBB' -> (r, g, b)."""
    s = text.strip().lstrip("#")
    if len(s) != 6:
        raise ValueError(f"Expected RRGGBB, got {text!r}")
    v = int(s, 16)
    return (v >> 16) & 0xFF, (v >> 8) & 0xFF, v & 0xFF


class Chip8Display:
    """pygame window that drives a ``Chip8System`` one frame at a time."""

    def __init__(self, system: "Chip8System", scale: int = 10,
                 color: tuple[int, int, int] = DEFAULT_COLOR,
                 fps: int = 60, title: str = "CHIPPUS - CHIP8 EMU"):
        self.sys = system
        self.scale = max(1, scale)
        self.color = color
        self.fps = fps
        self.title = title
        self.show_overlay = False
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._started = threading.Event()
        self.error: ImportError | None = None

    # -- public API -------------------------------------------------------

    def run(self):
        """Open the window and drive frames until it is closed.

        Raises ImportError if pygame or numpy is missing.
        """
        self._stop_event.clear()
        self.error = None
        self._run()
        if self.error is not None:
            raise self.error

    def start(self):
        """Run the window in a background thread.  Returns once it is open.

        Raises ImportError (from the calling thread) if pygame or numpy is
        missing.
        """
        self._stop_event.clear()
        self._started.clear()
        self.error = None
        self._thread = threading.Thread(target=self._run, daemon=True,
                                        name="chip8-display")
        self._thread.start()
        self._started.wait(timeout=5.0)
        if self.error is not None:
            self._thread.join(timeout=3.0)
            self._thread = None
            raise self.error

    def stop(self):
        """Signal the display thread to shut down and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=3.0)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -- internals --------------------------------------------------------

    def _run(self):
        """Main display loop."""
        try:
            import pygame
            import numpy  # noqa: F401  (needed by _render_screen)
        except ImportError as e:
            self.error = e
            self._started.set()
            return

        pygame.init()
        pygame.display.set_caption(self.title)

        win_w = Screen.WIDTH * self.scale
        win_h = Screen.HEIGHT * self.scale + STATUS_HEIGHT
        window = pygame.display.set_mode((win_w, win_h))
        clock = pygame.time.Clock()
        font = pygame.font.SysFont("monospace", 13)

        pixels = pygame.Surface((Screen.WIDTH, Screen.HEIGHT))
        scaled = None
        self._render_screen(pygame, pixels)

        self._started.set()

        try:
            while not self._stop_event.is_set():
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        self._stop_event.set()
                        return
                    elif event.type in (pygame.KEYDOWN, pygame.KEYUP):
                        down = event.type == pygame.KEYDOWN
                        if down and event.key == pygame.K_ESCAPE:
                            self._stop_event.set()
                            return
                        elif down and event.key == pygame.K_F5:
                            if self.sys.paused:
                                self.sys.resume()
                            else:
                                self.sys.pause()
                        elif down and event.key == pygame.K_F6:
                            if self.sys.paused:
                                self.sys.single_step()
                        elif down and event.key == pygame.K_F7:
                            self.show_overlay = not self.show_overlay
                        else:
                            self.sys.host_key(pygame.key.name(event.key), down)

                dt_ms = clock.tick(self.fps)
                dirty = self.sys.frame(dt_ms / 1000.0)
                with self.sys.lock:
                    if dirty or scaled is None or self.sys.paused:
                        self._render_screen(pygame, pixels)
                        scaled = pygame.transform.scale(
                            pixels, (win_w, Screen.HEIGHT * self.scale))

                    window.fill(STATUS_BG)
                    window.blit(scaled, (0, 0))
                    self._draw_status(pygame, window, font, win_w, win_h)
                    if self.show_overlay:
                        self._draw_overlay(pygame, window, font)
                pygame.display.flip()

        except Exception as e:
            print(f"\n[display] error: {e}")
        finally:
            pygame.quit()

    def _render_screen(self, pygame, surface):
        """Paint the 64×32 buffer onto a native-size surface."""
        import numpy as np

        on = np.array(self.color, dtype=np.uint8)
        off = np.array(BG_COLOR, dtype=np.uint8)
        lit = np.frombuffer(bytes(self.sys.screen.buffer), dtype=np.uint8)
        lit = lit.reshape(Screen.HEIGHT, Screen.WIDTH).T   # surfarray is (x, y)
        rgb = np.where(lit[:, :, None] == 1, on, off).astype(np.uint8)
        pygame.surfarray.blit_array(surface, rgb)

    def _draw_status(self, pygame, window, font, win_w: int, win_h: int):
        cpu = self.sys.cpu
        state = "PAUSED" if cpu.paused else "RUN"
        text = (f" {state}  PC={cpu.pc:03X}  I={cpu.i:03X}  "
                f"DT={cpu.delay_timer:<3d} ST={cpu.sound_timer:<3d}")
        if cpu.sound_active:
            text += "  SND"
        label = font.render(text, True, STATUS_FG)
        window.blit(label, (0, win_h - STATUS_HEIGHT + 3))

    def _draw_overlay(self, pygame, window, font):
        lines = self.sys.cpu.dump_regs().split("\n")
        line_h = font.get_linesize()
        w = max(font.size(line)[0] for line in lines) + 8
        h = line_h * len(lines) + 8
        panel = pygame.Surface((w, h), pygame.SRCALPHA)
        panel.fill(OVERLAY_BG)
        for row, line in enumerate(lines):
            panel.blit(font.render(line, True, STATUS_FG), (4, 4 + row * line_h))
        window.blit(panel, (4, 4))


class HeadlessDisplay:
    """No-window frame driver for testing; records screen snapshots."""

    def __init__(self, system: "Chip8System"):
        self.sys = system
        self.snapshots: list[bytes] = []

    def start(self):
        pass

    def stop(self):
        pass

    def snapshot(self) -> bytes:
        """Capture the current screen buffer."""
        with self.sys.lock:
            data = bytes(self.sys.screen.buffer)
        self.snapshots.append(data)
        return data

    def run_frames(self, n: int, elapsed: float = 1.0 / 60) -> int:
        """Drive n frames, snapshotting after each one that came back dirty."""
        presented = 0
        for _ in range(n):
            if self.sys.frame(elapsed):
                self.snapshot()
                presented += 1
        return presented

    @property
    def running(self) -> bool:
        return False
