"""
CHIP-8 Interpreter
==================
A frame-stepped interpreter for the CHIP-8 virtual machine: 4 KiB of
memory, sixteen 8-bit V registers, a 16-bit index register, a call stack,
and two 60 Hz countdown timers.

Every instruction is a big-endian 16-bit word.  The fetch/decode/execute
step reads the word at PC, bumps PC by 2, splits the word into four
nibbles and switches on the first one, the same way the original COSMAC
VIP interpreter did.

The display and keypad live in devices.py; this module owns them and is
the only thing that mutates the screen.
"""

from __future__ import annotations
import random
from typing import Optional, Callable

from devices import Screen, Keypad

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

MEM_SIZE      = 4096
PROGRAM_START = 0x200
MAX_ROM_SIZE  = MEM_SIZE - PROGRAM_START   # 3584 bytes

NUM_REGS = 16
FLAG_REG = 0xF   # VF: carry / borrow / collision

# Font: 16 glyphs × 5 bytes, digits 0-F
FONT_BASE = 0x050
FONT_END  = 0x0A0   # exclusive
GLYPH_SIZE = 5

TIMER_HZ     = 60
TIMER_PERIOD = 1.0 / TIMER_HZ

FONT = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])

# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def u8(v: int) -> int:
    """Mask to unsigned 8 bits."""
    return v & 0xFF

def u16(v: int) -> int:
    """Mask to unsigned 16 bits."""
    return v & 0xFFFF

def nibbles(word: int) -> tuple[int, int, int, int]:
    """Split an instruction word into its four nibbles, high first."""
    return ((word >> 12) & 0xF, (word >> 8) & 0xF,
            (word >> 4) & 0xF, word & 0xF)

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class Chip8Error(Exception):
    """Base for interpreter errors."""
    pass

class RomTooLarge(Chip8Error):
    def __init__(self, size: int):
        self.size = size
        super().__init__(f"ROM is {size} bytes; at most {MAX_ROM_SIZE} "
                         f"fit at {PROGRAM_START:#05x}")

class RomReadFailure(Chip8Error):
    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        msg = f"Failed to read ROM '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)

class InvalidOpcode(Chip8Error):
    """Diagnostic for a word that matches no instruction.

    Handed to ``Chip8.on_invalid``; never raised by ``step``.
    """
    def __init__(self, addr: int, opcode: int):
        self.addr = addr
        self.opcode = opcode
        super().__init__(f"Invalid opcode {opcode:04X} @ {addr:#05x}")

class StackOverflowError(Chip8Error):
    def __init__(self, depth: int):
        self.depth = depth
        super().__init__(f"Call stack overflow (depth {depth})")


# ---------------------------------------------------------------------------
#  Interpreter
# ---------------------------------------------------------------------------

class Chip8:
    """CHIP-8 interpreter, one instruction per ``execute_cycle``."""

    def __init__(self, rng: Optional[random.Random] = None,
                 stack_limit: Optional[int] = None):
        self.rng = rng if rng is not None else random.Random()
        self.stack_limit = stack_limit   # None = unbounded

        self.screen = Screen()
        self.keypad = Keypad()

        # Diagnostics
        self.on_invalid: Optional[Callable[[InvalidOpcode], None]] = None

        self._reset_state()

    # -- Reset helper --

    def _reset_state(self):
        self.mem = bytearray(MEM_SIZE)
        self.mem[FONT_BASE:FONT_END] = FONT
        # Mirror at 0x000 so Fx29 (I = 5 * Vx) lands on a glyph
        self.mem[0:len(FONT)] = FONT

        self.v: list[int] = [0] * NUM_REGS
        self.i: int = 0
        self.pc: int = PROGRAM_START
        self.stack: list[int] = []

        self.delay_timer: int = 0
        self.sound_timer: int = 0
        self._delay_acc: float = 0.0   # seconds not yet turned into ticks
        self._sound_acc: float = 0.0

        self.paused: bool = True
        self.rom_len: int = 0

        self.last_opcode: int = 0
        self.invalid_count: int = 0
        self.cycle_count: int = 0

        self.screen.clear()
        self.keypad.release_all()

    # -- Properties --

    @property
    def sound_active(self) -> bool:
        """True while the sound timer is running (the buzzer would be on)."""
        return self.sound_timer > 0

    # -- Memory access --

    def mem_read8(self, addr: int) -> int:
        return self.mem[addr % MEM_SIZE]

    def mem_write8(self, addr: int, val: int):
        addr %= MEM_SIZE
        if FONT_BASE <= addr < FONT_END:
            return   # font is read-only
        self.mem[addr] = u8(val)

    def mem_read16(self, addr: int) -> int:
        """Big-endian word at addr."""
        return (self.mem_read8(addr) << 8) | self.mem_read8(addr + 1)

    def mem_slice(self, addr: int, count: int) -> bytes:
        """count bytes starting at addr, wrapping at the top of memory."""
        return bytes(self.mem_read8(addr + k) for k in range(count))

    # -- Fetch --

    def fetch16(self) -> int:
        """Fetch the word at PC and advance PC by 2."""
        word = self.mem_read16(self.pc)
        self.pc = (self.pc + 2) % MEM_SIZE
        return word

    def _skip(self):
        self.pc = (self.pc + 2) % MEM_SIZE

    # -- Timers --

    def update_timers(self, elapsed: float):
        """Turn elapsed wall-clock seconds into 60 Hz timer ticks."""
        self.delay_timer, self._delay_acc = self._count_down(
            self.delay_timer, self._delay_acc, elapsed)
        self.sound_timer, self._sound_acc = self._count_down(
            self.sound_timer, self._sound_acc, elapsed)

    @staticmethod
    def _count_down(value: int, acc: float, elapsed: float) -> tuple[int, float]:
        if value <= 0:
            return 0, 0.0
        acc += elapsed
        while acc >= TIMER_PERIOD and value > 0:
            acc -= TIMER_PERIOD
            value -= 1
        if value == 0:
            acc = 0.0
        return value, acc

    # =====================================================================
    #  STEP: the core decode/execute loop
    # =====================================================================

    def execute_cycle(self, elapsed: float):
        """Per-frame entry point: timers, then one instruction.

        Does nothing at all while paused.
        """
        if self.paused:
            return
        self.step(elapsed)

    def step(self, elapsed: float = 0.0) -> int:
        """Advance timers and execute one instruction, ignoring ``paused``.

        Returns the executed word.  A CALL past ``stack_limit`` raises
        StackOverflowError before anything (timers included) has changed.
        """
        addr = self.pc
        if (self.stack_limit is not None
                and self.mem_read16(addr) >> 12 == 0x2
                and len(self.stack) >= self.stack_limit):
            raise StackOverflowError(len(self.stack) + 1)

        self.update_timers(elapsed)

        word = self.fetch16()
        self.last_opcode = word
        f, x, y, n = nibbles(word)

        if   f == 0x0: ok = self._exec_sys(word)
        elif f == 0x1: ok = self._exec_jp(word)
        elif f == 0x2: ok = self._exec_call(word)
        elif f == 0x3: ok = self._exec_se_imm(x, word)
        elif f == 0x4: ok = self._exec_sne_imm(x, word)
        elif f == 0x5: ok = self._exec_se_reg(x, y, n)
        elif f == 0x6: ok = self._exec_ld_imm(x, word)
        elif f == 0x7: ok = self._exec_add_imm(x, word)
        elif f == 0x8: ok = self._exec_alu(x, y, n)
        elif f == 0x9: ok = self._exec_sne_reg(x, y, n)
        elif f == 0xA: ok = self._exec_ld_i(word)
        elif f == 0xB: ok = self._exec_jp_v0(word)
        elif f == 0xC: ok = self._exec_rnd(x, word)
        elif f == 0xD: ok = self._exec_drw(x, y, n)
        elif f == 0xE: ok = self._exec_key(x, word & 0xFF)
        else:          ok = self._exec_misc(x, word & 0xFF)

        if not ok:
            self.invalid_count += 1
            if self.on_invalid:
                self.on_invalid(InvalidOpcode(addr, word))

        self.cycle_count += 1
        return word

    # =====================================================================
    #  Family executors: each returns False for an unmatched pattern
    # =====================================================================

    # -- 0x0: CLS / RET / SYS --
    def _exec_sys(self, word: int) -> bool:
        if word == 0x00E0:    # CLS
            self.screen.clear()
        elif word == 0x00EE:  # RET
            if self.stack:
                self.pc = self.stack.pop()
        # 0nnn SYS: machine-code call on the original hardware, ignored
        return True

    # -- 0x1: JP nnn --
    def _exec_jp(self, word: int) -> bool:
        self.pc = word & 0x0FFF
        return True

    # -- 0x2: CALL nnn --
    def _exec_call(self, word: int) -> bool:
        # stack_limit is enforced in step() before the fetch
        self.stack.append(self.pc)
        self.pc = word & 0x0FFF
        return True

    # -- 0x3: SE Vx, kk --
    def _exec_se_imm(self, x: int, word: int) -> bool:
        if self.v[x] == word & 0xFF:
            self._skip()
        return True

    # -- 0x4: SNE Vx, kk --
    def _exec_sne_imm(self, x: int, word: int) -> bool:
        if self.v[x] != word & 0xFF:
            self._skip()
        return True

    # -- 0x5: SE Vx, Vy --
    def _exec_se_reg(self, x: int, y: int, n: int) -> bool:
        if n != 0:
            return False
        if self.v[x] == self.v[y]:
            self._skip()
        return True

    # -- 0x6: LD Vx, kk --
    def _exec_ld_imm(self, x: int, word: int) -> bool:
        self.v[x] = word & 0xFF
        return True

    # -- 0x7: ADD Vx, kk (no carry) --
    def _exec_add_imm(self, x: int, word: int) -> bool:
        self.v[x] = u8(self.v[x] + (word & 0xFF))
        return True

    # -- 0x8: register ALU --
    def _exec_alu(self, x: int, y: int, sub: int) -> bool:
        a = self.v[x]
        b = self.v[y]

        if sub == 0x0:    # LD
            self.v[x] = b
        elif sub == 0x1:  # OR
            self.v[x] = a | b
        elif sub == 0x2:  # AND
            self.v[x] = a & b
        elif sub == 0x3:  # XOR
            self.v[x] = a ^ b
        elif sub == 0x4:  # ADD, VF = carry
            r = a + b
            self.v[x] = u8(r)
            self.v[FLAG_REG] = 1 if r > 0xFF else 0
        elif sub == 0x5:  # SUB, VF = NOT borrow
            self.v[x] = u8(a - b)
            self.v[FLAG_REG] = 1 if a >= b else 0
        elif sub == 0x6:  # SHR, VF = bit shifted out
            self.v[x] = a >> 1
            self.v[FLAG_REG] = a & 1
        elif sub == 0x7:  # SUBN, VF = NOT borrow
            self.v[x] = u8(b - a)
            self.v[FLAG_REG] = 1 if b >= a else 0
        elif sub == 0xE:  # SHL, VF = bit shifted out
            self.v[x] = u8(a << 1)
            self.v[FLAG_REG] = (a >> 7) & 1
        else:
            return False
        return True

    # -- 0x9: SNE Vx, Vy --
    def _exec_sne_reg(self, x: int, y: int, n: int) -> bool:
        if n != 0:
            return False
        if self.v[x] != self.v[y]:
            self._skip()
        return True

    # -- 0xA: LD I, nnn --
    def _exec_ld_i(self, word: int) -> bool:
        self.i = word & 0x0FFF
        return True

    # -- 0xB: JP V0, nnn --
    def _exec_jp_v0(self, word: int) -> bool:
        self.pc = ((word & 0x0FFF) + self.v[0]) % MEM_SIZE
        return True

    # -- 0xC: RND Vx, kk --
    def _exec_rnd(self, x: int, word: int) -> bool:
        self.v[x] = self.rng.randrange(256) & (word & 0xFF)
        return True

    # -- 0xD: DRW Vx, Vy, n --
    def _exec_drw(self, x: int, y: int, n: int) -> bool:
        sprite = self.mem_slice(self.i, n)
        hit = self.screen.draw((self.v[x], self.v[y]), sprite)
        self.v[FLAG_REG] = 1 if hit else 0
        return True

    # -- 0xE: SKP / SKNP --
    def _exec_key(self, x: int, kk: int) -> bool:
        key = self.v[x] & 0xF
        if kk == 0x9E:    # SKP Vx
            if self.keypad.is_key_pressed(key):
                self._skip()
        elif kk == 0xA1:  # SKNP Vx
            if not self.keypad.is_key_pressed(key):
                self._skip()
        else:
            return False
        return True

    # -- 0xF: timers, keys, index, BCD, register transfer --
    def _exec_misc(self, x: int, kk: int) -> bool:
        if kk == 0x07:    # LD Vx, DT
            self.v[x] = self.delay_timer
        elif kk == 0x0A:  # LD Vx, K: re-run this word until a key is down
            key = self.keypad.get_pressed_key()
            if key is None:
                self.pc = (self.pc - 2) % MEM_SIZE
            else:
                self.v[x] = key
        elif kk == 0x15:  # LD DT, Vx
            self.delay_timer = self.v[x]
        elif kk == 0x18:  # LD ST, Vx
            self.sound_timer = self.v[x]
        elif kk == 0x1E:  # ADD I, Vx
            self.i = u16(self.i + self.v[x])
        elif kk == 0x29:  # LD F, Vx
            self.i = u16(GLYPH_SIZE * self.v[x])
        elif kk == 0x33:  # LD B, Vx
            val = self.v[x]
            self.mem_write8(self.i, val // 100)
            self.mem_write8(self.i + 1, (val // 10) % 10)
            self.mem_write8(self.i + 2, val % 10)
        elif kk == 0x55:  # LD [I], Vx
            for r in range(x + 1):
                self.mem_write8(self.i + r, self.v[r])
            self.i = u16(self.i + x + 1)
        elif kk == 0x65:  # LD Vx, [I]
            for r in range(x + 1):
                self.v[r] = self.mem_read8(self.i + r)
            self.i = u16(self.i + x + 1)
        else:
            return False
        return True

    # -- ROM loading --

    def load_rom(self, data: bytes | bytearray):
        """Reset the machine and place a program at 0x200.

        Raises RomTooLarge if it does not fit; the machine is then left
        freshly reset (and paused).
        """
        self._reset_state()
        if len(data) > MAX_ROM_SIZE:
            raise RomTooLarge(len(data))
        self.mem[PROGRAM_START:PROGRAM_START + len(data)] = data
        self.rom_len = len(data)
        self.paused = False

    def reset(self):
        """Power-on state; the loaded program is discarded."""
        self._reset_state()

    def code_view(self) -> tuple[bytes, int]:
        """(loaded program bytes, PC) for code inspection."""
        return bytes(self.mem[PROGRAM_START:PROGRAM_START + self.rom_len]), self.pc

    # -- Run loop --

    def run(self, max_steps: int = 1_000, elapsed: float = TIMER_PERIOD) -> int:
        """Execute up to max_steps cycles of fixed length.  Returns steps run."""
        steps = 0
        for _ in range(max_steps):
            if self.paused:
                break
            self.execute_cycle(elapsed)
            steps += 1
        return steps

    # -- Debug / introspection --

    def dump_regs(self) -> str:
        lines = [f"  PC = {self.pc:#05x}   I = {self.i:#05x}   "
                 f"OP = {self.last_opcode:04X}"]
        for row in range(0, NUM_REGS, 4):
            lines.append("  " + "  ".join(
                f"V{r:X} = {self.v[r]:#04x}" for r in range(row, row + 4)))
        lines.append(f"  DT = {self.delay_timer:<3d}  ST = {self.sound_timer:<3d}"
                     f"  paused={self.paused}")
        stack = " ".join(f"{a:03X}" for a in self.stack) or "-"
        lines.append(f"  Stack ({len(self.stack)}): {stack}")
        return "\n".join(lines)
