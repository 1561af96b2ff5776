"""
CHIP-8 Interpreter Test Suite
=============================
Covers every instruction family, flag semantics, timers, ROM loading and
the invariants around the font and the call stack.

Run with:  python -m pytest test_chip8.py
"""

import random
import unittest

from chip8 import (
    Chip8, RomTooLarge, InvalidOpcode, StackOverflowError,
    FONT, FONT_BASE, FONT_END, MAX_ROM_SIZE, PROGRAM_START, TIMER_PERIOD,
    nibbles,
)
from asm import assemble


# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def make_cpu(source: str | None = None, seed: int = 1,
             **kwargs) -> Chip8:
    """Fresh interpreter, optionally with an assembled program loaded."""
    cpu = Chip8(rng=random.Random(seed), **kwargs)
    if source is not None:
        cpu.load_rom(assemble(source))
    return cpu


def run_steps(cpu: Chip8, n: int, elapsed: float = 0.0):
    for _ in range(n):
        cpu.execute_cycle(elapsed)


def run_asm(source: str, steps: int, **kwargs) -> Chip8:
    cpu = make_cpu(source, **kwargs)
    run_steps(cpu, steps)
    return cpu


# ---------------------------------------------------------------------------
#  Construction / fetch
# ---------------------------------------------------------------------------

class TestPowerOn(unittest.TestCase):
    def test_defaults(self):
        cpu = Chip8()
        self.assertEqual(cpu.pc, PROGRAM_START)
        self.assertEqual(cpu.v, [0] * 16)
        self.assertEqual(cpu.i, 0)
        self.assertEqual(cpu.stack, [])
        self.assertEqual(cpu.delay_timer, 0)
        self.assertEqual(cpu.sound_timer, 0)
        self.assertTrue(cpu.paused)
        self.assertEqual(len(cpu.mem), 4096)

    def test_font_loaded(self):
        cpu = Chip8()
        self.assertEqual(bytes(cpu.mem[FONT_BASE:FONT_END]), FONT)
        self.assertEqual(len(FONT), 80)

    def test_fetch_reads_both_bytes(self):
        # 0x6123 must load 0x23, not the high byte twice
        cpu = run_asm("ld v1, 0x23", 1)
        self.assertEqual(cpu.v[1], 0x23)
        self.assertEqual(cpu.last_opcode, 0x6123)
        self.assertEqual(cpu.pc, 0x202)

    def test_nibbles(self):
        self.assertEqual(nibbles(0xD12F), (0xD, 0x1, 0x2, 0xF))


# ---------------------------------------------------------------------------
#  Flow control
# ---------------------------------------------------------------------------

class TestFlow(unittest.TestCase):
    def test_jp(self):
        cpu = run_asm("jp 0x300", 1)
        self.assertEqual(cpu.pc, 0x300)

    def test_jp_v0(self):
        cpu = run_asm("""
            ld v0, 4
            jp v0, 0x300
        """, 2)
        self.assertEqual(cpu.pc, 0x304)

    def test_call_ret_round_trip(self):
        cpu = make_cpu("""
            call sub          ; 0x200
            ld v5, 7          ; 0x202
        end:
            jp end
        sub:
            ld v4, 1
            ret
        """)
        run_steps(cpu, 1)
        self.assertEqual(cpu.stack, [0x202])
        run_steps(cpu, 2)
        self.assertEqual(cpu.pc, 0x202)
        self.assertEqual(cpu.stack, [])
        run_steps(cpu, 1)
        self.assertEqual(cpu.v[4], 1)
        self.assertEqual(cpu.v[5], 7)

    def test_ret_on_empty_stack_is_noop(self):
        cpu = run_asm("ret", 1)
        self.assertEqual(cpu.pc, 0x202)
        self.assertEqual(cpu.invalid_count, 0)

    def test_nested_calls(self):
        cpu = make_cpu("""
            call a
        halt:
            jp halt
        a:
            call b
            ret
        b:
            ret
        """)
        run_steps(cpu, 2)
        self.assertEqual(len(cpu.stack), 2)
        run_steps(cpu, 2)
        self.assertEqual(cpu.stack, [])
        self.assertEqual(cpu.pc, 0x202)

    def test_stack_unbounded_by_default(self):
        cpu = run_asm("""
        loop:
            call loop
        """, 100)
        self.assertEqual(len(cpu.stack), 100)

    def test_stack_limit_raises(self):
        cpu = make_cpu("""
        loop:
            call loop
        """, stack_limit=2)
        run_steps(cpu, 2)
        with self.assertRaises(StackOverflowError):
            cpu.execute_cycle(0.0)
        self.assertEqual(len(cpu.stack), 2)
        self.assertEqual(cpu.pc, 0x200)

    def test_stack_overflow_leaves_state_untouched(self):
        cpu = make_cpu("""
            ld v0, 1
        loop:
            call loop
        """, stack_limit=1)
        run_steps(cpu, 2)
        cpu.delay_timer = 10
        cpu.sound_timer = 10
        before = (cpu.pc, list(cpu.stack), cpu.last_opcode, cpu.cycle_count)
        with self.assertRaises(StackOverflowError):
            cpu.step(TIMER_PERIOD)
        self.assertEqual(
            (cpu.pc, list(cpu.stack), cpu.last_opcode, cpu.cycle_count), before)
        self.assertEqual(cpu.delay_timer, 10)
        self.assertEqual(cpu.sound_timer, 10)
        self.assertEqual(cpu._delay_acc, 0.0)

    def test_sys_is_noop(self):
        cpu = make_cpu(".dw 0x0123")
        cpu.on_invalid = lambda e: self.fail("SYS reported as invalid")
        run_steps(cpu, 1)
        self.assertEqual(cpu.pc, 0x202)


class TestSkips(unittest.TestCase):
    def test_se_imm(self):
        cpu = run_asm("""
            ld v0, 5
            se v0, 5
            ld v1, 1
            ld v2, 2
        """, 3)
        self.assertEqual(cpu.v[1], 0)
        self.assertEqual(cpu.v[2], 2)

    def test_se_imm_not_taken(self):
        cpu = run_asm("""
            ld v0, 5
            se v0, 6
            ld v1, 1
        """, 3)
        self.assertEqual(cpu.v[1], 1)

    def test_sne_imm(self):
        cpu = run_asm("""
            ld v0, 5
            sne v0, 6
            ld v1, 1
        """, 3)
        self.assertEqual(cpu.v[1], 0)
        self.assertEqual(cpu.pc, 0x208)

    def test_se_reg(self):
        cpu = run_asm("""
            ld v0, 9
            ld v3, 9
            se v0, v3
            ld v1, 1
        """, 4)
        self.assertEqual(cpu.v[1], 0)

    def test_sne_reg(self):
        cpu = run_asm("""
            ld v0, 9
            ld v3, 8
            sne v0, v3
            ld v1, 1
        """, 4)
        self.assertEqual(cpu.v[1], 0)


# ---------------------------------------------------------------------------
#  Registers and ALU
# ---------------------------------------------------------------------------

class TestLoadAdd(unittest.TestCase):
    def test_ld_imm(self):
        cpu = run_asm("ld va, 0xBE", 1)
        self.assertEqual(cpu.v[0xA], 0xBE)

    def test_add_imm_wraps_without_flag(self):
        for x in range(16):
            cpu = run_asm(f"""
                ld vf, 5
                ld v{x:x}, 0xFF
                add v{x:x}, 0x02
            """, 3)
            self.assertEqual(cpu.v[x], 0x01, f"V{x:X}")
            if x != 0xF:
                self.assertEqual(cpu.v[0xF], 5)

    def test_add_imm_stays_in_byte_range(self):
        cpu = make_cpu("""
        loop:
            add v2, 0xF7
            jp loop
        """)
        for _ in range(500):
            cpu.execute_cycle(0.0)
            self.assertTrue(0 <= cpu.v[2] <= 0xFF)


class TestALU(unittest.TestCase):
    def alu(self, a: int, b: int, op: str, vf: int = 0x55) -> Chip8:
        return run_asm(f"""
            ld vf, {vf}
            ld v0, {a}
            ld v1, {b}
            {op} v0, v1
        """, 4)

    def test_ld_reg(self):
        cpu = self.alu(1, 0x42, "ld")
        self.assertEqual(cpu.v[0], 0x42)

    def test_or(self):
        cpu = self.alu(0xF0, 0x0F, "or")
        self.assertEqual(cpu.v[0], 0xFF)

    def test_and_uses_vy(self):
        cpu = self.alu(0xF3, 0x3C, "and")
        self.assertEqual(cpu.v[0], 0x30)

    def test_xor(self):
        cpu = self.alu(0xFF, 0x0F, "xor")
        self.assertEqual(cpu.v[0], 0xF0)

    def test_logic_leaves_vf(self):
        cpu = self.alu(0xF0, 0x0F, "or", vf=0x55)
        self.assertEqual(cpu.v[0xF], 0x55)

    def test_add_carry(self):
        cpu = self.alu(0xFF, 0x01, "add")
        self.assertEqual(cpu.v[0], 0x00)
        self.assertEqual(cpu.v[0xF], 1)

    def test_add_no_carry(self):
        cpu = self.alu(0x10, 0x20, "add")
        self.assertEqual(cpu.v[0], 0x30)
        self.assertEqual(cpu.v[0xF], 0)

    def test_sub_borrow(self):
        cpu = self.alu(0x01, 0x02, "sub")
        self.assertEqual(cpu.v[0], 0xFF)
        self.assertEqual(cpu.v[0xF], 0)

    def test_sub_no_borrow(self):
        cpu = self.alu(0x05, 0x05, "sub")
        self.assertEqual(cpu.v[0], 0x00)
        self.assertEqual(cpu.v[0xF], 1)

    def test_subn(self):
        cpu = self.alu(3, 5, "subn")
        self.assertEqual(cpu.v[0], 2)
        self.assertEqual(cpu.v[0xF], 1)

    def test_subn_borrow(self):
        cpu = self.alu(5, 3, "subn")
        self.assertEqual(cpu.v[0], 0xFE)
        self.assertEqual(cpu.v[0xF], 0)

    def test_shr(self):
        cpu = run_asm("ld v0, 0x81\nshr v0", 2)
        self.assertEqual(cpu.v[0], 0x40)
        self.assertEqual(cpu.v[0xF], 1)

    def test_shr_even(self):
        cpu = run_asm("ld vf, 9\nld v0, 0x80\nshr v0", 3)
        self.assertEqual(cpu.v[0], 0x40)
        self.assertEqual(cpu.v[0xF], 0)

    def test_shl_flag_is_one_not_msb(self):
        cpu = run_asm("ld v0, 0x81\nshl v0", 2)
        self.assertEqual(cpu.v[0], 0x02)
        self.assertEqual(cpu.v[0xF], 1)

    def test_shl_no_carry(self):
        cpu = run_asm("ld vf, 9\nld v0, 0x41\nshl v0", 3)
        self.assertEqual(cpu.v[0], 0x82)
        self.assertEqual(cpu.v[0xF], 0)

    def test_flag_wins_when_vx_is_vf(self):
        cpu = run_asm("ld vf, 0xFF\nld v1, 1\nadd vf, v1", 3)
        self.assertEqual(cpu.v[0xF], 1)


# ---------------------------------------------------------------------------
#  Index register and memory
# ---------------------------------------------------------------------------

class TestIndex(unittest.TestCase):
    def test_ld_i(self):
        cpu = run_asm("ld i, 0x345", 1)
        self.assertEqual(cpu.i, 0x345)

    def test_add_i(self):
        cpu = run_asm("ld i, 0x300\nld v2, 0x10\nadd i, v2", 3)
        self.assertEqual(cpu.i, 0x310)

    def test_add_i_no_flag(self):
        cpu = run_asm("ld vf, 7\nld i, 0xFFF\nld v2, 0xFF\nadd i, v2", 4)
        self.assertEqual(cpu.i, 0xFFF + 0xFF)
        self.assertEqual(cpu.v[0xF], 7)

    def test_font_glyph_address(self):
        cpu = run_asm("ld v0, 0xA\nld f, v0", 2)
        self.assertEqual(cpu.i, 5 * 0xA)
        self.assertEqual(cpu.mem_slice(cpu.i, 5), FONT[50:55])

    def test_bcd(self):
        cpu = run_asm("ld v2, 254\nld i, 0x300\nld b, v2", 3)
        self.assertEqual(list(cpu.mem[0x300:0x303]), [2, 5, 4])
        self.assertEqual(cpu.i, 0x300)

    def test_bcd_small(self):
        cpu = run_asm("ld v2, 7\nld i, 0x300\nld b, v2", 3)
        self.assertEqual(list(cpu.mem[0x300:0x303]), [0, 0, 7])

    def test_store_registers(self):
        cpu = run_asm("""
            ld v0, 1
            ld v1, 2
            ld v2, 3
            ld v3, 4
            ld v4, 99
            ld i, 0x300
            ld [i], v3
        """, 7)
        self.assertEqual(list(cpu.mem[0x300:0x305]), [1, 2, 3, 4, 0])
        self.assertEqual(cpu.i, 0x304)

    def test_load_registers(self):
        cpu = make_cpu("""
            ld i, data
            ld v2, [i]
        end:
            jp end
        data:
            .db 0x11, 0x22, 0x33, 0x44
        """)
        run_steps(cpu, 2)
        self.assertEqual(cpu.v[:4], [0x11, 0x22, 0x33, 0])
        self.assertEqual(cpu.i, 0x206 + 3)

    def test_font_is_read_only(self):
        cpu = run_asm("""
            ld v0, 0xAA
            ld v1, 0xBB
            ld i, 0x50
            ld [i], v1
        """, 4)
        self.assertEqual(bytes(cpu.mem[FONT_BASE:FONT_END]), FONT)
        self.assertEqual(cpu.i, 0x52)

    def test_memory_wraps(self):
        cpu = Chip8()
        cpu.mem_write8(0x1000 + 0x300, 0x7E)
        self.assertEqual(cpu.mem[0x300], 0x7E)
        cpu.mem[0xFFF] = 0x12
        cpu.mem[0x000] = 0x34
        self.assertEqual(cpu.mem_read16(0xFFF), 0x1234)


# ---------------------------------------------------------------------------
#  Random
# ---------------------------------------------------------------------------

class TestRandom(unittest.TestCase):
    def test_rnd_masked_and_seeded(self):
        cpu = run_asm("rnd v3, 0x0F", 1, seed=1234)
        expected = random.Random(1234).randrange(256) & 0x0F
        self.assertEqual(cpu.v[3], expected)

    def test_rnd_zero_mask(self):
        cpu = run_asm("ld v3, 9\nrnd v3, 0", 2)
        self.assertEqual(cpu.v[3], 0)


# ---------------------------------------------------------------------------
#  Display
# ---------------------------------------------------------------------------

SPRITE_PROGRAM = """
    ld v0, {x}
    ld v1, {y}
    ld i, sprite
    drw v0, v1, {n}
    drw v0, v1, {n}
halt:
    jp halt
sprite:
    .db 0xFF, 0x80
"""


class TestDraw(unittest.TestCase):
    def test_collision_on_redraw(self):
        cpu = make_cpu(SPRITE_PROGRAM.format(x=0, y=0, n=1))
        run_steps(cpu, 4)
        self.assertEqual(cpu.v[0xF], 0)
        self.assertEqual(cpu.screen.get_pixel(0, 0), 1)
        run_steps(cpu, 1)
        self.assertEqual(cpu.v[0xF], 1)
        self.assertEqual(cpu.screen.get_pixel(0, 0), 0)
        self.assertEqual(cpu.screen.lit_count(), 0)

    def test_wraps_at_corner(self):
        cpu = make_cpu(SPRITE_PROGRAM.format(x=63, y=31, n=2))
        run_steps(cpu, 4)
        scr = cpu.screen
        self.assertEqual(scr.get_pixel(63, 31), 1)
        for x in range(7):
            self.assertEqual(scr.get_pixel(x, 31), 1)
        self.assertEqual(scr.get_pixel(7, 31), 0)
        self.assertEqual(scr.get_pixel(63, 0), 1)   # second row wrapped to y=0
        self.assertEqual(scr.get_pixel(0, 0), 0)
        self.assertEqual(scr.lit_count(), 9)

    def test_cls(self):
        cpu = make_cpu(SPRITE_PROGRAM.format(x=3, y=3, n=2))
        run_steps(cpu, 4)
        self.assertGreater(cpu.screen.lit_count(), 0)
        cpu.screen.acknowledge_dirty()
        cpu.pc = 0x300
        cpu.mem[0x300:0x302] = b"\x00\xE0"
        run_steps(cpu, 1)
        self.assertEqual(cpu.screen.lit_count(), 0)
        self.assertTrue(cpu.screen.is_dirty())

    def test_draw_font_digit(self):
        cpu = run_asm("""
            ld v0, 0
            ld v2, 8
            ld f, v2
            drw v0, v0, 5
        """, 4)
        expected = FONT[40:45]
        for row, bits in enumerate(expected):
            for col in range(8):
                self.assertEqual(cpu.screen.get_pixel(col, row),
                                 (bits >> (7 - col)) & 1)


# ---------------------------------------------------------------------------
#  Keypad
# ---------------------------------------------------------------------------

KEY_PROGRAM = """
    ld v0, 5
    {op} v0
    ld v1, 1
    ld v2, 2
"""


class TestKeys(unittest.TestCase):
    def test_skp_pressed(self):
        cpu = make_cpu(KEY_PROGRAM.format(op="skp"))
        cpu.keypad.set(5, True)
        run_steps(cpu, 3)
        self.assertEqual(cpu.v[1], 0)
        self.assertEqual(cpu.v[2], 2)

    def test_skp_released(self):
        cpu = make_cpu(KEY_PROGRAM.format(op="skp"))
        run_steps(cpu, 3)
        self.assertEqual(cpu.v[1], 1)

    def test_sknp(self):
        cpu = make_cpu(KEY_PROGRAM.format(op="sknp"))
        run_steps(cpu, 3)
        self.assertEqual(cpu.v[1], 0)
        cpu = make_cpu(KEY_PROGRAM.format(op="sknp"))
        cpu.keypad.set(5, True)
        run_steps(cpu, 3)
        self.assertEqual(cpu.v[1], 1)

    def test_wait_key_busy_waits(self):
        cpu = make_cpu("ld v4, k\nld v5, 1")
        for _ in range(10):
            cpu.execute_cycle(TIMER_PERIOD)
            self.assertEqual(cpu.pc, 0x200)
        self.assertEqual(cpu.v[4], 0)

    def test_wait_key_takes_lowest(self):
        cpu = make_cpu("ld v4, k\nld v5, 1")
        run_steps(cpu, 3)
        cpu.keypad.set(0xC, True)
        cpu.keypad.set(0x7, True)
        run_steps(cpu, 1)
        self.assertEqual(cpu.v[4], 0x7)
        self.assertEqual(cpu.pc, 0x202)

    def test_wait_key_timers_keep_running(self):
        cpu = make_cpu("ld v4, k")
        cpu.delay_timer = 10
        run_steps(cpu, 5, elapsed=TIMER_PERIOD)
        self.assertEqual(cpu.delay_timer, 5)
        self.assertEqual(cpu.pc, 0x200)


# ---------------------------------------------------------------------------
#  Timers
# ---------------------------------------------------------------------------

class TestTimers(unittest.TestCase):
    def make(self) -> Chip8:
        cpu = Chip8()
        cpu.load_rom(b"")   # all SYS no-ops
        return cpu

    def test_delay_decays_to_zero(self):
        cpu = self.make()
        cpu.delay_timer = 60
        for _ in range(60):
            cpu.execute_cycle(1 / 60)
        self.assertEqual(cpu.delay_timer, 0)
        cpu.execute_cycle(1 / 60)
        self.assertEqual(cpu.delay_timer, 0)

    def test_sound_decays_too(self):
        cpu = self.make()
        cpu.sound_timer = 30
        self.assertTrue(cpu.sound_active)
        for _ in range(30):
            cpu.execute_cycle(1 / 60)
        self.assertEqual(cpu.sound_timer, 0)
        self.assertFalse(cpu.sound_active)

    def test_timers_independent(self):
        cpu = self.make()
        cpu.delay_timer = 2
        cpu.sound_timer = 10
        for _ in range(5):
            cpu.execute_cycle(1 / 60)
        self.assertEqual(cpu.delay_timer, 0)
        self.assertEqual(cpu.sound_timer, 5)

    def test_sub_period_frames_accumulate(self):
        cpu = self.make()
        cpu.delay_timer = 10
        cpu.execute_cycle(1 / 120)
        self.assertEqual(cpu.delay_timer, 10)
        cpu.execute_cycle(1 / 120)
        self.assertEqual(cpu.delay_timer, 9)

    def test_long_frame_catches_up(self):
        cpu = self.make()
        cpu.delay_timer = 100
        cpu.execute_cycle(0.255)
        self.assertEqual(cpu.delay_timer, 85)

    def test_never_negative(self):
        cpu = self.make()
        cpu.delay_timer = 3
        cpu.execute_cycle(10.0)
        self.assertEqual(cpu.delay_timer, 0)

    def test_timer_opcodes(self):
        cpu = make_cpu("""
            ld v0, 42
            ld dt, v0
            ld st, v0
            ld v1, dt
        """)
        run_steps(cpu, 4)
        self.assertEqual(cpu.delay_timer, 42)
        self.assertEqual(cpu.sound_timer, 42)
        self.assertEqual(cpu.v[1], 42)

    def test_timers_advance_before_execute(self):
        cpu = make_cpu("ld v1, dt")
        cpu.delay_timer = 10
        cpu.execute_cycle(TIMER_PERIOD)
        self.assertEqual(cpu.v[1], 9)

    def test_paused_is_inert(self):
        cpu = self.make()
        cpu.delay_timer = 5
        cpu.paused = True
        cpu.execute_cycle(1.0)
        self.assertEqual(cpu.delay_timer, 5)
        self.assertEqual(cpu.pc, PROGRAM_START)
        self.assertEqual(cpu.cycle_count, 0)

    def test_step_ignores_pause(self):
        cpu = make_cpu("ld v0, 3")
        cpu.paused = True
        cpu.step()
        self.assertEqual(cpu.v[0], 3)
        self.assertTrue(cpu.paused)


# ---------------------------------------------------------------------------
#  Invalid opcodes
# ---------------------------------------------------------------------------

class TestInvalid(unittest.TestCase):
    def test_unmatched_words_are_noops(self):
        cpu = make_cpu("""
            .dw 0x5121, 0x812F, 0xE0FF, 0xF0FF, 0x9121
            ld v0, 1
        """)
        seen: list[InvalidOpcode] = []
        cpu.on_invalid = seen.append
        before = list(cpu.v)
        run_steps(cpu, 5)
        self.assertEqual(cpu.v, before)
        self.assertEqual(cpu.pc, 0x20A)
        self.assertEqual(cpu.invalid_count, 5)
        self.assertEqual([e.addr for e in seen],
                         [0x200, 0x202, 0x204, 0x206, 0x208])
        self.assertEqual(seen[1].opcode, 0x812F)
        run_steps(cpu, 1)
        self.assertEqual(cpu.v[0], 1)


# ---------------------------------------------------------------------------
#  ROM loading
# ---------------------------------------------------------------------------

class TestLoadRom(unittest.TestCase):
    def test_max_size_fits(self):
        cpu = Chip8()
        cpu.load_rom(bytes([0xAB]) * MAX_ROM_SIZE)
        self.assertEqual(MAX_ROM_SIZE, 3584)
        self.assertEqual(cpu.rom_len, 3584)
        self.assertEqual(cpu.mem[0xFFF], 0xAB)
        self.assertFalse(cpu.paused)

    def test_too_large_leaves_fresh_state(self):
        cpu = make_cpu("ld v0, 1\ncall 0x300")
        run_steps(cpu, 2)
        cpu.delay_timer = 9
        with self.assertRaises(RomTooLarge) as ctx:
            cpu.load_rom(bytes(MAX_ROM_SIZE + 1))
        self.assertEqual(ctx.exception.size, 3585)
        self.assertEqual(cpu.v, [0] * 16)
        self.assertEqual(cpu.stack, [])
        self.assertEqual(cpu.pc, PROGRAM_START)
        self.assertEqual(cpu.delay_timer, 0)
        self.assertEqual(cpu.rom_len, 0)
        self.assertTrue(cpu.paused)
        self.assertEqual(bytes(cpu.mem[PROGRAM_START:]), bytes(MAX_ROM_SIZE))
        self.assertEqual(bytes(cpu.mem[FONT_BASE:FONT_END]), FONT)

    def test_reload_resets(self):
        cpu = make_cpu(SPRITE_PROGRAM.format(x=1, y=1, n=1))
        run_steps(cpu, 4)
        cpu.keypad.set(3, True)
        cpu.load_rom(b"\x60\x05")
        self.assertEqual(cpu.v, [0] * 16)
        self.assertEqual(cpu.i, 0)
        self.assertEqual(cpu.screen.lit_count(), 0)
        self.assertIsNone(cpu.keypad.get_pressed_key())
        self.assertEqual(cpu.mem[0x202], 0)

    def test_code_view(self):
        cpu = Chip8()
        cpu.load_rom(b"\x60\x05\x70\x01")
        code, pc = cpu.code_view()
        self.assertEqual(code, b"\x60\x05\x70\x01")
        self.assertEqual(pc, 0x200)
        cpu.execute_cycle(0.0)
        self.assertEqual(cpu.code_view()[1], 0x202)

    def test_run_stops_when_paused(self):
        cpu = make_cpu("halt:\njp halt")
        self.assertEqual(cpu.run(max_steps=10), 10)
        cpu.paused = True
        self.assertEqual(cpu.run(max_steps=10), 0)
        self.assertEqual(cpu.cycle_count, 10)

    def test_dump_regs(self):
        cpu = run_asm("ld va, 0x7F\ncall 0x300", 2)
        text = cpu.dump_regs()
        self.assertIn("VA = 0x7f", text)
        self.assertIn("PC = 0x300", text)
        self.assertIn("Stack (1): 204", text)


if __name__ == "__main__":
    unittest.main()
