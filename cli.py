#!/usr/bin/env python3
"""
CHIP-8 Monitor / CLI
====================
Command-line front end for the CHIP-8 interpreter.

Provides:
  - ROM loading (file or inline assembly) and ROM discovery
  - Run / step / breakpoint execution on a fixed 60 Hz frame clock
  - Register, memory, and screen inspection
  - Disassembly
  - Keypad input
  - The pygame display window

Usage:
  python cli.py [ROM] [--display] [--scale N] [--color RRGGBB] [--fps N]
                [--ipf N] [--seed N] [--stack-limit N] [--run FRAMES]
  python cli.py --roms DIR
  python cli.py --assemble SRC OUT [--listing]
"""

from __future__ import annotations
import argparse
import cmd
import random
import shlex
import sys
from pathlib import Path

from chip8 import Chip8Error, nibbles, PROGRAM_START, TIMER_PERIOD
from asm import assemble, AsmError
from system import Chip8System, find_roms

# ---------------------------------------------------------------------------
#  Disassembler
# ---------------------------------------------------------------------------

ALU_NAMES = {
    0x0: "LD", 0x1: "OR", 0x2: "AND", 0x3: "XOR", 0x4: "ADD",
    0x5: "SUB", 0x6: "SHR", 0x7: "SUBN", 0xE: "SHL",
}

MISC_FORMS = {
    0x07: "LD V{x:X}, DT",
    0x0A: "LD V{x:X}, K",
    0x15: "LD DT, V{x:X}",
    0x18: "LD ST, V{x:X}",
    0x1E: "ADD I, V{x:X}",
    0x29: "LD F, V{x:X}",
    0x33: "LD B, V{x:X}",
    0x55: "LD [I], V{x:X}",
    0x65: "LD V{x:X}, [I]",
}


def disasm_one(word: int) -> str:
    """Mnemonic text for one 16-bit instruction word."""
    f, x, y, n = nibbles(word)
    nnn = word & 0x0FFF
    kk = word & 0xFF

    if word == 0x00E0:
        return "CLS"
    if word == 0x00EE:
        return "RET"
    if f == 0x0:
        return f"SYS {nnn:#05x}"
    if f == 0x1:
        return f"JP {nnn:#05x}"
    if f == 0x2:
        return f"CALL {nnn:#05x}"
    if f == 0x3:
        return f"SE V{x:X}, {kk:#04x}"
    if f == 0x4:
        return f"SNE V{x:X}, {kk:#04x}"
    if f == 0x5 and n == 0:
        return f"SE V{x:X}, V{y:X}"
    if f == 0x6:
        return f"LD V{x:X}, {kk:#04x}"
    if f == 0x7:
        return f"ADD V{x:X}, {kk:#04x}"
    if f == 0x8 and n in ALU_NAMES:
        if n in (0x6, 0xE):
            return f"{ALU_NAMES[n]} V{x:X}"
        return f"{ALU_NAMES[n]} V{x:X}, V{y:X}"
    if f == 0x9 and n == 0:
        return f"SNE V{x:X}, V{y:X}"
    if f == 0xA:
        return f"LD I, {nnn:#05x}"
    if f == 0xB:
        return f"JP V0, {nnn:#05x}"
    if f == 0xC:
        return f"RND V{x:X}, {kk:#04x}"
    if f == 0xD:
        return f"DRW V{x:X}, V{y:X}, {n}"
    if f == 0xE and kk == 0x9E:
        return f"SKP V{x:X}"
    if f == 0xE and kk == 0xA1:
        return f"SKNP V{x:X}"
    if f == 0xF and kk in MISC_FORMS:
        return MISC_FORMS[kk].format(x=x)
    return f".dw {word:#06x}"


def disasm_block(code: bytes, base: int = PROGRAM_START,
                 pc: int | None = None) -> list[str]:
    """Disassemble a code buffer word by word; marks the line at pc."""
    lines = []
    for off in range(0, len(code) - 1, 2):
        addr = base + off
        word = (code[off] << 8) | code[off + 1]
        marker = ">>>" if addr == pc else "   "
        lines.append(f"  {marker} {addr:03X}: {word:04X}  {disasm_one(word)}")
    return lines


# ---------------------------------------------------------------------------
#  Interactive monitor
# ---------------------------------------------------------------------------

class Chip8CLI(cmd.Cmd):
    intro = (
        "\n"
        "╔══════════════════════════════════════════════════════════╗\n"
        "║          CHIPPUS - CHIP-8 Monitor                        ║\n"
        "║   Type 'help' for commands.  'quit' to exit.             ║\n"
        "╚══════════════════════════════════════════════════════════╝\n"
    )
    prompt = "CHIP8> "

    def __init__(self, system: Chip8System, rom_dir: str | None = None):
        super().__init__()
        self.sys = system
        self.rom_dir = rom_dir
        self.breakpoints: set[int] = set()
        self.display = None

    # -- Parsing helpers --

    def _parse_addr(self, s: str) -> int:
        """Parse an address (hex, 0x prefix optional, or pc / i)."""
        s = s.strip().lower()
        if s == "pc":
            return self.sys.cpu.pc
        if s == "i":
            return self.sys.cpu.i
        return int(s, 16)

    def _parse_int(self, s: str) -> int:
        return int(s.strip(), 0)

    # ================================================================
    #  Commands
    # ================================================================

    # -- Loading --

    def do_load(self, arg):
        """Load a ROM file: load <file>"""
        parts = shlex.split(arg)
        if not parts:
            print("Usage: load <file>")
            return
        try:
            size = self.sys.load_rom_file(parts[0])
            print(f"Loaded {size} bytes from '{parts[0]}' at {PROGRAM_START:#05x}")
        except Chip8Error as e:
            print(f"Error: {e}")

    def do_asm(self, arg):
        """Assemble source and load it as the ROM: asm <file.asm>
        Or inline:  asm -e "ld v0, 5; add v0, 1" """
        parts = shlex.split(arg)
        if not parts:
            print("Usage: asm <file.asm>  OR  asm -e \"code\"")
            return

        if parts[0] == "-e":
            source = parts[1].replace(";", "\n") if len(parts) > 1 else ""
        else:
            try:
                source = Path(parts[0]).read_text()
            except OSError as e:
                print(f"Error reading '{parts[0]}': {e}")
                return

        try:
            code = assemble(source)
            self.sys.load_rom(code)
            print(f"Assembled {len(code)} bytes at {PROGRAM_START:#05x}")
        except AsmError as e:
            print(f"Assembly error: {e}")
        except Chip8Error as e:
            print(f"Error: {e}")

    def do_roms(self, arg):
        """List ROMs: roms [directory]
        Defaults to --roms, else ./roms."""
        root = arg.strip() or self.rom_dir or "roms"
        found = find_roms(root)
        if not found:
            print(f"No ROMs under '{root}'.")
            return
        for idx, path in enumerate(found):
            print(f"  [{idx:2d}] {path}")

    def do_reset(self, arg):
        """Power-on reset; discards the loaded program."""
        self.sys.reset()
        print("System reset.")

    # -- Execution --

    def do_step(self, arg):
        """Step N instructions: step [count]  (works while paused)"""
        count = self._parse_int(arg) if arg.strip() else 1
        for _ in range(count):
            try:
                with self.sys.lock:
                    addr = self.sys.cpu.pc
                    word = self.sys.single_step(TIMER_PERIOD)
            except Chip8Error as e:
                print(f"Error: {e}")
                break
            print(f"  {addr:03X}: {word:04X}  {disasm_one(word)}")

    def do_run(self, arg):
        """Run N frames at 60 Hz (default 600), stopping at breakpoints: run [frames]"""
        frames = self._parse_int(arg) if arg.strip() else 600
        if self.sys.paused:
            print("Machine is paused ('resume' or 'load' first).")
            return
        try:
            done = self.sys.run_frames(frames, breakpoints=self.breakpoints)
        except Chip8Error as e:
            print(f"\nError: {e}")
            return
        if done < frames:
            print(f"Breakpoint hit at {self.sys.cpu.pc:#05x} after {done} frames.")
        else:
            print(f"Ran {done} frames.")
    do_c = do_run

    def do_pause(self, arg):
        """Pause execution (timers stop too)."""
        self.sys.pause()
        print("Paused.")

    def do_resume(self, arg):
        """Resume execution."""
        self.sys.resume()
        print("Running.")

    # -- Breakpoints --

    def do_bp(self, arg):
        """Set breakpoint: bp <address>   (no argument lists them)"""
        if not arg.strip():
            if self.breakpoints:
                print("Breakpoints:")
                for a in sorted(self.breakpoints):
                    print(f"  {a:#05x}")
            else:
                print("No breakpoints set.")
            return
        addr = self._parse_addr(arg)
        self.breakpoints.add(addr)
        print(f"Breakpoint set at {addr:#05x}")

    def do_bpd(self, arg):
        """Delete breakpoint: bpd <address|all>"""
        if arg.strip().lower() == "all":
            self.breakpoints.clear()
            print("All breakpoints cleared.")
            return
        addr = self._parse_addr(arg)
        self.breakpoints.discard(addr)
        print(f"Breakpoint at {addr:#05x} removed.")

    # -- Inspection --

    def do_regs(self, arg):
        """Show registers, timers and stack."""
        print(self.sys.cpu.dump_regs())
        print(f"  Cycles: {self.sys.cpu.cycle_count}")

    def do_dump(self, arg):
        """Hex dump memory: dump <address> [count]
        Count defaults to 64 bytes."""
        parts = shlex.split(arg)
        if not parts:
            print("Usage: dump <address> [count]")
            return
        addr = self._parse_addr(parts[0])
        count = self._parse_int(parts[1]) if len(parts) > 1 else 64
        cpu = self.sys.cpu

        for row_start in range(addr, addr + count, 16):
            hex_bytes = []
            for i in range(16):
                if row_start + i < addr + count:
                    hex_bytes.append(f"{cpu.mem_read8(row_start + i):02x}")
                else:
                    hex_bytes.append("  ")
            hex_str = ' '.join(hex_bytes[:8]) + '  ' + ' '.join(hex_bytes[8:])
            print(f"  {row_start:03X}: {hex_str}")

    def do_disasm(self, arg):
        """Disassemble: disasm [address] [count]
        Without arguments, lists the whole loaded program."""
        cpu = self.sys.cpu
        parts = shlex.split(arg)
        if not parts:
            code, pc = cpu.code_view()
            if not code:
                print("No program loaded.")
                return
            print("\n".join(disasm_block(code, PROGRAM_START, pc)))
            return
        addr = self._parse_addr(parts[0])
        count = self._parse_int(parts[1]) if len(parts) > 1 else 16
        code = cpu.mem_slice(addr, count * 2)
        print("\n".join(disasm_block(code, addr, cpu.pc)))

    def do_screen(self, arg):
        """Print the screen as text."""
        print(self.sys.screen.to_text())

    def do_status(self, arg):
        """Show full system status."""
        print(self.sys.dump_state())

    # -- Input --

    @staticmethod
    def _parse_pressed(parts: list[str]) -> bool:
        return not (len(parts) > 1 and parts[1].lower() in ("up", "off"))

    def do_key(self, arg):
        """Press or release a keypad key: key <0-F> [down|up]
        No argument lists the keys held down."""
        parts = shlex.split(arg)
        if not parts:
            keys = self.sys.keypad.pressed_keys()
            print("Keys down: " + (" ".join(f"{k:X}" for k in keys) or "-"))
            return
        try:
            key = int(parts[0], 16)
            self.sys.keypad.set(key, self._parse_pressed(parts))
        except ValueError:
            print(f"Keypad keys are 0-F, got {parts[0]!r}")
            return
        print(f"  Key {key:X} {'down' if self._parse_pressed(parts) else 'up'}")

    def do_hostkey(self, arg):
        """Send a host keyboard key through the key map: hostkey <key> [down|up]
        Example: hostkey w  (device key 5)"""
        parts = shlex.split(arg)
        if not parts:
            print("Usage: hostkey <key> [down|up]")
            return
        pressed = self._parse_pressed(parts)
        key = self.sys.host_key(parts[0], pressed)
        if key is None:
            print(f"Unmapped key: {parts[0]!r}")
            return
        print(f"  {parts[0]} -> key {key:X} {'down' if pressed else 'up'}")

    # -- Display --

    def do_display(self, arg):
        """Open the pygame window in the background: display [scale]"""
        if self.display is not None and self.display.running:
            print("Display already open.")
            return
        scale = self._parse_int(arg) if arg.strip() else 10
        from display import Chip8Display
        self.display = Chip8Display(self.sys, scale=scale)
        try:
            self.display.start()
        except ImportError as e:
            print(f"[display] pygame not available: {e}")
            return
        if self.display.running:
            print(f"[display] Window opened (scale={scale}x)")
        else:
            print("[display] Window failed to open.")

    # -- Misc --

    def do_quit(self, arg):
        """Exit the monitor."""
        if self.display is not None:
            self.display.stop()
        print("Goodbye.")
        return True
    do_exit = do_quit
    do_q = do_quit

    def do_EOF(self, arg):
        print()
        return self.do_quit(arg)

    def default(self, line):
        """Handle unknown commands gracefully."""
        print(f"Unknown command: {line.split()[0]!r}. Type 'help' for available commands.")

    def emptyline(self):
        """Don't repeat the last command on empty input."""
        pass


# ---------------------------------------------------------------------------
#  Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CHIPPUS - CHIP-8 interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  python cli.py roms/PONG.ch8 --display\n"
               "  python cli.py roms/PONG.ch8 --display --ipf 10 --color 30A860\n"
               "  python cli.py roms/IBM.ch8 --run 120\n"
               "  python cli.py --roms roms\n"
               "  python cli.py --assemble demo.asm demo.ch8 --listing\n"
    )
    parser.add_argument("rom", nargs="?", default=None,
                        help="ROM file to load")
    parser.add_argument("--display", action="store_true",
                        help="Open a pygame window and run the ROM")
    parser.add_argument("--scale", type=int, default=10, metavar="N",
                        help="Pixel scale factor for the window (default: 10)")
    parser.add_argument("--color", type=str, default=None, metavar="RRGGBB",
                        help="Lit pixel color (default: 30A860)")
    parser.add_argument("--fps", type=int, default=60,
                        help="Window frame rate (default: 60)")
    parser.add_argument("--ipf", type=int, default=1, metavar="N",
                        help="Instructions per frame (default: 1)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the RND instruction")
    parser.add_argument("--stack-limit", type=int, default=None, metavar="N",
                        help="Cap the call stack depth (default: unbounded)")
    parser.add_argument("--roms", type=str, default=None, metavar="DIR",
                        help="List ROMs (*.ch8) under DIR and exit")
    parser.add_argument("--assemble", nargs=2, metavar=("SRC", "OUT"),
                        help="Assemble SRC to OUT and exit")
    parser.add_argument("--listing", "-l", action="store_true",
                        help="Print assembly listing (with --assemble)")
    parser.add_argument("--run", type=int, default=None, metavar="FRAMES",
                        help="Run FRAMES frames headless, print the screen, exit")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # ---- ROM listing ----------------------------------------------------
    if args.roms:
        found = find_roms(args.roms)
        for path in found:
            print(path)
        if not found:
            print(f"[rom] No ROMs under '{args.roms}'", file=sys.stderr)
        return 0

    # ---- Assemble-only mode ---------------------------------------------
    if args.assemble:
        src_path, out_path = args.assemble
        try:
            source = Path(src_path).read_text()
            code = assemble(source, listing=args.listing)
            Path(out_path).write_bytes(code)
        except AsmError as e:
            print(f"Assembly error: {e}", file=sys.stderr)
            return 1
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Assembled {src_path} → {out_path} ({len(code)} bytes)")
        return 0

    rng = random.Random(args.seed) if args.seed is not None else None
    try:
        system = Chip8System(rng=rng, stack_limit=args.stack_limit,
                             instructions_per_frame=args.ipf)
        if args.rom:
            size = system.load_rom_file(args.rom)
            print(f"[rom] Loaded {size} bytes from '{args.rom}'")
    except (Chip8Error, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # ---- Headless batch run ---------------------------------------------
    if args.run is not None:
        try:
            system.run_frames(args.run)
        except Chip8Error as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(system.screen.to_text())
        print(system.cpu.dump_regs())
        return 0

    # ---- Window ---------------------------------------------------------
    if args.display:
        try:
            from display import Chip8Display, DEFAULT_COLOR, parse_color
            color = parse_color(args.color) if args.color else DEFAULT_COLOR
            Chip8Display(system, scale=args.scale, color=color,
                         fps=args.fps).run()
        except ImportError as e:
            print(f"[display] pygame not available: {e}", file=sys.stderr)
            print("[display] Install with: pip install pygame numpy",
                  file=sys.stderr)
            return 1
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    # ---- Interactive monitor --------------------------------------------
    cli = Chip8CLI(system)
    try:
        cli.cmdloop()
    except KeyboardInterrupt:
        print("\nInterrupted. Goodbye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
