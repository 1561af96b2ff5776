"""
CHIP-8 Assembler
================
Translates assembly text into big-endian 16-bit instruction words.

Supports:
  - Labels (a line terminated with ':')
  - The full base instruction set, Cowgod-style mnemonics
  - Immediate literals (decimal, hex with 0x or #, binary with 0b)
  - Comments (';' to end of line)
  - .org, .db, .dw directives

Usage:
  from asm import assemble
  rom = assemble(source_text)           # origin 0x200
"""

from __future__ import annotations

PROGRAM_START = 0x200

# ---------------------------------------------------------------------------
#  Register-pair ALU ops (8xyN)
# ---------------------------------------------------------------------------
ALU_SUB = {
    "or":   0x1, "and": 0x2, "xor": 0x3,
    "sub":  0x5, "subn": 0x7,
}

# Fx?? forms of "LD"
LD_SPECIAL = {
    ("v", "dt"):  0x07,
    ("v", "k"):   0x0A,
    ("dt", "v"):  0x15,
    ("st", "v"):  0x18,
    ("f", "v"):   0x29,
    ("b", "v"):   0x33,
    ("[i]", "v"): 0x55,
    ("v", "[i]"): 0x65,
}

# ---------------------------------------------------------------------------
#  Parser helpers
# ---------------------------------------------------------------------------

def _is_reg(tok: str) -> bool:
    tok = tok.strip().lower()
    return (len(tok) == 2 and tok[0] == "v"
            and tok[1] in "0123456789abcdef")

def _parse_reg(tok: str) -> int:
    """Parse 'V0'-'VF'. Returns register index."""
    if _is_reg(tok):
        return int(tok.strip()[1], 16)
    raise ValueError(f"Invalid register: {tok!r}")

def _parse_imm(tok: str) -> int:
    """Parse an immediate value (decimal, 0x / # hex, 0b binary)."""
    tok = tok.strip()
    if tok.startswith("#"):
        return int(tok[1:], 16)
    return int(tok, 0)

def _split_ops(rest: str) -> list[str]:
    """Split operand string by comma, trimming whitespace."""
    return [s.strip() for s in rest.split(",") if s.strip()]

def _split_mnemonic(text: str) -> tuple[str, str]:
    parts = text.split(None, 1)
    mnem = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ""
    return mnem, rest

def _operand_kind(tok: str) -> str:
    """'v' for a V register, else the lowercased keyword or 'imm'."""
    low = tok.strip().lower()
    if _is_reg(low):
        return "v"
    if low in ("i", "dt", "st", "k", "f", "b", "[i]"):
        return low
    return "imm"


class AsmError(Exception):
    def __init__(self, line: int, msg: str):
        self.line = line
        super().__init__(f"Line {line}: {msg}")


def assemble(source: str, base_addr: int = PROGRAM_START,
             listing: bool = False) -> bytearray:
    """
    Two-pass assembler.
    Pass 1: collect labels, compute sizes.
    Pass 2: emit bytes with resolved addresses.
    If listing=True, print an address/hex/source listing to stdout.
    """

    # Pre-process: strip comments and whitespace
    cleaned: list[tuple[int, str]] = []
    for lineno, raw in enumerate(source.split("\n"), 1):
        stripped = raw.split(";", 1)[0].strip()
        if stripped:
            cleaned.append((lineno, stripped))

    # ---- Pass 1: label collection and size computation ----
    labels: dict[str, int] = {}
    sizes: list[tuple[int, str, int]] = []  # (line_no, text, size_bytes)
    pc = base_addr

    for lineno, text in cleaned:
        if text.endswith(":"):
            lbl = text[:-1].strip()
            if not lbl or _is_reg(lbl):
                raise AsmError(lineno, f"Bad label: {lbl!r}")
            if lbl in labels:
                raise AsmError(lineno, f"Duplicate label: {lbl}")
            labels[lbl] = pc
            continue

        lower = text.lower()
        if lower.startswith(".org"):
            try:
                target = _parse_imm(text[4:])
            except ValueError:
                raise AsmError(lineno, f"Bad .org address: {text[4:].strip()!r}")
            if target < pc:
                raise AsmError(lineno, f".org {target:#x} is behind {pc:#x}")
            sizes.append((lineno, text, target - pc))
            pc = target
            continue
        if lower.startswith(".db"):
            n = len(_split_ops(text[3:]))
            sizes.append((lineno, text, n))
            pc += n
            continue
        if lower.startswith(".dw"):
            n = len(_split_ops(text[3:])) * 2
            sizes.append((lineno, text, n))
            pc += n
            continue
        if lower.startswith("."):
            raise AsmError(lineno, f"Unknown directive: {text.split()[0]}")

        sizes.append((lineno, text, 2))
        pc += 2

    # ---- Pass 2: emit bytes ----
    code = bytearray()
    pc = base_addr
    listing_lines = []  # (addr, hex_bytes, source_text)

    for lineno, text, sz in sizes:
        start_pc = pc
        lower = text.lower()

        if lower.startswith(".org"):
            code.extend(bytes(sz))
            pc += sz
            if listing:
                listing_lines.append((start_pc, "", text))
            continue

        if lower.startswith(".db"):
            emitted = bytearray(
                _resolve_value(lineno, tok, labels, 8)
                for tok in _split_ops(text[3:]))
        elif lower.startswith(".dw"):
            emitted = bytearray()
            for tok in _split_ops(text[3:]):
                v = _resolve_value(lineno, tok, labels, 16)
                emitted += bytes(((v >> 8) & 0xFF, v & 0xFF))
        else:
            word = _emit_instruction(lineno, text, labels)
            emitted = bytearray(((word >> 8) & 0xFF, word & 0xFF))

        if listing:
            hexstr = " ".join(f"{b:02X}" for b in emitted[:8])
            if len(emitted) > 8:
                hexstr += " ..."
            listing_lines.append((start_pc, hexstr, text))
        code.extend(emitted)
        pc += sz

    if listing:
        addr_labels: dict[int, list[str]] = {}
        for lbl, addr in labels.items():
            addr_labels.setdefault(addr, []).append(lbl)
        for addr, hexstr, src in listing_lines:
            for lbl in addr_labels.pop(addr, []):
                print(f"              {lbl}:")
            print(f"  {addr:04X}  {hexstr:<24s}  {src}")
        for addr in sorted(addr_labels):
            for lbl in addr_labels[addr]:
                print(f"              {lbl}:")

    return code


# ---------------------------------------------------------------------------
#  Operand resolution
# ---------------------------------------------------------------------------

def _resolve_value(lineno: int, tok: str, labels: dict, bits: int) -> int:
    """Literal or label, range-checked to *bits* unsigned bits."""
    tok = tok.strip()
    if tok in labels:
        val = labels[tok]
    else:
        try:
            val = _parse_imm(tok)
        except ValueError:
            raise AsmError(lineno, f"Undefined label or bad literal: {tok!r}")
    if not 0 <= val < (1 << bits):
        raise AsmError(lineno, f"Value {tok} out of range for {bits} bits")
    return val


def _reg(lineno: int, tok: str) -> int:
    try:
        return _parse_reg(tok)
    except ValueError as e:
        raise AsmError(lineno, str(e))


def _expect(lineno: int, mnem: str, ops: list[str], *counts: int):
    if len(ops) not in counts:
        want = " or ".join(str(c) for c in counts)
        raise AsmError(lineno, f"{mnem.upper()} takes {want} operand(s), "
                               f"got {len(ops)}")


# ---------------------------------------------------------------------------
#  Instruction encoding (pass 2)
# ---------------------------------------------------------------------------

def _emit_instruction(lineno: int, text: str, labels: dict) -> int:
    """Encode one instruction line as a 16-bit word."""
    mnem, rest = _split_mnemonic(text)
    ops = _split_ops(rest)

    def addr(tok):
        return _resolve_value(lineno, tok, labels, 12)

    def byte(tok):
        return _resolve_value(lineno, tok, labels, 8)

    if mnem == "cls":
        _expect(lineno, mnem, ops, 0)
        return 0x00E0
    if mnem == "ret":
        _expect(lineno, mnem, ops, 0)
        return 0x00EE
    if mnem == "sys":
        _expect(lineno, mnem, ops, 1)
        return addr(ops[0])

    if mnem == "jp":
        _expect(lineno, mnem, ops, 1, 2)
        if len(ops) == 2:
            if ops[0].strip().lower() != "v0":
                raise AsmError(lineno, "JP with two operands must be JP V0, addr")
            return 0xB000 | addr(ops[1])
        return 0x1000 | addr(ops[0])
    if mnem == "call":
        _expect(lineno, mnem, ops, 1)
        return 0x2000 | addr(ops[0])

    if mnem in ("se", "sne"):
        _expect(lineno, mnem, ops, 2)
        x = _reg(lineno, ops[0])
        if _is_reg(ops[1]):
            base = 0x5000 if mnem == "se" else 0x9000
            return base | (x << 8) | (_parse_reg(ops[1]) << 4)
        base = 0x3000 if mnem == "se" else 0x4000
        return base | (x << 8) | byte(ops[1])

    if mnem == "ld":
        _expect(lineno, mnem, ops, 2)
        dst, src = _operand_kind(ops[0]), _operand_kind(ops[1])
        if dst == "v" and src == "imm":
            return 0x6000 | (_parse_reg(ops[0]) << 8) | byte(ops[1])
        if dst == "v" and src == "v":
            return 0x8000 | (_parse_reg(ops[0]) << 8) | (_parse_reg(ops[1]) << 4)
        if dst == "i" and src == "imm":
            return 0xA000 | addr(ops[1])
        kk = LD_SPECIAL.get((dst, src))
        if kk is None:
            raise AsmError(lineno, f"Unsupported LD form: {rest.strip()}")
        x = _parse_reg(ops[0] if dst == "v" else ops[1])
        return 0xF000 | (x << 8) | kk

    if mnem == "add":
        _expect(lineno, mnem, ops, 2)
        dst = _operand_kind(ops[0])
        if dst == "i":
            return 0xF01E | (_reg(lineno, ops[1]) << 8)
        x = _reg(lineno, ops[0])
        if _is_reg(ops[1]):
            return 0x8004 | (x << 8) | (_parse_reg(ops[1]) << 4)
        return 0x7000 | (x << 8) | byte(ops[1])

    if mnem in ALU_SUB:
        _expect(lineno, mnem, ops, 2)
        x = _reg(lineno, ops[0])
        y = _reg(lineno, ops[1])
        return 0x8000 | (x << 8) | (y << 4) | ALU_SUB[mnem]

    if mnem in ("shr", "shl"):
        _expect(lineno, mnem, ops, 1, 2)
        x = _reg(lineno, ops[0])
        y = _reg(lineno, ops[1]) if len(ops) == 2 else 0
        return 0x8000 | (x << 8) | (y << 4) | (0x6 if mnem == "shr" else 0xE)

    if mnem == "rnd":
        _expect(lineno, mnem, ops, 2)
        return 0xC000 | (_reg(lineno, ops[0]) << 8) | byte(ops[1])

    if mnem == "drw":
        _expect(lineno, mnem, ops, 3)
        x = _reg(lineno, ops[0])
        y = _reg(lineno, ops[1])
        n = _resolve_value(lineno, ops[2], labels, 4)
        return 0xD000 | (x << 8) | (y << 4) | n

    if mnem in ("skp", "sknp"):
        _expect(lineno, mnem, ops, 1)
        kk = 0x9E if mnem == "skp" else 0xA1
        return 0xE000 | (_reg(lineno, ops[0]) << 8) | kk

    raise AsmError(lineno, f"Unknown mnemonic: {mnem!r}")
