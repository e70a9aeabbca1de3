"""Static analysis of ELF and Mach-O binaries for security hardening features."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NamedTuple

# ELF constants
_ET_DYN = 3
_PT_GNU_STACK = 0x6474E551
_PT_GNU_RELRO = 0x6474E552
_PF_X = 0x1
_SHT_SYMTAB = 2
_SHT_DYNAMIC = 6

# Mach-O constants
_MH_MAGIC = 0xFEEDFACE
_MH_MAGIC_64 = 0xFEEDFACF
_MH_PIE = 0x200000
_LC_SEGMENT = 0x1
_LC_SYMTAB = 0x2
_LC_SEGMENT_64 = 0x19


class BinaryFormatError(Exception):
    """Raised when a binary cannot be opened or parsed."""


class UnsupportedPlatformError(ValueError):
    """Raised for platforms the analyzer does not know."""


@dataclass
class HardeningFeatures:
    pie_enabled: bool = False
    stack_canaries: bool = False
    nx_bit: bool = False
    relro: str = ""
    fortify_source: bool = False
    code_signed: bool = False
    hardened_runtime: bool = False


@dataclass(frozen=True)
class SecurityScore:
    score: float
    total: int
    passed: int
    percentage: int


@dataclass
class BinaryAnalysis:
    platform: str
    hardening_features: HardeningFeatures
    security_score: SecurityScore
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _unpack(fmt: str, data: bytes, offset: int) -> tuple:
    if offset < 0:
        raise BinaryFormatError("negative offset")
    try:
        return struct.unpack_from(fmt, data, offset)
    except struct.error as exc:
        raise BinaryFormatError(f"truncated data: {exc}") from exc


def _slice(data: bytes, offset: int, size: int) -> bytes:
    if offset < 0 or size < 0 or offset + size > len(data):
        raise BinaryFormatError("data out of range")
    return data[offset : offset + size]


def _c_string(table: bytes, offset: int) -> str:
    if offset >= len(table):
        return ""
    end = table.find(b"\0", offset)
    if end < 0:
        end = len(table)
    return table[offset:end].decode("latin-1")


class _Segment(NamedTuple):
    type: int
    flags: int


class _Section(NamedTuple):
    type: int
    offset: int
    size: int
    link: int


@dataclass
class _ElfImage:
    data: bytes
    file_type: int
    segments: list[_Segment]
    sections: list[_Section]
    sym_format: str

    @classmethod
    def parse(cls, data: bytes) -> "_ElfImage":
        if len(data) < 16 or data[:4] != b"\x7fELF":
            raise BinaryFormatError("bad magic number")
        elf_class, encoding = data[4], data[5]
        order = {1: "<", 2: ">"}.get(encoding)
        if order is None:
            raise BinaryFormatError(f"unknown ELF data encoding {encoding}")
        if elf_class == 2:
            header_fmt, ph_fmt, sh_fmt, sym_fmt = (
                "16sHHIQQQIHHHHHH", "IIQQQQQQ", "IIQQQQIIQQ", "IBBHQQ",
            )
        elif elf_class == 1:
            header_fmt, ph_fmt, sh_fmt, sym_fmt = (
                "16sHHIIIIIHHHHHH", "IIIIIIII", "IIIIIIIIII", "IIIBBH",
            )
        else:
            raise BinaryFormatError(f"unknown ELF class {elf_class}")

        (_, e_type, _, _, _, phoff, shoff, _, _,
         phentsize, phnum, shentsize, shnum, _) = _unpack(order + header_fmt, data, 0)

        segments = []
        for index in range(phnum):
            fields = _unpack(order + ph_fmt, data, phoff + index * phentsize)
            flags = fields[1] if elf_class == 2 else fields[6]
            segments.append(_Segment(fields[0], flags))

        sections = []
        for index in range(shnum):
            fields = _unpack(order + sh_fmt, data, shoff + index * shentsize)
            sections.append(_Section(fields[1], fields[4], fields[5], fields[6]))

        return cls(data, e_type, segments, sections, order + sym_fmt)

    def section_data(self, section: _Section) -> bytes:
        return _slice(self.data, section.offset, section.size)

    def section_by_type(self, section_type: int) -> _Section | None:
        return next((s for s in self.sections if s.type == section_type), None)

    def symbol_names(self) -> list[str]:
        """Names from the static symbol table; empty when there is none."""
        symtab = self.section_by_type(_SHT_SYMTAB)
        if symtab is None or symtab.link >= len(self.sections):
            return []
        raw = self.section_data(symtab)
        entry_size = struct.calcsize(self.sym_format)
        if len(raw) % entry_size:
            raise BinaryFormatError("length of symbol section is not a multiple of entry size")
        strtab = self.section_data(self.sections[symtab.link])
        name_index = 0
        return [
            _c_string(strtab, entry[name_index])
            for entry in struct.iter_unpack(self.sym_format, raw[entry_size:])
        ]


def analyze_binary_hardening(binary_path: str, platform: str) -> BinaryAnalysis:
    """Analyze a binary, choosing the format from the platform name."""
    if platform.startswith("darwin"):
        return analyze_darwin_binary(binary_path)
    if platform.startswith("linux"):
        return analyze_linux_binary(binary_path)
    raise UnsupportedPlatformError(f"unsupported platform: {platform}")


def _read(binary_path: str, kind: str) -> bytes:
    try:
        with open(binary_path, "rb") as handle:
            return handle.read()
    except OSError as exc:
        raise BinaryFormatError(f"failed to open {kind} file: {exc}") from exc


def analyze_linux_binary(binary_path: str) -> BinaryAnalysis:
    """Inspect an ELF binary for PIE, RELRO, NX, canaries and FORTIFY_SOURCE."""
    data = _read(binary_path, "ELF")
    try:
        image = _ElfImage.parse(data)
    except BinaryFormatError as exc:
        raise BinaryFormatError(f"failed to open ELF file: {exc}") from exc

    features = HardeningFeatures(pie_enabled=image.file_type == _ET_DYN, relro="disabled")

    if any(seg.type == _PT_GNU_RELRO for seg in image.segments):
        features.relro = "partial"
        dynamic = image.section_by_type(_SHT_DYNAMIC)
        if dynamic is not None:
            try:
                if b"BIND_NOW" in image.section_data(dynamic):
                    features.relro = "full"
            except BinaryFormatError:
                pass

    stack = next((seg for seg in image.segments if seg.type == _PT_GNU_STACK), None)
    features.nx_bit = stack is None or not stack.flags & _PF_X

    try:
        symbols = image.symbol_names()
    except BinaryFormatError:
        symbols = []
    features.stack_canaries = "__stack_chk_fail" in symbols
    features.fortify_source = any(
        name.endswith("_chk") and name != "__stack_chk_fail" for name in symbols
    )

    return BinaryAnalysis("linux", features, calculate_hardening_score(features))


def _parse_macho(data: bytes) -> tuple[int, list[str], list[str]]:
    """Return (header flags, segment names, symbol names) of a Mach-O image."""
    if len(data) < 4:
        raise BinaryFormatError("invalid magic number")
    for order in ("<", ">"):
        (magic,) = struct.unpack_from(order + "I", data, 0)
        if magic in (_MH_MAGIC, _MH_MAGIC_64):
            break
    else:
        raise BinaryFormatError("invalid magic number")
    is64 = magic == _MH_MAGIC_64

    header = _unpack(order + "7I", data, 0)
    ncmds, flags = header[4], header[6]
    offset = 32 if is64 else 28

    segments: list[str] = []
    symbols: list[str] = []
    for _ in range(ncmds):
        cmd, cmdsize = _unpack(order + "II", data, offset)
        if cmdsize < 8:
            raise BinaryFormatError(f"invalid command size {cmdsize}")
        if cmd in (_LC_SEGMENT, _LC_SEGMENT_64):
            raw_name = _slice(data, offset + 8, 16)
            segments.append(raw_name.split(b"\0", 1)[0].decode("latin-1"))
        elif cmd == _LC_SYMTAB:
            symoff, nsyms, stroff, strsize = _unpack(order + "4I", data, offset + 8)
            nlist_fmt = order + ("IBBHQ" if is64 else "IBBHI")
            entry_size = struct.calcsize(nlist_fmt)
            raw = _slice(data, symoff, nsyms * entry_size)
            strtab = _slice(data, stroff, strsize)
            symbols.extend(
                _c_string(strtab, entry[0]) for entry in struct.iter_unpack(nlist_fmt, raw)
            )
        offset += cmdsize
    return flags, segments, symbols


def analyze_darwin_binary(binary_path: str) -> BinaryAnalysis:
    """Inspect a Mach-O binary for PIE, canaries and code signing."""
    data = _read(binary_path, "Mach-O")
    try:
        flags, segments, symbols = _parse_macho(data)
    except BinaryFormatError as exc:
        raise BinaryFormatError(f"failed to open Mach-O file: {exc}") from exc

    features = HardeningFeatures(
        pie_enabled=bool(flags & _MH_PIE),
        stack_canaries=any("__stack_chk_fail" in name for name in symbols),
        code_signed="__LINKEDIT" in segments,
    )
    # A signed binary is assumed to use the hardened runtime.
    features.hardened_runtime = features.code_signed

    return BinaryAnalysis("darwin", features, calculate_hardening_score(features))


def calculate_hardening_score(features: HardeningFeatures) -> SecurityScore:
    """Score the features on a 0-10 scale from seven pass/fail checks."""
    checks = [
        features.pie_enabled,
        features.stack_canaries,
        features.nx_bit,
        features.relro in ("full", "partial"),
        features.fortify_source,
        features.code_signed,
        features.hardened_runtime,
    ]
    total = len(checks)
    passed = sum(checks)
    return SecurityScore(
        score=passed / total * 10.0,
        total=total,
        passed=passed,
        percentage=passed * 100 // total,
    )