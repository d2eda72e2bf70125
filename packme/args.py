from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

from packme.errors import ValidationError
from packme.primitives import as_bytes

PAGE_SIZES = (2048, 4096, 8192, 16384)

BOOT_NAME_SIZE = 16
BOOT_ARGS_SIZE = 512
BOOT_EXTRA_ARGS_SIZE = 1024
VENDOR_BOOT_ARGS_SIZE = 2048
VENDOR_RAMDISK_NAME_SIZE = 32
VENDOR_RAMDISK_TABLE_ENTRY_BOARD_ID_SIZE = 16

MAX_BOOT_HEADER_VERSION = 4
MIN_VENDOR_HEADER_VERSION = 3
MAX_VENDOR_HEADER_VERSION = 4

# os_version is packed as A:7 B:7 C:7, os_patch_level as Y:7 M:4
OS_VERSION_BITS = 21
OS_PATCH_LEVEL_BITS = 11

VENDOR_RAMDISK_BLOCKLISTED_NAMES = frozenset({"default"})

DEFAULT_BASE = 0x10000000
DEFAULT_KERNEL_OFFSET = 0x00008000
DEFAULT_RAMDISK_OFFSET = 0x01000000
DEFAULT_SECOND_OFFSET = 0x00F00000
DEFAULT_DTB_OFFSET = 0x01F00000
DEFAULT_TAGS_OFFSET = 0x00000100
DEFAULT_PAGE_SIZE = 2048


class RamdiskType(IntEnum):
    NONE = 0
    PLATFORM = 1
    RECOVERY = 2
    DLKM = 3

    @classmethod
    def parse(cls, text):
        try:
            return cls[text.upper()]
        except KeyError:
            pass
        try:
            return cls(int(text, 0))
        except ValueError:
            raise ValueError(f"Unknown ramdisk type: {text}") from None


def _zero_board_id():
    return (0,) * VENDOR_RAMDISK_TABLE_ENTRY_BOARD_ID_SIZE


@dataclass
class VendorRamdiskEntry:
    path: Optional[str]
    type: RamdiskType
    name: str
    board_id: Tuple[int, ...] = field(default_factory=_zero_board_id)


@dataclass
class BootImageArgs:
    output: Optional[str] = None
    kernel: Optional[str] = None
    ramdisk: Optional[str] = None
    second: Optional[str] = None
    dtb: Optional[str] = None
    recovery_dtbo: Optional[str] = None
    cmdline: str = ""
    base: int = DEFAULT_BASE
    kernel_offset: int = DEFAULT_KERNEL_OFFSET
    ramdisk_offset: int = DEFAULT_RAMDISK_OFFSET
    second_offset: int = DEFAULT_SECOND_OFFSET
    dtb_offset: int = DEFAULT_DTB_OFFSET
    tags_offset: int = DEFAULT_TAGS_OFFSET
    # already packed by the caller: os_version is A<<14|B<<7|C, patch level Y<<4|M
    os_version: int = 0
    os_patch_level: int = 0
    board: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    header_version: int = 4

    @property
    def packed_os_version(self):
        return (self.os_version << 11) | self.os_patch_level


@dataclass
class VendorBootArgs:
    output: Optional[str] = None
    dtb: Optional[str] = None
    bootconfig: Optional[str] = None
    vendor_ramdisk: Optional[str] = None
    vendor_cmdline: str = ""
    ramdisks: List[VendorRamdiskEntry] = field(default_factory=list)
    base: int = DEFAULT_BASE
    kernel_offset: int = DEFAULT_KERNEL_OFFSET
    ramdisk_offset: int = DEFAULT_RAMDISK_OFFSET
    dtb_offset: int = DEFAULT_DTB_OFFSET
    tags_offset: int = DEFAULT_TAGS_OFFSET
    board: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    header_version: int = 3


def _check_length(label, value, limit):
    size = len(as_bytes(value))
    if size > limit:
        raise ValidationError(f"{label} too long: max {limit} bytes, got {size}")


def _check_common(args):
    if not args.output:
        raise ValidationError("An output path is required")
    if args.page_size not in PAGE_SIZES:
        raise ValidationError(f"Invalid page size: {args.page_size}")
    _check_length("Board name", args.board, BOOT_NAME_SIZE - 1)


def validate_boot_args(args):
    _check_common(args)
    if not 0 <= args.header_version <= MAX_BOOT_HEADER_VERSION:
        raise ValidationError(
            f"Boot header version {args.header_version} not supported"
        )
    if args.header_version < 3:
        # 511 bytes plus NUL in the first field, the rest in the extra field
        cmdline_limit = BOOT_ARGS_SIZE - 1 + BOOT_EXTRA_ARGS_SIZE
    else:
        cmdline_limit = BOOT_ARGS_SIZE + BOOT_EXTRA_ARGS_SIZE
    _check_length("Kernel command line", args.cmdline, cmdline_limit)
    if not 0 <= args.os_version < 1 << OS_VERSION_BITS:
        raise ValidationError(f"Invalid os version: {args.os_version:#x}")
    if not 0 <= args.os_patch_level < 1 << OS_PATCH_LEVEL_BITS:
        raise ValidationError(f"Invalid os patch level: {args.os_patch_level:#x}")


def find_invalid_fragment_name(entries):
    seen = set()
    for entry in entries:
        if entry.name in VENDOR_RAMDISK_BLOCKLISTED_NAMES or entry.name in seen:
            return entry.name
        seen.add(entry.name)
    return None


def normalize_vendor_ramdisks(args):
    # from v4 on a lone --vendor_ramdisk becomes an unnamed platform fragment
    fragments = list(args.ramdisks)
    if args.header_version > 3 and args.vendor_ramdisk:
        fragments.insert(0, VendorRamdiskEntry(
            path=args.vendor_ramdisk, type=RamdiskType.PLATFORM, name=""))
    return fragments


def validate_vendor_boot_args(args, fragments):
    _check_common(args)
    if not MIN_VENDOR_HEADER_VERSION <= args.header_version <= MAX_VENDOR_HEADER_VERSION:
        raise ValidationError(
            f"Vendor boot header version {args.header_version} not supported"
        )
    _check_length("Vendor command line", args.vendor_cmdline, VENDOR_BOOT_ARGS_SIZE)
    for entry in fragments:
        _check_length("Vendor ramdisk name", entry.name, VENDOR_RAMDISK_NAME_SIZE - 1)
        if len(entry.board_id) != VENDOR_RAMDISK_TABLE_ENTRY_BOARD_ID_SIZE:
            raise ValidationError(
                f"board_id size must be {VENDOR_RAMDISK_TABLE_ENTRY_BOARD_ID_SIZE}"
            )
    name = find_invalid_fragment_name(fragments)
    if name is not None:
        if name in VENDOR_RAMDISK_BLOCKLISTED_NAMES:
            raise ValidationError(f'Blocklisted vendor ramdisk name: "{name}"')
        raise ValidationError(f'Duplicated vendor ramdisk name: "{name}"')
