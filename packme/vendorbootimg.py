import logging
from dataclasses import dataclass
from typing import Tuple

from packme.args import (
    BOOT_NAME_SIZE,
    VENDOR_BOOT_ARGS_SIZE,
    VENDOR_RAMDISK_NAME_SIZE,
)
from packme.components import component_data, component_size
from packme.primitives import (
    load_address,
    pad_file,
    write_asciiz,
    write_string,
    write_u32,
    write_u64,
)

_log = logging.getLogger(__name__)

VENDOR_BOOT_MAGIC = b"VNDRBOOT"
VENDOR_BOOT_IMAGE_HEADER_V3_SIZE = 2112
VENDOR_BOOT_IMAGE_HEADER_V4_SIZE = 2128
VENDOR_RAMDISK_TABLE_ENTRY_V4_SIZE = 108


@dataclass(frozen=True)
class RamdiskTableEntry:
    size: int
    offset: int
    type: int
    name: str
    board_id: Tuple[int, ...]


def build_table(fragments):
    # fragments are packed back to back, so offsets are plain running sums
    rows = []
    offset = 0
    for entry, component in fragments:
        size = component_size(component)
        rows.append(RamdiskTableEntry(size, offset, int(entry.type), entry.name,
                                      tuple(entry.board_id)))
        offset += size
    return rows


def write_vendor_header(out, args, ramdisk_total_size, dtb, bootconfig=None,
                        entry_count=0):
    v4 = args.header_version > 3

    out.write(VENDOR_BOOT_MAGIC)
    write_u32(out, args.header_version)
    write_u32(out, args.page_size)
    write_u32(out, load_address(args.base, args.kernel_offset))
    write_u32(out, load_address(args.base, args.ramdisk_offset))
    write_u32(out, ramdisk_total_size)
    write_string(out, args.vendor_cmdline, VENDOR_BOOT_ARGS_SIZE)
    write_u32(out, load_address(args.base, args.tags_offset))
    write_asciiz(out, args.board, BOOT_NAME_SIZE)
    write_u32(out, VENDOR_BOOT_IMAGE_HEADER_V4_SIZE if v4
              else VENDOR_BOOT_IMAGE_HEADER_V3_SIZE)
    write_u32(out, component_size(dtb))
    write_u64(out, load_address(args.base, args.dtb_offset))

    if v4:
        write_u32(out, entry_count * VENDOR_RAMDISK_TABLE_ENTRY_V4_SIZE)
        write_u32(out, entry_count)
        write_u32(out, VENDOR_RAMDISK_TABLE_ENTRY_V4_SIZE)
        write_u32(out, component_size(bootconfig))

    _log.debug("vendor boot header v%d: %d bytes before padding",
               args.header_version, out.tell())
    pad_file(out, args.page_size)


def _write_padded(out, component, page_size):
    if component is None:
        return
    _log.debug("%s: %d bytes at offset %d", component.name, component.size,
               out.tell())
    out.write(component_data(component))
    pad_file(out, page_size)


def write_v3_sections(out, args, vendor_ramdisk, dtb):
    _write_padded(out, vendor_ramdisk, args.page_size)
    _write_padded(out, dtb, args.page_size)


def write_table(out, rows):
    for row in rows:
        write_u32(out, row.size)
        write_u32(out, row.offset)
        write_u32(out, row.type)
        write_asciiz(out, row.name, VENDOR_RAMDISK_NAME_SIZE)
        for word in row.board_id:
            write_u32(out, word)


def write_v4_sections(out, args, fragments, dtb, bootconfig):
    # ramdisk blob, DTB, ramdisk table, bootconfig
    start = out.tell()
    for _, component in fragments:
        out.write(component_data(component))
    _log.debug("vendor ramdisk blob: %d fragments, %d bytes at offset %d",
               len(fragments), out.tell() - start, start)
    pad_file(out, args.page_size)

    _write_padded(out, dtb, args.page_size)

    write_table(out, build_table(fragments))
    pad_file(out, args.page_size)

    _write_padded(out, bootconfig, args.page_size)
