import logging

from packme.args import BOOT_ARGS_SIZE, BOOT_EXTRA_ARGS_SIZE, BOOT_NAME_SIZE
from packme.components import component_data, component_size
from packme.digest import BOOT_ID_SIZE, compute_boot_id
from packme.primitives import (
    as_bytes,
    load_address,
    num_pages,
    pad_file,
    write_asciiz,
    write_string,
    write_u32,
    write_u64,
)

_log = logging.getLogger(__name__)

BOOT_MAGIC = b"ANDROID!"
BOOT_IMAGE_HEADER_V1_SIZE = 1648
BOOT_IMAGE_HEADER_V2_SIZE = 1660
BOOT_IMAGE_HEADER_V3_SIZE = 1580
BOOT_IMAGE_HEADER_V4_SIZE = 1584
BOOT_IMAGE_HEADER_V3_PAGESIZE = 4096


def is_unified(header_version):
    return header_version >= 3


def header_alignment(args):
    if is_unified(args.header_version):
        return BOOT_IMAGE_HEADER_V3_PAGESIZE
    return args.page_size


def needs_dtb(header_version):
    # only the v2 layout carries a DTB section
    return header_version == 2


def recovery_dtbo_offset(args, kernel, ramdisk, second):
    pages = 1  # header
    for component in (kernel, ramdisk, second):
        pages += num_pages(component_size(component), args.page_size)
    return args.page_size * pages


def write_unified_header(out, args, kernel, ramdisk):
    header_size = (BOOT_IMAGE_HEADER_V4_SIZE if args.header_version > 3
                   else BOOT_IMAGE_HEADER_V3_SIZE)

    out.write(BOOT_MAGIC)
    write_u32(out, component_size(kernel))
    write_u32(out, component_size(ramdisk))
    write_u32(out, args.packed_os_version)
    write_u32(out, header_size)
    for _ in range(4):
        write_u32(out, 0)  # reserved
    write_u32(out, args.header_version)
    # v3+ keeps the whole command line in one field
    write_string(out, args.cmdline, BOOT_ARGS_SIZE + BOOT_EXTRA_ARGS_SIZE)
    if args.header_version > 3:
        write_u32(out, 0)  # boot_signature_size

    _log.debug("boot header v%d: %d bytes before padding",
               args.header_version, out.tell())
    pad_file(out, BOOT_IMAGE_HEADER_V3_PAGESIZE)


def write_legacy_header(out, args, kernel, ramdisk, second, recovery_dtbo, dtb):
    cmdline = as_bytes(args.cmdline)

    out.write(BOOT_MAGIC)
    write_u32(out, component_size(kernel))
    write_u32(out, load_address(args.base, args.kernel_offset))
    write_u32(out, component_size(ramdisk))
    write_u32(out, load_address(args.base, args.ramdisk_offset)
              if ramdisk is not None else 0)
    write_u32(out, component_size(second))
    write_u32(out, load_address(args.base, args.second_offset)
              if second is not None else 0)
    write_u32(out, load_address(args.base, args.tags_offset))
    write_u32(out, args.page_size)
    write_u32(out, args.header_version)
    write_u32(out, args.packed_os_version)
    write_asciiz(out, args.board, BOOT_NAME_SIZE)
    write_asciiz(out, cmdline, BOOT_ARGS_SIZE)

    boot_id = compute_boot_id(kernel, ramdisk, second, recovery_dtbo, dtb,
                              args.header_version)
    write_string(out, boot_id, BOOT_ID_SIZE)
    # whatever did not fit in the first field, minus its terminator slot
    write_string(out, cmdline[BOOT_ARGS_SIZE - 1:], BOOT_EXTRA_ARGS_SIZE)

    if args.header_version > 0:
        write_u32(out, component_size(recovery_dtbo))
        if recovery_dtbo is not None:
            write_u64(out, recovery_dtbo_offset(args, kernel, ramdisk, second))
        else:
            write_u64(out, 0)

    if args.header_version == 1:
        write_u32(out, BOOT_IMAGE_HEADER_V1_SIZE)
    elif args.header_version == 2:
        write_u32(out, BOOT_IMAGE_HEADER_V2_SIZE)

    if args.header_version > 1:
        write_u32(out, component_size(dtb))
        write_u32(out, load_address(args.base, args.dtb_offset))

    _log.debug("boot header v%d: %d bytes before padding",
               args.header_version, out.tell())
    pad_file(out, args.page_size)
    return boot_id


def write_section(out, component, alignment):
    if component is None:
        return
    _log.debug("%s: %d bytes at offset %d", component.name, component.size,
               out.tell())
    out.write(component_data(component))
    pad_file(out, alignment)


def write_boot_sections(out, args, kernel, ramdisk, second, recovery_dtbo, dtb):
    alignment = header_alignment(args)
    write_section(out, kernel, alignment)
    write_section(out, ramdisk, alignment)
    write_section(out, second, alignment)
    if 0 < args.header_version < 3:
        write_section(out, recovery_dtbo, alignment)
    if args.header_version == 2:
        write_section(out, dtb, alignment)
