import logging

from packme import bootimg, vendorbootimg
from packme.args import (
    normalize_vendor_ramdisks,
    validate_boot_args,
    validate_vendor_boot_args,
)
from packme.components import component_size, load_component
from packme.errors import ImageWriteError, MissingDtbError

_log = logging.getLogger(__name__)


def _open_output(path):
    try:
        return open(path, "wb")
    except OSError as e:
        raise ImageWriteError(path, e.strerror or e) from e


def build_boot_image(args):
    validate_boot_args(args)

    kernel = load_component("kernel", args.kernel)
    ramdisk = load_component("ramdisk", args.ramdisk)
    second = load_component("second", args.second)
    recovery_dtbo = load_component("recovery_dtbo", args.recovery_dtbo)
    dtb = load_component("dtb", args.dtb)

    if bootimg.needs_dtb(args.header_version) and component_size(dtb) == 0:
        raise MissingDtbError(args.header_version)

    # v3 and later carry no boot id
    boot_id = None
    try:
        with _open_output(args.output) as out:
            if bootimg.is_unified(args.header_version):
                bootimg.write_unified_header(out, args, kernel, ramdisk)
            else:
                boot_id = bootimg.write_legacy_header(
                    out, args, kernel, ramdisk, second, recovery_dtbo, dtb)
            bootimg.write_boot_sections(
                out, args, kernel, ramdisk, second, recovery_dtbo, dtb)
            size = out.tell()
    except OSError as e:
        # close() flushes, so a full disk can surface only here
        raise ImageWriteError(args.output, e.strerror or e) from e
    _log.info("wrote boot image v%d to %s (%d bytes)",
              args.header_version, args.output, size)
    return boot_id


def build_vendor_boot_image(args):
    fragments = normalize_vendor_ramdisks(args)
    validate_vendor_boot_args(args, fragments)

    dtb = load_component("dtb", args.dtb)
    if args.header_version > 3:
        write = _load_vendor_v4(args, fragments, dtb)
    else:
        write = _load_vendor_v3(args, dtb)

    try:
        with _open_output(args.output) as out:
            count = write(out)
            size = out.tell()
    except OSError as e:
        raise ImageWriteError(args.output, e.strerror or e) from e
    _log.info("wrote vendor boot image v%d to %s (%d bytes)",
              args.header_version, args.output, size)
    return count


def _load_vendor_v3(args, dtb):
    vendor_ramdisk = load_component("vendor_ramdisk", args.vendor_ramdisk)

    def write(out):
        vendorbootimg.write_vendor_header(
            out, args, component_size(vendor_ramdisk), dtb)
        vendorbootimg.write_v3_sections(out, args, vendor_ramdisk, dtb)
        return 0 if vendor_ramdisk is None else 1

    return write


def _load_vendor_v4(args, fragments, dtb):
    loaded = [
        (entry, load_component(f"vendor ramdisk '{entry.name}'", entry.path))
        for entry in fragments
    ]
    bootconfig = load_component("bootconfig", args.bootconfig)
    total = sum(component_size(component) for _, component in loaded)

    def write(out):
        vendorbootimg.write_vendor_header(
            out, args, total, dtb, bootconfig, entry_count=len(loaded))
        vendorbootimg.write_v4_sections(out, args, loaded, dtb, bootconfig)
        return len(loaded)

    return write
