import argparse
import logging
import sys

from packme.args import (
    DEFAULT_BASE,
    DEFAULT_DTB_OFFSET,
    DEFAULT_KERNEL_OFFSET,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RAMDISK_OFFSET,
    DEFAULT_SECOND_OFFSET,
    DEFAULT_TAGS_OFFSET,
    PAGE_SIZES,
    BootImageArgs,
    RamdiskType,
    VendorBootArgs,
    VendorRamdiskEntry,
)
from packme.assemble import build_boot_image, build_vendor_boot_image
from packme.digest import format_boot_id
from packme.errors import PackmeError, ValidationError
from packme.osversion import parse_os_patch_level, parse_os_version

RAMDISK_TYPE_ARG = "--ramdisk_type"
RAMDISK_NAME_ARG = "--ramdisk_name"
RAMDISK_FRAGMENT_ARG = "--vendor_ramdisk_fragment"

EXIT_VALIDATION = 1
EXIT_IO = 3

VENDOR_BOOT_V4_USAGE = """vendor boot version 4 arguments:
  --ramdisk_type {none,platform,recovery,dlkm}
                        specify the type of the ramdisk
  --ramdisk_name NAME
                        specify the name of the ramdisk
  --vendor_ramdisk_fragment VENDOR_RAMDISK_FILE
                        path to the vendor ramdisk file

  These options can be specified multiple times, where each vendor ramdisk
  option group ends with a --vendor_ramdisk_fragment option.
  Each option group appends an additional ramdisk to the vendor boot image.
"""


def parse_int(x):
    return int(x, 0)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="packme",
        description="Assemble Android boot and vendor boot images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=VENDOR_BOOT_V4_USAGE,
    )
    parser.add_argument("--kernel", help="path to the kernel")
    parser.add_argument("--ramdisk", help="path to the ramdisk")
    parser.add_argument("--second", help="path to the second bootloader")
    parser.add_argument("--dtb", help="path to the dtb")
    parser.add_argument("--recovery_dtbo", help="path to the recovery DTBO")
    parser.add_argument("--cmdline", default="",
                        help="kernel command line arguments")
    parser.add_argument("--vendor_cmdline", default="",
                        help="vendor boot kernel command line arguments")
    parser.add_argument("--base", type=parse_int, default=DEFAULT_BASE,
                        help="base address")
    parser.add_argument("--kernel_offset", type=parse_int,
                        default=DEFAULT_KERNEL_OFFSET, help="kernel offset")
    parser.add_argument("--ramdisk_offset", type=parse_int,
                        default=DEFAULT_RAMDISK_OFFSET, help="ramdisk offset")
    parser.add_argument("--second_offset", type=parse_int,
                        default=DEFAULT_SECOND_OFFSET,
                        help="second bootloader offset")
    parser.add_argument("--dtb_offset", type=parse_int,
                        default=DEFAULT_DTB_OFFSET, help="dtb offset")
    parser.add_argument("--os_version", type=parse_os_version, default=0,
                        help="operating system version")
    parser.add_argument("--os_patch_level", type=parse_os_patch_level,
                        default=0, help="operating system patch level")
    parser.add_argument("--tags_offset", type=parse_int,
                        default=DEFAULT_TAGS_OFFSET, help="tags offset")
    parser.add_argument("--board", default="", help="board name")
    parser.add_argument("--pagesize", type=parse_int, choices=PAGE_SIZES,
                        default=DEFAULT_PAGE_SIZE,
                        help="page size (default is 2048)")
    parser.add_argument("--id", action="store_true",
                        help="print the image ID on standard output")
    parser.add_argument("--header_version", type=parse_int,
                        help="boot image header version "
                        "(default is 3 for vendor_boot and 4 for boot)")
    parser.add_argument("-o", "--out", "--output", "--boot", dest="output",
                        help="output file name")
    parser.add_argument("--vendor_boot", help="vendor boot output file name")
    parser.add_argument("--vendor_ramdisk", help="path to the vendor ramdisk")
    parser.add_argument("--vendor_bootconfig",
                        help="path to the vendor bootconfig file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log layout details")
    return parser


def _finish_fragment(current, entries):
    missing = [opt for key, opt in (("type", RAMDISK_TYPE_ARG),
                                    ("name", RAMDISK_NAME_ARG),
                                    ("path", RAMDISK_FRAGMENT_ARG))
               if key not in current]
    if missing:
        raise ValidationError(
            "Incomplete vendor ramdisk entry: missing " + " ".join(missing))
    entries.append(VendorRamdiskEntry(
        path=current["path"], type=current["type"], name=current["name"]))


def parse_fragment_args(tokens):
    # groups start at --ramdisk_type; any other leftover argument is rejected
    keys = {RAMDISK_NAME_ARG: "name", RAMDISK_FRAGMENT_ARG: "path"}
    entries = []
    current = {}
    tokens = list(tokens)
    while tokens:
        option = tokens.pop(0)
        if "=" in option and option.startswith("--"):
            option, value = option.split("=", 1)
            tokens.insert(0, value)
        if option != RAMDISK_TYPE_ARG and option not in keys:
            raise ValidationError(f"Unrecognized argument: {option}")
        if not tokens:
            raise ValidationError(f"{option} requires an argument")
        value = tokens.pop(0)

        if option == RAMDISK_TYPE_ARG:
            if current:
                _finish_fragment(current, entries)
            try:
                current = {"type": RamdiskType.parse(value)}
            except ValueError as e:
                raise ValidationError(str(e)) from e
            continue

        key = keys[option]
        if "type" not in current:
            raise ValidationError(f"{option} provided before {RAMDISK_TYPE_ARG}")
        if key in current:
            raise ValidationError(f"Duplicate {option} in current vendor entry")
        current[key] = value

    if current:
        _finish_fragment(current, entries)
    return entries


def make_boot_args(ns):
    return BootImageArgs(
        output=ns.output,
        kernel=ns.kernel,
        ramdisk=ns.ramdisk,
        second=ns.second,
        dtb=ns.dtb,
        recovery_dtbo=ns.recovery_dtbo,
        cmdline=ns.cmdline,
        base=ns.base,
        kernel_offset=ns.kernel_offset,
        ramdisk_offset=ns.ramdisk_offset,
        second_offset=ns.second_offset,
        dtb_offset=ns.dtb_offset,
        tags_offset=ns.tags_offset,
        os_version=ns.os_version,
        os_patch_level=ns.os_patch_level,
        board=ns.board,
        page_size=ns.pagesize,
        header_version=4 if ns.header_version is None else ns.header_version,
    )


def make_vendor_args(ns, fragments):
    if fragments:
        # fragments only exist in the v4 layout
        header_version = 4
    elif ns.header_version is None:
        header_version = 3
    else:
        header_version = ns.header_version
    return VendorBootArgs(
        output=ns.vendor_boot,
        dtb=ns.dtb,
        bootconfig=ns.vendor_bootconfig,
        vendor_ramdisk=ns.vendor_ramdisk,
        vendor_cmdline=ns.vendor_cmdline,
        ramdisks=fragments,
        base=ns.base,
        kernel_offset=ns.kernel_offset,
        ramdisk_offset=ns.ramdisk_offset,
        dtb_offset=ns.dtb_offset,
        tags_offset=ns.tags_offset,
        board=ns.board,
        page_size=ns.pagesize,
        header_version=header_version,
    )


def run(ns, extra):
    fragments = parse_fragment_args(extra)
    if not ns.output and not ns.vendor_boot:
        raise ValidationError("Either --boot or --vendor_boot is required")

    if ns.vendor_boot and not fragments and not ns.vendor_ramdisk:
        raise ValidationError("At least one vendor ramdisk is needed")

    if fragments or ns.vendor_ramdisk:
        vendor_args = make_vendor_args(ns, fragments)
        count = build_vendor_boot_image(vendor_args)
        print(f"Wrote vendor boot image v{vendor_args.header_version} "
              f"with {count} ramdisk(s) to {vendor_args.output}")
        return

    boot_args = make_boot_args(ns)
    boot_id = build_boot_image(boot_args)
    print(f"Wrote boot image v{boot_args.header_version} to {boot_args.output}")
    if ns.id and boot_id is not None:
        print(format_boot_id(boot_id))


def main(argv=None):
    parser = build_parser()
    ns, extra = parser.parse_known_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        run(ns, extra)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_VALIDATION
    except PackmeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_IO
    return 0


if __name__ == "__main__":
    sys.exit(main())
