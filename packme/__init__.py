from packme.args import (
    BootImageArgs,
    RamdiskType,
    VendorBootArgs,
    VendorRamdiskEntry,
)
from packme.assemble import build_boot_image, build_vendor_boot_image
from packme.errors import (
    ComponentReadError,
    ImageWriteError,
    MissingDtbError,
    PackmeError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "BootImageArgs",
    "ComponentReadError",
    "ImageWriteError",
    "MissingDtbError",
    "PackmeError",
    "RamdiskType",
    "ValidationError",
    "VendorBootArgs",
    "VendorRamdiskEntry",
    "build_boot_image",
    "build_vendor_boot_image",
]
