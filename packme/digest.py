import hashlib
import struct

from packme.components import component_size

BOOT_ID_SIZE = 32
_ABSENT = b"\x00" * 4


def _update(sha, component):
    if component is None:
        sha.update(_ABSENT)
        return
    sha.update(component.data)
    sha.update(struct.pack("<I", component_size(component)))


def compute_boot_id(kernel, ramdisk, second, recovery_dtbo, dtb, header_version):
    """Fingerprint the legacy-header components into the 32-byte id field.

    The five SHA-1 words are stored as raw big-endian bytes, which is what
    digest() returns, followed by 12 zero bytes. The field is never hex text.
    """
    sha = hashlib.sha1()
    _update(sha, kernel)
    _update(sha, ramdisk)
    _update(sha, second)
    if header_version > 0:
        _update(sha, recovery_dtbo)
    if header_version > 1:
        _update(sha, dtb)
    return sha.digest().ljust(BOOT_ID_SIZE, b"\x00")


def format_boot_id(boot_id):
    return "0x" + boot_id.hex()
