import struct


def _pack(fmt, value):
    try:
        return struct.pack(fmt, value)
    except struct.error as e:
        raise ValueError(f"{value!r} does not fit {fmt}: {e}") from e


def write_u32(out, value):
    out.write(_pack("<I", value))


def write_u64(out, value):
    out.write(_pack("<Q", value))


def as_bytes(value):
    if isinstance(value, str):
        # argv bytes that are not UTF-8 arrive surrogate-escaped
        return value.encode(errors="surrogateescape")
    return bytes(value)


def write_string(out, value, size):
    data = as_bytes(value)[:size]
    out.write(data.ljust(size, b"\x00"))


def write_asciiz(out, value, size):
    write_string(out, as_bytes(value)[:size - 1], size)


def pad_file(out, alignment):
    if alignment == 0:
        return
    pad = (alignment - out.tell() % alignment) % alignment
    out.write(b"\x00" * pad)


def num_pages(size, page_size):
    return (size + page_size - 1) // page_size


def load_address(base, offset):
    # header address fields are u32; the sum wraps like the bootloader's
    return (base + offset) & 0xFFFFFFFF
