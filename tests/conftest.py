import struct

import pytest


def u32(buf, off):
    return struct.unpack_from("<I", buf, off)[0]


def u64(buf, off):
    return struct.unpack_from("<Q", buf, off)[0]


def cstr(buf, off, size):
    return bytes(buf[off:off + size]).split(b"\x00", 1)[0]


@pytest.fixture
def make_file(tmp_path):
    """Write `data` to tmp_path/name and return the path as a string."""
    def make(name, data):
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)
    return make


@pytest.fixture
def out_path(tmp_path):
    return str(tmp_path / "out.img")
