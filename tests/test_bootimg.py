import hashlib
import io
import struct

import pytest

from conftest import cstr, u32, u64
from packme.args import BootImageArgs
from packme.assemble import build_boot_image
from packme.bootimg import (
    BOOT_MAGIC,
    header_alignment,
    recovery_dtbo_offset,
    write_boot_sections,
    write_legacy_header,
    write_unified_header,
)
from packme.components import Component
from packme.errors import ImageWriteError, MissingDtbError


def comp(name, size, fill=b"x"):
    return Component(name, name, fill * size)


def read(path):
    with open(path, "rb") as f:
        return f.read()


class TestUnifiedHeader:
    def test_v4_fields(self):
        args = BootImageArgs(header_version=4, cmdline="console=ttyS0",
                             os_version=1, os_patch_level=2, page_size=2048)
        out = io.BytesIO()
        write_unified_header(out, args, comp("kernel", 1000), comp("ramdisk", 500))
        hdr = out.getvalue()

        assert len(hdr) == 4096
        assert hdr[:8] == BOOT_MAGIC
        assert u32(hdr, 8) == 1000
        assert u32(hdr, 12) == 500
        assert u32(hdr, 16) == (1 << 11) | 2
        assert u32(hdr, 20) == 1584
        assert hdr[24:40] == b"\x00" * 16
        assert u32(hdr, 40) == 4
        assert cstr(hdr, 44, 1536) == b"console=ttyS0"
        assert u32(hdr, 1580) == 0
        assert hdr[1584:] == b"\x00" * (4096 - 1584)

    def test_v3_size_and_no_signature_field(self):
        args = BootImageArgs(header_version=3, page_size=16384)
        out = io.BytesIO()
        write_unified_header(out, args, None, None)
        hdr = out.getvalue()
        # padded to 4096 whatever the page size
        assert len(hdr) == 4096
        assert u32(hdr, 20) == 1580
        assert u32(hdr, 8) == 0 and u32(hdr, 12) == 0

    def test_full_cmdline_is_contiguous(self):
        cmdline = "a" * 600 + "b" * 900
        args = BootImageArgs(header_version=3, cmdline=cmdline)
        out = io.BytesIO()
        write_unified_header(out, args, None, None)
        assert out.getvalue()[44:44 + 1500] == cmdline.encode()


class TestLegacyHeader:
    def write(self, args, kernel=None, ramdisk=None, second=None,
              recovery_dtbo=None, dtb=None):
        out = io.BytesIO()
        boot_id = write_legacy_header(out, args, kernel, ramdisk, second,
                                      recovery_dtbo, dtb)
        return out.getvalue(), boot_id

    def test_v0_fields(self):
        args = BootImageArgs(header_version=0, board="myboard", cmdline="quiet",
                             os_version=3, os_patch_level=4)
        hdr, boot_id = self.write(args, kernel=comp("kernel", 10),
                                  ramdisk=comp("ramdisk", 20))
        assert len(hdr) == 2048
        assert hdr[:8] == b"ANDROID!"
        assert u32(hdr, 8) == 10
        assert u32(hdr, 12) == 0x10008000
        assert u32(hdr, 16) == 20
        assert u32(hdr, 20) == 0x11000000
        assert u32(hdr, 24) == 0
        assert u32(hdr, 28) == 0  # no second
        assert u32(hdr, 32) == 0x10000100
        assert u32(hdr, 36) == 2048
        assert u32(hdr, 40) == 0
        assert u32(hdr, 44) == (3 << 11) | 4
        assert cstr(hdr, 48, 16) == b"myboard"
        assert cstr(hdr, 64, 512) == b"quiet"
        assert hdr[576:608] == boot_id
        assert hdr[608:1632] == b"\x00" * 1024
        # v0 stops after the extra cmdline
        assert hdr[1632:] == b"\x00" * (2048 - 1632)

    def test_absent_ramdisk_has_zero_address(self):
        hdr, _ = self.write(BootImageArgs(header_version=0))
        assert u32(hdr, 16) == 0
        assert u32(hdr, 20) == 0

    def test_empty_ramdisk_keeps_address(self):
        hdr, _ = self.write(BootImageArgs(header_version=0),
                            ramdisk=comp("ramdisk", 0))
        assert u32(hdr, 16) == 0
        assert u32(hdr, 20) == 0x11000000

    def test_second_address(self):
        hdr, _ = self.write(BootImageArgs(header_version=0),
                            second=comp("second", 5))
        assert u32(hdr, 24) == 5
        assert u32(hdr, 28) == 0x10F00000

    def test_cmdline_split(self):
        cmdline = "a" * 511 + "b" * 300
        hdr, _ = self.write(BootImageArgs(header_version=0, cmdline=cmdline))
        assert hdr[64:64 + 512] == b"a" * 511 + b"\x00"
        assert cstr(hdr, 608, 1024) == b"b" * 300

    def test_longest_legacy_cmdline_is_kept_whole(self):
        cmdline = "a" * 511 + "b" * 1024
        hdr, _ = self.write(BootImageArgs(header_version=0, cmdline=cmdline))
        assert hdr[64:64 + 512] == b"a" * 511 + b"\x00"
        assert hdr[608:1632] == b"b" * 1024

    def test_v1_recovery_dtbo(self):
        args = BootImageArgs(header_version=1, page_size=2048)
        hdr, _ = self.write(args, kernel=comp("kernel", 3000),
                            ramdisk=comp("ramdisk", 100),
                            recovery_dtbo=comp("recovery_dtbo", 77))
        assert u32(hdr, 1632) == 77
        assert u64(hdr, 1636) == 2048 * (1 + 2 + 1 + 0)
        assert u32(hdr, 1644) == 1648

    def test_v1_without_recovery_dtbo(self):
        hdr, _ = self.write(BootImageArgs(header_version=1),
                            kernel=comp("kernel", 3000))
        assert u32(hdr, 1632) == 0
        assert u64(hdr, 1636) == 0
        assert u32(hdr, 1644) == 1648

    def test_v2_dtb_fields(self):
        args = BootImageArgs(header_version=2, page_size=4096)
        hdr, boot_id = self.write(args, kernel=comp("kernel", 1),
                                  dtb=comp("dtb", 64, b"d"))
        assert len(hdr) == 4096
        assert u32(hdr, 1644) == 1660
        assert u32(hdr, 1648) == 64
        assert u32(hdr, 1652) == 0x11F00000
        expected = hashlib.sha1(
            b"x" + struct.pack("<I", 1) + b"\x00" * 12 + b"d" * 64
            + struct.pack("<I", 64)).digest()
        assert boot_id == expected + b"\x00" * 12


def test_recovery_dtbo_offset_counts_pages():
    args = BootImageArgs(page_size=4096)
    assert recovery_dtbo_offset(args, comp("k", 4096), comp("r", 1),
                                comp("s", 4097)) == 4096 * (1 + 1 + 1 + 2)
    assert recovery_dtbo_offset(args, None, None, None) == 4096


def test_header_alignment():
    assert header_alignment(BootImageArgs(header_version=3, page_size=2048)) == 4096
    assert header_alignment(BootImageArgs(header_version=4, page_size=16384)) == 4096
    assert header_alignment(BootImageArgs(header_version=2, page_size=8192)) == 8192


@pytest.mark.parametrize("version", [0, 1, 2, 3, 4])
def test_every_section_is_aligned(version):
    args = BootImageArgs(header_version=version, page_size=2048)
    alignment = header_alignment(args)
    ends = []
    components = dict(kernel=comp("kernel", 1234), ramdisk=comp("ramdisk", 1),
                      second=comp("second", 2049),
                      recovery_dtbo=comp("recovery_dtbo", 300),
                      dtb=comp("dtb", 5000))

    class Recorder(io.BytesIO):
        def write(self, data):
            n = super().write(data)
            ends.append(self.tell())
            return n

    rec = Recorder()
    write_boot_sections(rec, args, **components)
    # every section ends on a boundary once its padding is written
    assert rec.tell() % alignment == 0
    assert all(end % alignment == 0 for end in ends[1::2])


def test_scenario_a_v4_layout(make_file, out_path):
    args = BootImageArgs(
        output=out_path, header_version=4,
        kernel=make_file("kernel", b"K" * 1000),
        ramdisk=make_file("ramdisk", b"R" * 500),
    )
    assert build_boot_image(args) is None

    data = read(out_path)
    assert len(data) == 12288
    assert data[4096:5096] == b"K" * 1000
    assert data[5096:8192] == b"\x00" * 3096
    assert data[8192:8692] == b"R" * 500
    assert data[8692:] == b"\x00" * 3596


def test_unified_ignores_dtb_and_recovery_dtbo(make_file, out_path):
    args = BootImageArgs(
        output=out_path, header_version=3,
        kernel=make_file("kernel", b"K" * 10),
        dtb=make_file("dtb", b"D" * 10),
        recovery_dtbo=make_file("dtbo", b"O" * 10),
    )
    build_boot_image(args)
    assert len(read(out_path)) == 8192


def test_v2_layout(make_file, out_path):
    args = BootImageArgs(
        output=out_path, header_version=2, page_size=2048,
        kernel=make_file("kernel", b"K" * 3000),
        ramdisk=make_file("ramdisk", b"R" * 100),
        recovery_dtbo=make_file("dtbo", b"O" * 50),
        dtb=make_file("dtb", b"D" * 20),
    )
    boot_id = build_boot_image(args)
    data = read(out_path)

    assert data[576:608] == boot_id
    assert data[2048:5048] == b"K" * 3000
    assert data[6144:6244] == b"R" * 100
    dtbo_offset = u64(data, 1636)
    assert dtbo_offset == 8192
    assert data[dtbo_offset:dtbo_offset + 50] == b"O" * 50
    assert data[10240:10260] == b"D" * 20
    assert len(data) == 12288


def test_scenario_b_v2_without_dtb_fails(make_file, out_path):
    args = BootImageArgs(output=out_path, header_version=2,
                         kernel=make_file("kernel", b"K"))
    with pytest.raises(MissingDtbError):
        build_boot_image(args)
    with pytest.raises(FileNotFoundError):
        read(out_path)


def test_v2_with_empty_dtb_fails(make_file, out_path):
    args = BootImageArgs(output=out_path, header_version=2,
                         dtb=make_file("dtb", b""))
    with pytest.raises(MissingDtbError):
        build_boot_image(args)


def test_v1_without_dtb_is_fine(out_path):
    args = BootImageArgs(output=out_path, header_version=1)
    assert len(build_boot_image(args)) == 32
    assert len(read(out_path)) == 2048


def test_output_is_truncated(out_path):
    with open(out_path, "wb") as f:
        f.write(b"z" * 100000)
    build_boot_image(BootImageArgs(output=out_path, header_version=4))
    assert len(read(out_path)) == 4096


def test_same_inputs_same_bytes(make_file, tmp_path):
    kernel = make_file("kernel", bytes(range(256)) * 7)
    ramdisk = make_file("ramdisk", b"ramdisk")
    dtb = make_file("dtb", b"dtb")
    outputs = []
    for name in ("a.img", "b.img"):
        path = str(tmp_path / name)
        build_boot_image(BootImageArgs(output=path, header_version=2,
                                       kernel=kernel, ramdisk=ramdisk, dtb=dtb,
                                       cmdline="x=y", board="board"))
        outputs.append(read(path))
    assert outputs[0] == outputs[1]


def test_unwritable_output(tmp_path):
    args = BootImageArgs(output=str(tmp_path / "missing" / "out.img"))
    with pytest.raises(ImageWriteError):
        build_boot_image(args)
