# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import datetime

import pytest

from dicecert.der import (DERWriter, encode_length, encode_validity,
                          context_tag, TAG_SEQUENCE)
from dicecert.errors import EncodingError
from tests.derwalk import walk


@pytest.mark.parametrize("length, encoded", [
    (0, "00"),
    (0x7f, "7f"),
    (0x80, "8180"),
    (0xff, "81ff"),
    (0x100, "820100"),
    (0xffff, "82ffff"),
])
def test_encode_length(length, encoded):
    assert encode_length(length) == bytes.fromhex(encoded)


@pytest.mark.parametrize("length", [-1, 0x10000])
def test_encode_length_out_of_range(length):
    with pytest.raises(EncodingError):
        encode_length(length)


def test_context_tag():
    assert context_tag(0) == 0xa0
    assert context_tag(3) == 0xa3
    assert context_tag(6) == 0xa6
    assert context_tag(0, constructed=False) == 0x80


class TestPrimitives:

    def test_integer(self):
        w = DERWriter()
        assert w.write_integer(b'\x01\x02') == 4
        assert w.getvalue() == bytes.fromhex("02020102")

    def test_integer_pads_high_bit(self):
        w = DERWriter()
        assert w.write_integer(b'\x80\x01') == 5
        assert w.getvalue() == bytes.fromhex("0203008001")

    def test_integer_empty(self):
        with pytest.raises(EncodingError):
            DERWriter().write_integer(b'')

    def test_strings_boolean_null(self):
        w = DERWriter()
        w.write_octet_string(b'\xaa')
        w.write_bit_string(b'\x04')
        w.write_boolean(True)
        w.write_boolean(False)
        w.write_null()
        assert w.getvalue() == bytes.fromhex("0401aa"
                                             "03020004"
                                             "0101ff"
                                             "010100"
                                             "0500")

    def test_raw_oid(self):
        w = DERWriter()
        assert w.write_raw_oid_hex("0603551D0E") == 5
        assert w.getvalue() == bytes.fromhex("0603551d0e")

    @pytest.mark.parametrize("oid_hex", ["0403551D0E", "0604551D0E", "06",
                                         "zz"])
    def test_raw_oid_invalid(self, oid_hex):
        with pytest.raises(EncodingError):
            DERWriter().write_raw_oid_hex(oid_hex)

    def test_raw_bytes(self):
        w = DERWriter()
        assert w.write_raw_bytes(bytearray(b'\x30\x00')) == 2
        assert w.getvalue() == b'\x30\x00'


class TestBackpatch:

    def test_short_form(self):
        w = DERWriter()
        with w.sequence():
            w.write_octet_string(b'\x00' * 3)
        assert w.getvalue() == bytes.fromhex("30050403000000")

    def test_long_form_shifts_content(self):
        content = bytes(range(200))
        w = DERWriter()
        len_offset = w.open(TAG_SEQUENCE)
        w.write(content)
        assert w.close(len_offset) == 1
        assert w.getvalue() == bytes.fromhex("3081c8") + content

    def test_two_byte_length(self):
        content = b'\x55' * 0x1234
        w = DERWriter()
        with w.sequence():
            w.write(content)
        assert w.getvalue()[:4] == bytes.fromhex("30821234")
        assert w.getvalue()[4:] == content

    def test_nested(self):
        w = DERWriter()
        with w.sequence():
            w.write_null()
            with w.field(context_tag(3)):
                with w.sequence():
                    w.write_octet_string(b'\x01' * 130)
            w.write_null()
        der = w.getvalue()
        walk(der)
        assert der[:3] == bytes.fromhex("30818f")
        assert der[5:8] == bytes.fromhex("a38188")

    def test_backpatch_length_returns_inserted(self):
        w = DERWriter()
        w.write(b'\x30\x00')
        w.write(b'\x11' * 0x100)
        assert w.backpatch_length(1, 0x100, 2) == 2
        assert bytes(w.buf[:4]) == bytes.fromhex("30820100")
        assert len(w) == 0x104

    def test_backpatch_past_buffer(self):
        w = DERWriter()
        w.write(b'\x30\x00\x01')
        with pytest.raises(EncodingError):
            w.backpatch_length(1, 5, 2)

    def test_length_overflow(self):
        w = DERWriter()
        w.open(TAG_SEQUENCE)
        w.write(bytes(0x10000))
        with pytest.raises(EncodingError):
            w.close()

    def test_unbalanced(self):
        w = DERWriter()
        with pytest.raises(EncodingError):
            w.close()
        w.open(TAG_SEQUENCE)
        with pytest.raises(EncodingError):
            w.getvalue()

    def test_close_out_of_order(self):
        w = DERWriter()
        outer = w.open(TAG_SEQUENCE)
        w.open(TAG_SEQUENCE)
        with pytest.raises(EncodingError):
            w.close(outer)


class TestInsert:

    def test_insert_inside_open_field(self):
        w = DERWriter()
        with w.sequence():
            w.write_null()
            splice_at = len(w)
            w.write_null()
            w.insert(splice_at, bytes.fromhex("020101"))
        assert w.getvalue() == bytes.fromhex("3007" "0500" "020101" "0500")

    def test_insert_before_open_length(self):
        w = DERWriter()
        w.open(TAG_SEQUENCE)
        with pytest.raises(EncodingError):
            w.insert(1, b'\x00')

    def test_insert_out_of_range(self):
        w = DERWriter()
        w.write(b'\x00')
        with pytest.raises(EncodingError):
            w.insert(2, b'\x00')


def test_max_size():
    w = DERWriter(max_size=4)
    w.write(b'\x00' * 4)
    with pytest.raises(EncodingError):
        w.write(b'\x00')


def test_max_size_counts_length_octets():
    w = DERWriter(max_size=130)
    with pytest.raises(EncodingError):
        with w.sequence():
            w.write(b'\x00' * 128)


class TestValidity:

    def test_utc_time(self):
        der = encode_validity(datetime.datetime(2024, 1, 1),
                              datetime.datetime(2049, 12, 31, 23, 59, 59))
        assert der == (bytes.fromhex("301e170d") + b"240101000000Z" +
                       bytes.fromhex("170d") + b"491231235959Z")

    def test_generalized_time(self):
        der = encode_validity(datetime.datetime(1949, 6, 1),
                              datetime.datetime(9999, 12, 31, 23, 59, 59))
        assert der == (bytes.fromhex("3022180f") + b"19490601000000Z" +
                       bytes.fromhex("180f") + b"99991231235959Z")

    def test_aware_datetime_converted_to_utc(self):
        tz = datetime.timezone(datetime.timedelta(hours=2))
        der = encode_validity(datetime.datetime(2024, 1, 1, 2, tzinfo=tz),
                              datetime.datetime(2025, 1, 1, tzinfo=tz))
        assert b"240101000000Z" in der
        assert b"241231220000Z" in der

    def test_reversed(self):
        with pytest.raises(EncodingError):
            encode_validity(datetime.datetime(2025, 1, 1),
                            datetime.datetime(2024, 1, 1))
