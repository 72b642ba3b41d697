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

"""
Minimal DER encoder.

Only the handful of ASN.1 types needed to lay out an X.509 certificate are
supported, and only encoding is implemented. Constructed fields are written
tag first with a one byte length placeholder; once the content is known the
placeholder is back-patched, and long form lengths are made room for by
moving the content to the right.
"""

import datetime
from contextlib import contextmanager

from .errors import EncodingError

TAG_BOOLEAN = 0x01
TAG_INTEGER = 0x02
TAG_BIT_STRING = 0x03
TAG_OCTET_STRING = 0x04
TAG_NULL = 0x05
TAG_OID = 0x06
TAG_UTC_TIME = 0x17
TAG_GENERALIZED_TIME = 0x18
TAG_SEQUENCE = 0x30

CONTEXT_SPECIFIC = 0x80
CONSTRUCTED = 0x20

SHORT_FORM_MAX = 0x7f
LONG_FORM = 0x80
MAX_CONTENT_LEN = 0xffff

BOOLEAN_TRUE = 0xff
BOOLEAN_FALSE = 0x00
BIT_STRING_NO_UNUSED_BITS = 0x00


def context_tag(number, constructed=True):
    """Tag byte of an ``[number]`` context specific field."""
    assert 0 <= number < 31
    tag = CONTEXT_SPECIFIC | number
    if constructed:
        tag |= CONSTRUCTED
    return tag


def encode_length(length):
    """Return the DER length octets for a content of ``length`` bytes."""
    if length < 0 or length > MAX_CONTENT_LEN:
        raise EncodingError("Length 0x{:x} can not be encoded, maximum is "
                            "0x{:x}".format(length, MAX_CONTENT_LEN))
    if length <= SHORT_FORM_MAX:
        return bytes([length])
    nbytes = (length.bit_length() + 7) // 8
    return bytes([LONG_FORM | nbytes]) + length.to_bytes(nbytes, 'big')


class DERWriter():
    """
    Growable DER output buffer.

    All writers append at the end of the buffer and return the number of
    bytes they added. Positions handed out by ``open`` are offsets, not
    views: content inserted in front of a position moves it.
    """

    def __init__(self, max_size=None):
        self.buf = bytearray()
        self.max_size = max_size
        self._open = []

    def __len__(self):
        return len(self.buf)

    def getvalue(self):
        if self._open:
            raise EncodingError("{} field(s) still open".format(len(self._open)))
        return bytes(self.buf)

    def _reserve(self, size):
        if self.max_size is not None and len(self.buf) + size > self.max_size:
            raise EncodingError("Encoding exceeds the {} byte buffer"
                                .format(self.max_size))

    def write(self, data):
        self._reserve(len(data))
        self.buf += data
        return len(data)

    def insert(self, offset, data):
        """Splice ``data`` in at ``offset``, shifting the tail right."""
        if offset < 0 or offset > len(self.buf):
            raise EncodingError("Insert offset {} out of range".format(offset))
        if self._open and offset <= self._open[-1]:
            raise EncodingError("Insert would move the length of an open field")
        self._reserve(len(data))
        self.buf[offset:offset] = data
        return len(data)

    def write_tlv(self, tag, value):
        return self.write(bytes([tag]) + encode_length(len(value)) + bytes(value))

    def write_integer(self, value):
        """
        Write a non-negative INTEGER from its big endian bytes.

        A 0x00 byte is put in front when the most significant bit is set so
        the value does not read back as negative.
        """
        value = bytes(value)
        if not value:
            raise EncodingError("INTEGER value must have at least one byte")
        if value[0] & 0x80:
            value = b'\x00' + value
        return self.write_tlv(TAG_INTEGER, value)

    def write_octet_string(self, value):
        return self.write_tlv(TAG_OCTET_STRING, value)

    def write_bit_string(self, value):
        # Only whole bytes are ever written, so no bits are unused.
        return self.write_tlv(TAG_BIT_STRING,
                              bytes([BIT_STRING_NO_UNUSED_BITS]) + bytes(value))

    def write_boolean(self, flag):
        return self.write_tlv(TAG_BOOLEAN,
                              bytes([BOOLEAN_TRUE if flag else BOOLEAN_FALSE]))

    def write_null(self):
        return self.write_tlv(TAG_NULL, b'')

    def write_raw_oid_hex(self, oid_hex):
        """Copy a pre-encoded OBJECT IDENTIFIER (tag, length and value)."""
        try:
            raw = bytes.fromhex(oid_hex)
        except ValueError as e:
            raise EncodingError("Invalid OID encoding '{}'".format(oid_hex)) from e
        if len(raw) < 3 or raw[0] != TAG_OID or raw[1] != len(raw) - 2:
            raise EncodingError("Invalid OID encoding '{}'".format(oid_hex))
        return self.write(raw)

    def write_raw_bytes(self, data):
        """Copy content that is already DER encoded."""
        return self.write(bytes(data))

    def open(self, tag):
        """Start a constructed field and return the offset of its length."""
        self.write(bytes([tag, 0]))
        len_offset = len(self.buf) - 1
        self._open.append(len_offset)
        return len_offset

    def close(self, len_offset=None):
        """
        Finish the innermost open field, whose content runs up to the end
        of the buffer. Returns the number of length bytes inserted.
        """
        if not self._open:
            raise EncodingError("No open field to close")
        if len_offset is not None and len_offset != self._open[-1]:
            raise EncodingError("Fields must be closed innermost first")
        len_offset = self._open.pop()
        content_offset = len_offset + 1
        return self.backpatch_length(len_offset, len(self.buf) - content_offset,
                                     content_offset)

    def backpatch_length(self, len_offset, content_length, content_offset):
        """
        Replace the one byte length placeholder at ``len_offset``.

        Lengths above 127 need extra octets; the content starting at
        ``content_offset`` is moved right to make room for them. The number
        of inserted bytes is returned so callers can move their cursors.
        """
        if content_offset != len_offset + 1:
            raise EncodingError("Content must directly follow its length")
        if content_offset + content_length > len(self.buf):
            raise EncodingError("Content runs past the end of the buffer")
        encoded = encode_length(content_length)
        self.buf[len_offset] = encoded[0]
        extra = encoded[1:]
        if extra:
            self._reserve(len(extra))
            self.buf[content_offset:content_offset] = extra
        return len(extra)

    @contextmanager
    def field(self, tag):
        len_offset = self.open(tag)
        yield len_offset
        self.close(len_offset)

    def sequence(self):
        return self.field(TAG_SEQUENCE)


def _time_value(when):
    if when.tzinfo is not None:
        when = when.astimezone(datetime.timezone.utc)
    if 1950 <= when.year < 2050:
        tag = TAG_UTC_TIME
        text = '{:02d}'.format(when.year % 100)
    else:
        tag = TAG_GENERALIZED_TIME
        text = '{:04d}'.format(when.year)
    text += '{:02d}{:02d}{:02d}{:02d}{:02d}Z'.format(
        when.month, when.day, when.hour, when.minute, when.second)
    return tag, text.encode('ascii')


def encode_validity(not_before, not_after):
    """
    DER encode ``Validity ::= SEQUENCE { notBefore Time, notAfter Time }``.

    Naive datetimes are taken as UTC. Years 1950 through 2049 use UTCTime,
    anything else GeneralizedTime (RFC 5280, 4.1.2.5).
    """
    if not_after < not_before:
        raise EncodingError("notAfter is earlier than notBefore")
    w = DERWriter()
    with w.sequence():
        for when in (not_before, not_after):
            w.write_tlv(*_time_value(when))
    return w.getvalue()
