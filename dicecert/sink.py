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
Destinations for generated certificates.

A sink only has to provide ``write_bytes(dest_addr, data)``.
"""

import logging
import os.path

from intelhex import IntelHex

from .errors import InvalidParameterError

logger = logging.getLogger(__name__)

INTEL_HEX_EXT = "hex"


class MemorySink():
    """A ``size`` byte region starting at ``base_addr``."""

    def __init__(self, base_addr, size, erased_val=0x00):
        self.base_addr = base_addr
        self.size = size
        self.buf = bytearray([erased_val] * size)

    def __repr__(self):
        return "<MemorySink base_addr=0x{:x}, size=0x{:x}>".format(
            self.base_addr, self.size)

    def _offset(self, addr, length):
        offset = addr - self.base_addr
        if offset < 0 or offset + length > self.size:
            raise InvalidParameterError(
                "0x{:x} bytes at 0x{:x} do not fit in 0x{:x}-0x{:x}".format(
                    length, addr, self.base_addr, self.base_addr + self.size))
        return offset

    def write_bytes(self, dest_addr, data):
        offset = self._offset(dest_addr, len(data))
        self.buf[offset:offset + len(data)] = data
        logger.debug("Wrote %d bytes at 0x%x", len(data), dest_addr)

    def read_bytes(self, addr, length):
        offset = self._offset(addr, length)
        return bytes(self.buf[offset:offset + length])


class HexImageSink():
    """Collects certificates in an Intel HEX image."""

    def __init__(self):
        self.image = IntelHex()

    def write_bytes(self, dest_addr, data):
        if dest_addr < 0:
            raise InvalidParameterError("Invalid address 0x{:x}".format(dest_addr))
        self.image.frombytes(bytes=bytes(data), offset=dest_addr)
        logger.debug("Placed %d bytes at 0x%x", len(data), dest_addr)

    def save(self, path):
        self.image.tofile(path, 'hex')


def load_bytes(path):
    """Read a raw binary or, going by the extension, an Intel HEX file."""
    ext = os.path.splitext(path)[1][1:].lower()
    if ext == INTEL_HEX_EXT:
        return IntelHex(path).tobinstr()
    with open(path, 'rb') as f:
        return f.read()
