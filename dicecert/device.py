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
Device unique id (DNA) source.
"""

import struct

from .errors import InvalidParameterError

DNA_LEN_IN_WORDS = 4
DNA_LEN_IN_BYTES = 16


class DeviceDna():
    """
    The four 32-bit DNA words of a device.

    ``read_unique_id`` returns the words as they sit in device memory,
    little endian and in register order.
    """

    def __init__(self, words):
        words = tuple(words)
        if len(words) != DNA_LEN_IN_WORDS:
            raise InvalidParameterError("Device DNA needs {} words, got {}"
                                        .format(DNA_LEN_IN_WORDS, len(words)))
        for w in words:
            if not 0 <= w <= 0xffffffff:
                raise InvalidParameterError(
                    "DNA word 0x{:x} does not fit in 32 bits".format(w))
        self.words = words

    @classmethod
    def from_bytes(cls, raw):
        if len(raw) != DNA_LEN_IN_BYTES:
            raise InvalidParameterError("Device DNA must be {} bytes, got {}"
                                        .format(DNA_LEN_IN_BYTES, len(raw)))
        return cls(struct.unpack('<' + 'I' * DNA_LEN_IN_WORDS, raw))

    @classmethod
    def parse(cls, text):
        """
        Accept either 32 hex digits (the id bytes) or four comma separated
        words, e.g. ``0x12345678,0x9abcdef0,0x0,0x1``.
        """
        text = text.strip()
        try:
            if ',' in text:
                return cls(int(w, 0) for w in text.split(','))
            return cls.from_bytes(bytes.fromhex(text))
        except ValueError as e:
            raise InvalidParameterError(
                "Invalid device DNA '{}': {}".format(text, e)) from e

    def read_unique_id(self):
        return struct.pack('<' + 'I' * DNA_LEN_IN_WORDS, *self.words)

    def __repr__(self):
        return "<DeviceDna {}>".format(
            ",".join("0x{:08x}".format(w) for w in self.words))
