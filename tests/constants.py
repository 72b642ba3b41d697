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
import hashlib

from cryptography import x509

from dicecert import main as dicecert_main
from dicecert.der import encode_validity

# all supported key types for 'keygen'
KEY_TYPES = [*dicecert_main.keygens]
KEY_ENCODINGS = [*dicecert_main.valid_encodings]

GEN_KEY_EXT = ".key"
PUB_KEY_EXT = ".pub"
CERT_EXT = ".der"

# Private scalars of the fixed P-384 test keys.
DEVIK_SCALAR = int(
    "4f1a6b0c9e2d3847a5b6c7d8e9f00112233445566778899aabbccddeeff001122"
    "33445566778899aabbccddeeff00112", 16)
DEVAK_SCALAR = int(
    "2b7e151628aed2a6abf7158809cf4f3c762e7160f38b4da56a784d9045190cfef"
    "324e7738926cfbe5f4bf8d8d8c31d76", 16)

DEVIK_SUBSYSTEM = 0x1c000001
DEVAK_SUBSYSTEM = 0x1c000002

DNA_WORDS = (0x12345678, 0x9abcdef0, 0x0badcafe, 0x00c0ffee)
DNA_BYTES = bytes.fromhex("78563412f0debc9afecaad0beeffc000")

FW_HASH = hashlib.sha3_384(b"PLM firmware").digest()

ISSUER_NAME = x509.Name.from_rfc4514_string(
    "CN=Device Identity,O=Example Corp,C=US").public_bytes()
SUBJECT_NAME = ISSUER_NAME
DEVAK_SUBJECT_NAME = x509.Name.from_rfc4514_string(
    "CN=Attestation Key 2,O=Example Corp,C=US").public_bytes()
VALIDITY = encode_validity(datetime.datetime(2024, 1, 1),
                           datetime.datetime(9999, 12, 31, 23, 59, 59))


def tmp_name(tmp_path, key_type, suffix=""):
    return tmp_path / (key_type + suffix)
