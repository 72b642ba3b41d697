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
TBSCertificate assembler.

    TBSCertificate  ::=  SEQUENCE  {
        version         [0]  EXPLICIT Version DEFAULT v1,
        serialNumber         CertificateSerialNumber,
        signature            AlgorithmIdentifier,
        issuer               Name,
        validity             Validity,
        subject              Name,
        subjectPublicKeyInfo SubjectPublicKeyInfo,
        extensions      [3]  EXPLICIT Extensions OPTIONAL }

The serial number is derived from the fields that follow it, so it is
left out while the rest of the certificate is written and spliced in at
its position at the very end.
"""

import logging

from .der import DERWriter, context_tag
from .errors import AlgorithmNotEnabledError, EncodingError, InvalidParameterError
from .extensions import x509v3_extensions

logger = logging.getLogger(__name__)

OID_SIGN_ALGO = "06082A8648CE3D040303"          # ecdsa-with-SHA384
OID_EC_PUBLIC_KEY = "06072A8648CE3D0201"        # id-ecPublicKey
OID_P384 = "06052B81040022"                     # secp384r1

X509_VERSION_3 = 2
VERSION_TAG = context_tag(0)

SERIAL_LEN = 20
SERIAL_FIELD_LEN = SERIAL_LEN + 2

UNCOMPRESSED_POINT = 0x04
RAW_PUBLIC_KEY_LEN = 96


def version(w):
    start = len(w)
    with w.field(VERSION_TAG):
        w.write_integer(bytes([X509_VERSION_3]))
    return len(w) - start


def signature_algorithm(w):
    """AlgorithmIdentifier for ecdsa-with-SHA384, with NULL parameters."""
    start = len(w)
    with w.sequence():
        w.write_raw_oid_hex(OID_SIGN_ALGO)
        w.write_null()
    return len(w) - start


def subject_public_key_info(w, public_key):
    if len(public_key) != RAW_PUBLIC_KEY_LEN:
        raise InvalidParameterError("Subject public key must be {} bytes"
                                    .format(RAW_PUBLIC_KEY_LEN))
    start = len(w)
    with w.sequence():
        with w.sequence():
            w.write_raw_oid_hex(OID_EC_PUBLIC_KEY)
            w.write_raw_oid_hex(OID_P384)
        w.write_bit_string(bytes([UNCOMPRESSED_POINT]) + bytes(public_key))
    return len(w) - start


def serial_number(tbs_hash):
    """
    Encoded serialNumber derived from a hash of the TBS certificate.

    The value is the first 20 hash bytes. When that would read back as a
    negative INTEGER, a 0x00 byte and only 19 hash bytes are used, so the
    field is always 22 bytes long.
    """
    if tbs_hash[0] & 0x80:
        value = b'\x00' + bytes(tbs_hash[:SERIAL_LEN - 1])
    else:
        value = bytes(tbs_hash[:SERIAL_LEN])
    w = DERWriter()
    w.write_integer(value)
    if len(w) != SERIAL_FIELD_LEN:
        raise EncodingError("Serial number field is {} bytes, expected {}"
                            .format(len(w), SERIAL_FIELD_LEN))
    return w.getvalue()


def tbs_certificate(w, user_cfg, app_cfg, digest, ecdsa_enabled=True,
                    device_id=None):
    """
    Append the TBSCertificate for ``app_cfg`` to ``w``.

    ``digest`` hashes the serial number source. Without ECDSA support the
    assembly stops at the public key with AlgorithmNotEnabledError.
    Returns the number of bytes written.
    """
    start = len(w)
    with w.sequence():
        version(w)
        serial_offset = len(w)
        signature_algorithm(w)
        w.write_raw_bytes(user_cfg.issuer)
        w.write_raw_bytes(user_cfg.validity)
        w.write_raw_bytes(user_cfg.subject)
        if not ecdsa_enabled:
            raise AlgorithmNotEnabledError()
        subject_public_key_info(w, app_cfg.subject_public_key)
        x509v3_extensions(w, app_cfg, digest, device_id)

        serial = serial_number(digest(w.buf[serial_offset:]))
        w.insert(serial_offset, serial)
        logger.debug("Serial number %s", serial[2:].hex())
    return len(w) - start
