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
X.509 v3 extension builders.

Every builder appends one

    Extension  ::=  SEQUENCE  {
        extnID      OBJECT IDENTIFIER,
        critical    BOOLEAN DEFAULT FALSE,
        extnValue   OCTET STRING }

to a DERWriter and returns the number of bytes it wrote. Builders only
depend on their arguments.
"""

from contextlib import contextmanager
from enum import Enum

from .der import context_tag, TAG_OCTET_STRING
from .errors import InvalidParameterError

# Object identifiers, pre-encoded with their tag and length.
OID_SUB_KEY_IDENTIFIER = "0603551D0E"
OID_AUTH_KEY_IDENTIFIER = "0603551D23"
OID_TCB_INFO_EXTN = "0606678105050401"
OID_UEID_EXTN = "0606678105050404"
OID_KEY_USAGE_EXTN = "0603551D0F"
OID_EKU_EXTN = "0603551D25"
OID_EKU_CLIENT_AUTH = "06082B06010505070302"
OID_SHA3_384 = "0609608648016503040209"

KEY_ID_LEN = 20
KEY_USAGE_MAX_LEN = 2
UEID_LEN = 16

EXTENSIONS_TAG = context_tag(3)
TCB_INFO_FWIDS_TAG = context_tag(6)
AUTH_KEY_ID_TAG = context_tag(0, constructed=False)

KeyUsage = Enum('KeyUsage',
                ['DIGITAL_SIGNATURE', 'NON_REPUDIATION', 'KEY_ENCIPHERMENT',
                 'DATA_ENCIPHERMENT', 'KEY_AGREEMENT', 'KEY_CERT_SIGN',
                 'CRL_SIGN', 'ENCIPHER_ONLY', 'DECIPHER_ONLY'], start=0)


@contextmanager
def _extension(w, oid_hex, critical=False):
    with w.sequence():
        w.write_raw_oid_hex(oid_hex)
        if critical:
            w.write_boolean(True)
        with w.field(TAG_OCTET_STRING):
            yield


def subject_key_identifier(w, subject_public_key, digest):
    """keyIdentifier is the first 20 bytes of SHA-384 of the subject key."""
    start = len(w)
    with _extension(w, OID_SUB_KEY_IDENTIFIER):
        w.write_octet_string(digest(subject_public_key)[:KEY_ID_LEN])
    return len(w) - start


def authority_key_identifier(w, issuer_public_key, digest):
    """
    AuthorityKeyIdentifier ::= SEQUENCE {
        keyIdentifier             [0] KeyIdentifier           OPTIONAL,
        authorityCertIssuer       [1] GeneralNames            OPTIONAL,
        authorityCertSerialNumber [2] CertificateSerialNumber OPTIONAL  }

    Only keyIdentifier is present, derived from the issuer key the same
    way as the subject key identifier.
    """
    start = len(w)
    with _extension(w, OID_AUTH_KEY_IDENTIFIER):
        with w.sequence():
            w.write_tlv(AUTH_KEY_ID_TAG, digest(issuer_public_key)[:KEY_ID_LEN])
    return len(w) - start


def tcb_info(w, fw_hash):
    """
    DICE TcbInfo (2.23.133.5.4.1) carrying a single FWID.

        DiceTcbInfo ::= SEQUENCE {
            ...
            fwids [6] IMPLICIT FWIDLIST OPTIONAL,
            ... }
        FWID ::= SEQUENCE {
            hashAlg OBJECT IDENTIFIER,
            digest OCTET STRING }

    The firmware hash is a SHA3-384 measurement. The other TcbInfo fields
    are left out.
    """
    start = len(w)
    with _extension(w, OID_TCB_INFO_EXTN):
        with w.sequence():
            with w.field(TCB_INFO_FWIDS_TAG):
                with w.sequence():
                    w.write_raw_oid_hex(OID_SHA3_384)
                    w.write_octet_string(fw_hash)
    return len(w) - start


def ueid(w, device_id):
    """DICE Ueid (2.23.133.5.4.4): ``TcgUeid ::= SEQUENCE { ueid OCTET STRING }``"""
    if len(device_id) != UEID_LEN:
        raise InvalidParameterError("UEID must be {} bytes, got {}".format(
            UEID_LEN, len(device_id)))
    start = len(w)
    with _extension(w, OID_UEID_EXTN):
        with w.sequence():
            w.write_octet_string(device_id)
    return len(w) - start


def key_usage_bits(usages):
    """
    Pack KeyUsage bits; bit 0 (digitalSignature) is the MSB of the first
    byte. The second byte is dropped when empty.
    """
    val = bytearray(KEY_USAGE_MAX_LEN)
    for usage in usages:
        val[usage.value // 8] |= 1 << (7 - usage.value % 8)
    if val[1] == 0:
        del val[1]
    return bytes(val)


def key_usage(w, is_self_signed):
    """
    Critical KeyUsage: keyCertSign for a self-signed (DevIK) certificate,
    digitalSignature and keyAgreement otherwise.
    """
    if is_self_signed:
        usages = (KeyUsage.KEY_CERT_SIGN,)
    else:
        usages = (KeyUsage.DIGITAL_SIGNATURE, KeyUsage.KEY_AGREEMENT)
    start = len(w)
    with _extension(w, OID_KEY_USAGE_EXTN, critical=True):
        w.write_bit_string(key_usage_bits(usages))
    return len(w) - start


def extended_key_usage(w):
    """Critical ExtKeyUsage listing only id-kp-clientAuth."""
    start = len(w)
    with _extension(w, OID_EKU_EXTN, critical=True):
        with w.sequence():
            w.write_raw_oid_hex(OID_EKU_CLIENT_AUTH)
    return len(w) - start


def x509v3_extensions(w, app_cfg, digest, device_id=None):
    """
    ``extensions [3] EXPLICIT Extensions`` of the TBS certificate.

    UEID and ExtKeyUsage are only part of self-signed certificates, for
    which ``device_id`` must be given.
    """
    if app_cfg.is_self_signed and device_id is None:
        raise InvalidParameterError("Device id is required for a self-signed "
                                    "certificate")
    start = len(w)
    with w.field(EXTENSIONS_TAG):
        with w.sequence():
            subject_key_identifier(w, app_cfg.subject_public_key, digest)
            authority_key_identifier(w, app_cfg.issuer_public_key, digest)
            tcb_info(w, app_cfg.fw_hash)
            if app_cfg.is_self_signed:
                ueid(w, device_id)
            key_usage(w, app_cfg.is_self_signed)
            if app_cfg.is_self_signed:
                extended_key_usage(w)
    return len(w) - start
