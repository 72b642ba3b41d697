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
DevIK / DevAK X.509 certificate generation.

    Certificate  ::=  SEQUENCE  {
        tbsCertificate       TBSCertificate,
        signatureAlgorithm   AlgorithmIdentifier,
        signatureValue       BIT STRING  }
"""

import logging
from collections import namedtuple

from .der import DERWriter, TAG_BIT_STRING, BIT_STRING_NO_UNUSED_BITS
from . import digest
from .errors import InvalidParameterError
from .signer import (P384_SIZE_IN_BYTES, split_signature, to_signer_order)
from .tbs import RAW_PUBLIC_KEY_LEN, signature_algorithm, tbs_certificate

logger = logging.getLogger(__name__)

MAX_CERT_SIZE = 2048
FW_HASH_LEN = 48

AppCfg = namedtuple('AppCfg', ['subject_public_key', 'issuer_public_key',
                               'issuer_private_key', 'fw_hash',
                               'is_self_signed'])
AppCfg.__doc__ = """\
Per call certificate parameters.

Public keys are the raw 96 byte X || Y form, fw_hash is the 48 byte SHA3-384
firmware measurement."""


def _minimal(value):
    value = bytes(value).lstrip(b'\x00')
    return value if value else b'\x00'


def signature_value(w, r, s):
    """signatureValue: BIT STRING wrapping ``SEQUENCE { r INTEGER, s INTEGER }``"""
    start = len(w)
    with w.field(TAG_BIT_STRING):
        w.write(bytes([BIT_STRING_NO_UNUSED_BITS]))
        with w.sequence():
            w.write_integer(_minimal(r))
            w.write_integer(_minimal(s))
    return len(w) - start


class CertificateGenerator():
    """
    Builds certificates for the subsystems configured in ``store``.

    ``signer`` provides ECDSA P-384; when it is None ECDSA support is
    considered absent and generation fails with AlgorithmNotEnabledError.
    ``device`` provides the unique id placed in self-signed certificates.
    """

    def __init__(self, store, signer=None, sha=None, device=None,
                 max_cert_size=MAX_CERT_SIZE):
        self.store = store
        self.signer = signer
        self.sha = sha if sha is not None else digest.sha384
        self.device = device
        self.max_cert_size = max_cert_size

    @property
    def ecdsa_enabled(self):
        return self.signer is not None

    def _check_app_cfg(self, app_cfg):
        for name in ('subject_public_key', 'issuer_public_key'):
            if len(getattr(app_cfg, name)) != RAW_PUBLIC_KEY_LEN:
                raise InvalidParameterError("{} must be {} bytes".format(
                    name, RAW_PUBLIC_KEY_LEN))
        if len(app_cfg.fw_hash) != FW_HASH_LEN:
            raise InvalidParameterError("Firmware hash must be {} bytes"
                                        .format(FW_HASH_LEN))

    def _device_id(self, app_cfg):
        if not app_cfg.is_self_signed:
            return None
        if self.device is None:
            raise InvalidParameterError("A device id source is required for "
                                        "self-signed certificates")
        return self.device.read_unique_id()

    def _signature(self, sign_store, tbs_hash, private_key):
        if sign_store.matches(tbs_hash):
            logger.debug("TBS hash unchanged, reusing stored signature")
            return (sign_store.sign[:P384_SIZE_IN_BYTES],
                    sign_store.sign[P384_SIZE_IN_BYTES:])

        byteorder = self.signer.byteorder
        raw = self.signer.sign(to_signer_order(tbs_hash, byteorder),
                               private_key)
        r, s = split_signature(raw, byteorder)
        sign_store.update(tbs_hash, r + s)
        logger.debug("TBS hash changed, signature recomputed")
        return r, s

    def generate(self, subsystem_id, app_cfg, sink=None, dest_addr=0):
        """
        Build the certificate of ``subsystem_id`` and return its DER bytes.

        When ``sink`` is given the certificate is also written to it at
        ``dest_addr``, only once it is complete.
        """
        self._check_app_cfg(app_cfg)
        entry = self.store.entry(subsystem_id)
        with entry.lock:
            user_cfg = self.store.lookup_user_cfg(subsystem_id)
            device_id = self._device_id(app_cfg) if self.ecdsa_enabled else None

            w = DERWriter(max_size=self.max_cert_size)
            with w.sequence():
                tbs_start = len(w)
                tbs_certificate(w, user_cfg, app_cfg, self.sha.digest,
                                ecdsa_enabled=self.ecdsa_enabled,
                                device_id=device_id)
                tbs_end = len(w)
                signature_algorithm(w)

                tbs_hash = self.sha.digest(w.buf[tbs_start:tbs_end])
                sign_store = self.store.lookup_sign_store(subsystem_id)
                r, s = self._signature(sign_store, tbs_hash,
                                       app_cfg.issuer_private_key)
                signature_value(w, r, s)
            cert = w.getvalue()

        if sink is not None:
            sink.write_bytes(dest_addr, cert)
        logger.info("Generated %s certificate for subsystem 0x%08x (%d bytes)",
                    "DevIK" if app_cfg.is_self_signed else "DevAK",
                    subsystem_id, len(cert))
        return cert
