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

import hashlib

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

import dicecert.keys as keys
from dicecert.certificate import AppCfg
from dicecert.device import DeviceDna
from dicecert.store import CertificateStore, UserCfgField
from tests.constants import (DEVAK_SCALAR, DEVAK_SUBJECT_NAME, DEVAK_SUBSYSTEM,
                             DEVIK_SCALAR, DEVIK_SUBSYSTEM, DNA_WORDS, FW_HASH,
                             ISSUER_NAME, SUBJECT_NAME, VALIDITY)


class FakeSigner():
    """Deterministic stand-in for the ECDSA primitive that counts calls."""

    def __init__(self, byteorder='big'):
        self.byteorder = byteorder
        self.calls = 0
        self.digests = []

    @staticmethod
    def signature_for(digest):
        """Big endian (r, s) for a big endian digest."""
        return (hashlib.sha384(b'r' + digest).digest(),
                hashlib.sha384(b's' + digest).digest())

    def sign(self, digest, private_key):
        self.calls += 1
        self.digests.append(bytes(digest))
        if self.byteorder == 'little':
            r, s = self.signature_for(bytes(digest)[::-1])
            return r[::-1] + s[::-1]
        r, s = self.signature_for(bytes(digest))
        return r + s


def fixed_key(scalar):
    return keys.ECDSA384P1(ec.derive_private_key(scalar, ec.SECP384R1()))


@pytest.fixture
def devik_key():
    return fixed_key(DEVIK_SCALAR)


@pytest.fixture
def devak_key():
    return fixed_key(DEVAK_SCALAR)


@pytest.fixture
def fake_signer():
    return FakeSigner()


@pytest.fixture
def device():
    return DeviceDna(DNA_WORDS)


@pytest.fixture
def store():
    store = CertificateStore()
    for subsystem, subject in ((DEVIK_SUBSYSTEM, SUBJECT_NAME),
                               (DEVAK_SUBSYSTEM, DEVAK_SUBJECT_NAME)):
        store.store_user_input(subsystem, UserCfgField.ISSUER, ISSUER_NAME)
        store.store_user_input(subsystem, UserCfgField.SUBJECT, subject)
        store.store_user_input(subsystem, UserCfgField.VALIDITY, VALIDITY)
    return store


@pytest.fixture
def devik_cfg(devik_key):
    raw = devik_key.get_raw_public_bytes()
    return AppCfg(subject_public_key=raw, issuer_public_key=raw,
                  issuer_private_key=devik_key, fw_hash=FW_HASH,
                  is_self_signed=True)


@pytest.fixture
def devak_cfg(devik_key, devak_key):
    return AppCfg(subject_public_key=devak_key.get_raw_public_bytes(),
                  issuer_public_key=devik_key.get_raw_public_bytes(),
                  issuer_private_key=devik_key, fw_hash=FW_HASH,
                  is_self_signed=False)
