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
Per-subsystem certificate store.

Each entry keeps the user supplied Issuer, Subject and Validity fields of a
subsystem's certificate along with the hash and signature of the last TBS
certificate signed for it. The table is small and bounded, entries are only
ever appended, and lookups are a linear scan by subsystem id.
"""

import hmac
import logging
import threading
from enum import Enum

from .errors import (InvalidParameterError, InvalidUserCfgError,
                     StoreLimitExceededError, UserCfgNotFoundError)

logger = logging.getLogger(__name__)

# One DevIK and three DevAK certificates.
MAX_CERT_SUPPORT = 4

ISSUER_MAX_SIZE = 600
SUBJECT_MAX_SIZE = 600
VALIDITY_MAX_SIZE = 40

HASH_SIZE_IN_BYTES = 48
SIGN_SIZE_IN_BYTES = 96

# The only IsSignAvailable value that marks the stored signature as valid.
SIGN_AVAILABLE = 0x3

UserCfgField = Enum('UserCfgField', ['ISSUER', 'SUBJECT', 'VALIDITY'],
                    start=0)

FIELD_MAX_SIZE = {
        UserCfgField.ISSUER:   ISSUER_MAX_SIZE,
        UserCfgField.SUBJECT:  SUBJECT_MAX_SIZE,
        UserCfgField.VALIDITY: VALIDITY_MAX_SIZE,
}


def is_buffer_non_zero(buf):
    return any(buf)


class UserCfg():
    """DER encoded Issuer, Subject and Validity of one certificate."""

    def __init__(self):
        self.issuer = b''
        self.subject = b''
        self.validity = b''

    def __repr__(self):
        return "<UserCfg issuer_len={}, subject_len={}, validity_len={}>" \
            .format(len(self.issuer), len(self.subject), len(self.validity))

    def get(self, field):
        return getattr(self, field.name.lower())

    def set(self, field, value):
        setattr(self, field.name.lower(), bytes(value))


class SignStore():
    """Hash and signature of the TBS certificate signed last."""

    def __init__(self):
        self.hash = bytes(HASH_SIZE_IN_BYTES)
        self.sign = bytes(SIGN_SIZE_IN_BYTES)
        self.is_sign_available = 0

    def __repr__(self):
        return "<SignStore available={}>".format(self.available)

    @property
    def available(self):
        return self.is_sign_available == SIGN_AVAILABLE

    def matches(self, tbs_hash):
        """The stored signature may only be reused when this is True."""
        if not self.available:
            return False
        return hmac.compare_digest(self.hash, bytes(tbs_hash))

    def update(self, tbs_hash, sign):
        """Replace hash and signature together and mark them valid."""
        if len(tbs_hash) != HASH_SIZE_IN_BYTES:
            raise InvalidParameterError("Hash must be {} bytes".format(
                HASH_SIZE_IN_BYTES))
        if len(sign) != SIGN_SIZE_IN_BYTES:
            raise InvalidParameterError("Signature must be {} bytes".format(
                SIGN_SIZE_IN_BYTES))
        self.hash = bytes(tbs_hash)
        self.sign = bytes(sign)
        self.is_sign_available = SIGN_AVAILABLE


class InfoStoreEntry():
    def __init__(self, subsystem_id):
        self.subsystem_id = subsystem_id
        self.user_cfg = UserCfg()
        self.sign_store = SignStore()
        # Held across the compare-then-resign sequence on sign_store.
        self.lock = threading.RLock()

    def __repr__(self):
        return "<InfoStoreEntry subsystem_id=0x{:08x}, {}, {}>".format(
            self.subsystem_id, self.user_cfg, self.sign_store)


class CertificateStore():
    """
    Bounded table of InfoStoreEntry objects keyed by subsystem id.

    Construct one per process and hand it to every caller.
    """

    def __init__(self, capacity=MAX_CERT_SUPPORT):
        self.capacity = capacity
        self.entries = []
        self._lock = threading.Lock()

    def __len__(self):
        return len(self.entries)

    def _find(self, subsystem_id):
        with self._lock:
            for entry in self.entries:
                if entry.subsystem_id == subsystem_id:
                    return entry
        return None

    def entry(self, subsystem_id):
        entry = self._find(subsystem_id)
        if entry is None:
            raise UserCfgNotFoundError(
                "No certificate configuration for subsystem 0x{:08x}"
                .format(subsystem_id))
        return entry

    def store_user_input(self, subsystem_id, field, value, length=None):
        """
        Store the DER encoded ``field`` for ``subsystem_id``, creating the
        entry on first use.
        """
        if not isinstance(field, UserCfgField):
            raise InvalidParameterError("Unknown field type {!r}".format(field))
        if length is None:
            length = len(value)
        elif length > len(value):
            raise InvalidParameterError("Length {} exceeds the {} bytes "
                                        "provided".format(length, len(value)))
        if length > FIELD_MAX_SIZE[field]:
            raise InvalidParameterError(
                "{} is {} bytes, maximum is {}".format(
                    field.name.capitalize(), length, FIELD_MAX_SIZE[field]))

        with self._lock:
            entry = None
            for e in self.entries:
                if e.subsystem_id == subsystem_id:
                    entry = e
                    break
            if entry is None:
                if len(self.entries) >= self.capacity:
                    raise StoreLimitExceededError(
                        "Certificate store already holds {} subsystems"
                        .format(self.capacity))
                entry = InfoStoreEntry(subsystem_id)
                self.entries.append(entry)
                logger.debug("Added store entry for subsystem 0x%08x",
                             subsystem_id)

        with entry.lock:
            entry.user_cfg.set(field, value[:length])
        logger.debug("Stored %s (%d bytes) for subsystem 0x%08x",
                     field.name, length, subsystem_id)

    def lookup_user_cfg(self, subsystem_id):
        entry = self.entry(subsystem_id)
        for field in UserCfgField:
            if not is_buffer_non_zero(entry.user_cfg.get(field)):
                raise InvalidUserCfgError(
                    "{} is not configured for subsystem 0x{:08x}".format(
                        field.name.capitalize(), subsystem_id))
        return entry.user_cfg

    def lookup_sign_store(self, subsystem_id):
        return self.entry(subsystem_id).sign_store
