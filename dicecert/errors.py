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
Errors raised while storing certificate fields and generating certificates.

Every error carries a numeric ``code`` so that callers talking to firmware
style interfaces can report a status word instead of a message.
"""


class CertError(Exception):
    code = 0x01

    def __init__(self, msg=None):
        super().__init__(msg or self.__doc__)


class ConfigurationError(CertError):
    """Certificate configuration is invalid"""
    code = 0x10


class InvalidParameterError(ConfigurationError):
    """Invalid parameter"""
    code = 0x11


class UserCfgNotFoundError(ConfigurationError):
    """No user configuration stored for the subsystem"""
    code = 0x12


class StoreLimitExceededError(ConfigurationError):
    """Certificate store is full"""
    code = 0x13


class InvalidUserCfgError(ConfigurationError):
    """Issuer, Subject or Validity is not configured"""
    code = 0x14


class EncodingError(CertError):
    """DER encoding failed"""
    code = 0x20


class AlgorithmNotEnabledError(CertError):
    """ECDSA support is not enabled"""
    code = 0x30


class CryptoError(CertError):
    """Cryptographic operation failed"""
    code = 0x40


class KatFailedError(CryptoError):
    """SHA-384 known answer test failed"""
    code = 0x41


class DigestError(CryptoError):
    """SHA-384 digest calculation failed"""
    code = 0x42


class SignError(CryptoError):
    """Signature calculation failed"""
    code = 0x43
