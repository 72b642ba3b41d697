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
Cryptographic key management for dicecert.
"""

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey, EllipticCurvePublicKey)

from .ecdsa import (ECDSA384P1, ECDSA384P1Public, ECDSAUsageError,
                    P384_RAW_PUBLIC_KEY_LEN, public_key_from_raw)


def load(path, passwd=None):
    """Try loading a key from the given path.
    Returns None if the password wasn't specified."""
    with open(path, 'rb') as f:
        raw_pem = f.read()
    try:
        pk = serialization.load_pem_private_key(
                raw_pem,
                password=passwd,
                backend=default_backend())
    # Raised by cryptography when a password is needed but none was given.
    except TypeError:
        return None
    except ValueError:
        # This seems to happen if the key is a public key, let's try
        # loading it as a public key.
        pk = serialization.load_pem_public_key(
                raw_pem,
                backend=default_backend())

    if isinstance(pk, EllipticCurvePrivateKey):
        if pk.curve.name != 'secp384r1':
            raise ECDSAUsageError("Unsupported EC curve: " + pk.curve.name)
        return ECDSA384P1(pk)
    elif isinstance(pk, EllipticCurvePublicKey):
        if pk.curve.name != 'secp384r1':
            raise ECDSAUsageError("Unsupported EC curve: " + pk.curve.name)
        return ECDSA384P1Public(pk)
    else:
        raise ECDSAUsageError("Unknown key type: " + str(type(pk)))
