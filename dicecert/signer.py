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
ECDSA P-384 signing primitive.

A signer exposes ``byteorder`` and ``sign(digest, private_key)``. The digest
is handed over in the signer's byte order and ``r || s`` (48 bytes each)
comes back in that same order. Certificates are always big endian; use
``to_signer_order`` and ``from_signer_order`` at the boundary.
"""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed, decode_dss_signature)
from cryptography.hazmat.primitives.hashes import SHA384

from .errors import SignError

P384_SIZE_IN_BYTES = 48
BYTEORDERS = ('big', 'little')


def to_signer_order(value, byteorder):
    """Convert a big endian value into ``byteorder``."""
    if byteorder not in BYTEORDERS:
        raise ValueError("Unknown byte order '{}'".format(byteorder))
    value = bytes(value)
    return value if byteorder == 'big' else value[::-1]


def from_signer_order(value, byteorder):
    """Convert a value in ``byteorder`` back to big endian."""
    # Reversal is its own inverse.
    return to_signer_order(value, byteorder)


def split_signature(raw, byteorder):
    """Split ``r || s`` as returned by a signer into big endian r and s."""
    if len(raw) != 2 * P384_SIZE_IN_BYTES:
        raise SignError("Signature must be {} bytes, got {}".format(
            2 * P384_SIZE_IN_BYTES, len(raw)))
    r = from_signer_order(raw[:P384_SIZE_IN_BYTES], byteorder)
    s = from_signer_order(raw[P384_SIZE_IN_BYTES:], byteorder)
    return r, s


class EcdsaP384Signer():
    """Sign SHA-384 digests with a P-384 key through cryptography."""

    byteorder = 'big'

    def sign(self, digest, private_key):
        if len(digest) != P384_SIZE_IN_BYTES:
            raise SignError("Digest must be {} bytes, got {}".format(
                P384_SIZE_IN_BYTES, len(digest)))
        # Accept both the keys.ECDSA384P1 wrapper and a bare key.
        key = getattr(private_key, 'key', private_key)
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise SignError("Issuer private key is required for signing")
        if key.curve.name != 'secp384r1':
            raise SignError("Issuer key is not a P-384 key")
        try:
            der = key.sign(bytes(digest), ec.ECDSA(Prehashed(SHA384())))
        except (ValueError, UnsupportedAlgorithm) as e:
            raise SignError("ECDSA signing failed: {}".format(e)) from e
        r, s = decode_dss_signature(der)
        return (r.to_bytes(P384_SIZE_IN_BYTES, self.byteorder) +
                s.to_bytes(P384_SIZE_IN_BYTES, self.byteorder))
