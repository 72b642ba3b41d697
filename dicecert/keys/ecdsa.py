"""
ECDSA P-384 key management
"""

# SPDX-License-Identifier: Apache-2.0

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.hashes import SHA384

P384_COORD_LEN = 48
P384_RAW_PUBLIC_KEY_LEN = 2 * P384_COORD_LEN
UNCOMPRESSED_POINT = 0x04


class ECDSAUsageError(Exception):
    pass


def public_key_from_raw(raw):
    """Build a P-384 public key from its 96 byte X || Y form."""
    if len(raw) != P384_RAW_PUBLIC_KEY_LEN:
        raise ECDSAUsageError("Raw P-384 public key must be {} bytes, got {}"
                              .format(P384_RAW_PUBLIC_KEY_LEN, len(raw)))
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(
                ec.SECP384R1(), bytes([UNCOMPRESSED_POINT]) + bytes(raw))
    except ValueError as e:
        raise ECDSAUsageError("Not a point on P-384: {}".format(e)) from e


class ECDSA384P1Public():
    """
    Wrapper around an ECDSA (p384) public key.
    """
    def __init__(self, key):
        self.key = key

    def _unsupported(self, name):
        raise ECDSAUsageError("Operation {} requires private key".format(name))

    def _get_public(self):
        return self.key

    def get_raw_public_bytes(self):
        # The certificate engine works on the bare X || Y coordinates,
        # without the SEC1 point format byte.
        point = self._get_public().public_bytes(
                encoding=serialization.Encoding.X962,
                format=serialization.PublicFormat.UncompressedPoint)
        return point[1:]

    def get_public_pem(self):
        return self._get_public().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo)

    def export_private(self, path, passwd=None):
        self._unsupported('export_private')

    def export_public(self, path):
        """Write the public key to the given file."""
        with open(path, 'wb') as f:
            f.write(self.get_public_pem())

    def verify(self, signature, payload):
        """Return True if the DER signature over payload is valid."""
        try:
            self._get_public().verify(signature=signature, data=payload,
                                      signature_algorithm=ec.ECDSA(SHA384()))
        except InvalidSignature:
            return False
        return True


class ECDSA384P1(ECDSA384P1Public):
    """
    Wrapper around an ECDSA (p384) private key.
    """

    def __init__(self, key):
        """key should be an instance of EllipticCurvePrivateKey"""
        super().__init__(key)
        self.key = key

    @staticmethod
    def generate():
        pk = ec.generate_private_key(
                ec.SECP384R1(),
                backend=default_backend())
        return ECDSA384P1(pk)

    def _get_public(self):
        return self.key.public_key()

    def export_private(self, path, passwd=None):
        """Write the private key to the given file, protecting it with
        the optional password."""
        if passwd is None:
            enc = serialization.NoEncryption()
        else:
            enc = serialization.BestAvailableEncryption(passwd)
        pem = self.key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=enc)
        with open(path, 'wb') as f:
            f.write(pem)
