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

import pytest
from click.testing import CliRunner
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

import dicecert.keys as keys
from dicecert.main import dicecert
from tests.constants import (GEN_KEY_EXT, KEY_ENCODINGS, KEY_TYPES,
                             PUB_KEY_EXT, tmp_name)


def verify_key(key, password=None):
    """Check generated keys"""
    pk = serialization.load_pem_private_key(key.read_bytes(),
                                            password=password)
    assert isinstance(pk, ec.EllipticCurvePrivateKey)
    assert pk.curve.name == 'secp384r1'
    return pk


class TestKeys:
    runner = CliRunner()
    password = "12345"

    @pytest.fixture(scope="session")
    def tmp_path_persistent(self, tmp_path_factory):
        return tmp_path_factory.mktemp("keys")


class TestKeygen(TestKeys):

    @pytest.mark.parametrize("key_type", KEY_TYPES)
    def test_keygen(self, key_type, tmp_path_persistent):
        """Generate keys by dicecert"""

        gen_key = tmp_name(tmp_path_persistent, key_type, GEN_KEY_EXT)

        assert not gen_key.exists()
        result = self.runner.invoke(
            dicecert, ["keygen", "--key", str(gen_key), "--type", key_type]
        )
        assert result.exit_code == 0
        assert gen_key.exists()
        verify_key(gen_key)

    @pytest.mark.parametrize("key_type", KEY_TYPES)
    def test_keygen_with_password(self, key_type, tmp_path_persistent,
                                  monkeypatch):
        """Generate keys by dicecert with password"""

        gen_key = tmp_name(tmp_path_persistent, key_type + "_passwd",
                           GEN_KEY_EXT)
        monkeypatch.setattr('getpass.getpass', lambda _: self.password)
        result = self.runner.invoke(
            dicecert, ["keygen", "--key", str(gen_key), "--type", key_type,
                       "-p"]
        )
        assert result.exit_code == 0
        verify_key(gen_key, self.password.encode())

    def test_keygen_default_type(self, tmp_path):
        gen_key = tmp_path / "default.key"
        result = self.runner.invoke(dicecert, ["keygen", "-k", str(gen_key)])
        assert result.exit_code == 0
        verify_key(gen_key)

    def test_keygen_unknown_type(self, tmp_path):
        result = self.runner.invoke(
            dicecert, ["keygen", "-k", str(tmp_path / "k"), "-t", "rsa-2048"])
        assert result.exit_code != 0


class TestGetPub(TestKeys):

    @pytest.fixture
    def key_file(self, tmp_path, devik_key):
        path = tmp_path / ("devik" + GEN_KEY_EXT)
        devik_key.export_private(str(path))
        return path

    def test_getpub_raw(self, key_file, devik_key):
        result = self.runner.invoke(dicecert, ["getpub", "-k", str(key_file)])
        assert result.exit_code == 0
        raw = bytes.fromhex(result.output.strip())
        assert raw == devik_key.get_raw_public_bytes()
        assert len(raw) == keys.P384_RAW_PUBLIC_KEY_LEN

    def test_getpub_pem(self, key_file, devik_key):
        result = self.runner.invoke(
            dicecert, ["getpub", "-k", str(key_file), "-e", "pem"])
        assert result.exit_code == 0
        pub = serialization.load_pem_public_key(result.output.encode())
        assert pub.public_numbers() == \
            devik_key.key.public_key().public_numbers()

    @pytest.mark.parametrize("encoding", KEY_ENCODINGS)
    def test_getpub_to_file(self, encoding, key_file, tmp_path):
        out = tmp_name(tmp_path, encoding, PUB_KEY_EXT)
        result = self.runner.invoke(
            dicecert, ["getpub", "-k", str(key_file), "-e", encoding,
                       "-o", str(out)])
        assert result.exit_code == 0
        assert out.exists()
        assert out.stat().st_size > 0


class TestLoading(TestKeys):

    def test_load_private(self, tmp_path, devik_key):
        path = str(tmp_path / "k.pem")
        devik_key.export_private(path)
        key = keys.load(path)
        assert isinstance(key, keys.ECDSA384P1)
        assert key.get_raw_public_bytes() == devik_key.get_raw_public_bytes()

    def test_load_public(self, tmp_path, devik_key):
        path = str(tmp_path / "k.pub")
        devik_key.export_public(path)
        key = keys.load(path)
        assert isinstance(key, keys.ECDSA384P1Public)
        assert not isinstance(key, keys.ECDSA384P1)
        with pytest.raises(keys.ECDSAUsageError):
            key.export_private(str(tmp_path / "nope"))

    def test_load_with_password(self, tmp_path, devik_key):
        path = str(tmp_path / "k.pem")
        devik_key.export_private(path, passwd=b'secret')
        assert keys.load(path) is None
        assert isinstance(keys.load(path, b'secret'), keys.ECDSA384P1)

    def test_load_other_curve(self, tmp_path):
        pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption())
        path = tmp_path / "p256.pem"
        path.write_bytes(pem)
        with pytest.raises(keys.ECDSAUsageError):
            keys.load(str(path))

    def test_raw_public_round_trip(self, devik_key):
        raw = devik_key.get_raw_public_bytes()
        pub = keys.public_key_from_raw(raw)
        assert pub.public_numbers() == \
            devik_key.key.public_key().public_numbers()

    def test_raw_public_invalid(self):
        with pytest.raises(keys.ECDSAUsageError):
            keys.public_key_from_raw(bytes(95))
        with pytest.raises(keys.ECDSAUsageError):
            keys.public_key_from_raw(bytes(96))
