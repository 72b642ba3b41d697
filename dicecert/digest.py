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
SHA-384 digest, gated by a known answer test.
"""

import hashlib
import logging

from .errors import DigestError, KatFailedError

logger = logging.getLogger(__name__)

SHA384_DIGEST_SIZE = 48

# FIPS 180-2, appendix D.1
SHA384_KAT_MESSAGE = b'abc'
SHA384_KAT_DIGEST = bytes.fromhex(
    'cb00753f45a35e8bb5a03d699ac65007272c32ab0eded163'
    '1a8b605a43ff5bed8086072ba1e7cc2358baeca134c825a7')


class Sha384():
    """
    SHA-384 digest engine.

    The known answer test runs before the first digest is handed out and
    its result is kept for the lifetime of the object. Generators that are
    not given an engine share the module level ``sha384`` instance, so by
    default the test runs once per process.
    """

    def __init__(self, hashfunc=hashlib.sha384):
        self.hashfunc = hashfunc
        self.kat_passed = False

    def run_kat(self):
        if self._compute(SHA384_KAT_MESSAGE) != SHA384_KAT_DIGEST:
            raise KatFailedError()
        logger.debug("SHA-384 known answer test passed")
        self.kat_passed = True

    def digest(self, data):
        if not self.kat_passed:
            self.run_kat()
        return self._compute(data)

    def _compute(self, data):
        try:
            sha = self.hashfunc()
            sha.update(bytes(data))
            result = sha.digest()
        except (TypeError, ValueError) as e:
            raise DigestError("SHA-384 digest failed: {}".format(e)) from e
        if len(result) != SHA384_DIGEST_SIZE:
            raise DigestError("SHA-384 digest has {} bytes".format(len(result)))
        return result


# Process-wide engine, the known answer test runs once per process.
sha384 = Sha384()
