#! /usr/bin/env python3
#
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

import datetime
import getpass
import hashlib
import logging
import os.path
import ssl
import sys

import click
from cryptography import x509

import dicecert.keys as keys
from dicecert import dicecert_version
from dicecert.certificate import AppCfg, CertificateGenerator, FW_HASH_LEN
from dicecert.der import encode_validity
from dicecert.device import DeviceDna
from dicecert.dumpcert import dump_certinfo, split_certificate
from dicecert.errors import CertError
from dicecert.signer import EcdsaP384Signer
from dicecert.sink import INTEL_HEX_EXT, HexImageSink, load_bytes
from dicecert.store import CertificateStore, UserCfgField
from .keys import ECDSAUsageError

MIN_PYTHON_VERSION = (3, 6)
if sys.version_info < MIN_PYTHON_VERSION:
    sys.exit("Python %s.%s or newer is required by dicecert."
             % MIN_PYTHON_VERSION)


def gen_ecdsa_p384(keyfile, passwd):
    keys.ECDSA384P1.generate().export_private(keyfile, passwd=passwd)


valid_encodings = ['raw', 'pem']
keygens = {
    'ecdsa-p384': gen_ecdsa_p384,
}
DATE_FORMATS = ['%Y-%m-%d', '%Y-%m-%dT%H:%M:%S']
# RFC 5280, 4.1.2.5: no well-defined expiration date.
NO_EXPIRY = datetime.datetime(9999, 12, 31, 23, 59, 59)


def load_key(keyfile):
    # TODO: better handling of invalid pass-phrase
    try:
        key = keys.load(keyfile)
        if key is not None:
            return key
        passwd = getpass.getpass("Enter key passphrase: ").encode('utf-8')
        return keys.load(keyfile, passwd)
    except ECDSAUsageError as e:
        raise click.UsageError(e)


def get_password():
    while True:
        passwd = getpass.getpass("Enter key passphrase: ")
        passwd2 = getpass.getpass("Reenter passphrase: ")
        if passwd == passwd2:
            break
        print("Passwords do not match, try again")

    # Password must be bytes, always use UTF-8 for consistent
    # encoding.
    return passwd.encode('utf-8')


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return int(value, 0)
        except ValueError:
            self.fail('%s is not a valid integer. Please use code literals '
                      'prefixed with 0b/0B, 0o/0O, or 0x/0X as necessary.'
                      % value, param, ctx)


def validate_fw_hash(ctx, param, value):
    if value is not None:
        try:
            fw_hash = bytes.fromhex(value)
        except ValueError:
            raise click.BadParameter("{} is not a hex string".format(value))
        if len(fw_hash) != FW_HASH_LEN:
            raise click.BadParameter("Firmware hash must be {} bytes, got {}"
                                     .format(FW_HASH_LEN, len(fw_hash)))
        return fw_hash


def validate_device_dna(ctx, param, value):
    if value is not None:
        try:
            return DeviceDna.parse(value)
        except CertError as e:
            raise click.BadParameter("{}".format(e))


def encode_name(name, der_file, what):
    if name is not None and der_file is not None:
        raise click.UsageError("Please use only one of `--{0}` or "
                               "`--{0}-der`".format(what))
    if der_file is not None:
        with open(der_file, 'rb') as f:
            return f.read()
    if name is not None:
        try:
            return x509.Name.from_rfc4514_string(name).public_bytes()
        except ValueError as e:
            raise click.BadParameter("{}".format(e), param_hint='--' + what)
    return None


def write_output(text, output):
    if not output:
        click.echo(text)
        return
    with open(output, 'w') as f:
        f.write(text + '\n')


@click.option('-p', '--password', is_flag=True,
              help='Prompt for password to protect key')
@click.option('-t', '--type', metavar='type', default='ecdsa-p384',
              type=click.Choice(keygens.keys()),
              help='{}'.format('One of: {}'.format(', '.join(keygens.keys()))))
@click.option('-k', '--key', metavar='filename', required=True)
@click.command(help='Generate pub/private keypair')
def keygen(type, key, password):
    password = get_password() if password else None
    keygens[type](key, password)


@click.option('-e', '--encoding', metavar='encoding',
              type=click.Choice(valid_encodings), default=valid_encodings[0],
              help='Valid encodings: {}. Default value is {}.'
                   .format(', '.join(valid_encodings), valid_encodings[0]))
@click.option('-k', '--key', metavar='filename', required=True)
@click.option('-o', '--output', metavar='output', required=False,
              help='Specify the output file\'s name. \
                    The stdout is used if it is not provided.')
@click.command(help='Dump public key from keypair')
def getpub(key, encoding, output):
    key = load_key(key)
    if key is None:
        print("Invalid passphrase")
    elif encoding == 'raw':
        write_output(key.get_raw_public_bytes().hex(), output)
    elif encoding == 'pem':
        write_output(key.get_public_pem().decode('ascii').rstrip('\n'), output)
    else:
        raise click.UsageError()


@click.argument('outfile')
@click.option('--pem', default=False, is_flag=True,
              help='Write a PEM certificate instead of DER')
@click.option('-x', '--hex-addr', type=BasedIntParamType(), required=False,
              help='Destination address of the certificate in a .hex output')
@click.option('-s', '--subsystem-id', type=BasedIntParamType(), default=0,
              help='Subsystem the certificate belongs to')
@click.option('--self-signed', default=False, is_flag=True,
              help='Generate a self-signed DevIK certificate; by default a '
                   'DevAK certificate issued by --issuer-key is generated')
@click.option('--device-dna', callback=validate_device_dna,
              help='Device DNA, as 32 hex digits or four comma separated '
                   '32-bit words. Required with --self-signed')
@click.option('--fw-image', metavar='filename',
              help='Firmware image (binary or Intel HEX) to measure with '
                   'SHA3-384')
@click.option('--fw-hash', callback=validate_fw_hash,
              help='SHA3-384 firmware measurement as a hex string')
@click.option('--validity-der', metavar='filename',
              help='File with a DER encoded Validity')
@click.option('--not-after', type=click.DateTime(formats=DATE_FORMATS),
              help='End of validity (UTC); no expiry by default')
@click.option('--not-before', type=click.DateTime(formats=DATE_FORMATS),
              help='Start of validity (UTC); now by default')
@click.option('--subject-der', metavar='filename',
              help='File with a DER encoded subject Name')
@click.option('--subject', help='Subject Name, e.g. "CN=DevAK,O=Example"')
@click.option('--issuer-der', metavar='filename',
              help='File with a DER encoded issuer Name')
@click.option('--issuer', help='Issuer Name; defaults to the subject for '
                               'self-signed certificates')
@click.option('-K', '--issuer-key', metavar='filename',
              help='Issuer private key; defaults to --key for self-signed '
                   'certificates')
@click.option('-k', '--key', metavar='filename', required=True,
              help='Subject key, public or private')
@click.command(help='''Generate a DevIK or DevAK certificate\n
               OUTFILE ending in .hex is written as Intel HEX at --hex-addr,
               anything else as DER (or PEM).''')
def gencert(key, issuer_key, issuer, issuer_der, subject, subject_der,
            not_before, not_after, validity_der, fw_hash, fw_image,
            device_dna, self_signed, subsystem_id, hex_addr, pem, outfile):
    subject_key = load_key(key)
    if subject_key is None:
        raise click.UsageError("Invalid passphrase for {}".format(key))
    if issuer_key is None:
        if not self_signed:
            raise click.UsageError("--issuer-key is required unless "
                                   "--self-signed is given")
        issuer_key = subject_key
    else:
        issuer_key = load_key(issuer_key)
        if issuer_key is None:
            raise click.UsageError("Invalid passphrase for issuer key")
    if not isinstance(issuer_key, keys.ECDSA384P1):
        raise click.UsageError("Signing requires the issuer private key")

    subject_der = encode_name(subject, subject_der, 'subject')
    if subject_der is None:
        raise click.UsageError("Either `--subject` or `--subject-der` "
                               "is required")
    issuer_der = encode_name(issuer, issuer_der, 'issuer')
    if issuer_der is None:
        if not self_signed:
            raise click.UsageError("Either `--issuer` or `--issuer-der` "
                                   "is required")
        issuer_der = subject_der

    if validity_der is not None:
        if not_before is not None or not_after is not None:
            raise click.UsageError("`--validity-der` can not be combined with "
                                   "`--not-before`/`--not-after`")
        with open(validity_der, 'rb') as f:
            validity = f.read()
    else:
        if not_before is None:
            not_before = datetime.datetime.now(datetime.timezone.utc).replace(
                microsecond=0, tzinfo=None)
        if not_after is None:
            not_after = NO_EXPIRY
        try:
            validity = encode_validity(not_before, not_after)
        except CertError as e:
            raise click.UsageError("Invalid validity: {}".format(e))

    if (fw_hash is None) == (fw_image is None):
        raise click.UsageError("Exactly one of `--fw-hash` or `--fw-image` "
                               "is required")
    if fw_image is not None:
        try:
            fw_hash = hashlib.sha3_384(load_bytes(fw_image)).digest()
        except FileNotFoundError:
            raise click.UsageError("Firmware image not found ({})"
                                   .format(fw_image))

    if self_signed and device_dna is None:
        raise click.UsageError("`--device-dna` is required with "
                               "`--self-signed`")

    ext = os.path.splitext(outfile)[1][1:].lower()
    if ext == INTEL_HEX_EXT and hex_addr is None:
        raise click.UsageError("`--hex-addr` is required for Intel HEX "
                               "output")

    store = CertificateStore()
    generator = CertificateGenerator(store, signer=EcdsaP384Signer(),
                                     device=device_dna)
    app_cfg = AppCfg(subject_public_key=subject_key.get_raw_public_bytes(),
                     issuer_public_key=issuer_key.get_raw_public_bytes(),
                     issuer_private_key=issuer_key,
                     fw_hash=fw_hash,
                     is_self_signed=self_signed)
    sink = HexImageSink() if ext == INTEL_HEX_EXT else None
    try:
        store.store_user_input(subsystem_id, UserCfgField.ISSUER, issuer_der)
        store.store_user_input(subsystem_id, UserCfgField.SUBJECT, subject_der)
        store.store_user_input(subsystem_id, UserCfgField.VALIDITY, validity)
        cert = generator.generate(subsystem_id, app_cfg, sink, hex_addr or 0)
    except CertError as e:
        raise click.ClickException("{} (0x{:02x})".format(e, e.code))

    if sink is not None:
        sink.save(outfile)
    elif pem:
        with open(outfile, 'w') as f:
            f.write(ssl.DER_cert_to_PEM_cert(cert))
    else:
        with open(outfile, 'wb') as f:
            f.write(cert)


@click.argument('certfile')
@click.option('-k', '--key', metavar='filename', required=True,
              help='Issuer key, public or private')
@click.command(help="Check that a certificate can be verified by given key")
def verify(key, certfile):
    key = load_key(key)
    if key is None:
        print("Invalid passphrase")
        sys.exit(1)
    try:
        tbs, signature = split_certificate(load_bytes(certfile))
    except FileNotFoundError:
        raise click.UsageError("Certificate file {} not found"
                               .format(certfile))
    except CertError as e:
        raise click.UsageError("Malformed certificate: {}".format(e))
    if key.verify(signature, tbs):
        print("Certificate was correctly validated")
        return
    print("Certificate signature does not match the given key")
    sys.exit(1)


@click.argument('certfile')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save certificate information to outfile in YAML format')
@click.option('-s', '--silent', default=False, is_flag=True,
              help='Do not print certificate information to output')
@click.command(help='Print the fields of a generated certificate')
def dumpcert(certfile, outfile, silent):
    dump_certinfo(certfile, outfile, silent)
    print("dumpcert has run successfully")


class AliasesGroup(click.Group):

    _aliases = {
        "create": "gencert",
    }

    def list_commands(self, ctx):
        cmds = [k for k in self.commands]
        aliases = [k for k in self._aliases]
        return sorted(cmds + aliases)

    def get_command(self, ctx, cmd_name):
        rv = click.Group.get_command(self, ctx, cmd_name)
        if rv is not None:
            return rv
        if cmd_name in self._aliases:
            return click.Group.get_command(self, ctx, self._aliases[cmd_name])
        return None


@click.command(help='Print dicecert version information')
def version():
    print(dicecert_version)


@click.option('-v', '--verbose', default=False, is_flag=True,
              help='Enable debug logging')
@click.command(cls=AliasesGroup,
               context_settings=dict(help_option_names=['-h', '--help']))
def dicecert(verbose):
    if verbose:
        logging.basicConfig(format='%(levelname)5s: %(message)s',
                            level=logging.DEBUG, stream=sys.stdout)


dicecert.add_command(keygen)
dicecert.add_command(getpub)
dicecert.add_command(gencert)
dicecert.add_command(verify)
dicecert.add_command(dumpcert)
dicecert.add_command(version)


if __name__ == '__main__':
    dicecert()
