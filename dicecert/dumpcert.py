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
Parse and print the fields of a generated certificate.
"""
import datetime
import os.path

import click
import yaml
from cryptography import x509

from . import extensions, tbs
from .der import (TAG_BIT_STRING, TAG_BOOLEAN, TAG_GENERALIZED_TIME,
                  TAG_INTEGER, TAG_OCTET_STRING, TAG_OID, TAG_SEQUENCE,
                  TAG_UTC_TIME, LONG_FORM, context_tag)
from .errors import EncodingError
from .sink import load_bytes

_LINE_LENGTH = 60

OID_NAMES = {
    extensions.OID_SUB_KEY_IDENTIFIER: "subjectKeyIdentifier",
    extensions.OID_AUTH_KEY_IDENTIFIER: "authorityKeyIdentifier",
    extensions.OID_TCB_INFO_EXTN: "tcg-dice-TcbInfo",
    extensions.OID_UEID_EXTN: "tcg-dice-Ueid",
    extensions.OID_KEY_USAGE_EXTN: "keyUsage",
    extensions.OID_EKU_EXTN: "extKeyUsage",
    tbs.OID_SIGN_ALGO: "ecdsa-with-SHA384",
    tbs.OID_EC_PUBLIC_KEY: "id-ecPublicKey",
    tbs.OID_P384: "secp384r1",
}


def parse_tlv(buf, off, end=None):
    """Return (tag, value offset, value length) of the TLV at ``off``."""
    if end is None:
        end = len(buf)
    if off + 2 > end:
        raise EncodingError("Truncated TLV at offset {}".format(off))
    tag = buf[off]
    length = buf[off + 1]
    value_off = off + 2
    if length & LONG_FORM:
        nbytes = length & 0x7f
        if nbytes == 0 or value_off + nbytes > end:
            raise EncodingError("Bad length at offset {}".format(off))
        length = int.from_bytes(buf[value_off:value_off + nbytes], 'big')
        value_off += nbytes
    if value_off + length > end:
        raise EncodingError("TLV at offset {} runs past its container"
                            .format(off))
    return tag, value_off, length


def children(buf, off, end):
    """Split the content ``buf[off:end]`` into (tag, start, value, length)."""
    items = []
    while off < end:
        tag, value_off, length = parse_tlv(buf, off, end)
        items.append((tag, off, value_off, length))
        off = value_off + length
    return items


def _expect(item, tag, what):
    if item[0] != tag:
        raise EncodingError("Expected {} (tag 0x{:02x}), found tag 0x{:02x}"
                            .format(what, tag, item[0]))


def _fields(buf, item, what, *counts):
    items = children(buf, item[2], item[2] + item[3])
    if len(items) not in counts:
        raise EncodingError("{} has {} fields".format(what, len(items)))
    return items


def decode_oid(value):
    arcs = []
    n = 0
    for b in value:
        n = (n << 7) | (b & 0x7f)
        if not b & 0x80:
            arcs.append(n)
            n = 0
    if not arcs:
        raise EncodingError("Empty OBJECT IDENTIFIER")
    first = min(arcs[0] // 40, 2)
    return ".".join(str(a) for a in [first, arcs[0] - 40 * first] + arcs[1:])


def decode_name(buf, off, length):
    """Decode a Name into its RFC 4514 string."""
    rdns = []
    for _, _, set_off, set_len in children(buf, off, off + length):
        attrs = []
        for atv in children(buf, set_off, set_off + set_len):
            _expect(atv, TAG_SEQUENCE, "AttributeTypeAndValue")
            oid, val = children(buf, atv[2], atv[2] + atv[3])
            _expect(oid, TAG_OID, "attribute type")
            text = bytes(buf[val[2]:val[2] + val[3]]).decode('utf-8')
            attrs.append(x509.NameAttribute(
                x509.ObjectIdentifier(decode_oid(buf[oid[2]:oid[2] + oid[3]])),
                text))
        rdns.append(x509.RelativeDistinguishedName(attrs))
    return x509.Name(rdns).rfc4514_string()


def decode_time(tag, value):
    text = bytes(value).decode('ascii')
    if tag == TAG_UTC_TIME:
        # YY of 50 or more is 19YY, 20YY otherwise.
        text = ("19" if int(text[:2]) >= 50 else "20") + text
    elif tag != TAG_GENERALIZED_TIME:
        raise EncodingError("Unknown Time tag 0x{:02x}".format(tag))
    when = datetime.datetime.strptime(text, "%Y%m%d%H%M%SZ")
    return when.isoformat() + "Z"


def split_certificate(der):
    """Return the TBSCertificate bytes and the DER ECDSA signature."""
    tag, off, length = parse_tlv(der, 0)
    if tag != TAG_SEQUENCE or off + length != len(der):
        raise EncodingError("Not a DER Certificate")
    items = children(der, off, off + length)
    if len(items) != 3:
        raise EncodingError("Certificate has {} fields, expected 3"
                            .format(len(items)))
    tbs_item, _, sig_item = items
    _expect(sig_item, TAG_BIT_STRING, "signatureValue")
    tbs_bytes = bytes(der[tbs_item[1]:tbs_item[2] + tbs_item[3]])
    signature = bytes(der[sig_item[2] + 1:sig_item[2] + sig_item[3]])
    return tbs_bytes, signature


def _hex(buf, item):
    return bytes(buf[item[2]:item[2] + item[3]]).hex()


def parse_extensions(buf, item):
    _expect(item, context_tag(3), "extensions")
    seq, = _fields(buf, item, "extensions", 1)
    exts = []
    for ext in children(buf, seq[2], seq[2] + seq[3]):
        fields = _fields(buf, ext, "Extension", 2, 3)
        oid_hex = bytes(buf[fields[0][1]:fields[0][2] + fields[0][3]]).hex().upper()
        critical = False
        if fields[1][0] == TAG_BOOLEAN:
            critical = buf[fields[1][2]] != 0
        _expect(fields[-1], TAG_OCTET_STRING, "extnValue")
        exts.append({
            "oid": decode_oid(buf[fields[0][2]:fields[0][2] + fields[0][3]]),
            "name": OID_NAMES.get(oid_hex, "unknown"),
            "critical": critical,
            "value": _hex(buf, fields[-1]),
        })
    return exts


def parse_certificate(der):
    """Decode a certificate into a dictionary of printable fields."""
    _, off, length = parse_tlv(der, 0)
    tbs_item, alg_item, sig_item = children(der, off, off + length)
    fields = children(der, tbs_item[2], tbs_item[2] + tbs_item[3])
    if len(fields) != 8:
        raise EncodingError("TBSCertificate has {} fields, expected 8"
                            .format(len(fields)))
    ver, serial, alg, issuer, validity, subject, spki, exts = fields

    ver_int, = _fields(der, ver, "version", 1)
    _expect(serial, TAG_INTEGER, "serialNumber")
    not_before, not_after = _fields(der, validity, "validity", 2)
    alg_oid = _fields(der, alg, "signature", 1, 2)[0]
    key_bits = _fields(der, spki, "subjectPublicKeyInfo", 2)[1]
    sig_seq = children(der, sig_item[2] + 1, sig_item[2] + sig_item[3])
    if len(sig_seq) != 1:
        raise EncodingError("signatureValue has {} fields".format(len(sig_seq)))
    r, s = _fields(der, sig_seq[0], "ECDSA-Sig-Value", 2)

    oid_hex = bytes(der[alg_oid[1]:alg_oid[2] + alg_oid[3]]).hex().upper()
    return {
        "tbs": {
            "version": der[ver_int[2]] + 1,
            "serial": _hex(der, serial),
            "signature": OID_NAMES.get(oid_hex, decode_oid(
                der[alg_oid[2]:alg_oid[2] + alg_oid[3]])),
            "issuer": decode_name(der, issuer[2], issuer[3]),
            "validity": {
                "not_before": decode_time(not_before[0], der[not_before[2]:
                                          not_before[2] + not_before[3]]),
                "not_after": decode_time(not_after[0], der[not_after[2]:
                                         not_after[2] + not_after[3]]),
            },
            "subject": decode_name(der, subject[2], subject[3]),
            # Skip the unused bits count and the point format byte.
            "public_key": bytes(der[key_bits[2] + 2:
                                    key_bits[2] + key_bits[3]]).hex(),
            "extensions": parse_extensions(der, exts),
        },
        "signature": {
            "r": _hex(der, r),
            "s": _hex(der, s),
        },
        "size": len(der),
    }


def print_in_row(row_text):
    row_text = "#### " + row_text + " "
    fill = "#" * (_LINE_LENGTH - len(row_text))
    print(row_text + fill)


def print_hex(label, value, indent=0):
    chunk = 32
    pad = " " * indent
    print(pad + label + ":", value[:chunk])
    for i in range(chunk, len(value), chunk):
        print(pad + " " * (len(label) + 2) + value[i:i + chunk])


def dump_certinfo(certfile, outfile=None, silent=False):
    """Parse a certificate and print/save its fields."""
    try:
        der = load_bytes(certfile)
    except FileNotFoundError:
        raise click.UsageError("Certificate file not found ({})"
                               .format(certfile))
    try:
        info = parse_certificate(der)
    except (EncodingError, IndexError, ValueError) as e:
        raise click.UsageError("Malformed certificate: {}".format(e))

    if outfile is not None:
        with open(outfile, "w") as outf:
            yaml.dump(info, outf, sort_keys=False)

    if silent:
        return info

    print("Printing content of certificate:", os.path.basename(certfile), "\n")

    print_in_row("TBS certificate")
    fields = info["tbs"]
    for key in ("version", "serial", "signature", "issuer", "subject"):
        print(key, ":", " " * (12 - len(key)), fields[key], sep="")
    print("not before:  ", fields["validity"]["not_before"])
    print("not after:   ", fields["validity"]["not_after"])
    print_hex("public key", fields["public_key"])

    print_in_row("Extensions")
    indent = _LINE_LENGTH // 8
    for ext in fields["extensions"]:
        print(" " * indent, "-" * 45)
        print(" " * indent, "{} ({}){}".format(
            ext["name"], ext["oid"], ", critical" if ext["critical"] else ""))
        print_hex("value", ext["value"], indent + 1)

    print_in_row("Signature")
    print_hex("r", info["signature"]["r"])
    print_hex("s", info["signature"]["s"])
    print_in_row("End of certificate ({} bytes)".format(info["size"]))
    return info
