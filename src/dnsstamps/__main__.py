# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Command line interface for encoding and decoding DNS stamps.

    dnsstamp decode sdns://AAIAAAAAAAAACTEyNy4wLjAuMQ
    dnsstamp encode dns 127.0.0.1 --no-logs
    dnsstamp encode doh --hostname dns.example.com --certificate chain.pem
    dnsstamp encode relay 192.0.2.1:443

"""

import argparse
import logging
import sys
from collections.abc import Iterator, Sequence
from dataclasses import fields

from .__info__ import __version__
from .certificates import load_certificates, tbs_certificate_hash
from .datamodel import Properties
from .stamps import DNSCryptRelayStamp, DNSCryptStamp, DNSStamp, DoHStamp, DoTStamp, Stamp, decode

__all__ = 'main',  # noqa: COM818


logger = logging.getLogger('dnsstamps.cli')


def hex_bytes(value: str) -> bytes:
    """Parse hex encoded bytes, optionally separated by colons (as output by openssl)"""
    try:
        return bytes.fromhex(value.replace(':', ''))
    except ValueError:
        raise argparse.ArgumentTypeError(f'invalid hex value: {value!r}') from None


def describe(stamp: Stamp) -> Iterator[tuple[str, str]]:
    """Yield (name, value) pairs describing the stamp fields in a human readable form"""
    yield 'protocol', str(stamp.proto)
    for stamp_field in fields(stamp):
        match value := getattr(stamp, stamp_field.name):
            case Properties():
                text = str(value)
            case bytes():
                text = value.hex()
            case tuple():
                text = ', '.join(item.hex() if isinstance(item, bytes) else item for item in value)
            case _:
                text = str(value)
        yield stamp_field.name.replace('_', ' '), text or '-'


def properties(args: argparse.Namespace) -> Properties:
    props = Properties(0)
    if args.dnssec:
        props |= Properties.DNSSEC
    if args.no_logs:
        props |= Properties.NO_LOGS
    if args.no_filter:
        props |= Properties.NO_FILTER
    return props


def certificate_hashes(args: argparse.Namespace) -> list[bytes]:
    hashes = list(args.hashes)
    for path in args.certificates:
        for certificate in load_certificates(path):
            digest = tbs_certificate_hash(certificate)
            logger.debug('Certificate %s from %s has TBS hash %s', certificate.subject.rfc4514_string(), path, digest.hex())
            hashes.append(digest)
    return hashes


# Command handlers

def decode_command(args: argparse.Namespace) -> int:
    status = 0
    for text in args.stamps:
        try:
            stamp = decode(text)
        except ValueError as exc:
            logger.debug('Failed to decode %r', text, exc_info=True)
            print(f'{text}: {exc}', file=sys.stderr)
            status = 1
            continue
        print(text)
        for name, value in describe(stamp):
            print(f'  {name}: {value}')
    return status


def encode_command(args: argparse.Namespace) -> int:
    match args.protocol:
        case 'dns':
            stamp: Stamp = DNSStamp(args.address, props=properties(args))
        case 'dnscrypt':
            stamp = DNSCryptStamp(args.address, args.public_key, args.provider_name, props=properties(args))
        case 'doh':
            stamp = DoHStamp(args.address, certificate_hashes(args), args.hostname, path=args.path, bootstrap_ips=args.bootstrap_ips, props=properties(args))
        case 'dot':
            stamp = DoTStamp(args.address, certificate_hashes(args), args.hostname, bootstrap_ips=args.bootstrap_ips, props=properties(args))
        case 'relay':
            stamp = DNSCryptRelayStamp(args.address)
        case protocol:
            raise RuntimeError(f'Unhandled protocol: {protocol!r}')
    print(stamp)
    return 0


# Argument parsing

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='dnsstamp', description='Encode and decode DNS server stamps.')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--log-level', default='WARNING', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='logging level (default: %(default)s)')
    commands = parser.add_subparsers(dest='command', required=True)

    decode_parser = commands.add_parser('decode', help='decode stamps and print their fields')
    decode_parser.add_argument('stamps', nargs='+', metavar='STAMP', help='an sdns:// stamp')
    decode_parser.set_defaults(handler=decode_command)

    encode_parser = commands.add_parser('encode', help='create a stamp')
    protocols = encode_parser.add_subparsers(dest='protocol', required=True)

    server_options = argparse.ArgumentParser(add_help=False)
    server_options.add_argument('--dnssec', action='store_true', help='the server supports DNSSEC')
    server_options.add_argument('--no-logs', action='store_true', help='the server does not keep logs')
    server_options.add_argument('--no-filter', action='store_true', help='the server does not filter responses')

    tls_options = argparse.ArgumentParser(add_help=False)
    tls_options.add_argument('--address', default='', help='the IP address and/or port of the server (default: resolve the hostname)')
    tls_options.add_argument('--hostname', required=True, help='the server host name')
    tls_options.add_argument('--hash', dest='hashes', action='append', type=hex_bytes, default=[], metavar='HEX', help='the SHA256 digest of a TBS certificate in the chain (can be repeated)')
    tls_options.add_argument('--certificate', dest='certificates', action='append', default=[], metavar='PEM', help='a PEM file with certificates to compute the hashes from (can be repeated)')
    tls_options.add_argument('--bootstrap-ip', dest='bootstrap_ips', action='append', default=[], metavar='IP', help='a resolver to use for resolving the hostname (can be repeated)')

    dns_parser = protocols.add_parser('dns', parents=[server_options], help='a plain DNS server')
    dns_parser.add_argument('address', help='the IP address of the server with an optional port')

    dnscrypt_parser = protocols.add_parser('dnscrypt', parents=[server_options], help='a DNSCrypt server')
    dnscrypt_parser.add_argument('address', help='the IP address of the server with an optional port')
    dnscrypt_parser.add_argument('--public-key', required=True, type=hex_bytes, metavar='HEX', help="the provider's Ed25519 public key")
    dnscrypt_parser.add_argument('--provider-name', required=True, help='the name of the DNSCrypt provider')

    doh_parser = protocols.add_parser('doh', parents=[server_options, tls_options], help='a DNS-over-HTTPS server')
    doh_parser.add_argument('--path', default='/dns-query', help='the URI path of the resolver (default: %(default)s)')

    protocols.add_parser('dot', parents=[server_options, tls_options], help='a DNS-over-TLS server')

    relay_parser = protocols.add_parser('relay', help='an Anonymized DNSCrypt relay')
    relay_parser.add_argument('address', help='the IP address and port of the relay')

    encode_parser.set_defaults(handler=encode_command)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format='%(levelname)s: %(message)s')
    try:
        return args.handler(args)
    except (OSError, ValueError) as exc:
        logger.debug('The %s command failed', args.command, exc_info=True)
        print(f'error: {exc}', file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
