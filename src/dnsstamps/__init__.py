# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .__info__ import __version__
from .certificates import load_certificates, tbs_certificate_hash
from .datamodel import Properties, Protocol
from .exceptions import DecodeError, InvalidFormat, InvalidProtocol, MalformedStamp, PreconditionViolation, StampError, TruncatedInput
from .stamps import DNSCryptRelayStamp, DNSCryptStamp, DNSStamp, DoHStamp, DoTStamp, ServerStamp, Stamp, decode, encode

__all__ = (  # noqa: RUF022
    '__version__',

    'Protocol',
    'Properties',

    'Stamp',
    'ServerStamp',
    'DNSStamp',
    'DNSCryptStamp',
    'DoHStamp',
    'DoTStamp',
    'DNSCryptRelayStamp',

    'encode',
    'decode',

    'load_certificates',
    'tbs_certificate_hash',

    'StampError',
    'PreconditionViolation',
    'DecodeError',
    'InvalidFormat',
    'InvalidProtocol',
    'TruncatedInput',
    'MalformedStamp',
)
