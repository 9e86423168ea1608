# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
DNS server stamps.

   A stamp encodes all the parameters required to connect to a secure DNS
   server as a single string. The string is the sdns:// prefix, followed
   by the URL-safe base64 encoding (without padding) of the binary stamp.

   The binary stamp starts with a byte identifying the protocol, followed
   by the informal properties of the server as a 64-bit little endian
   integer (absent for relays), followed by the length prefixed address
   and by protocol dependent fields:

     DNS:                  no extra fields
     DNSCrypt:             public key || provider name
     DNS-over-HTTPS:       hashes || hostname || path [|| bootstrap IPs]
     DNS-over-TLS:         hashes || hostname [|| bootstrap IPs]
     DNSCrypt relay:       no extra fields

   All fields are prefixed by a single byte holding their length. The items
   in the hashes and bootstrap IPs lists have the 0x80 bit set in their
   length byte if more items follow. The bootstrap IPs list is omitted if
   it is empty.

   See https://dnscrypt.info/stamps-specifications

"""

import base64
import binascii
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, ClassVar, Final, Self, cast

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from .datamodel import STAMP_PREFIX, BytesAdapter, BytesListAdapter, Properties, Protocol, StringAdapter, StringListAdapter, WireData, as_buffer
from .exceptions import InvalidFormat, InvalidProtocol, MalformedStamp, PreconditionViolation

__all__ = 'Stamp', 'ServerStamp', 'DNSStamp', 'DNSCryptStamp', 'DoHStamp', 'DoTStamp', 'DNSCryptRelayStamp', 'encode', 'decode'  # noqa: RUF022


PUBLIC_KEY_SIZE: Final = 32
DIGEST_SIZE: Final = 32

_base64url_alphabet = re.compile(r'[A-Za-z0-9_-]*')


# Validation helpers

def _check_text(name: str, value: str, *, required: bool = True) -> str:
    if not isinstance(value, str):
        raise TypeError(f'The {name} must be a string, not {value.__class__.__qualname__!r}')
    if required and not value:
        raise PreconditionViolation(f'The {name} must not be empty')
    return StringAdapter.validate(value)


def _check_hashes(hashes: Iterable[bytes]) -> tuple[bytes, ...]:
    if isinstance(hashes, str | bytes | bytearray | memoryview):
        raise TypeError(f'The certificate hashes must be a sequence of digests, not {hashes.__class__.__qualname__!r}')
    digests = []
    for digest in hashes:
        match digest:
            case bytes() | bytearray() | memoryview():
                digests.append(bytes(digest))
            case _:
                raise TypeError(f'Certificate hashes must be bytes, not {digest.__class__.__qualname__!r}')
    hashes = tuple(digests)
    if not hashes:
        raise PreconditionViolation('At least one certificate hash must be provided')
    for digest in hashes:
        if len(digest) != DIGEST_SIZE:
            raise PreconditionViolation(f'Certificate hashes must be {DIGEST_SIZE} bytes long (got one with {len(digest)} bytes)')
    return hashes


def _check_bootstrap_ips(bootstrap_ips: Iterable[str]) -> tuple[str, ...]:
    if isinstance(bootstrap_ips, str):
        raise TypeError('The bootstrap IPs must be a sequence of strings, not a string')
    return tuple(_check_text('bootstrap IP', address) for address in bootstrap_ips)


def _remaining(buffer: BytesIO) -> int:
    return len(buffer.getbuffer()) - buffer.tell()


# Stamp types

@dataclass(frozen=True)
class Stamp:
    """
    Base class for DNS stamps.

    A stamp is an immutable value with one concrete type per protocol,
    which is available as the proto class attribute. Stamps validate
    their arguments when created and raise PreconditionViolation if
    they are invalid.
    """

    proto: ClassVar[Protocol] = NotImplemented

    _stamp_types_: ClassVar[dict[Protocol, type['Stamp']]] = {}
    _address_required_: ClassVar[bool] = True

    address: str

    def __init_subclass__(cls, *, protocol: Protocol = NotImplemented, **kw: object) -> None:
        if protocol is not NotImplemented:
            if protocol in Stamp._stamp_types_:
                raise TypeError(f'A stamp type for the {protocol} protocol is already defined: {Stamp._stamp_types_[protocol].__qualname__}')
            cls.proto = protocol
            Stamp._stamp_types_[protocol] = cls
        super().__init_subclass__(**kw)

    def __new__(cls, *_args: object, **_kw: object) -> Self:
        if cls.proto is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract stamp type {cls.__qualname__!r} that does not define its protocol')
        return super().__new__(cls)

    def __post_init__(self) -> None:
        _check_text('address', self.address, required=self._address_required_)

    def __str__(self) -> str:
        return encode(self)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        """Decode a binary stamp. Use Stamp.from_wire to accept any protocol or a concrete type to require its protocol."""
        buffer = as_buffer(buffer)
        protocol = Protocol.from_wire(buffer)
        if not issubclass(stamp_type := Stamp._stamp_types_[protocol], cls):
            raise InvalidProtocol(protocol.wire_id, f'Expected a {cls.__qualname__} but got a {protocol} stamp')
        fields = stamp_type._fields_from_wire(buffer)
        if trailing_data := buffer.read():
            raise MalformedStamp(f'Found {len(trailing_data)} bytes of extra data after the last stamp field')
        try:
            return cast(type[Self], stamp_type)(**fields)
        except PreconditionViolation as exc:
            raise MalformedStamp(str(exc)) from exc

    @classmethod
    def from_string(cls, text: str) -> Self:
        """Decode a stamp from its textual sdns:// representation"""
        if not text.startswith(STAMP_PREFIX):
            raise InvalidFormat(f'The stamp does not start with {STAMP_PREFIX!r}')
        data = text.removeprefix(STAMP_PREFIX)
        if not _base64url_alphabet.fullmatch(data):
            raise InvalidFormat('The stamp contains characters outside the unpadded URL-safe base64 alphabet')
        if len(data) % 4 == 1:
            raise InvalidFormat(f'The stamp has an invalid base64 length ({len(data)} characters)')
        try:
            wire_data = base64.urlsafe_b64decode(data + '=' * (-len(data) % 4))
        except binascii.Error as exc:
            raise InvalidFormat(f'The stamp is not valid base64: {exc}') from exc
        # the unused bits of the last character must be zero
        if base64.urlsafe_b64encode(wire_data).decode('ascii').rstrip('=') != data:
            raise InvalidFormat('The stamp is not canonical base64 (the unused bits of the last character are set)')
        return cls.from_wire(wire_data)

    def to_wire(self) -> bytes:
        """Return the binary representation of the stamp"""
        return self.proto.to_wire() + self._props_to_wire() + StringAdapter.to_wire(self.address) + self._tail_to_wire()

    def wire_length(self) -> int:
        return self.proto.wire_length() + self._props_wire_length() + StringAdapter.wire_length(self.address) + self._tail_wire_length()

    @classmethod
    def _fields_from_wire(cls, buffer: BytesIO) -> dict[str, Any]:
        return {'address': StringAdapter.from_wire(buffer)}

    def _props_to_wire(self) -> bytes:
        return b''

    def _props_wire_length(self) -> int:
        return 0

    def _tail_to_wire(self) -> bytes:
        return b''

    def _tail_wire_length(self) -> int:
        return 0


@dataclass(frozen=True)
class ServerStamp(Stamp):
    """Base class for the stamps that describe DNS servers and carry their informal properties."""

    props: Properties = field(default=Properties(0), kw_only=True)

    def __post_init__(self) -> None:
        super().__post_init__()
        try:
            object.__setattr__(self, 'props', Properties(self.props))
        except ValueError as exc:
            raise PreconditionViolation(f'Invalid server properties: {self.props!r}') from exc

    @classmethod
    def _fields_from_wire(cls, buffer: BytesIO) -> dict[str, Any]:
        props = Properties.from_wire(buffer)
        return super()._fields_from_wire(buffer) | {'props': props}

    def _props_to_wire(self) -> bytes:
        return self.props.to_wire()

    def _props_wire_length(self) -> int:
        return self.props.wire_length()


@dataclass(frozen=True)
class DNSStamp(ServerStamp, protocol=Protocol.DNS):
    """A plain DNS server. The address is the IP address with an optional port."""


@dataclass(frozen=True)
class DNSCryptStamp(ServerStamp, protocol=Protocol.DNSCRYPT):
    """
    A DNSCrypt server.

    The address is the IP address of the server with an optional port if
    it is not reachable on the standard port (443). The public_key is the
    provider's 32 bytes Ed25519 public key, which can also be given as an
    Ed25519PublicKey instance.
    """

    public_key: bytes
    provider_name: str

    def __post_init__(self) -> None:
        super().__post_init__()
        match self.public_key:
            case Ed25519PublicKey() as key:
                public_key = key.public_bytes_raw()
            case bytes() | bytearray() | memoryview() as key:
                public_key = bytes(key)
            case key:
                raise TypeError(f'The public key must be bytes or an Ed25519PublicKey, not {key.__class__.__qualname__!r}')
        if len(public_key) != PUBLIC_KEY_SIZE:
            raise PreconditionViolation(f'The provider public key must be exactly {PUBLIC_KEY_SIZE} bytes long (got {len(public_key)} bytes)')
        object.__setattr__(self, 'public_key', public_key)
        _check_text('provider name', self.provider_name)

    @property
    def ed25519_public_key(self) -> Ed25519PublicKey:
        return Ed25519PublicKey.from_public_bytes(self.public_key)

    @classmethod
    def _fields_from_wire(cls, buffer: BytesIO) -> dict[str, Any]:
        fields = super()._fields_from_wire(buffer)
        public_key = BytesAdapter.from_wire(buffer)
        if len(public_key) != PUBLIC_KEY_SIZE:
            raise MalformedStamp(f'The provider public key must be {PUBLIC_KEY_SIZE} bytes long (got {len(public_key)} bytes)')
        provider_name = StringAdapter.from_wire(buffer)
        return fields | {'public_key': public_key, 'provider_name': provider_name}

    def _tail_to_wire(self) -> bytes:
        return BytesAdapter.to_wire(self.public_key) + StringAdapter.to_wire(self.provider_name)

    def _tail_wire_length(self) -> int:
        return BytesAdapter.wire_length(self.public_key) + StringAdapter.wire_length(self.provider_name)


def _hashes_from_wire(buffer: BytesIO) -> tuple[bytes, ...]:
    hashes = BytesListAdapter.from_wire(buffer)
    for digest in hashes:
        if len(digest) != DIGEST_SIZE:
            raise MalformedStamp(f'Certificate hashes must be {DIGEST_SIZE} bytes long (got one with {len(digest)} bytes)')
    return tuple(hashes)


def _bootstrap_ips_from_wire(buffer: BytesIO) -> tuple[str, ...]:
    if not _remaining(buffer):
        return ()
    return tuple(StringListAdapter.from_wire(buffer, encode_empty=True))


@dataclass(frozen=True)
class DoHStamp(ServerStamp, protocol=Protocol.DNS_OVER_HTTPS):
    """
    A DNS-over-HTTPS server.

    The address can be empty or contain just the port (e.g. ':443') when the
    hostname needs to be resolved. The hashes are the SHA256 digests of the
    TBS certificates in the verification chain (at least one is required).
    The bootstrap_ips are the addresses of regular DNS resolvers recommended
    for resolving the hostname.
    """

    _address_required_: ClassVar[bool] = False

    hashes: tuple[bytes, ...]
    hostname: str
    path: str = field(default='/dns-query', kw_only=True)
    bootstrap_ips: tuple[str, ...] = field(default=(), kw_only=True)

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, 'hashes', _check_hashes(self.hashes))
        _check_text('hostname', self.hostname)
        _check_text('path', self.path, required=False)
        object.__setattr__(self, 'bootstrap_ips', _check_bootstrap_ips(self.bootstrap_ips))

    @classmethod
    def _fields_from_wire(cls, buffer: BytesIO) -> dict[str, Any]:
        fields = super()._fields_from_wire(buffer)
        fields['hashes'] = _hashes_from_wire(buffer)
        fields['hostname'] = StringAdapter.from_wire(buffer)
        fields['path'] = StringAdapter.from_wire(buffer)
        fields['bootstrap_ips'] = _bootstrap_ips_from_wire(buffer)
        return fields

    def _tail_to_wire(self) -> bytes:
        return BytesListAdapter.to_wire(self.hashes) + StringAdapter.to_wire(self.hostname) + StringAdapter.to_wire(self.path) + StringListAdapter.to_wire(self.bootstrap_ips)

    def _tail_wire_length(self) -> int:
        return BytesListAdapter.wire_length(self.hashes) + StringAdapter.wire_length(self.hostname) + StringAdapter.wire_length(self.path) + StringListAdapter.wire_length(self.bootstrap_ips)


@dataclass(frozen=True)
class DoTStamp(ServerStamp, protocol=Protocol.DNS_OVER_TLS):
    """
    A DNS-over-TLS server.

    The fields have the same meaning as for DoHStamp, except that there is no path.
    """

    _address_required_: ClassVar[bool] = False

    hashes: tuple[bytes, ...]
    hostname: str
    bootstrap_ips: tuple[str, ...] = field(default=(), kw_only=True)

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, 'hashes', _check_hashes(self.hashes))
        _check_text('hostname', self.hostname)
        object.__setattr__(self, 'bootstrap_ips', _check_bootstrap_ips(self.bootstrap_ips))

    @classmethod
    def _fields_from_wire(cls, buffer: BytesIO) -> dict[str, Any]:
        fields = super()._fields_from_wire(buffer)
        fields['hashes'] = _hashes_from_wire(buffer)
        fields['hostname'] = StringAdapter.from_wire(buffer)
        fields['bootstrap_ips'] = _bootstrap_ips_from_wire(buffer)
        return fields

    def _tail_to_wire(self) -> bytes:
        return BytesListAdapter.to_wire(self.hashes) + StringAdapter.to_wire(self.hostname) + StringListAdapter.to_wire(self.bootstrap_ips)

    def _tail_wire_length(self) -> int:
        return BytesListAdapter.wire_length(self.hashes) + StringAdapter.wire_length(self.hostname) + StringListAdapter.wire_length(self.bootstrap_ips)


@dataclass(frozen=True)
class DNSCryptRelayStamp(Stamp, protocol=Protocol.DNSCRYPT_RELAY):
    """An Anonymized DNSCrypt relay. The address is the IP address and port of the relay."""


# Text representation

def encode(stamp: Stamp) -> str:
    """Return the textual representation of the stamp (sdns:// followed by the unpadded URL-safe base64 encoding)"""
    return STAMP_PREFIX + base64.urlsafe_b64encode(stamp.to_wire()).decode('ascii').rstrip('=')


def decode(text: str) -> Stamp:
    """Decode a stamp of any protocol from its textual representation"""
    return Stamp.from_string(text)
