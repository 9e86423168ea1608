# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import enum
from collections.abc import Sequence
from io import BytesIO
from typing import Any, ClassVar, Final, Protocol as TypingProtocol, Self, runtime_checkable

from .exceptions import InvalidProtocol, MalformedStamp, PreconditionViolation, TruncatedInput

__all__ = (  # noqa: RUF022
    # Constants

    'STAMP_PREFIX',
    'RELAY_MASK',
    'MORE_ITEMS_MASK',
    'MAX_FIELD_LENGTH',
    'PROPERTIES_SIZE',

    # Protocols and types

    'WireData',
    'DataWireAdapter',
    'ListItemAdapter',

    # Enumeration and flag types

    'Protocol',
    'Properties',

    # Adapters

    'BytesAdapter',
    'StringAdapter',
    'ListAdapter',
    'BytesListAdapter',
    'StringListAdapter',
)


STAMP_PREFIX: Final = 'sdns://'

RELAY_MASK: Final = 0x80       # set in the protocol identifier of relay stamps
MORE_ITEMS_MASK: Final = 0x80  # set in the length byte of all list items except the last
MAX_FIELD_LENGTH: Final = 0x7f

PROPERTIES_SIZE: Final = 8


type WireData = bytes | bytearray | memoryview | BytesIO


@runtime_checkable
class DataWireAdapter[T](TypingProtocol):
    """Wire protocol adapter for a stamp field of type T"""

    @staticmethod
    def from_wire(buffer: WireData) -> T: ...

    @staticmethod
    def to_wire(value: T, /) -> bytes: ...

    @staticmethod
    def wire_length(value: T, /) -> int: ...

    @staticmethod
    def validate(value: T, /) -> T: ...


@runtime_checkable
class ListItemAdapter[T](DataWireAdapter[T], TypingProtocol):
    """Wire protocol adapter for a stamp field of type T that can also be an item in a list"""

    empty: T

    @staticmethod
    def item_from_wire(buffer: WireData) -> tuple[T, bool]: ...

    @staticmethod
    def to_wire(value: T, /, *, more: bool = False) -> bytes: ...


# Helpers

def as_buffer(buffer: WireData) -> BytesIO:
    return buffer if isinstance(buffer, BytesIO) else BytesIO(buffer)


def read_exact(buffer: BytesIO, size: int, description: str) -> bytes:
    """Read exactly size bytes from buffer or raise TruncatedInput"""
    data = buffer.read(size)
    if len(data) < size:
        raise TruncatedInput(f'Insufficient data in buffer to extract {description} (needed {size} bytes, got {len(data)})')
    return data


# Enumeration and flag types

class Protocol(enum.IntEnum):
    """
    The protocol of a DNS server stamp.

    The enumeration value is the ordinal of the protocol. On the wire,
    relay protocols are identified by the protocol they relay with the
    RELAY_MASK bit set (see wire_id).
    """

    label: str

    def __new__(cls, value: int, label: str) -> Self:
        member = int.__new__(cls, value)
        member._value_ = value
        member.label = label
        return member

    DNS = 0, 'DNS'
    DNSCRYPT = 1, 'DNSCrypt'
    DNS_OVER_HTTPS = 2, 'DNS-over-HTTPS'
    DNS_OVER_TLS = 3, 'DNS-over-TLS'
    DNSCRYPT_RELAY = 4, 'Anonymized DNSCrypt relay'

    def __str__(self) -> str:
        return self.label

    @property
    def is_relay(self) -> bool:
        return self > Protocol.DNS_OVER_TLS

    @property
    def wire_id(self) -> int:
        """The protocol identifier used on the wire"""
        if self.is_relay:
            return RELAY_MASK | Protocol(self - RELAY_DISTANCE).wire_id
        return self.value

    @classmethod
    def from_wire_id(cls, wire_id: int) -> Self:
        """Return the protocol with the given wire identifier or raise InvalidProtocol"""
        if not 0 <= wire_id <= 0xff:
            raise InvalidProtocol(wire_id)
        is_relay = bool(wire_id & RELAY_MASK)
        ordinal = wire_id & ~RELAY_MASK
        if is_relay:
            ordinal += RELAY_DISTANCE
        try:
            protocol = cls(ordinal)
        except ValueError:
            raise InvalidProtocol(wire_id) from None
        # the relay bit must lead to a relay protocol and its absence to a non-relay one
        if protocol.is_relay != is_relay:
            raise InvalidProtocol(wire_id)
        return protocol

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        buffer = as_buffer(buffer)
        return cls.from_wire_id(read_exact(buffer, 1, 'the protocol identifier')[0])

    def to_wire(self) -> bytes:
        return self.wire_id.to_bytes(1)

    def wire_length(self) -> int:
        return 1


RELAY_DISTANCE: Final = Protocol.DNSCRYPT_RELAY - Protocol.DNSCRYPT


class Properties(enum.IntFlag, boundary=enum.STRICT):
    """
    Informal properties of a DNS server.

    They are encoded as an unsigned 64-bit little endian integer, where
    bit n is set if the n-th property is present. The bits that do not
    correspond to a defined property are reserved and must be zero.
    """

    DNSSEC = 1 << 0
    NO_LOGS = 1 << 1
    NO_FILTER = 1 << 2

    def __str__(self) -> str:
        return ', '.join(_property_labels[flag] for flag in self)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        buffer = as_buffer(buffer)
        value = int.from_bytes(read_exact(buffer, PROPERTIES_SIZE, 'the server properties'), byteorder='little')
        try:
            return cls(value)
        except ValueError:
            raise MalformedStamp(f'Reserved server property bits are set: 0x{value:016x}') from None

    def to_wire(self) -> bytes:
        return self.to_bytes(PROPERTIES_SIZE, byteorder='little')

    def wire_length(self) -> int:
        return PROPERTIES_SIZE


_property_labels = {
    Properties.DNSSEC: 'DNSSEC',
    Properties.NO_LOGS: 'No logs',
    Properties.NO_FILTER: 'No filter',
}


# Adapters

class BytesAdapter:
    """Adapter for a bytes field of up to MAX_FIELD_LENGTH bytes, prefixed with its length"""

    empty: ClassVar[bytes] = b''

    @classmethod
    def from_wire(cls, buffer: WireData) -> bytes:
        value, more = cls.item_from_wire(buffer)
        if more:
            raise MalformedStamp('The more items flag is set on a field that is not part of a list')
        return value

    @classmethod
    def item_from_wire(cls, buffer: WireData) -> tuple[bytes, bool]:
        """Extract a field and the state of the more items flag from its length byte"""
        buffer = as_buffer(buffer)
        length_byte = read_exact(buffer, 1, 'the field length')[0]
        data_length = length_byte & ~MORE_ITEMS_MASK
        data = read_exact(buffer, data_length, f'a field of {data_length} bytes')
        return data, bool(length_byte & MORE_ITEMS_MASK)

    @classmethod
    def to_wire(cls, value: bytes, /, *, more: bool = False) -> bytes:
        assert len(value) <= MAX_FIELD_LENGTH, f'Field is too long to be encoded ({len(value)} > {MAX_FIELD_LENGTH} bytes)'
        length_byte = len(value) | MORE_ITEMS_MASK if more else len(value)
        return length_byte.to_bytes(1) + value

    @classmethod
    def wire_length(cls, value: bytes, /) -> int:
        return 1 + len(value)

    @classmethod
    def validate(cls, value: bytes, /) -> bytes:
        if len(value) > MAX_FIELD_LENGTH:
            raise PreconditionViolation(f'Value is too long for a stamp field (max length is {MAX_FIELD_LENGTH}, value has {len(value)} bytes)')
        return value


class StringAdapter:
    """Represent strings as UTF-8 encoded length prefixed bytes of up to MAX_FIELD_LENGTH bytes"""

    empty: ClassVar[str] = ''

    @classmethod
    def from_wire(cls, buffer: WireData) -> str:
        value, more = cls.item_from_wire(buffer)
        if more:
            raise MalformedStamp('The more items flag is set on a field that is not part of a list')
        return value

    @classmethod
    def item_from_wire(cls, buffer: WireData) -> tuple[str, bool]:
        data, more = BytesAdapter.item_from_wire(buffer)
        try:
            return data.decode(), more
        except UnicodeDecodeError as exc:
            raise MalformedStamp(f'Text field is not valid UTF-8: {data!r}') from exc

    @classmethod
    def to_wire(cls, value: str, /, *, more: bool = False) -> bytes:
        return BytesAdapter.to_wire(value.encode(), more=more)

    @classmethod
    def wire_length(cls, value: str, /) -> int:
        return 1 + len(value.encode())

    @classmethod
    def validate(cls, value: str, /) -> str:
        if (length := len(value.encode())) > MAX_FIELD_LENGTH:
            raise PreconditionViolation(f'Text is too long for a stamp field (max length is {MAX_FIELD_LENGTH}, value has {length} bytes when encoded): {value!r}')
        return value


class ListAdapter[T]:
    """
    Adapter for a list of length prefixed items.

    Each item is encoded by the item adapter and all items except the last
    one have the MORE_ITEMS_MASK bit set in their length byte. An empty list
    is not encoded at all, unless encode_empty is requested, in which case a
    single empty item is used as a placeholder.
    """

    _item_: ClassVar[ListItemAdapter[Any]] = NotImplemented

    def __init_subclass__(cls, *, item: ListItemAdapter[Any] = NotImplemented, **kw: object) -> None:
        if item is not NotImplemented:
            cls._item_ = item
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData, *, encode_empty: bool = False) -> list[T]:
        if cls._item_ is NotImplemented:
            raise TypeError(f'Cannot use abstract list adapter {cls.__qualname__!r} that does not define its item adapter')
        buffer = as_buffer(buffer)
        items = []
        more = True
        while more:
            item, more = cls._item_.item_from_wire(buffer)
            items.append(item)
        if encode_empty and items == [cls._item_.empty]:
            return []
        return items

    @classmethod
    def to_wire(cls, values: Sequence[T], /, *, encode_empty: bool = False) -> bytes:
        if cls._item_ is NotImplemented:
            raise TypeError(f'Cannot use abstract list adapter {cls.__qualname__!r} that does not define its item adapter')
        if not values:
            return cls._item_.to_wire(cls._item_.empty) if encode_empty else b''
        last = len(values) - 1
        return b''.join(cls._item_.to_wire(value, more=index < last) for index, value in enumerate(values))

    @classmethod
    def wire_length(cls, values: Sequence[T], /, *, encode_empty: bool = False) -> int:
        if cls._item_ is NotImplemented:
            raise TypeError(f'Cannot use abstract list adapter {cls.__qualname__!r} that does not define its item adapter')
        if not values:
            return 1 if encode_empty else 0
        return sum(cls._item_.wire_length(value) for value in values)

    @classmethod
    def validate(cls, values: Sequence[T], /) -> Sequence[T]:
        if cls._item_ is NotImplemented:
            raise TypeError(f'Cannot use abstract list adapter {cls.__qualname__!r} that does not define its item adapter')
        for value in values:
            cls._item_.validate(value)
        return values


class BytesListAdapter(ListAdapter[bytes], item=BytesAdapter):
    pass


class StringListAdapter(ListAdapter[str], item=StringAdapter):
    pass
