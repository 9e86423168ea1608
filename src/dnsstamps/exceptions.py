# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'StampError', 'PreconditionViolation', 'DecodeError', 'InvalidFormat', 'InvalidProtocol', 'TruncatedInput', 'MalformedStamp'  # noqa: RUF022


class StampError(ValueError):
    """Base class for all the errors raised by this package."""


class PreconditionViolation(StampError):
    """
    Raised when a stamp is constructed with invalid arguments.

    This signals a programming error in the caller (an empty required
    string, a public key or digest of the wrong length, an empty list
    of certificate hashes or a field that doesn't fit in a stamp).

    """


class DecodeError(StampError):
    """
    Base class for the errors raised while decoding a stamp.

    Stamps usually come from untrusted sources, so all the problems found
    while decoding them are reported using subclasses of this exception.
    Decoding is all or nothing, a partially decoded stamp is never returned.

    """


class InvalidFormat(DecodeError):
    """Raised when the stamp text doesn't have the sdns:// prefix or is not valid unpadded base64url."""


class InvalidProtocol(DecodeError):
    """Raised when a stamp uses an unknown or unexpected protocol identifier."""

    def __init__(self, wire_id: int, message: str | None = None) -> None:
        self.wire_id = wire_id
        super().__init__(message or f'Invalid protocol identifier: 0x{wire_id:02x}')


class TruncatedInput(DecodeError):
    """Raised when a field declares a length that exceeds the remaining data."""


class MalformedStamp(DecodeError):
    """
    Raised when the decoded data is internally inconsistent.

    For example a public key or certificate hash of the wrong size, text
    fields that are not valid UTF-8, reserved property bits that are set,
    a missing required field or extra data after the last field.

    """
