# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from os import PathLike
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509 import Certificate

__all__ = 'load_certificates', 'tbs_certificate_hash'


def tbs_certificate_hash(certificate: Certificate) -> bytes:
    """
    Return the SHA256 digest of the TBS (to be signed) part of the certificate.

    This is the value that DNS-over-HTTPS and DNS-over-TLS stamps use to pin
    the certificates in the verification chain of the server.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(certificate.tbs_certificate_bytes)
    return digest.finalize()


def load_certificates(path: str | PathLike[str]) -> list[Certificate]:
    """Load all the PEM encoded certificates from the given file"""
    return x509.load_pem_x509_certificates(Path(path).expanduser().read_bytes())
