# SPDX-FileCopyrightText: 2026-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.x509 import Certificate, CertificateBuilder
from cryptography.x509.oid import NameOID


def make_certificate(common_name: str) -> Certificate:
    """Create a self-signed Ed25519 certificate valid for one day"""
    private_key = Ed25519PrivateKey.generate()
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    start_date = datetime.now(tz=UTC)
    return CertificateBuilder(
        issuer_name=name,
        subject_name=name,
        public_key=private_key.public_key(),
        serial_number=x509.random_serial_number(),
        not_valid_before=start_date,
        not_valid_after=start_date + timedelta(days=1),
    ).sign(private_key, algorithm=None)


@pytest.fixture
def certificate_factory() -> Callable[[str], Certificate]:
    return make_certificate
