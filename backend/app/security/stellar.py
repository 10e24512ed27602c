# backend/app/security/stellar.py
"""
Stellar address utilities.

A Stellar account id ("G..." public key) is a StrKey:

    base32( version_byte | 32-byte ed25519 key | crc16 )

- version_byte for an account id is 6 << 3 (renders as the leading "G")
- crc16 is CRC16-XModem over version_byte + key, stored little-endian
- 35 bytes encode to exactly 56 Base32 characters, no padding

Existence is checked against Horizon: GET /accounts/{id} answers 404 for
addresses that were never funded.
"""
import asyncio
import base64
import binascii
import logging
import struct

import aiohttp

from backend.app.core.errors import StellarNetworkError
from backend.app.core.logging import mask_wallet

logger = logging.getLogger(__name__)

# Version byte for ed25519 public keys ("G...")
ACCOUNT_ID_VERSION_BYTE = 6 << 3
ACCOUNT_ID_LENGTH = 56
PAYLOAD_LENGTH = 32


def crc16_xmodem(data: bytes) -> int:
    """CRC16-XModem (poly 0x1021, init 0x0000)."""
    crc = 0x0000
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def is_valid_stellar_address(address: str) -> bool:
    """
    Check that `address` is a well-formed Stellar account id.

    Args:
        address: Candidate public key, e.g. "GAAZI4TCR3TY5OJH..."

    Returns:
        True if the length, alphabet, version byte and checksum are all valid.
        Secret seeds ("S..."), muxed accounts ("M...") and lowercase input
        are rejected.
    """
    if not isinstance(address, str) or len(address) != ACCOUNT_ID_LENGTH:
        return False

    try:
        decoded = base64.b32decode(address)
    except (binascii.Error, ValueError):
        return False

    if len(decoded) != 1 + PAYLOAD_LENGTH + 2:
        return False

    version_byte = decoded[0]
    data = decoded[:-2]
    (checksum,) = struct.unpack("<H", decoded[-2:])

    if version_byte != ACCOUNT_ID_VERSION_BYTE:
        return False

    return crc16_xmodem(data) == checksum


async def check_stellar_wallet_exists(
    address: str,
    horizon_url: str = "https://horizon.stellar.org",
    timeout: float = 10.0,
) -> bool:
    """
    Ask Horizon whether the account exists on the ledger.

    Returns:
        True on 200, False on 404.

    Raises:
        StellarNetworkError: any other status, or a transport failure.
    """
    url = f"{horizon_url.rstrip('/')}/accounts/{address}"
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url) as response:
                if response.status == 200:
                    return True
                if response.status == 404:
                    return False
                logger.warning(
                    "event=horizon_unexpected_status status=%s wallet=%s",
                    response.status,
                    mask_wallet(address),
                )
                raise StellarNetworkError()
    except aiohttp.ClientError as e:
        logger.warning("event=horizon_unreachable error=%s", type(e).__name__)
        raise StellarNetworkError() from e
    except asyncio.TimeoutError as e:
        logger.warning("event=horizon_timeout wallet=%s", mask_wallet(address))
        raise StellarNetworkError() from e
