import asyncio
import base64
import struct

import aiohttp
import pytest

from backend.app.core.errors import StellarNetworkError
from backend.app.security import stellar

# Public example account used throughout the Stellar docs
VALID_ADDRESS = "GAAZI4TCR3TY5OJHCTJC2A4QSY6CJWJH5IAJTGKIN2ER7LBNVKOCCWN7"
# All-zero ed25519 key
ZERO_KEY_ADDRESS = "GAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAWHF"


def strkey(version_byte, payload):
    data = bytes([version_byte]) + payload
    return base64.b32encode(data + struct.pack("<H", stellar.crc16_xmodem(data))).decode()


class TestIsValidStellarAddress:
    @pytest.mark.parametrize("address", [VALID_ADDRESS, ZERO_KEY_ADDRESS])
    def test_accepts_account_ids(self, address):
        assert stellar.is_valid_stellar_address(address)

    def test_accepts_generated_account_id(self):
        assert stellar.is_valid_stellar_address(strkey(6 << 3, bytes(range(32))))

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "INVALID_WALLET",
            "GCFD...",
            VALID_ADDRESS[:-1] + "6",  # checksum mismatch
            VALID_ADDRESS.lower(),
            VALID_ADDRESS + "A",
            VALID_ADDRESS[:-1] + "1",  # "1" is not in the Base32 alphabet
        ],
    )
    def test_rejects_malformed(self, address):
        assert not stellar.is_valid_stellar_address(address)

    def test_rejects_secret_seed(self):
        # Same payload, secret-seed version byte ("S...")
        seed = strkey(18 << 3, bytes(32))
        assert seed.startswith("S")
        assert not stellar.is_valid_stellar_address(seed)

    def test_rejects_non_string(self):
        assert not stellar.is_valid_stellar_address(None)


class FakeResponse:
    def __init__(self, status):
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    requested = []

    def __init__(self, status=None, error=None, **kwargs):
        self.status = status
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def get(self, url):
        FakeSession.requested.append(url)
        if self.error:
            raise self.error
        return FakeResponse(self.status)


def fake_session(monkeypatch, status=None, error=None):
    FakeSession.requested = []
    monkeypatch.setattr(
        stellar.aiohttp,
        "ClientSession",
        lambda **kwargs: FakeSession(status=status, error=error, **kwargs),
    )


class TestCheckStellarWalletExists:
    async def test_200_means_exists(self, monkeypatch):
        fake_session(monkeypatch, status=200)

        assert await stellar.check_stellar_wallet_exists(VALID_ADDRESS, horizon_url="https://horizon.test/")
        assert FakeSession.requested == [f"https://horizon.test/accounts/{VALID_ADDRESS}"]

    async def test_404_means_missing(self, monkeypatch):
        fake_session(monkeypatch, status=404)

        assert await stellar.check_stellar_wallet_exists(VALID_ADDRESS) is False

    async def test_server_error_raises(self, monkeypatch):
        fake_session(monkeypatch, status=503)

        with pytest.raises(StellarNetworkError):
            await stellar.check_stellar_wallet_exists(VALID_ADDRESS)

    async def test_transport_error_raises(self, monkeypatch):
        fake_session(monkeypatch, error=aiohttp.ClientConnectionError("boom"))

        with pytest.raises(StellarNetworkError):
            await stellar.check_stellar_wallet_exists(VALID_ADDRESS)

    async def test_timeout_raises(self, monkeypatch):
        fake_session(monkeypatch, error=asyncio.TimeoutError())

        with pytest.raises(StellarNetworkError):
            await stellar.check_stellar_wallet_exists(VALID_ADDRESS)
