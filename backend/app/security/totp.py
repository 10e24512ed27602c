# backend/app/security/totp.py
"""
TOTP primitives for the second login factor.

services/two_factor.py drives enrollment with these: setup stores a fresh
secret and returns its otpauth:// URI as a QR image, enable and
/auth/login-2fa then check codes from the user's authenticator app.
Codes are the RFC 6238 defaults (6 digits, 30 s step, HMAC-SHA1).
"""
import pyotp
import qrcode
import io
import base64


def generate_totp_secret() -> str:
    """Base32 secret stored in two_factor_auth.secret."""
    return pyotp.random_base32()


def get_totp_uri(secret: str, account_name: str, issuer: str) -> str:
    """otpauth:// URI labelled with the user's email and TOTP_ISSUER."""
    totp = pyotp.TOTP(secret)
    return totp.provisioning_uri(name=account_name, issuer_name=issuer)


def generate_qr_code_base64(uri: str) -> str:
    """
    PNG QR code of an enrollment URI, Base64 encoded.

    Returned as `qrCode` by POST /2fa/setup, ready for a data: URL.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)

    return base64.b64encode(buffer.read()).decode("utf-8")


def verify_totp(secret: str, code: str) -> bool:
    """
    True when `code` matches the current step or one step either side.

    Spaces are tolerated ("123 456"); anything but six digits is rejected
    before touching the secret.
    """
    if not secret or not code:
        return False

    code = code.strip().replace(" ", "")
    if len(code) != 6 or not code.isdigit():
        return False

    try:
        totp = pyotp.TOTP(secret)
        return totp.verify(code, valid_window=1)
    except (TypeError, ValueError):
        # Secret is not valid Base32
        return False
