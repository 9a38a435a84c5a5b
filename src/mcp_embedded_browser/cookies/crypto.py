"""
Cookie value decryption.

Chromium browsers encrypt cookie values with a per-installation master key
stored in ``Local State`` (``os_crypt.encrypted_key``, base64, ``DPAPI``
prefix, wrapped with the Windows per-user data protection API). Values are
``v10``/``v20`` + 12-byte nonce + ciphertext + 16-byte GCM tag. Older values
are raw DPAPI blobs.

App-bound (``v20``) values on current Chrome builds fail authentication with
the DPAPI key alone; those cookies are skipped and the importer falls back to
live extraction.
"""

import os
import json
import base64
import platform
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

import logging
logger = logging.getLogger(__name__)


DPAPI_KEY_PREFIX = b"DPAPI"
VERSIONED_PREFIXES = (b"v10", b"v20")
PREFIX_LEN = 3
NONCE_LEN = 12
TAG_LEN = 16


def dpapi_unprotect(blob: bytes) -> Optional[bytes]:
    """
    Unwrap data with CryptUnprotectData for the current user.

    Returns:
        Optional[bytes]: Plain bytes, or None off Windows or when the call fails
    """
    if platform.system() != "Windows":
        return None

    import ctypes
    from ctypes import wintypes

    class DATA_BLOB(ctypes.Structure):
        _fields_ = [("cbData", wintypes.DWORD), ("pbData", ctypes.POINTER(ctypes.c_char))]

    buf = ctypes.create_string_buffer(blob, len(blob))
    blob_in = DATA_BLOB(len(blob), ctypes.cast(buf, ctypes.POINTER(ctypes.c_char)))
    blob_out = DATA_BLOB()

    ok = ctypes.windll.crypt32.CryptUnprotectData(
        ctypes.byref(blob_in), None, None, None, None, 0, ctypes.byref(blob_out)
    )
    if not ok:
        return None
    try:
        return ctypes.string_at(blob_out.pbData, blob_out.cbData)
    finally:
        ctypes.windll.kernel32.LocalFree(blob_out.pbData)


def load_master_key(user_data_path: str) -> Optional[bytes]:
    """
    Read and unwrap the browser's cookie master key.

    Args:
        user_data_path: Browser profile tree root (contains 'Local State')

    Returns:
        Optional[bytes]: The AES key, or None when it is missing or cannot be unwrapped
    """
    local_state = os.path.join(user_data_path, "Local State")
    if not os.path.isfile(local_state):
        return None
    try:
        with open(local_state, "r", encoding="utf-8") as f:
            encoded = json.load(f)["os_crypt"]["encrypted_key"]
        wrapped = base64.b64decode(encoded)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("No usable os_crypt key in %s: %s", local_state, e)
        return None

    if len(wrapped) > len(DPAPI_KEY_PREFIX) and wrapped.startswith(DPAPI_KEY_PREFIX):
        wrapped = wrapped[len(DPAPI_KEY_PREFIX):]
    return dpapi_unprotect(wrapped)


def decrypt_aes_gcm(encrypted: bytes, key: bytes) -> Optional[str]:
    """Decrypt a versioned value. None if it is too short or fails authentication."""
    if len(encrypted) < PREFIX_LEN + NONCE_LEN + TAG_LEN:
        return None
    nonce = encrypted[PREFIX_LEN:PREFIX_LEN + NONCE_LEN]
    ciphertext_and_tag = encrypted[PREFIX_LEN + NONCE_LEN:]
    try:
        plain = AESGCM(key).decrypt(nonce, ciphertext_and_tag, None)
    except (InvalidTag, ValueError):
        return None
    return plain.decode("utf-8", errors="replace")


def decrypt_cookie_value(encrypted: bytes, master_key: Optional[bytes]) -> Optional[str]:
    """
    Decrypt one stored cookie value.

    Args:
        encrypted: Raw encrypted_value column
        master_key: Key from load_master_key, or None

    Returns:
        Optional[str]: The value; "" for an empty blob; None when this cookie cannot be decrypted
    """
    if not encrypted:
        return ""
    if encrypted[:PREFIX_LEN] in VERSIONED_PREFIXES and len(encrypted) > PREFIX_LEN:
        if master_key is None:
            return None
        return decrypt_aes_gcm(encrypted, master_key)

    plain = dpapi_unprotect(encrypted)
    return plain.decode("utf-8", errors="replace") if plain is not None else None


__all__ = [
    "DPAPI_KEY_PREFIX",
    "VERSIONED_PREFIXES",
    "dpapi_unprotect",
    "load_master_key",
    "decrypt_aes_gcm",
    "decrypt_cookie_value",
]
