# -*- coding: utf-8 -*-

"""AES-128 file encryption, implemented from scratch on NumPy.

    >>> import aesfile
    >>> key = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
    >>> aesfile.encrypt("notes.txt", "notes.txt.aes", key)
    >>> aesfile.decrypt("notes.txt.aes", "notes.out.txt", key)

The cipher itself (field arithmetic, S-box, key schedule, rounds) lives
in `aesfile.cipher`; padding and file streaming in `aesfile.codec`.  See
those modules' docstrings for the state layout and the wire format.

Blocks are encrypted independently (ECB) and nothing is authenticated.
Fine for learning how AES works, not for protecting anything.
"""

__version__ = "0.2"

from aesfile.cipher import (  # noqa: E402
    decrypt_block,
    decrypt_raw,
    encrypt_block,
    encrypt_raw,
    expand_key,
)
from aesfile.codec import add_padding, decrypt, encrypt, remove_padding  # noqa: E402
from aesfile.errors import (  # noqa: E402
    AESError,
    IOFailure,
    KeySizeError,
    MalformedCiphertext,
    OpenFailure,
    ShortRead,
)

__all__ = (
    "encrypt",
    "decrypt",
    "add_padding",
    "remove_padding",
    "expand_key",
    "encrypt_block",
    "decrypt_block",
    "encrypt_raw",
    "decrypt_raw",
    "AESError",
    "KeySizeError",
    "OpenFailure",
    "IOFailure",
    "MalformedCiphertext",
    "ShortRead",
)
