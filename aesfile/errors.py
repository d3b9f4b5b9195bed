# -*- coding: utf-8 -*-

"""Exceptions raised by aesfile.

Everything derives from `AESError`, so callers that only want to know
"did it work" can catch that one class.  `OSError`s are never leaked
from the codec; they come back chained (``raise ... from``) inside one
of the classes below.
"""

__all__ = (
    "AESError",
    "KeySizeError",
    "OpenFailure",
    "IOFailure",
    "MalformedCiphertext",
    "ShortRead",
)


class AESError(Exception):
    """Base class for all aesfile errors."""


class KeySizeError(AESError, ValueError):
    """The Cipher Key is not exactly 16 bytes (AES-128 only)."""


class OpenFailure(AESError):
    """A path could not be opened: missing, unreadable or unwritable."""


class IOFailure(AESError):
    """A read, write, seek or truncate failed part way through."""


class MalformedCiphertext(AESError):
    """Ciphertext is not a positive multiple of 16 bytes long, or its
    length trailer does not describe the stream it came out of (which is
    what a wrong key looks like)."""


class ShortRead(AESError):
    """EOF arrived in the middle of a 16-byte block."""
