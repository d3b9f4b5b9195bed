# -*- coding: utf-8 -*-

"""Whole-file encryption and decryption around the block cipher.

Wire format
-----------

Ciphertext is nothing but 16-byte blocks laid end to end: no header, no
IV, no tag.  Each block is encrypted on its own (ECB).

Before encryption the plaintext, S bytes long, is padded to

    plaintext | 0x00 * padding_length(S) | S as an unsigned 64-bit int

The integer is little-endian (`config.TRAILER_DTYPE`).  The padded length
is always a positive multiple of 16 and always greater than S; a 16-byte
file needs a whole extra block because the 8-byte trailer no longer
fits.  Decryption decrypts every block, reads S back out of the last 8
bytes, and truncates to it.

Outputs never appear half-written: they go to a freshly created file
beside the output (`tempfile.mkstemp()`, so it can never be an input or
an existing file) and are moved over the real path with `os.replace()`
only once complete.
"""

import logging
import os
import tempfile

import numpy as np
from numpy import uint8

from aesfile import config
from aesfile.cipher import (
    BLOCKSIZE_BYTES,
    decrypt_block,
    encrypt_block,
    expand_key,
    format_block,
)
from aesfile.errors import IOFailure, MalformedCiphertext, OpenFailure, ShortRead

__all__ = (
    "padding_length",
    "add_padding",
    "remove_padding",
    "encrypt",
    "decrypt",
)

logger = logging.getLogger(__name__)

TRAILER_BYTES = config.TRAILER_DTYPE.itemsize


def padding_length(size):
    """Number of zero bytes to put between `size` bytes and the trailer."""
    return (BLOCKSIZE_BYTES - ((size + TRAILER_BYTES) % BLOCKSIZE_BYTES)) % BLOCKSIZE_BYTES


def _open(path, mode):
    try:
        return open(path, mode)
    except OSError as exc:
        raise OpenFailure("could not open %s: %s" % (path, exc.strerror or exc)) from exc


def _truncate(path, size):
    try:
        os.truncate(path, size)
    except OSError as exc:
        raise IOFailure("could not truncate %s to %d bytes: %s" % (path, size, exc)) from exc


def _size(path):
    try:
        return os.path.getsize(path)
    except OSError as exc:
        raise OpenFailure("could not open %s: %s" % (path, exc.strerror or exc)) from exc


def _restore_size(path, size):
    """Truncate `path` back to `size` bytes if it has grown."""
    try:
        current = os.path.getsize(path)
    except OSError as exc:
        raise IOFailure("could not restore %s to %d bytes: %s" % (path, size, exc)) from exc
    if current != size:
        _truncate(path, size)


def _temporary_file(path):
    """Create a new, uniquely named file beside `path`.

    Returns the file opened for binary writing and its name.
    """
    directory, name = os.path.split(os.path.abspath(os.fspath(path)))
    try:
        fd, tmp = tempfile.mkstemp(
            prefix="." + name + ".", suffix=config.TMP_SUFFIX, dir=directory
        )
    except OSError as exc:
        raise OpenFailure(
            "could not create a temporary file for %s: %s" % (path, exc.strerror or exc)
        ) from exc
    return os.fdopen(fd, "wb"), tmp


def _replace(src, dst):
    try:
        os.replace(src, dst)
    except OSError as exc:
        raise IOFailure("could not move %s to %s: %s" % (src, dst, exc)) from exc


def _discard(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("could not remove partial output %s: %s", path, exc)


def _chunk_blocks(chunk_blocks):
    if chunk_blocks is None:
        return config.CHUNK_BLOCKS
    chunk_blocks = int(chunk_blocks)
    if chunk_blocks < 1:
        raise ValueError("chunk_blocks must be positive, got %d" % chunk_blocks)
    return chunk_blocks


def add_padding(path):
    """Pad the file at `path` in place; return its original size.

    Appends `padding_length(S)` zero bytes and then S itself as the
    8-byte trailer.
    """
    try:
        # "r+b", not "ab": a missing file is an error, not a new file
        with _open(path, "r+b") as f:
            size = f.seek(0, os.SEEK_END)
            f.write(bytes(padding_length(size)))
            f.write(np.array(size, dtype=config.TRAILER_DTYPE).tobytes())
    except OSError as exc:
        raise IOFailure("could not pad %s: %s" % (path, exc)) from exc
    logger.debug(
        "padded %s: %d + %d zero bytes + %d-byte trailer",
        path, size, padding_length(size), TRAILER_BYTES,
    )
    return size


def remove_padding(path):
    """Truncate a decrypted stream to the length in its trailer.

    Returns that length.  A trailer that cannot have been written by
    `add_padding()` raises `MalformedCiphertext`; after a decryption
    this almost always means the key was wrong.
    """
    try:
        with _open(path, "rb") as f:
            size = f.seek(0, os.SEEK_END)
            if size < BLOCKSIZE_BYTES:
                raise MalformedCiphertext(
                    "%s is %d bytes, too short to hold a length trailer" % (path, size)
                )
            f.seek(-TRAILER_BYTES, os.SEEK_END)
            trailer = f.read(TRAILER_BYTES)
    except OSError as exc:
        raise IOFailure("could not read the trailer of %s: %s" % (path, exc)) from exc
    if len(trailer) != TRAILER_BYTES:
        raise ShortRead("%s ended inside its length trailer" % path)

    length = int(np.frombuffer(trailer, dtype=config.TRAILER_DTYPE)[0])
    # Between 0 and 15 bytes of padding sit in front of the trailer
    if not size - TRAILER_BYTES - BLOCKSIZE_BYTES < length <= size - TRAILER_BYTES:
        raise MalformedCiphertext(
            "length trailer says %d bytes, which does not fit a %d-byte stream "
            "(wrong key?)" % (length, size)
        )
    _truncate(path, length)
    return length


def _stream_blocks(src, dst, transform, round_keys, chunk_blocks, src_path):
    """Push every block of `src` through `transform` into `dst`.

    Reads up to `chunk_blocks` blocks at a time into one reused scratch
    buffer and transforms them as a single (n, 16) stack.  Returns the
    number of blocks written.
    """
    scratch = np.empty(chunk_blocks * BLOCKSIZE_BYTES, dtype=uint8)
    nblocks = 0
    while True:
        nread = src.readinto(memoryview(scratch))
        if not nread:
            break
        if nread % BLOCKSIZE_BYTES:
            raise ShortRead(
                "%s ended %d bytes into a block"
                % (src_path, nread % BLOCKSIZE_BYTES)
            )
        blocks = scratch[:nread].reshape(-1, BLOCKSIZE_BYTES)
        transform(blocks, round_keys)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("block %d out:\n%s", nblocks, format_block(blocks[0]))
        dst.write(blocks.tobytes())
        nblocks += len(blocks)
    return nblocks


def encrypt(plain_path, cipher_path, key, chunk_blocks=None):
    """Encrypt the file at `plain_path` into `cipher_path` with `key`.

    The plaintext is padded in place to feed the cipher, and truncated
    back to its original length before this returns, whether or not
    padding or encryption succeeded.  The two paths may be the same file.

    Raises
    ------
    KeySizeError, OpenFailure, IOFailure, ShortRead
    """
    chunk_blocks = _chunk_blocks(chunk_blocks)
    round_keys = expand_key(key)
    size = _size(plain_path)
    tmp = None
    try:
        try:
            add_padding(plain_path)
            dst, tmp = _temporary_file(cipher_path)
            with dst, _open(plain_path, "rb") as src:
                nblocks = _stream_blocks(
                    src, dst, encrypt_block, round_keys, chunk_blocks, plain_path
                )
        except OSError as exc:
            raise IOFailure("could not encrypt %s: %s" % (plain_path, exc)) from exc
        finally:
            # Must happen before the replace when both paths are the same file
            _restore_size(plain_path, size)
        _replace(tmp, cipher_path)
    except BaseException:
        if tmp is not None:
            _discard(tmp)
        raise
    logger.info(
        "encrypted %s (%d bytes) -> %s (%d blocks)",
        plain_path, size, cipher_path, nblocks,
    )


def decrypt(cipher_path, plain_path, key, chunk_blocks=None):
    """Decrypt the file at `cipher_path` into `plain_path` with `key`.

    Raises
    ------
    KeySizeError, OpenFailure, IOFailure, MalformedCiphertext, ShortRead
    """
    chunk_blocks = _chunk_blocks(chunk_blocks)
    round_keys = expand_key(key)
    tmp = None
    try:
        try:
            with _open(cipher_path, "rb") as src:
                size = src.seek(0, os.SEEK_END)
                if size == 0 or size % BLOCKSIZE_BYTES:
                    raise MalformedCiphertext(
                        "%s is %d bytes; ciphertext must be a positive multiple of %d"
                        % (cipher_path, size, BLOCKSIZE_BYTES)
                    )
                src.seek(0)
                dst, tmp = _temporary_file(plain_path)
                with dst:
                    nblocks = _stream_blocks(
                        src, dst, decrypt_block, round_keys, chunk_blocks, cipher_path
                    )
        except OSError as exc:
            raise IOFailure("could not decrypt %s: %s" % (cipher_path, exc)) from exc
        length = remove_padding(tmp)
        _replace(tmp, plain_path)
    except BaseException:
        if tmp is not None:
            _discard(tmp)
        raise
    logger.info(
        "decrypted %s (%d blocks) -> %s (%d bytes)",
        cipher_path, nblocks, plain_path, length,
    )
