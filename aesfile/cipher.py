# -*- coding: utf-8 -*-

"""AES-128 block cipher on NumPy arrays.

Based strictly on:

    Federal Information Processing Standards Publication 197
    https://csrc.nist.gov/publications/detail/fips/197/final

Any reference to the paper in this source code is called just FIPS197.
---------------------------------------------

Technical notes:

 - Only 128-bit Cipher Keys are supported:

                  Nk     Nb    Nr
       AES-128     4      4    10

   so the key schedule is always 11 round keys of 16 bytes.

 - A block lives in two layouts.  *Stream order* is the order the 16
   bytes come off the disk.  *State order* is FIPS197's State, an
   "array of columns" (section 3.4), so that the input

       {in0, in1, in2, in3, in4, in5, ..., in13, in14, in15}

   becomes

       [[in0, in4, in8,  in12],
        [in1, in5, in9,  in13],
        [in2, in6, in10, in14],
        [in3, in7, in11, in15]]

   i.e. state[r][c] = stream[r + 4c].

   `transpose_block()` flips a flat 16-byte buffer between the two
   layouts, in place, and is its own inverse.  Once flipped,
   `block.reshape(4, 4)` is a *view* whose rows are the rows of the
   State, so the round functions below write straight back into the
   caller's buffer through their `out` argument:

       in -> transpose -> State (rounds, inplace) -> transpose -> out

   Forgetting either transpose does not crash, it just silently produces
   a different cipher.  So the block driver is the only caller, and it
   always does both.

 - Every round function accepts an array of shape (..., 4, 4).  A stack
   of n blocks goes through a round in one NumPy call.  Blocks are not
   chained (ECB), so this is exactly the same as n separate calls.

 - The XOR (addition or "⊕" in FIPS paper) is NumPy's
   `np.bitwise_xor()`, *not* `np.logical_xor()`.

 - The S-box is not pasted in as a table: it is derived from the field
   arithmetic at import time, then frozen (``writeable = False``) along
   with every other table here.  Lookups are not constant-time.  This
   is a teaching-grade cipher, not a hardened one.

 - We work almost exclusively in np.uint8.  The field multiply widens to
   uint16 internally so that the left shift never hinges on NumPy's
   integer overflow rules.
"""

import functools

import numpy as np
from numpy import arange, array, uint8, uint16, bitwise_xor as xor

from aesfile.errors import AESError, KeySizeError

__all__ = (
    "SBOX",
    "INVSBOX",
    "RCON",
    "gf_multiply",
    "gf_mul2",
    "gf_mul3",
    "transpose_block",
    "expand_words",
    "expand_key",
    "sub_bytes",
    "shift_rows",
    "mix_columns",
    "add_round_key",
    "inv_sub_bytes",
    "inv_shift_rows",
    "inv_mix_columns",
    "encrypt_block",
    "decrypt_block",
    "encrypt_raw",
    "decrypt_raw",
    "hex_to_array",
    "array_to_hex",
    "format_block",
)

# Rijndael processes data blocks of 128 bits
BLOCKSIZE_BITS = 128
BLOCKSIZE_BYTES = 16

# AES-128: 16-byte Cipher Key, i.e. Nk = 4 words
KEYSIZE_BYTES = 16
NK = 4

# Number of columns (32-bit words) comprising the State
NB = 4

# Number of rounds, and so Nr + 1 round keys
NR = 10
NUM_ROUND_KEYS = NR + 1

# m(x) = x^8 + x^4 + x^3 + x + 1 is 0x11b; once the x^8 term has been
# shifted out, reduction is an XOR with what is left
REDUCTION = 0x1b


def _frozen(arr):
    arr.flags.writeable = False
    return arr


# ---------------------------------------------------------------------
# Multiplication in GF(2^8)


def gf_multiply(a, b):
    """Vectorized multiplication in GF(2^8).

    Shift-and-add: for each of the 8 bits of `b`, low to high, XOR `a`
    into the product if the bit is set, then multiply `a` by x (shift
    left, reduce if a bit fell off the top).

    `a` and `b` may be scalars or arrays of any broadcastable shapes.
    The result is uint8.

    >>> gf_multiply(0x57, 0x83)  # FIPS197 section 4.2
    array(193, dtype=uint8)
    """
    a = array(a, dtype=uint16)
    b = array(b, dtype=uint16)
    p = np.zeros(np.broadcast(a, b).shape, dtype=uint16)
    for _ in range(8):
        p ^= a * (b & 1)
        a = ((a << 1) & 0xff) ^ ((a >> 7) * REDUCTION)
        b = b >> 1
    return p.astype(uint8)


def gf_mul2(a):
    """Multiply by {02}; FIPS197's xtime()."""
    a = np.asarray(a, dtype=uint16)
    return (((a << 1) & 0xff) ^ ((a >> 7) * REDUCTION)).astype(uint8)


def gf_mul3(a):
    """Multiply by {03} = x + 1, i.e. a ^ xtime(a)."""
    return np.asarray(a, dtype=uint8) ^ gf_mul2(a)


def gf_mul_small(x, coef):
    """Multiply `x` by coefficients drawn from {1, 2, 3}.

    The forward MixColumns matrix only holds 1s, 2s and 3s, so it never
    needs the general multiply.  Any other coefficient raises
    ValueError.
    """
    x = np.asarray(x, dtype=uint8)
    coef = np.asarray(coef)
    if not np.isin(coef, (1, 2, 3)).all():
        raise ValueError("coefficients must be 1, 2 or 3, got %s" % np.unique(coef))
    return np.where(coef == 1, x, np.where(coef == 2, gf_mul2(x), gf_mul3(x)))


# ---------------------------------------------------------------------
# S-box generation


def _rotl8(x, shift):
    return ((x << shift) | (x >> (8 - shift))) & 0xff


def _generate_sboxes():
    """Derive the S-box and its inverse (FIPS197 section 5.1.1).

    3 generates the multiplicative group of GF(2^8), so walking
    p -> 3p visits every nonzero byte exactly once in 255 steps.  Walking
    q -> q / 3 (that is, q * 0xf6) alongside it keeps p * q == 1, so q is
    the multiplicative inverse of p at every step for free.  The affine
    transformation of that inverse is the S-box entry.

    0 has no inverse and is special-cased: S(0) is just the affine
    constant 0x63.
    """
    sbox = np.zeros(256, dtype=uint8)
    p = q = 1
    while True:
        p = int(gf_mul3(p))
        q = int(gf_multiply(q, 0xf6))
        x = q ^ _rotl8(q, 1) ^ _rotl8(q, 2) ^ _rotl8(q, 3) ^ _rotl8(q, 4)
        sbox[p] = x ^ 0x63
        if p == 1:
            break
    sbox[0] = 0x63

    if np.unique(sbox).size != 256:
        raise AESError("generated S-box is not a permutation of 0..255")

    invsbox = np.empty(256, dtype=uint8)
    invsbox[sbox] = arange(256, dtype=uint8)
    return _frozen(sbox), _frozen(invsbox)


SBOX, INVSBOX = _generate_sboxes()


# ---------------------------------------------------------------------
# Fixed tables

# "The round constant word array, Rcon[i], contains the values
# given by [xi-1,{00},{00},{00}], with x i-1 being powers of
# x (x is denoted as {02}) in the field GF(2^8)"
#
# Only the first byte is ever nonzero, so only that is stored.
# Successive doublings of 1; 0x80 * 2 wraps around to 0x1b.
# 0-indexed: round key i (1..10) uses RCON[i - 1].
RCON = _frozen(array(
    [0x01, 0x02, 0x04, 0x08, 0x10, 0x20, 0x40, 0x80, 0x1b, 0x36],
    dtype=uint8,
))

MIX_COLUMNS_MATRIX = _frozen(array(
    [
        [0x02, 0x03, 0x01, 0x01],
        [0x01, 0x02, 0x03, 0x01],
        [0x01, 0x01, 0x02, 0x03],
        [0x03, 0x01, 0x01, 0x02],
    ], dtype=uint8))

INV_MIX_COLUMNS_MATRIX = _frozen(array(
    [
        [0x0e, 0x0b, 0x0d, 0x09],
        [0x09, 0x0e, 0x0b, 0x0d],
        [0x0d, 0x09, 0x0e, 0x0b],
        [0x0b, 0x0d, 0x09, 0x0e],
    ], dtype=uint8))


# ---------------------------------------------------------------------
# State layout


def transpose_block(block):
    """Flip 16-byte blocks between stream order and state order.

    Swaps block[i + 4j] and block[4i + j] for every i < j, in place, and
    returns `block`.  Applying it twice gives back the original.

    `block` is a uint8 array whose last axis has length 16, so a stack
    of blocks, shape (n, 16), is flipped row by row.

    Example
    -------
    >>> transpose_block(arange(16, dtype=uint8)).reshape(4, 4)
    array([[ 0,  4,  8, 12],
           [ 1,  5,  9, 13],
           [ 2,  6, 10, 14],
           [ 3,  7, 11, 15]], dtype=uint8)
    """
    if block.shape[-1] != BLOCKSIZE_BYTES:
        raise ValueError(
            "blocks must be %d bytes, got %d" % (BLOCKSIZE_BYTES, block.shape[-1])
        )
    grid = block.reshape(block.shape[:-1] + (4, 4))
    block[...] = grid.swapaxes(-1, -2).reshape(block.shape)
    return block


def _state_view(block):
    if block.dtype != uint8 or not block.flags.c_contiguous:
        raise ValueError("blocks must be C-contiguous uint8 arrays")
    if block.shape[-1] != BLOCKSIZE_BYTES:
        raise ValueError(
            "blocks must be %d bytes, got %d" % (BLOCKSIZE_BYTES, block.shape[-1])
        )
    # A view, not a copy: writes through `out=` land in `block`
    return block.reshape(block.shape[:-1] + (4, 4))


# ---------------------------------------------------------------------
# Core encryption functions:
# SubBytes(), ShiftRows(), MixColumns(), AddRoundKey()


def sub_bytes(state, out=None, _sbox=SBOX):
    if out is not None:
        out[...] = _sbox[state]
        return out
    else:
        return _sbox[state]


# Row r of the State is rotated left by r: out[r][c] = state[r][(c + r) % 4]
colindexer = _frozen((arange(4)[None, :] + arange(4)[:, None]) % 4)


def shift_rows(
    state,
    out=None,
    _rows=arange(4)[:, None],
    _cols=colindexer,
):
    """Cyclically shift last 3 rows in the State."""
    if out is not None:
        out[...] = state[..., _rows, _cols]
        return out
    else:
        return state[..., _rows, _cols]


def _mix_columns(state, out=None, matrix=None, multiply=None):
    # Column k of the matrix, shape (4, 1), scales row k of the State,
    # shape (..., 1, 4); together they broadcast to (..., 4, 4)
    res = multiply(state[..., 0, None, :], matrix[:, [0]])
    for k in range(1, 4):
        res ^= multiply(state[..., k, None, :], matrix[:, [k]])
    if out is not None:
        out[...] = res
        return out
    else:
        return res


mix_columns = functools.partial(
    _mix_columns,
    matrix=MIX_COLUMNS_MATRIX,
    multiply=gf_mul_small,
)


def add_round_key(state, round_key, out=None):
    """XOR a round key into the State.  Its own inverse."""
    return xor(state, round_key, out=out)


# ---------------------------------------------------------------------
# Core decryption functions:
# InvSubBytes(), InvShiftRows(), InvMixColumns()


def inv_sub_bytes(state, out=None, _sbox=INVSBOX):
    if out is not None:
        out[...] = _sbox[state]
        return out
    else:
        return _sbox[state]


# out[r][c] = state[r][(c - r) % 4]
invcolindexer = _frozen((arange(4)[None, :] - arange(4)[:, None]) % 4)


def inv_shift_rows(
    state,
    out=None,
    _rows=arange(4)[:, None],
    _cols=invcolindexer,
):
    """Cyclically shift last 3 rows in the State, inverse."""
    if out is not None:
        out[...] = state[..., _rows, _cols]
        return out
    else:
        return state[..., _rows, _cols]


# Coefficients 9, b, d and e are out of reach of xtime() alone
inv_mix_columns = functools.partial(
    _mix_columns,
    matrix=INV_MIX_COLUMNS_MATRIX,
    multiply=gf_multiply,
)


# ---------------------------------------------------------------------
# Key expansion


def rot_word(word):
    """Takes a 4-byte word and performs cyclic permutation.

    Aka one-byte left circular shift.

    [b0, b1, b2, b3] -> [b1, b2, b3, b0]
    """
    return word[[1, 2, 3, 0]]


# "A function that takes a four-byte input word and applies the S-box
# to each of the four bytes to produce an output word"
sub_word = sub_bytes


def _key_array(key):
    if isinstance(key, str):
        raise TypeError("key must be bytes, not str; use bytes.fromhex()")
    if isinstance(key, (bytes, bytearray, memoryview)):
        key = np.frombuffer(bytes(key), dtype=uint8)
    else:
        key = np.asarray(key, dtype=uint8)
    if key.size != KEYSIZE_BYTES:
        raise KeySizeError(
            "AES-128 keys are %d bytes, got %d" % (KEYSIZE_BYTES, key.size)
        )
    return key.reshape(NK, 4)


def expand_words(key):
    """Rijndael key expansion, as FIPS197's 44 words.

    Returns an array of shape (44, 4), one 4-byte word per row.  The
    first Nk words are the Cipher Key itself; every later word is the
    XOR of the word Nk positions back with the previous word, which on
    each round boundary is first rotated, substituted and XORed with
    the round constant.
    """
    w = np.empty((NB * NUM_ROUND_KEYS, 4), dtype=uint8)
    w[:NK] = _key_array(key)
    for i in range(NK, len(w)):
        temp = w[i - 1]
        if i % NK == 0:
            temp = sub_word(rot_word(temp))
            temp[0] ^= RCON[i // NK - 1]
        w[i] = xor(w[i - NK], temp)
    return w


def expand_key(key):
    """Key expansion routine to generate a key schedule.

    Returns a read-only array of shape (11, 16): round key i is row i,
    already flipped into state order so it can be XORed straight into a
    State viewed as ``block.reshape(4, 4)``.

    The schedule is a plain value: each encrypt/decrypt call builds its
    own and simply drops it when done.
    """
    schedule = expand_words(key).reshape(NUM_ROUND_KEYS, BLOCKSIZE_BYTES)
    transpose_block(schedule)
    return _frozen(schedule)


# ---------------------------------------------------------------------
# Block driver


def encrypt_block(block, round_keys):
    """Encrypt a single block, or a stack of blocks, using `round_keys`.

    Modifies `block` in-place!

    Parameters
    ----------
    block: np.ndarray
        C-contiguous uint8, shape (16,) or (n, 16), stream order.
    round_keys: np.ndarray
        The (11, 16) schedule from `expand_key()`.

    Returns
    -------
    block: np.ndarray
    """
    state = _state_view(block)
    exkeys = round_keys.reshape(NUM_ROUND_KEYS, 4, 4)
    transpose_block(block)

    # First XOR is with just input + key
    add_round_key(state, exkeys[0], out=state)

    # Intermediate rounds
    for ek in exkeys[1:NR]:
        sub_bytes(state, out=state)
        shift_rows(state, out=state)
        mix_columns(state, out=state)
        add_round_key(state, ek, out=state)

    # Final round before a final XOR.  No mixColumns here
    sub_bytes(state, out=state)
    shift_rows(state, out=state)
    add_round_key(state, exkeys[NR], out=state)

    transpose_block(block)
    return block


def decrypt_block(block, round_keys):
    """Decrypt a single block, or a stack of blocks, using `round_keys`.

    Modifies `block` in-place!  Exact inverse of `encrypt_block()`.
    """
    state = _state_view(block)
    exkeys = round_keys.reshape(NUM_ROUND_KEYS, 4, 4)
    transpose_block(block)

    # First XOR is with the last round key.
    # Last round doesn't get an InvMixColumns
    add_round_key(state, exkeys[NR], out=state)
    inv_shift_rows(state, out=state)
    inv_sub_bytes(state, out=state)

    for ek in exkeys[NR - 1:0:-1]:
        add_round_key(state, ek, out=state)
        inv_mix_columns(state, out=state)
        inv_shift_rows(state, out=state)
        inv_sub_bytes(state, out=state)

    # One final (inverse) xor
    add_round_key(state, exkeys[0], out=state)

    transpose_block(block)
    return block


def _block_from_bytes(data):
    block = np.frombuffer(bytes(data), dtype=uint8).copy()
    if block.size != BLOCKSIZE_BYTES:
        raise ValueError(
            "expected exactly %d bytes, got %d" % (BLOCKSIZE_BYTES, block.size)
        )
    return block


def encrypt_raw(data, key):
    """Encrypt exactly one 16-byte block with `key`.  No padding."""
    return encrypt_block(_block_from_bytes(data), expand_key(key)).tobytes()


def decrypt_raw(data, key):
    """Decrypt exactly one 16-byte block with `key`.  No padding."""
    return decrypt_block(_block_from_bytes(data), expand_key(key)).tobytes()


# ---------------------------------------------------------------------
# Helpers


def hex_to_array(s):
    """Produce a 1d array of uint8 bytes, in stream order, from hex.

    Whitespace between bytes is ignored.

    Example
    -------
    >>> hex_to_array("00 01 02 03 04 05 06 07 08 09 0a 0b 0c 0d 0e 0f")
    array([ 0,  1,  2,  3,  4,  5,  6,  7,  8,  9, 10, 11, 12, 13, 14, 15],
          dtype=uint8)
    """
    return array(bytearray.fromhex(s), dtype=uint8)


def array_to_hex(arr, sep=" "):
    """Inverse of `hex_to_array()`; multi-dimensional input is flattened."""
    return sep.join(map("{:02x}".format, np.ravel(arr)))


def format_block(block):
    """Render 16 bytes as four lines of four hex bytes each."""
    rows = np.asarray(block, dtype=uint8).reshape(4, 4)
    return "\n".join(array_to_hex(row) for row in rows)
