# -*- coding: utf-8 -*-

"""Command line front end.

    $ aesfile encrypt notes.txt notes.aes --key 000102030405060708090a0b0c0d0e0f
    $ aesfile decrypt notes.aes notes.txt --key-file secret.key

Exit status is 0 on success, 1 when the operation fails, and 2 for
usage errors.
"""

import argparse
import logging
import sys

from aesfile import __version__, config
from aesfile.cipher import KEYSIZE_BYTES
from aesfile.codec import decrypt, encrypt
from aesfile.errors import AESError, OpenFailure

logger = logging.getLogger("aesfile")

OPERATIONS = {"encrypt": encrypt, "decrypt": decrypt}


def _hex_key(s):
    try:
        key = bytes.fromhex(s)
    except ValueError:
        raise argparse.ArgumentTypeError("key must be hex digits, got %r" % s)
    if len(key) != KEYSIZE_BYTES:
        raise argparse.ArgumentTypeError(
            "key must be %d hex digits (%d bytes), got %d bytes"
            % (2 * KEYSIZE_BYTES, KEYSIZE_BYTES, len(key))
        )
    return key


def _positive_int(s):
    try:
        n = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError("expected an integer, got %r" % s)
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1, got %d" % n)
    return n


def get_parser():
    parser = argparse.ArgumentParser(
        prog="aesfile",
        description="Encrypt or decrypt a file with AES-128 "
                    "(ECB, zero padding plus a length trailer).",
    )
    parser.add_argument("--version", action="version",
                        version="%(prog)s " + __version__)
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v logs each operation, -vv also dumps blocks")
    parser.add_argument("command", choices=sorted(OPERATIONS),
                        help="what to do with INPUT")
    parser.add_argument("input", metavar="INPUT", help="file to read")
    parser.add_argument("output", metavar="OUTPUT",
                        help="file to write (may be the same as INPUT)")
    keys = parser.add_mutually_exclusive_group(required=True)
    keys.add_argument("-k", "--key", type=_hex_key,
                      help="16-byte key as 32 hex digits")
    keys.add_argument("--key-file", metavar="PATH",
                      help="file holding the raw 16-byte key")
    parser.add_argument("--chunk-blocks", type=_positive_int,
                        default=config.CHUNK_BLOCKS, metavar="N",
                        help="blocks processed per read (default: %(default)s)")
    return parser


def _read_key_file(path):
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as exc:
        raise OpenFailure("could not read key file %s: %s" % (path, exc)) from exc


def main(argv=None):
    args = get_parser().parse_args(argv)
    level = (logging.WARNING, logging.INFO, logging.DEBUG)[min(args.verbose, 2)]
    logging.basicConfig(level=level, format=config.LOG_FORMAT)

    operation = OPERATIONS[args.command]
    try:
        key = args.key if args.key is not None else _read_key_file(args.key_file)
        operation(args.input, args.output, key, chunk_blocks=args.chunk_blocks)
    except AESError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
