# -*- coding: utf-8 -*-

"""Tunables shared by the codec and the command line."""

import numpy as np

# Blocks read, encrypted and written per I/O call.  Blocks are
# independent, so this trades memory for speed and nothing else.
CHUNK_BLOCKS = 4096

# The original plaintext length, stored as the last 8 bytes of the
# padded stream.  Little-endian on every host.
TRAILER_DTYPE = np.dtype("<u8")

# Suffix of the uniquely named temporary file an output is written to
# beside its final path before being moved into place
TMP_SUFFIX = ".tmp"

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
