"""Program loader: decodes a raw program image into memory words.

A program image is a byte sequence of even length; each consecutive pair of
bytes is one unsigned 16-bit little-endian word.
"""

import logging
import struct
from pathlib import Path
from typing import List, Union

from .errors import MalformedProgram
from .state import MEMORY_SIZE

logger = logging.getLogger(__name__)


def decode_program(data: bytes) -> List[int]:
    """Decode a program image into a list of words.

    Args:
        data: Raw program bytes

    Returns:
        List of 16-bit words in image order

    Raises:
        MalformedProgram: If the image has odd length or exceeds memory
    """
    if len(data) % 2:
        raise MalformedProgram(f"Program image has odd length {len(data)}")

    count = len(data) // 2
    if count > MEMORY_SIZE:
        raise MalformedProgram(
            f"Program is {count} words; memory holds {MEMORY_SIZE}"
        )

    return list(struct.unpack(f"<{count}H", data))


def read_program(path: Union[str, Path]) -> List[int]:
    """Read and decode a program image from a file.

    Raises:
        OSError: If the file cannot be read
        MalformedProgram: If the image is malformed
    """
    path = Path(path)
    data = path.read_bytes()
    words = decode_program(data)
    logger.info("Read %d words from %s", len(words), path)
    return words
