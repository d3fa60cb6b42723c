"""Hash calculation utilities."""

import hashlib
import io
from typing import BinaryIO

from tqdm.auto import tqdm

from ..constants import TQDM_DEFAULTS


def calculate_md5(source: BinaryIO, chunk_size: int = 2**18, progress: bool = False, desc: str = "MD5") -> str:
    """
    Calculate the MD5 value of a seekable binary stream from its start, in chunks.

    The stream position is restored afterwards.

    :param source: seekable binary file object
    :param chunk_size: Chunk size in bytes
    :param progress: Print progress
    :param desc: Description shown next to the progress bar
    :return: hex MD5 digest of the whole stream
    """
    position = source.tell()
    total_size = source.seek(0, io.SEEK_END)
    source.seek(0)

    md5_hash = hashlib.md5()
    # inspired by hashlib.file_digest
    buf = bytearray(chunk_size)
    view = memoryview(buf)
    disable = not progress or total_size <= chunk_size
    with tqdm(total=total_size, desc=desc, disable=disable, **TQDM_DEFAULTS) as pbar:  # type: ignore[call-overload]
        while size := source.readinto(buf):
            md5_hash.update(view[:size])
            pbar.update(size)

    source.seek(position)
    return md5_hash.hexdigest()

