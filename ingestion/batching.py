"""
Fixed-size batch partitioning with whole-batch resume offsets
"""

from typing import Iterator, NamedTuple


class BatchRange(NamedTuple):
    """Records [start, end) of batch ``index``"""
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def total_batches(total: int, batch_size: int) -> int:
    return -(-total // batch_size)


def iter_batches(total: int, batch_size: int, offset: int = 0) -> Iterator[BatchRange]:
    """
    Yield the batches still to upload.

    Batch boundaries depend only on ``total`` and ``batch_size``. A resume
    offset skips every batch before ``offset // batch_size``; an offset in the
    middle of a batch restarts that whole batch, and an offset equal to
    ``total`` leaves nothing to upload.

    Raises:
        ValueError: If batch_size < 1 or offset is outside [0, total]
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if offset < 0 or offset > total:
        raise ValueError(f"offset must be within [0, {total}], got {offset}")
    if offset == total:
        return

    for index in range(offset // batch_size, total_batches(total, batch_size)):
        start = index * batch_size
        yield BatchRange(index=index, start=start, end=min(start + batch_size, total))
