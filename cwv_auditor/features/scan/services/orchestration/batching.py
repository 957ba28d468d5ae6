"""Batch arithmetic. Boundaries depend only on position in the worklist."""
import math


def batch_ordinal(index: int, batch_size: int) -> int:
    return index // batch_size


def batch_start(index: int, batch_size: int) -> int:
    return batch_ordinal(index, batch_size) * batch_size


def closes_batch(index: int, total: int, batch_size: int) -> bool:
    """True when the entry at `index` is the last member of its batch."""
    return (index + 1) % batch_size == 0 or index + 1 == total


def batch_count(total: int, batch_size: int) -> int:
    return math.ceil(total / batch_size) if total else 0
