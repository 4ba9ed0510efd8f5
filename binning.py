"""
Local feature binning
Chooses the candidate split thresholds that are shared with the engines
"""
import logging
from typing import List, Sequence

import numpy as np

from config import MAX_SPLIT_NUM, SPLIT_SENTINEL

logger = logging.getLogger(__name__)


class SplitList:
    """Ordered candidate thresholds for one feature, at most capacity of them"""

    __slots__ = ('thresholds', 'capacity')

    def __init__(self, thresholds: Sequence[float] = (), capacity: int = MAX_SPLIT_NUM):
        thresholds = tuple(float(t) for t in thresholds)
        if len(thresholds) > capacity:
            raise ValueError(f"{len(thresholds)} thresholds exceed capacity {capacity}")
        object.__setattr__(self, 'thresholds', thresholds)
        object.__setattr__(self, 'capacity', capacity)

    def __setattr__(self, name, value):
        raise AttributeError("SplitList is immutable")

    def __eq__(self, other):
        if not isinstance(other, SplitList):
            return NotImplemented
        return self.thresholds == other.thresholds and self.capacity == other.capacity

    def __hash__(self):
        return hash((self.thresholds, self.capacity))

    def __repr__(self):
        return f"SplitList(count={self.count}, thresholds={self.thresholds})"

    @property
    def count(self) -> int:
        return len(self.thresholds)

    def to_params(self, sentinel: float = SPLIT_SENTINEL) -> List[float]:
        """Fixed layout the engines expect: count, then capacity slots padded with the sentinel"""
        padding = [float(sentinel)] * (self.capacity - self.count)
        return [float(self.count)] + list(self.thresholds) + padding


def sort_indexes(values: Sequence[float]) -> np.ndarray:
    """Sample indexes ordered by value, ties kept in original order"""
    return np.argsort(np.asarray(values, dtype=float), kind='stable')


def compute_distinct_values(values: Sequence[float], sorted_indexes: Sequence[int]) -> List[float]:
    values = np.asarray(values, dtype=float)
    distinct_values = []
    for idx in sorted_indexes:
        value = float(values[idx])
        if not distinct_values or distinct_values[-1] != value:
            distinct_values.append(value)
    return distinct_values


def compute_splits(values: Sequence[float], max_split_num: int = MAX_SPLIT_NUM) -> SplitList:
    """
    Compute the split thresholds of one feature column.

    Features with more than max_split_num distinct values are treated as
    continuous: the sorted samples are cut into max_split_num + 1 bins of
    n // (max_split_num + 1) samples and each threshold is the midpoint of
    the two values straddling a bin boundary. Features with fewer distinct
    values get one threshold per distinct value except the largest. A
    feature with a single value yields no thresholds.
    """
    values = np.asarray(values, dtype=float)
    n_samples = len(values)
    if n_samples == 0:
        raise ValueError("Cannot compute splits for an empty feature column")

    sorted_indexes = sort_indexes(values)
    distinct_values = compute_distinct_values(values, sorted_indexes)

    if len(distinct_values) >= max_split_num + 1:
        n_sample_per_bin = n_samples // (max_split_num + 1)
        thresholds = []
        for i in range(1, max_split_num + 1):
            lower = sorted_indexes[i * n_sample_per_bin]
            upper = sorted_indexes[min(i * n_sample_per_bin + 1, n_samples - 1)]
            thresholds.append(float((values[lower] + values[upper]) / 2))
        return SplitList(thresholds, max_split_num)

    if len(distinct_values) > 1:
        return SplitList(distinct_values[:-1], max_split_num)

    logger.warning("This feature has only one distinct value, please check it again")
    return SplitList((), max_split_num)
