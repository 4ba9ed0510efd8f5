"""
Indicator vectors for split sides and label classes
"""
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

from binning import SplitList


def split_indicators(feature_values: Sequence[float],
                     split_list: SplitList) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """Left/right membership vectors, one pair per real threshold"""
    feature_values = np.asarray(feature_values, dtype=float)
    left_ivs, right_ivs = [], []
    for threshold in split_list.thresholds:
        left = (feature_values <= threshold).astype(np.int64)
        left_ivs.append(left)
        right_ivs.append(1 - left)
    return left_ivs, right_ivs


def class_indicators(labels: Sequence[float]) -> Tuple[List[float], List[np.ndarray]]:
    """Membership vector per label class, classes in order of first occurrence"""
    labels = np.asarray(labels, dtype=float)
    classes = [float(c) for c in pd.unique(labels)]
    class_ivs = [(labels == c).astype(np.int64) for c in classes]
    return classes, class_ivs
