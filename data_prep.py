"""
Data preparation for the training client
Loads the local partition and separates training rows and labels
"""
import logging
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from config import DATA_ROOT, LABEL_HOLDER_ID, SPLIT_PERCENTAGE


class DataManager:
    """Handles the local data partition of one party"""

    def __init__(self, party_id: int, dataset: str, data_root: str = DATA_ROOT,
                 logger: Optional[logging.Logger] = None):
        self.party_id = party_id
        self.dataset = dataset
        self.data_root = Path(data_root)
        self.logger = logger or logging.getLogger(__name__)

    @property
    def data_file(self) -> Path:
        return self.data_root / self.dataset / f"client_{self.party_id}.txt"

    @property
    def is_label_holder(self) -> bool:
        return self.party_id == LABEL_HOLDER_ID

    def read_training_data(self) -> np.ndarray:
        """Read the comma separated partition, one sample per line"""
        if not self.data_file.exists():
            self.logger.error(f"Data file not found: {self.data_file}")
            raise FileNotFoundError(f"Data file not found: {self.data_file}")

        try:
            df = pd.read_csv(self.data_file, header=None, dtype=float)
        except pd.errors.EmptyDataError:
            raise ValueError(f"Data file is empty: {self.data_file}")

        if df.isnull().values.any():
            raise ValueError(f"Data file has missing or ragged fields: {self.data_file}")

        local_data = df.to_numpy(dtype=float)
        self.logger.info(f"sample_num = {local_data.shape[0]}")
        self.logger.info(f"feature_num = {local_data.shape[1]}")
        return local_data

    def split_training(self, local_data: np.ndarray,
                       split_percentage: float = SPLIT_PERCENTAGE) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Keep the leading training rows, splitting off the label column for the label holder"""
        training_data_num = int(local_data.shape[0] * split_percentage)
        self.logger.info(f"training_data_num = {training_data_num}")
        training_rows = local_data[:training_data_num]

        if self.is_label_holder:
            if local_data.shape[1] < 2:
                raise ValueError("Label holder partition needs at least one feature and a label column")
            return training_rows[:, :-1], training_rows[:, -1]
        return training_rows, None

    def load(self) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        return self.split_training(self.read_training_data())
