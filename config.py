"""
Shared configuration for the secure decision tree training client
"""
import os
from pathlib import Path
from typing import List, NamedTuple

# Network configuration
LABEL_HOLDER_ID = 0  # Party 0 holds the labels
BASE_PORT = 20000
DEFAULT_HOST = '127.0.0.1'
PARTY_ID_SIZE = 4
LENGTH_SIZE = 8
CONNECTION_TIMEOUT = 30
MAX_RETRIES = 8
RETRY_BASE_DELAY = 1
RETRY_MAX_DELAY = 5

# Blocking reads from the engines wait forever unless a deadline is given
RECEIVE_TIMEOUT = None

# Fixed point and binning
SPDZ_FIXED_PRECISION = 8
MAX_SPLIT_NUM = 8
SPLIT_SENTINEL = -1
SPLIT_PERCENTAGE = 0.8

# Field setup shared with the engines
PREP_DIR = 'Player-Data'
PARAMS_FILE = 'Params-Data'
LG2P = 128
GF2N_DEFAULT_DEGREE = 128

# Data configuration
DEFAULT_DATASET = 'bank_marketing_data'
DATA_ROOT = 'data'
LOGS_DIR = 'logs'


class FieldParams(NamedTuple):
    """Field parameters agreed by every party before sharing starts"""
    modulus: int
    gf2n_degree: int


def get_prep_dir(num_parties: int, lg2p: int = LG2P,
                 gf2n_degree: int = GF2N_DEFAULT_DEGREE) -> str:
    """Directory holding the setup files for a run with num_parties engines"""
    return os.path.join(PREP_DIR, f"{num_parties}-{lg2p}-{gf2n_degree}") + os.sep


def load_field_params(prep_dir: str) -> FieldParams:
    """Read the prime modulus and gf2n degree from the shared Params-Data file"""
    params_path = Path(prep_dir) / PARAMS_FILE
    if not params_path.exists():
        raise FileNotFoundError(f"Field parameters not found: {params_path}")

    tokens = params_path.read_text().split()
    if len(tokens) < 2:
        raise ValueError(f"Malformed field parameters in {params_path}")

    try:
        modulus = int(tokens[0])
        gf2n_degree = int(tokens[1])
    except ValueError:
        raise ValueError(f"Malformed field parameters in {params_path}: {tokens[:2]}")

    if modulus < 3:
        raise ValueError(f"Invalid modulus {modulus} in {params_path}")

    return FieldParams(modulus, gf2n_degree)


def default_engine_hosts(num_parties: int) -> List[str]:
    """One loopback address per engine"""
    return [DEFAULT_HOST] * num_parties
