"""
Secure decision tree training client
Coordinates sharing of the local partition with the computation engines
"""
import argparse
import logging
import os
import sys
import time
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from binning import SplitList, compute_splits
from channel import ShareChannel
from config import (BASE_PORT, DATA_ROOT, DEFAULT_DATASET, LOGS_DIR, MAX_SPLIT_NUM, FieldParams,
                    default_engine_hosts, get_prep_dir, load_field_params)
from data_prep import DataManager
from field import FieldCodec
from indicators import class_indicators, split_indicators
from transmitter import SecureInputTransmitter


class ProtocolState(Enum):
    CONNECTING = 'connecting'
    LOADING_DATA = 'loading_data'
    SHARING_RAW_FEATURES = 'sharing_raw_features'
    SHARING_LABELS = 'sharing_labels'
    SHARING_LABEL_INDICATORS = 'sharing_label_indicators'
    COMPUTING_SPLITS_LOCALLY = 'computing_splits_locally'
    SHARING_SPLIT_PARAMETERS = 'sharing_split_parameters'
    SHARING_INDICATOR_VECTORS = 'sharing_indicator_vectors'
    AWAITING_RESULT = 'awaiting_result'
    CLOSED = 'closed'
    ABORTED = 'aborted'


class TrainingProtocol:
    """Runs one client's side of the training protocol, start to finish"""

    def __init__(self, party_id: int, num_parties: int, field_params: FieldParams,
                 dataset: str = DEFAULT_DATASET, port_base: int = BASE_PORT,
                 hosts: Optional[Sequence[str]] = None, data_root: str = DATA_ROOT,
                 output_size: int = 1, receive_timeout: Optional[float] = None,
                 max_split_num: int = MAX_SPLIT_NUM, logger: Optional[logging.Logger] = None):
        if num_parties < 1:
            raise ValueError(f"Number of engines must be positive, got {num_parties}")
        if party_id < 0:
            raise ValueError(f"Invalid party id {party_id}")

        self.party_id = party_id
        self.num_parties = num_parties
        self.dataset = dataset
        self.port_base = port_base
        self.hosts = list(hosts) if hosts else default_engine_hosts(num_parties)
        if len(self.hosts) != num_parties:
            raise ValueError(f"Got {len(self.hosts)} engine hosts for {num_parties} engines")
        self.output_size = output_size
        self.receive_timeout = receive_timeout
        self.max_split_num = max_split_num
        self.logger = logger or logging.getLogger(f"client{party_id}")

        self.codec = FieldCodec(field_params)
        self.data_mgr = DataManager(party_id, dataset, data_root, self.logger)

        self.state: Optional[ProtocolState] = None
        self.state_history: List[ProtocolState] = []
        self.channel: Optional[ShareChannel] = None
        self.transmitter: Optional[SecureInputTransmitter] = None
        self.split_lists: List[SplitList] = []
        self.result_shares: List[float] = []
        self.best_split_index: Optional[int] = None

    def _transition(self, state: ProtocolState):
        self.state = state
        self.state_history.append(state)
        self.logger.info(f"State -> {state.name}")

    def run_protocol(self, channel: Optional[ShareChannel] = None) -> int:
        """Execute the complete protocol and return the best split index"""
        start_time = time.time()
        try:
            self._transition(ProtocolState.CONNECTING)
            self.channel = channel or ShareChannel.connect(
                self.hosts, self.port_base, self.party_id, logger=self.logger)
            self.transmitter = SecureInputTransmitter(
                self.channel, self.codec, self.logger, self.receive_timeout)

            self._transition(ProtocolState.LOADING_DATA)
            training_data, training_labels = self.data_mgr.load()

            self._transition(ProtocolState.SHARING_RAW_FEATURES)
            self._share_training_data(training_data)

            if self.data_mgr.is_label_holder:
                self._transition(ProtocolState.SHARING_LABELS)
                self._share_labels(training_labels)

                self._transition(ProtocolState.SHARING_LABEL_INDICATORS)
                self._share_label_indicators(training_labels)

            self._transition(ProtocolState.COMPUTING_SPLITS_LOCALLY)
            self.split_lists = self._compute_feature_splits(training_data)

            self._transition(ProtocolState.SHARING_SPLIT_PARAMETERS)
            self._share_split_parameters()

            self._transition(ProtocolState.SHARING_INDICATOR_VECTORS)
            self._share_split_indicators(training_data)

            self._transition(ProtocolState.AWAITING_RESULT)
            self.result_shares, self.best_split_index = self.transmitter.receive_result(self.output_size)
            self.logger.info(f"Best split index = {self.best_split_index}")

            self.channel.close()
            self._transition(ProtocolState.CLOSED)

        except BaseException as e:
            self.logger.error(f"Protocol failed in state {self.state.name}: {e}")
            self._transition(ProtocolState.ABORTED)
            if self.channel is not None:
                self.channel.close()
            raise

        elapsed_ms = (time.time() - start_time) * 1000
        self.logger.info(f"SPDZ training time: {elapsed_ms:.3f} ms")
        return self.best_split_index

    def _share_training_data(self, training_data: np.ndarray):
        for row in training_data:
            for value in row:
                self.transmitter.send_private_batch_shares([value])
        self.logger.info("Finished sending training data to the engines")

    def _share_labels(self, training_labels: np.ndarray):
        for label in training_labels:
            self.transmitter.send_private_batch_shares([label])
        self.logger.info(f"Finished sending {len(training_labels)} training labels")

    def _share_label_indicators(self, training_labels: np.ndarray):
        classes, class_ivs = class_indicators(training_labels)
        self.logger.info(f"classes_num = {len(classes)}")
        for class_iv in class_ivs:
            for bit in class_iv:
                self.transmitter.send_private_ints([bit])
        self.logger.info("Finished sending training label indicators")

    def _compute_feature_splits(self, training_data: np.ndarray) -> List[SplitList]:
        split_lists = []
        for j in range(training_data.shape[1]):
            split_list = compute_splits(training_data[:, j], self.max_split_num)
            self.logger.info(f"feature {j}: split_num = {split_list.count}")
            split_lists.append(split_list)
        return split_lists

    def _share_split_parameters(self):
        for split_list in self.split_lists:
            for param in split_list.to_params():
                self.transmitter.send_private_batch_shares([param])
        self.logger.info("Finished sending split parameters")

    def _share_split_indicators(self, training_data: np.ndarray):
        for j, split_list in enumerate(self.split_lists):
            left_ivs, right_ivs = split_indicators(training_data[:, j], split_list)
            for iv in left_ivs + right_ivs:
                for bit in iv:
                    self.transmitter.send_private_ints([bit])
            self.logger.debug(f"feature {j}: sent {len(left_ivs)} left and {len(right_ivs)} right vectors")
        self.logger.info("Finished sending split indicator vectors")


def setup_logging(party_id: int, dataset: str, log_dir: str = LOGS_DIR) -> logging.Logger:
    """Configure logging for this client"""
    os.makedirs(log_dir, exist_ok=True)

    timestamp = time.strftime('%d%m%Y%H%M%S')
    log_file = os.path.join(log_dir, f'{dataset}_{timestamp}_client{party_id}.log')
    logging.basicConfig(
        level=logging.INFO,
        format=f'[client{party_id}] %(asctime)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )
    return logging.getLogger(f"client{party_id}")


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Secure decision tree training client')
    parser.add_argument('party_id', type=int, help='Client identifier (0 holds the labels)')
    parser.add_argument('num_parties', type=int, help='Number of computation engines')
    parser.add_argument('dataset', nargs='?', default=DEFAULT_DATASET, help='Dataset name')
    parser.add_argument('port_base', nargs='?', type=int, default=BASE_PORT,
                        help='Port of engine 0, engine i listens on port_base + i')
    parser.add_argument('--hosts', nargs='+', help='Engine host names (default: loopback)')
    parser.add_argument('--data-root', default=DATA_ROOT,
                        help='Directory holding <dataset>/client_<id>.txt')
    parser.add_argument('--prep-dir', help='Directory with Params-Data (default derived from num_parties)')
    parser.add_argument('--output-size', type=int, default=1,
                        help='Number of result elements returned by the engines')
    parser.add_argument('--timeout', type=float,
                        help='Seconds to wait for each engine response (default: no deadline)')

    args = parser.parse_args(argv)

    try:
        logger = setup_logging(args.party_id, args.dataset)
        prep_dir = args.prep_dir or get_prep_dir(args.num_parties)
        logger.info(f"Loading field parameters from {prep_dir}")
        field_params = load_field_params(prep_dir)

        protocol = TrainingProtocol(
            args.party_id, args.num_parties, field_params,
            dataset=args.dataset, port_base=args.port_base, hosts=args.hosts,
            data_root=args.data_root, output_size=args.output_size,
            receive_timeout=args.timeout, logger=logger)
        protocol.run_protocol()

    except KeyboardInterrupt:
        print("\nShutdown requested")
        sys.exit(1)
    except Exception as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    sys.exit(0)


if __name__ == '__main__':
    main()
