"""End-to-end tests of the training client against simulated engines."""
from __future__ import annotations

from pathlib import Path
from typing import List

import numpy as np
import pytest

from binning import compute_splits
from engine_sim import TEST_PARAMS, SimulatedEngines
from indicators import class_indicators, split_indicators
from protocol import ProtocolState, TrainingProtocol, main
from transmitter import TripleCheckError

ROWS = [
    [1.0, 10.0, 0.0],
    [2.0, 10.0, 1.0],
    [3.0, 20.0, 1.0],
    [4.0, 10.0, 2.0],
    [5.0, 30.0, 0.0],
    [6.0, 20.0, 1.0],
    [7.0, 10.0, 0.0],
    [8.0, 20.0, 2.0],
    [9.0, 30.0, 1.0],
    [10.0, 30.0, 0.0],
]


def _write_rows(root: Path, party_id: int, rows: List[List[float]]) -> None:
    (root / "toy").mkdir(parents=True, exist_ok=True)
    text = "\n".join(",".join(str(v) for v in row) for row in rows)
    (root / "toy" / f"client_{party_id}.txt").write_text(text + "\n")


def _expected_inputs(codec, features: np.ndarray, labels=None) -> List[int]:
    expected = [codec.encode_fixed(v) for row in features for v in row]
    if labels is not None:
        expected += [codec.encode_fixed(v) for v in labels]
        _, class_ivs = class_indicators(labels)
        expected += [codec.encode_int(bit) for iv in class_ivs for bit in iv]
    split_lists = [compute_splits(features[:, j]) for j in range(features.shape[1])]
    expected += [codec.encode_fixed(p) for s in split_lists for p in s.to_params()]
    for j, s in enumerate(split_lists):
        left_ivs, right_ivs = split_indicators(features[:, j], s)
        expected += [codec.encode_int(bit) for iv in left_ivs + right_ivs for bit in iv]
    return expected


def _protocol(tmp_path: Path, party_id: int, num_engines: int) -> TrainingProtocol:
    return TrainingProtocol(party_id, num_engines, TEST_PARAMS, dataset="toy",
                            data_root=str(tmp_path), receive_timeout=10)


def test_label_holder_full_run(tmp_path: Path) -> None:
    _write_rows(tmp_path, 0, ROWS)
    engines = SimulatedEngines(num_engines=3)
    training = np.array(ROWS)[:8]
    expected = _expected_inputs(engines.codec, training[:, :-1], training[:, -1])

    protocol = _protocol(tmp_path, 0, 3)
    server = engines.serve(len(expected), [engines.codec.encode_int(3)])
    assert protocol.run_protocol(engines.channel) == 3
    server.join(timeout=10)

    assert engines.received == expected
    assert protocol.state is ProtocolState.CLOSED
    assert protocol.state_history == [
        ProtocolState.CONNECTING,
        ProtocolState.LOADING_DATA,
        ProtocolState.SHARING_RAW_FEATURES,
        ProtocolState.SHARING_LABELS,
        ProtocolState.SHARING_LABEL_INDICATORS,
        ProtocolState.COMPUTING_SPLITS_LOCALLY,
        ProtocolState.SHARING_SPLIT_PARAMETERS,
        ProtocolState.SHARING_INDICATOR_VECTORS,
        ProtocolState.AWAITING_RESULT,
        ProtocolState.CLOSED,
    ]
    assert engines.channel.closed
    assert [s.count for s in protocol.split_lists] == [7, 2]
    engines.close()


def test_feature_party_skips_label_states(tmp_path: Path) -> None:
    rows = [row[:2] for row in ROWS]
    _write_rows(tmp_path, 1, rows)
    engines = SimulatedEngines(num_engines=2)
    expected = _expected_inputs(engines.codec, np.array(rows)[:8])

    protocol = _protocol(tmp_path, 1, 2)
    protocol.output_size = 2
    server = engines.serve(len(expected), [engines.codec.encode_fixed(0.25), engines.codec.encode_int(1)])
    assert protocol.run_protocol(engines.channel) == 1
    server.join(timeout=10)

    assert engines.received == expected
    assert protocol.result_shares == [0.25]
    assert ProtocolState.SHARING_LABELS not in protocol.state_history
    assert ProtocolState.SHARING_LABEL_INDICATORS not in protocol.state_history
    engines.close()


def test_bad_triple_aborts_run(tmp_path: Path) -> None:
    _write_rows(tmp_path, 0, ROWS)
    engines = SimulatedEngines(num_engines=2)
    engines.send_triples([(2, 3, 7)])

    protocol = _protocol(tmp_path, 0, 2)
    with pytest.raises(TripleCheckError):
        protocol.run_protocol(engines.channel)

    assert protocol.state is ProtocolState.ABORTED
    assert protocol.state_history[-2] is ProtocolState.SHARING_RAW_FEATURES
    assert engines.channel.closed
    engines.close()


def test_missing_partition_aborts_run(tmp_path: Path) -> None:
    engines = SimulatedEngines(num_engines=2)
    protocol = _protocol(tmp_path, 4, 2)
    with pytest.raises(FileNotFoundError):
        protocol.run_protocol(engines.channel)
    assert protocol.state_history[-2:] == [ProtocolState.LOADING_DATA, ProtocolState.ABORTED]
    engines.close()


def test_host_count_must_match_engines() -> None:
    with pytest.raises(ValueError):
        TrainingProtocol(0, 3, TEST_PARAMS, hosts=["127.0.0.1"])


def test_main_exits_non_zero_without_field_params(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main(["0", "2", "toy", "--prep-dir", str(tmp_path / "missing")])
    assert excinfo.value.code == 1
    assert any((tmp_path / "logs").iterdir())


def test_interrupt_aborts_and_closes_channel(tmp_path: Path, monkeypatch) -> None:
    _write_rows(tmp_path, 0, ROWS)
    engines = SimulatedEngines(num_engines=2)
    protocol = _protocol(tmp_path, 0, 2)

    def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(protocol.data_mgr, "load", interrupted)
    with pytest.raises(KeyboardInterrupt):
        protocol.run_protocol(engines.channel)

    assert protocol.state is ProtocolState.ABORTED
    assert engines.channel.closed
    engines.close()
