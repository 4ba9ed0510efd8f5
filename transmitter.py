"""
Triple-checked input sharing
Each value is masked with a fresh triple from the engines before it leaves this client
"""
import logging
from typing import List, Optional, Sequence, Tuple

from channel import ShareChannel
from config import RECEIVE_TIMEOUT
from field import FieldCodec


class TripleCheckError(RuntimeError):
    """A reconstructed triple failed a*b == c, some engine is cheating or broken"""


class SecureInputTransmitter:
    """Shares private inputs with the engines over a ShareChannel"""

    def __init__(self, channel: ShareChannel, codec: FieldCodec,
                 logger: Optional[logging.Logger] = None,
                 receive_timeout: Optional[float] = RECEIVE_TIMEOUT):
        self.channel = channel
        self.codec = codec
        self.logger = logger or logging.getLogger(__name__)
        self.receive_timeout = receive_timeout
        self.values_sent = 0

    def _receive_triples(self, num_inputs: int) -> List[Tuple[int, int, int]]:
        """Sum each engine's triple shares into this client's reconstruction"""
        triples = [[0, 0, 0] for _ in range(num_inputs)]
        for payload in self.channel.collect(self.receive_timeout):
            shares = self.codec.unpack(payload, 3 * num_inputs)
            for i in range(num_inputs):
                for k in range(3):
                    triples[i][k] = self.codec.add(triples[i][k], shares[3 * i + k])
        return [tuple(t) for t in triples]

    def check_triples(self, triples: Sequence[Tuple[int, int, int]]):
        for i, (a, b, c) in enumerate(triples):
            if self.codec.mul(a, b) != c:
                self.logger.error(f"Incorrect triple at {i}, aborting")
                raise TripleCheckError(f"Incorrect triple at {i}")

    def send_private_inputs(self, values: Sequence[int]):
        """Mask already-encoded field elements with fresh triples and send them"""
        num_inputs = len(values)
        if num_inputs == 0:
            return

        triples = self._receive_triples(num_inputs)
        self.check_triples(triples)

        masked = [self.codec.add(value, triple[0]) for value, triple in zip(values, triples)]
        self.channel.broadcast(self.codec.pack(masked))

        self.values_sent += num_inputs
        self.logger.debug(f"Shared {num_inputs} values ({self.values_sent} total)")

    def send_private_batch_shares(self, reals: Sequence[float]):
        """Share real values using the fixed point encoding"""
        self.send_private_inputs([self.codec.encode_fixed(x) for x in reals])

    def send_private_ints(self, ints: Sequence[int]):
        """Share integer values such as indicator bits, unscaled"""
        self.send_private_inputs([self.codec.encode_int(x) for x in ints])

    def receive_result(self, output_size: int) -> Tuple[List[float], int]:
        """
        Receive the engines' output shares and reconstruct them.

        Returns the fixed point result values and the best split index,
        which is carried as the last element.
        """
        if output_size < 1:
            raise ValueError("Result must contain at least the split index")

        self.logger.info("Receiving result from the engines")
        output_values = [0] * output_size
        for payload in self.channel.collect(self.receive_timeout):
            for j, value in enumerate(self.codec.unpack(payload, output_size)):
                output_values[j] = self.codec.add(output_values[j], value)

        result_shares = [self.codec.decode_fixed(v) for v in output_values[:-1]]
        best_split_index = self.codec.decode_signed(output_values[-1])
        return result_shares, best_split_index
