"""
Field codec for the secure input protocol
Maps reals and signed integers to elements of the prime field shared with the engines
"""
import math
from typing import Iterable, List, Optional

from config import FieldParams, SPDZ_FIXED_PRECISION


class FieldCodec:
    """Encodes and decodes values modulo the agreed prime"""

    def __init__(self, params: FieldParams, precision: int = SPDZ_FIXED_PRECISION):
        self.params = params
        self.modulus = params.modulus
        self.precision = precision
        self.scale = 1 << precision
        # Largest magnitude that decodes back without wrapping
        self.max_signed = (self.modulus - 1) // 2
        # Elements travel as little-endian 64-bit limbs
        self.element_size = 8 * ((self.modulus.bit_length() + 63) // 64)

    def add(self, x: int, y: int) -> int:
        return (x + y) % self.modulus

    def mul(self, x: int, y: int) -> int:
        return (x * y) % self.modulus

    def encode_int(self, value: int) -> int:
        """Map a signed integer to its field representative"""
        value = int(value)
        if abs(value) > self.max_signed:
            raise OverflowError(f"Value {value} does not fit in the field without wraparound")
        return value % self.modulus

    def encode_fixed(self, real: float) -> int:
        """Scale by 2^S, round to nearest and map into the field"""
        real = float(real)
        if not math.isfinite(real):
            raise OverflowError(f"Cannot encode non-finite value {real}")
        scaled = real * self.scale
        # Ties round away from zero
        magnitude = math.floor(abs(scaled) + 0.5)
        return self.encode_int(-magnitude if scaled < 0 else magnitude)

    def decode_signed(self, element: int) -> int:
        """Recover the signed integer in (-p/2, p/2]"""
        element %= self.modulus
        if element > self.max_signed:
            return element - self.modulus
        return element

    def decode_fixed(self, element: int) -> float:
        return self.decode_signed(element) / self.scale

    def pack(self, elements: Iterable[int]) -> bytes:
        """Pack field elements into fixed-width little-endian words"""
        return b''.join(
            (int(e) % self.modulus).to_bytes(self.element_size, 'little')
            for e in elements
        )

    def unpack(self, payload: bytes, count: Optional[int] = None) -> List[int]:
        """Unpack a stream of field elements, checking the expected count if given"""
        if len(payload) % self.element_size:
            raise ValueError(
                f"Payload of {len(payload)} bytes is not a whole number of "
                f"{self.element_size}-byte elements")

        elements = []
        for offset in range(0, len(payload), self.element_size):
            element = int.from_bytes(payload[offset:offset + self.element_size], 'little')
            if element >= self.modulus:
                raise ValueError(f"Received element outside the field at offset {offset}")
            elements.append(element)

        if count is not None and len(elements) != count:
            raise ValueError(f"Expected {count} field elements, received {len(elements)}")
        return elements
