"""
Point-to-multipoint channel between this client and the computation engines
Every payload is fanned out to, or collected from, all engines in index order
"""
import logging
import random
import socket
import time
from typing import List, Optional, Sequence

from config import (BASE_PORT, CONNECTION_TIMEOUT, LENGTH_SIZE, MAX_RETRIES, PARTY_ID_SIZE,
                    RECEIVE_TIMEOUT, RETRY_BASE_DELAY, RETRY_MAX_DELAY)


class ShareChannel:
    """Owns one stream socket per engine"""

    def __init__(self, sockets: Sequence[socket.socket], logger: Optional[logging.Logger] = None):
        if not sockets:
            raise ValueError("A share channel needs at least one engine")
        self.sockets: List[socket.socket] = list(sockets)
        self.num_engines = len(self.sockets)
        self.logger = logger or logging.getLogger(__name__)
        self._closed = False

    @classmethod
    def connect(cls, hosts: Sequence[str], base_port: int = BASE_PORT, party_id: int = 0,
                retries: int = MAX_RETRIES, logger: Optional[logging.Logger] = None) -> 'ShareChannel':
        """Connect to engine i at hosts[i]:base_port+i and announce our party id"""
        logger = logger or logging.getLogger(__name__)
        sockets = []
        try:
            for engine_id, host in enumerate(hosts):
                port = base_port + engine_id
                sock = cls._connect_engine(host, port, engine_id, retries, logger)
                sockets.append(sock)
                sock.sendall(int(party_id).to_bytes(PARTY_ID_SIZE, 'little', signed=True))
                logger.info(f"Set up connection to engine {engine_id} on {host}:{port}")
        except Exception:
            for sock in sockets:
                sock.close()
            raise

        logger.info(f"Finished setting up connections to {len(sockets)} engines")
        return cls(sockets, logger)

    @staticmethod
    def _connect_engine(host: str, port: int, engine_id: int, retries: int,
                        logger: logging.Logger) -> socket.socket:
        """Open one connection with backoff, engines may still be binding"""
        last_error = None
        for attempt in range(1, retries + 1):
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                sock.settimeout(CONNECTION_TIMEOUT)
                sock.connect((host, port))
                sock.settimeout(None)
                return sock
            except OSError as e:
                sock.close()
                last_error = e
                logger.warning(f"Connect attempt {attempt}/{retries} to engine {engine_id} failed: {e}")
                if attempt < retries:
                    base_delay = min(RETRY_BASE_DELAY * (2 ** (attempt - 1)), RETRY_MAX_DELAY)
                    jitter = random.uniform(0, base_delay * 0.1)
                    time.sleep(base_delay + jitter)

        raise ConnectionError(f"Engine {engine_id} at {host}:{port} is unreachable: {last_error}")

    def broadcast(self, payload: bytes):
        """Send the same framed payload to every engine"""
        self._check_open()
        frame = len(payload).to_bytes(LENGTH_SIZE, 'little') + payload
        for engine_id, sock in enumerate(self.sockets):
            try:
                sock.sendall(frame)
            except OSError as e:
                raise ConnectionError(f"Failed to send to engine {engine_id}: {e}") from e

    def collect(self, timeout: Optional[float] = RECEIVE_TIMEOUT) -> List[bytes]:
        """
        Receive one framed payload from each engine, indexed by engine position.

        timeout bounds the whole response of each engine, not a single recv.
        """
        self._check_open()
        payloads = []
        for engine_id, sock in enumerate(self.sockets):
            deadline = None if timeout is None else time.monotonic() + timeout
            try:
                length = int.from_bytes(self._recv_exact(sock, LENGTH_SIZE, engine_id, deadline), 'little')
                payloads.append(self._recv_exact(sock, length, engine_id, deadline))
            except socket.timeout:
                raise TimeoutError(f"Timed out after {timeout}s waiting for engine {engine_id}")
            finally:
                sock.settimeout(None)
        return payloads

    @staticmethod
    def _recv_exact(sock: socket.socket, size: int, engine_id: int,
                    deadline: Optional[float] = None) -> bytes:
        chunks = []
        remaining = size
        while remaining > 0:
            if deadline is not None:
                time_left = deadline - time.monotonic()
                if time_left <= 0:
                    raise socket.timeout("deadline expired")
                sock.settimeout(time_left)
            chunk = sock.recv(remaining)
            if not chunk:
                raise ConnectionError(f"Engine {engine_id} closed the connection")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b''.join(chunks)

    def _check_open(self):
        if self._closed:
            raise ConnectionError("Share channel is closed")

    def close(self):
        """Release every engine connection"""
        if self._closed:
            return
        self._closed = True
        for sock in self.sockets:
            try:
                sock.close()
            except OSError as e:
                self.logger.warning(f"Error closing engine socket: {e}")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
