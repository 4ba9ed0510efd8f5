"""
Launches every training client of one run
The engines must already be running and listening on port_base + i
"""
import argparse
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

from config import BASE_PORT, DATA_ROOT, DEFAULT_DATASET, LOGS_DIR


class ClientLauncher:
    """Starts one protocol.py process per client and waits for all of them"""

    def __init__(self, num_clients: int, num_parties: int, dataset: str = DEFAULT_DATASET,
                 port_base: int = BASE_PORT, data_root: str = DATA_ROOT,
                 hosts: Optional[List[str]] = None, timeout: Optional[float] = None):
        self.num_clients = num_clients
        self.num_parties = num_parties
        self.dataset = dataset
        self.port_base = port_base
        self.data_root = data_root
        self.hosts = hosts
        self.timeout = timeout
        self.processes: Dict[int, subprocess.Popen] = {}
        self.log_files = {}

        os.makedirs(LOGS_DIR, exist_ok=True)

    def build_command(self, client_id: int) -> List[str]:
        cmd = [
            sys.executable, "protocol.py",
            str(client_id), str(self.num_parties), self.dataset, str(self.port_base),
            "--data-root", self.data_root
        ]
        if self.hosts:
            cmd.extend(["--hosts", *self.hosts])
        if self.timeout is not None:
            cmd.extend(["--timeout", str(self.timeout)])
        return cmd

    def run(self) -> Dict[int, int]:
        """Run all clients and return their exit codes"""
        try:
            self._start_all_clients()
            return self._wait_for_completion()
        except KeyboardInterrupt:
            print("\n\nShutdown requested by user")
            return {client_id: -1 for client_id in self.processes}
        finally:
            self._cleanup()

    def _start_all_clients(self):
        print("Starting training clients")
        print("=" * 50)

        # Label holder first, the engines read its inputs first
        for client_id in range(self.num_clients):
            self._start_client(client_id)
            time.sleep(0.5)

        print(f"\nAll {self.num_clients} clients started")

    def _start_client(self, client_id: int):
        log_file = open(Path(LOGS_DIR) / f"client{client_id}_combined.log", "w")
        self.log_files[client_id] = log_file

        process = subprocess.Popen(
            self.build_command(client_id), stdout=log_file, stderr=log_file,
            cwd=Path(__file__).parent
        )
        self.processes[client_id] = process
        print(f"Started client {client_id:<4} (PID: {process.pid})")

    def _wait_for_completion(self) -> Dict[int, int]:
        print("\nWaiting for clients to finish...")
        exit_codes = {}
        for client_id, process in self.processes.items():
            exit_codes[client_id] = process.wait()
            status = "ok" if exit_codes[client_id] == 0 else f"failed ({exit_codes[client_id]})"
            print(f"Client {client_id}: {status}")
        return exit_codes

    def _cleanup(self):
        for process in self.processes.values():
            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    process.kill()

        for log_file in self.log_files.values():
            log_file.close()


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Run all training clients against running engines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Three clients, three engines on the default ports
  python run_smpc_protocol.py --clients 3 --parties 3

  # Sample data created with setup_parties.py
  python run_smpc_protocol.py --clients 2 --parties 2 --dataset sample --data-root data
        """
    )
    parser.add_argument('--clients', type=int, required=True, help='Number of training clients')
    parser.add_argument('--parties', type=int, required=True, help='Number of computation engines')
    parser.add_argument('--dataset', default=DEFAULT_DATASET, help='Dataset name')
    parser.add_argument('--port-base', type=int, default=BASE_PORT, help='Port of engine 0')
    parser.add_argument('--data-root', default=DATA_ROOT, help='Root directory of the datasets')
    parser.add_argument('--hosts', nargs='+', help='Engine host names')
    parser.add_argument('--timeout', type=float, help='Per-response deadline passed to each client')

    args = parser.parse_args()

    launcher = ClientLauncher(args.clients, args.parties, args.dataset, args.port_base,
                              args.data_root, args.hosts, args.timeout)
    exit_codes = launcher.run()
    sys.exit(0 if exit_codes and all(code == 0 for code in exit_codes.values()) else 1)


if __name__ == "__main__":
    main()
