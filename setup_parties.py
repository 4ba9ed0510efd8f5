#!/usr/bin/env python3
"""
Setup script for training client partitions
Creates a vertically partitioned sample dataset for local runs
"""
import argparse
from pathlib import Path
from typing import List

import numpy as np

from config import DATA_ROOT


def create_sample_partitions(num_clients: int, num_samples: int = 100, num_features: int = 3,
                             dataset: str = "sample", data_root: str = DATA_ROOT,
                             num_classes: int = 2, seed: int = 42) -> List[Path]:
    """Write client_<i>.txt files; client 0 also holds the label column"""
    print(f"Creating {num_clients} partitions in {data_root}/{dataset}/...")

    rng = np.random.default_rng(seed)
    dataset_dir = Path(data_root) / dataset
    dataset_dir.mkdir(parents=True, exist_ok=True)

    labels = rng.integers(0, num_classes, size=num_samples)
    paths = []
    for client_id in range(num_clients):
        # Mix continuous and low-cardinality features
        continuous = np.round(rng.normal(labels[:, None] * 2.0, 1.0, (num_samples, num_features)), 3)
        continuous[:, -1] = rng.integers(0, 4, size=num_samples)
        columns = [continuous]
        if client_id == 0:
            columns.append(labels[:, None].astype(float))

        path = dataset_dir / f"client_{client_id}.txt"
        np.savetxt(path, np.hstack(columns), delimiter=",", fmt="%g")
        paths.append(path)
        print(f"  Created: {path}")

    print(f"\nSetup complete! Created {num_clients} partitions in {dataset_dir}/")
    return paths


def list_partitions(dataset: str, data_root: str = DATA_ROOT) -> List[Path]:
    """List client partitions of a dataset"""
    dataset_dir = Path(data_root) / dataset
    paths = sorted(dataset_dir.glob("client_*.txt"))

    print(f"Partitions in {dataset_dir}:")
    print("=" * 40)
    for path in paths:
        with open(path) as f:
            lines = [line for line in f if line.strip()]
        num_fields = len(lines[0].split(",")) if lines else 0
        print(f"  {path.name:<20} ({len(lines)} samples, {num_fields} fields)")
    print(f"\nTotal: {len(paths)} partitions")
    return paths


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Setup and list training client partitions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create 3 sample partitions
  python setup_parties.py --create 3

  # List partitions of a dataset
  python setup_parties.py --list --dataset sample
        """
    )

    parser.add_argument('--create', type=int, metavar='N', help='Create N client partitions')
    parser.add_argument('--samples', type=int, default=100, help='Samples per partition')
    parser.add_argument('--features', type=int, default=3, help='Features per partition')
    parser.add_argument('--classes', type=int, default=2, help='Number of label classes')
    parser.add_argument('--dataset', default='sample', help='Dataset name')
    parser.add_argument('--data-root', default=DATA_ROOT, help='Root directory of the datasets')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')
    parser.add_argument('--list', action='store_true', help='List partitions of the dataset')

    args = parser.parse_args()

    if args.create:
        create_sample_partitions(args.create, args.samples, args.features, args.dataset,
                                 args.data_root, args.classes, args.seed)
    else:
        list_partitions(args.dataset, args.data_root)


if __name__ == '__main__':
    main()
