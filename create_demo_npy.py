#!/usr/bin/env python3
"""
Create demo NPY files for the example_usage.py script.

This script writes a small folder of indexed frame matrices plus a standalone
vector that can be used to demonstrate the NPY I/O functionality.
"""

import os
from typing import List

import numpy as np

from npy_io import save_array, save_matrix


def create_demo_npy_files(folder: str, num_frames: int = 4, rows: int = 2, cols: int = 3) -> List[str]:
    """
    Create demo frame files folder/frame_{i}.npy and folder/vector.npy.

    Frame i holds i * 100 + its flat element position, as float32.

    Args:
        folder: Directory to write into (created if missing)
        num_frames: Number of contiguous frames starting at index 0
        rows: Rows per frame
        cols: Columns per frame

    Returns:
        Paths of the frame files in index order
    """
    os.makedirs(folder, exist_ok=True)

    paths = []
    for i in range(num_frames):
        frame = (np.arange(rows * cols, dtype=np.float32) + i * 100).reshape(rows, cols)
        path = os.path.join(folder, f"frame_{i}.npy")
        save_matrix(path, frame)
        paths.append(path)

    save_array(os.path.join(folder, "vector.npy"), [1, 2, 3, 4], dtype=np.uint8)

    print(f"Created demo NPY files in: {folder}")
    print(f"  Frames: {num_frames} x ({rows}, {cols}) float32")
    print("  Vector: vector.npy (4 x uint8)")
    return paths


if __name__ == '__main__':
    create_demo_npy_files('demo_npy')
