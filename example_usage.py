#!/usr/bin/env python3
"""
Example Usage of NPY I/O

This script demonstrates how to use the NPY I/O library to read, write and
stack NPY array files.

The examples cover:
- Loading a file into an NpyArray and reading typed values
- Loading raw payload bytes
- Loading a rank-2 file as a dense matrix
- Stacking a folder of indexed frames into one matrix
- Error handling for common issues
"""

import os
import struct
import sys

import numpy as np

from create_demo_npy import create_demo_npy_files
from npy_io import (
    NpyReader,
    NpyFileError,
    NpyHeaderParseError,
    NpyUnsupportedEndiannessError,
    npy_load,
    load_npy_raw,
    load_npy_matrix,
    npy_folder_to_matrix,
)


def example_basic_usage(folder: str):
    """
    Example 1: Loading an array

    npy_load() returns an NpyArray holding the payload bytes together with the
    shape, word size and layout recorded in the header.
    """
    print("=" * 70)
    print("Example 1: Loading an Array")
    print("=" * 70)

    filepath = os.path.join(folder, "vector.npy")
    try:
        arr = npy_load(filepath)
        print(f"✓ Loaded: {filepath}")
        print(f"  Shape: {arr.shape}")
        print(f"  Word size: {arr.word_size}")
        print(f"  Fortran order: {arr.fortran_order}")
        print(f"  Values: {arr.as_vector(np.uint8).tolist()}")
        print()

        # Peek at the header without reading the payload
        with NpyReader(filepath) as reader:
            print(f"  Header version: {reader.get_version()}")
            print(f"  Payload size: {reader.num_bytes()} bytes")
        print()

    except NpyFileError as e:
        print(f"✗ Error loading array: {e}")
        print()


def example_raw_loading(folder: str):
    """
    Example 2: Loading raw bytes

    load_npy_raw() returns only the payload bytes, their count and the word size.
    """
    print("=" * 70)
    print("Example 2: Loading Raw Bytes")
    print("=" * 70)

    try:
        data, n_bytes, word_size = load_npy_raw(os.path.join(folder, "frame_0.npy"))
        print(f"  Payload size: {n_bytes} bytes ({n_bytes // word_size} values of {word_size} bytes)")
        print(f"  First 16 bytes (hex): {data[:16].hex()}")
        print()

    except NpyFileError as e:
        print(f"✗ Error loading raw bytes: {e}")
        print()


def example_matrix_loading(folder: str):
    """
    Example 3: Loading a matrix

    Rank-2 files can be loaded straight into a row-major numpy matrix.
    """
    print("=" * 70)
    print("Example 3: Loading a Matrix")
    print("=" * 70)

    try:
        matrix = load_npy_matrix(os.path.join(folder, "frame_1.npy"))
        print(f"  Matrix shape: {matrix.shape}")
        print(f"  Matrix dtype: {matrix.dtype}")
        print(matrix)
        print()

    except NpyFileError as e:
        print(f"✗ Error loading matrix: {e}")
        print()


def example_folder_stacking(folder: str):
    """
    Example 4: Stacking a folder

    Files named frame_0.npy, frame_1.npy, ... are stacked row-block by
    row-block until the first missing index.
    """
    print("=" * 70)
    print("Example 4: Stacking a Folder")
    print("=" * 70)

    try:
        matrix = npy_folder_to_matrix(folder, "frame_", 0, ".npy", np.float32)
        print(f"  Stacked matrix shape: {matrix.shape}")
        print(f"  First column: {matrix[:, 0].tolist()}")
        print()

    except NpyFileError as e:
        print(f"✗ Error stacking folder: {e}")
        print()


def example_error_handling(folder: str):
    """
    Example 5: Error handling

    The library raises specific exception types for different error conditions,
    all derived from NpyFileError.
    """
    print("=" * 70)
    print("Example 5: Error Handling")
    print("=" * 70)

    # Example 5a: File not found
    print("5a. Handling file not found:")
    try:
        npy_load(os.path.join(folder, "nonexistent_file.npy"))
    except NpyFileError as e:
        print(f"  ✓ Caught error: {type(e).__name__}")
        print(f"    Message: {e}")
    print()

    # Example 5b: Header without a 'descr' key
    print("5b. Handling a malformed header:")
    bad_path = os.path.join(folder, "bad_header.npy")
    text = b"{'fortran_order': False, 'shape': (2,), }\n"
    with open(bad_path, 'wb') as f:
        f.write(b'\x93NUMPY\x02\x00' + struct.pack('<I', len(text)) + text + b'\x00\x00')
    try:
        npy_load(bad_path)
    except NpyHeaderParseError as e:
        print(f"  ✓ Caught error: {type(e).__name__} (key: {e.key})")
        print(f"    Message: {e}")
    finally:
        os.unlink(bad_path)
    print()

    # Example 5c: Big-endian data
    print("5c. Handling big-endian data:")
    big_path = os.path.join(folder, "big_endian.npy")
    text = b"{'descr': '>i4', 'fortran_order': False, 'shape': (1,), }\n"
    with open(big_path, 'wb') as f:
        f.write(b'\x93NUMPY\x02\x00' + struct.pack('<I', len(text)) + text + b'\x00\x00\x00\x01')
    try:
        npy_load(big_path)
    except NpyUnsupportedEndiannessError as e:
        print(f"  ✓ Caught error: {type(e).__name__}")
        print(f"    Message: {e}")
    finally:
        os.unlink(big_path)
    print()


def main(argv=None) -> int:
    """
    Main function to run all examples.

    Args:
        argv: Command-line arguments; the first is the demo folder to use

    Returns:
        Process exit code
    """
    if argv is None:
        argv = sys.argv[1:]
    folder = argv[0] if argv else 'demo_npy'

    print("\n")
    print("╔" + "═" * 68 + "╗")
    print("║" + " " * 22 + "NPY I/O - Example Usage" + " " * 23 + "║")
    print("╚" + "═" * 68 + "╝")
    print()

    create_demo_npy_files(folder)
    print()

    example_basic_usage(folder)
    example_raw_loading(folder)
    example_matrix_loading(folder)
    example_folder_stacking(folder)
    example_error_handling(folder)

    print("=" * 70)
    print("Examples completed!")
    print("=" * 70)
    print()
    return 0


if __name__ == '__main__':
    sys.exit(main())
