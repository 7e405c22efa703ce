"""
NPY I/O - A Python library for reading and writing NPY array files.

This module provides functionality to parse and serialize NPY headers, load
payloads into shared-buffer containers or dense numpy matrices, write raw
buffers and matrices back to disk, and stack folders of indexed NPY files
into a single matrix.
"""

import copy
import logging
import os
import struct
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np


LOGGER = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


# ============================================================================
# Format Constants
# ============================================================================

NPY_MAGIC = b'\x93NUMPY'
NPY_VERSION = (2, 0)

# magic (6) + version (2) + header length field (4)
PREAMBLE_SIZE = 12
HEADER_ALIGNMENT = 16

# Largest header length accepted from a file (the dictionary is tiny in practice)
MAX_HEADER_LENGTH = 1024 * 1024


# ============================================================================
# Type Enumerations
# ============================================================================

class NpyDType:
    """Scalar types supported in NPY payloads."""
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'
    INT8 = 'int8'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    UINT8 = 'uint8'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'


# Maps scalar types to their header tag: byte order marker + type letter + width.
# One-byte types carry '|' (byte order not applicable).
DTYPE_TAGS: Dict[str, str] = {
    NpyDType.FLOAT32: '<f4',
    NpyDType.FLOAT64: '<f8',
    NpyDType.INT8: '|i1',
    NpyDType.INT16: '<i2',
    NpyDType.INT32: '<i4',
    NpyDType.INT64: '<i8',
    NpyDType.UINT8: '|u1',
    NpyDType.UINT16: '<u2',
    NpyDType.UINT32: '<u4',
    NpyDType.UINT64: '<u8',
}

WORD_SIZES: Dict[str, int] = {name: int(tag[2:]) for name, tag in DTYPE_TAGS.items()}

_TAG_TO_DTYPE: Dict[str, str] = {tag: name for name, tag in DTYPE_TAGS.items()}

# Type letter + width, ignoring the byte order marker ('<u1' and '|u1' agree)
_SUFFIX_TO_DTYPE: Dict[str, str] = {tag[1:]: name for name, tag in DTYPE_TAGS.items()}


# ============================================================================
# Exception Classes
# ============================================================================

class NpyFileError(Exception):
    """Base exception for all NPY-related errors."""
    pass


class NpyFileOpenError(NpyFileError):
    """Raised when a file cannot be opened for reading."""
    pass


class NpyTruncatedReadError(NpyFileError):
    """Raised when the file ends before the declared header or payload."""
    pass


class NpyHeaderParseError(NpyFileError):
    """
    Raised when the header dictionary cannot be parsed.

    Attributes:
        key: Name of the missing or malformed header key, if any
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class NpyUnsupportedDTypeError(NpyFileError):
    """Raised when a scalar type is outside the supported table."""
    pass


class NpyUnsupportedEndiannessError(NpyFileError):
    """Raised when the data is not little-endian."""
    pass


class NpyLayoutMismatchError(NpyFileError):
    """Raised when a file's fortran_order differs from the expected layout."""
    pass


class NpyShapeMismatchError(NpyFileError):
    """Raised when a shape or payload size disagrees with what is required."""
    pass


class NpyTypeMismatchError(NpyFileError):
    """Raised when a requested scalar type disagrees with the stored data."""
    pass


# ============================================================================
# Type Resolution
# ============================================================================

def resolve_dtype(dtype: Any) -> str:
    """
    Resolve a scalar type description to its canonical NpyDType name.

    Accepts NpyDType names ('float32'), header tags ('<f4'), numpy dtypes and
    numpy scalar types (np.float32).

    Args:
        dtype: The type description to resolve

    Returns:
        The canonical type name, a key of DTYPE_TAGS

    Raises:
        NpyUnsupportedDTypeError: If the type is not in the supported table
        NpyUnsupportedEndiannessError: If the type is explicitly big-endian
    """
    if isinstance(dtype, str):
        if dtype in DTYPE_TAGS:
            return dtype
        if dtype in _TAG_TO_DTYPE:
            return _TAG_TO_DTYPE[dtype]

    # np.dtype(None) silently means float64
    if dtype is None:
        raise NpyUnsupportedDTypeError("Unsupported data type: None")

    try:
        np_dtype = np.dtype(dtype)
    except (TypeError, ValueError) as e:
        raise NpyUnsupportedDTypeError(f"Unsupported data type: {dtype!r}") from e

    if np_dtype.name not in DTYPE_TAGS:
        raise NpyUnsupportedDTypeError(f"Unsupported data type: {dtype!r}")
    if np_dtype.byteorder == '>':
        raise NpyUnsupportedEndiannessError(
            f"Unsupported data type {dtype!r}: only little-endian data is supported"
        )
    return np_dtype.name


def _numpy_dtype(name: str) -> np.dtype:
    # Explicit little-endian regardless of host
    return np.dtype(DTYPE_TAGS[name])


def _product(shape: Sequence[int]) -> int:
    total = 1
    for dim in shape:
        total *= int(dim)
    return total


# ============================================================================
# Header Codec
# ============================================================================

def _read_exact(fp, size: int, what: str, filepath: str) -> bytes:
    """
    Read exactly size bytes from fp.

    Raises:
        NpyTruncatedReadError: If fewer than size bytes are available
    """
    position = fp.tell()
    data = fp.read(size)
    if len(data) < size:
        raise NpyTruncatedReadError(
            f"Unexpected end of file '{filepath}' at position {position}: "
            f"expected to read {size} bytes for {what}, only {len(data)} bytes available"
        )
    return data


def _scan_digit_runs(text: str) -> List[int]:
    """Return every maximal run of ASCII decimal digits in text, in order."""
    values = []
    digits = ''
    for ch in text:
        if '0' <= ch <= '9':
            digits += ch
        elif digits:
            values.append(int(digits))
            digits = ''
    if digits:
        values.append(int(digits))
    return values


def _missing_key(key: str, filepath: str) -> NpyHeaderParseError:
    return NpyHeaderParseError(
        f"Failed to parse header of file '{filepath}': "
        f"failed to find header keyword: '{key}'",
        key=key,
    )


def parse_header_text(text: str, filepath: str = '<header>') -> Dict[str, Any]:
    """
    Extract descr, shape and fortran_order from the header dictionary text.

    The dictionary is not parsed as a grammar: each field is located by a
    fixed substring and read at a fixed offset past it.
    - fortran_order: the token 16 characters past the key is 'True' or not
    - shape: digit runs strictly between the first '(' and the first ')'
    - descr: byte order marker 9 characters past the key, then the type
      letter, then the word size digits up to the closing quote

    Args:
        text: The decoded header text
        filepath: Path used in error messages

    Returns:
        Dictionary with 'descr', 'word_size', 'shape' and 'fortran_order'

    Raises:
        NpyHeaderParseError: If a key is missing or the word size is malformed
        NpyUnsupportedEndiannessError: If the byte order marker is not '<' or '|'
    """
    loc = text.find('fortran_order')
    if loc == -1:
        raise _missing_key('fortran_order', filepath)
    loc += 16
    fortran_order = text[loc:loc + 4] == 'True'

    open_loc = text.find('(')
    close_loc = text.find(')')
    if open_loc == -1 or close_loc == -1:
        raise _missing_key('shape', filepath)
    shape = _scan_digit_runs(text[open_loc + 1:close_loc])

    loc = text.find('descr')
    if loc == -1:
        raise _missing_key('descr', filepath)
    loc += 9
    marker = text[loc:loc + 1]
    if not marker:
        raise NpyHeaderParseError(
            f"Failed to parse header of file '{filepath}': "
            f"no value for header keyword: 'descr'",
            key='descr',
        )
    if marker not in ('<', '|'):
        raise NpyUnsupportedEndiannessError(
            f"Unsupported byte order {marker!r} in file '{filepath}': "
            f"only little-endian data is supported"
        )
    type_letter = text[loc + 1:loc + 2]

    end = text.find("'", loc + 2)
    size_text = text[loc + 2:end] if end != -1 else ''
    if not size_text or any(not '0' <= ch <= '9' for ch in size_text):
        raise NpyHeaderParseError(
            f"Failed to parse header of file '{filepath}': "
            f"invalid word size {size_text!r} for header keyword: 'descr'",
            key='descr',
        )

    return {
        'descr': marker + type_letter + size_text,
        'word_size': int(size_text),
        'shape': shape,
        'fortran_order': fortran_order,
    }


def parse_npy_header(fp, filepath: Optional[str] = None) -> Dict[str, Any]:
    """
    Read and parse an NPY header from a binary stream.

    The stream is left positioned at the first payload byte. The header
    consists of:
    - 6 bytes: magic string (not validated)
    - 2 bytes: major and minor version (recorded, not validated)
    - 4 bytes: header length (uint32, little-endian)
    - N bytes: header text, which must end in a newline

    Args:
        fp: Binary stream positioned at the start of the file
        filepath: Path used in error messages (defaults to fp.name)

    Returns:
        Dictionary with 'version', 'header_len', 'descr', 'word_size',
        'shape' and 'fortran_order'

    Raises:
        NpyTruncatedReadError: If the stream ends inside the header
        NpyHeaderParseError: If the header text is malformed
        NpyUnsupportedEndiannessError: If the data is not little-endian
    """
    if filepath is None:
        filepath = getattr(fp, 'name', '<stream>')

    preamble = _read_exact(fp, 8, 'magic string and version', filepath)
    version = (preamble[6], preamble[7])

    length_bytes = _read_exact(fp, 4, 'header length', filepath)
    header_len = struct.unpack('<I', length_bytes)[0]
    if header_len > MAX_HEADER_LENGTH:
        raise NpyHeaderParseError(
            f"Invalid header length in file '{filepath}': "
            f"length {header_len} exceeds maximum allowed length {MAX_HEADER_LENGTH}",
            key='header_len',
        )

    text = _read_exact(fp, header_len, 'header text', filepath).decode('latin1')
    if not text.endswith('\n'):
        raise NpyHeaderParseError(
            f"Failed to read header of file '{filepath}': header text does not end with a newline"
        )

    header = parse_header_text(text, filepath)
    header['version'] = version
    header['header_len'] = header_len
    return header


def build_header_text(dtype: Any, shape: Sequence[int], fortran_order: bool) -> str:
    """
    Build the padded header text for a rank-1 or rank-2 array.

    The text is padded with spaces and terminated by a newline so that the
    preamble plus the text is a multiple of HEADER_ALIGNMENT bytes.

    Raises:
        NpyUnsupportedDTypeError: If dtype is not in the supported table
        ValueError: If shape is not rank 1 or 2, or has negative dimensions
    """
    name = resolve_dtype(dtype)
    dims = [int(d) for d in shape]
    if any(d < 0 for d in dims):
        raise ValueError(f"Negative dimension in shape {tuple(dims)}")
    if len(dims) == 1:
        shape_text = f"({dims[0]},)"
    elif len(dims) == 2:
        shape_text = f"({dims[0]}, {dims[1]})"
    else:
        raise ValueError(f"Only rank-1 and rank-2 shapes can be written, got shape {tuple(dims)}")

    header = (
        "{'descr': '" + DTYPE_TAGS[name] + "', "
        "'fortran_order': " + ('True' if fortran_order else 'False') + ", "
        "'shape': " + shape_text + ", }"
    )
    padding = (HEADER_ALIGNMENT - (PREAMBLE_SIZE + len(header) + 1) % HEADER_ALIGNMENT) % HEADER_ALIGNMENT
    return header + ' ' * padding + '\n'


def serialize_npy_header(dtype: Any, shape: Sequence[int], fortran_order: bool) -> bytes:
    """
    Serialize a complete NPY preamble: magic, version, length field and text.

    Args:
        dtype: Scalar type of the payload
        shape: Rank-1 or rank-2 shape
        fortran_order: True for column-major payloads

    Returns:
        The header bytes to write before the payload
    """
    text = build_header_text(dtype, shape, fortran_order).encode('latin1')
    return NPY_MAGIC + bytes(NPY_VERSION) + struct.pack('<I', len(text)) + text


# ============================================================================
# NpyArray Container
# ============================================================================

class NpyArray:
    """
    A decoded NPY payload plus its shape, word size and layout.

    The byte buffer is shared between shallow copies: copy.copy() returns a
    container aliasing the same storage, so a write through one is visible
    through the other. Use clone() (or copy.deepcopy()) for isolated storage.
    The container is never resized after construction.

    Usage:
        arr = npy_load('weights.npy')
        values = arr.data(np.float32)      # typed view, no copy
        owned = arr.as_vector(np.float32)  # fresh copy
    """

    def __init__(self, shape: Sequence[int], word_size: int, fortran_order: bool,
                 descr: Optional[str] = None):
        """
        Zero-allocate a buffer of word_size * product(shape) bytes.

        Args:
            shape: Dimension sizes; an empty shape holds a single element
            word_size: Byte width of one scalar
            fortran_order: True for column-major storage
            descr: Header tag of the stored type, if known
        """
        self.shape: List[int] = [int(d) for d in shape]
        self.word_size = int(word_size)
        self.fortran_order = bool(fortran_order)
        self.descr = descr
        self.num_vals = _product(self.shape)
        self.data_holder = bytearray(self.num_vals * self.word_size)

    def num_bytes(self) -> int:
        """Return the length of the underlying buffer in bytes."""
        return len(self.data_holder)

    def data(self, dtype: Any) -> np.ndarray:
        """
        Return a writable typed view over the shared buffer.

        The caller is responsible for requesting the stored type. When running
        without -O the request is checked against descr (or word_size when no
        tag is known).

        Raises:
            NpyTypeMismatchError: If the requested type disagrees with the data
        """
        name = resolve_dtype(dtype)
        if __debug__:
            self._check_access(name)
        return np.frombuffer(self.data_holder, dtype=_numpy_dtype(name), count=self.num_vals)

    def _check_access(self, name: str) -> None:
        if self.descr is not None:
            if DTYPE_TAGS[name][1:] != self.descr[1:]:
                raise NpyTypeMismatchError(
                    f"Requested type {name} ('{DTYPE_TAGS[name]}') but data is '{self.descr}'"
                )
        elif WORD_SIZES[name] != self.word_size:
            raise NpyTypeMismatchError(
                f"Requested type {name} with word size {WORD_SIZES[name]} "
                f"but data has word size {self.word_size}"
            )

    def as_vector(self, dtype: Any) -> np.ndarray:
        """Copy num_vals elements of the given type into a fresh 1-D array."""
        return self.data(dtype).copy()

    def as_matrix(self, dtype: Any = None) -> np.ndarray:
        """
        Copy a rank-2 payload into a fresh row-major matrix.

        Element (i, j) of the result is the logical element (i, j) of the
        array, whichever layout the payload was stored in.

        Args:
            dtype: Scalar type; defaults to the type recorded in descr

        Returns:
            A C-contiguous matrix of shape (rows, cols)

        Raises:
            ValueError: If the array is not rank 2
            NpyUnsupportedDTypeError: If no dtype is given and descr is unknown
        """
        if len(self.shape) != 2:
            raise ValueError("Only 2D arrays can be converted to matrices.")
        if dtype is None:
            suffix = self.descr[1:] if self.descr else None
            if suffix not in _SUFFIX_TO_DTYPE:
                raise NpyUnsupportedDTypeError(f"Unsupported data type: {self.descr!r}")
            dtype = _SUFFIX_TO_DTYPE[suffix]

        order = 'F' if self.fortran_order else 'C'
        values = self.data(dtype).reshape(self.shape, order=order)
        return np.array(values, order='C', copy=True)

    def clone(self) -> 'NpyArray':
        """Return a copy with its own, independent buffer."""
        cloned = copy.copy(self)
        cloned.data_holder = bytearray(self.data_holder)
        return cloned

    def shares_buffer(self, other: 'NpyArray') -> bool:
        """Return True if other aliases this container's buffer."""
        return self.data_holder is other.data_holder

    def __copy__(self) -> 'NpyArray':
        shared = NpyArray.__new__(NpyArray)
        shared.__dict__.update(self.__dict__)
        shared.shape = list(self.shape)
        return shared

    def __deepcopy__(self, memo: Dict[int, Any]) -> 'NpyArray':
        return self.clone()

    def __repr__(self) -> str:
        return (
            f"NpyArray(shape={self.shape}, word_size={self.word_size}, "
            f"fortran_order={self.fortran_order}, descr={self.descr!r})"
        )


# Name-to-array mapping, the in-memory form of a multi-array archive
NpzDict = Dict[str, NpyArray]


# ============================================================================
# NpyReader Class
# ============================================================================

class NpyReader:
    """
    Reader for NPY files.

    The file is opened and its header parsed on entry; it is closed on exit
    and on any failure while entering.

    Usage:
        with NpyReader('frame_0.npy') as reader:
            shape = reader.get_shape()
            arr = reader.read_array()
    """

    def __init__(self, filepath: PathLike):
        """
        Initialize the NPY reader with a file path.

        Args:
            filepath: Path to the NPY file to read
        """
        self.filepath = os.fspath(filepath)
        self.file = None
        self.header: Dict[str, Any] = {}

    def __enter__(self):
        """
        Context manager entry - opens the file and parses the header.

        Returns:
            self for use in with statement

        Raises:
            NpyFileOpenError: If the file cannot be opened
            NpyTruncatedReadError: If the file ends inside the header
            NpyHeaderParseError: If the header is malformed
            NpyUnsupportedEndiannessError: If the data is not little-endian
        """
        try:
            self.file = open(self.filepath, 'rb')
        except OSError as e:
            raise NpyFileOpenError(f"Unable to open file '{self.filepath}': {e}") from e

        try:
            self._read_header()
        except Exception:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - closes the file without suppressing exceptions."""
        self.close()
        return None

    def close(self) -> None:
        """Close the file if it is open."""
        if self.file is not None:
            self.file.close()
            self.file = None

    def get_shape(self) -> List[int]:
        """Return the shape recorded in the header."""
        return list(self.header.get('shape', []))

    def get_version(self) -> Tuple[int, int]:
        """Return the (major, minor) version read from the file."""
        return self.header.get('version', (0, 0))

    def num_bytes(self) -> int:
        """Return the payload size in bytes declared by the header."""
        return _product(self.header['shape']) * self.header['word_size']

    def read_array(self) -> NpyArray:
        """
        Read the payload into a new NpyArray sized from the header.

        The stored fortran_order is carried over unchanged.

        Raises:
            NpyFileError: If the file is not open
            NpyTruncatedReadError: If the file ends before the payload does
        """
        if self.file is None:
            raise NpyFileError("File is not open")

        arr = NpyArray(
            self.header['shape'],
            self.header['word_size'],
            self.header['fortran_order'],
            descr=self.header['descr'],
        )
        position = self.file.tell()
        nread = self.file.readinto(arr.data_holder)
        if nread < arr.num_bytes():
            raise NpyTruncatedReadError(
                f"Unexpected end of file '{self.filepath}' at position {position}: "
                f"expected to read {arr.num_bytes()} bytes for array data, "
                f"only {nread} bytes available"
            )
        return arr

    def read_raw(self, strict: bool = True) -> Tuple[bytes, int, int]:
        """
        Read the payload as raw bytes, discarding the shape.

        Args:
            strict: If False, a short read is logged as a warning and the
                missing tail is zero-filled instead of raising

        Returns:
            Tuple of (payload bytes, declared byte count, word size)

        Raises:
            NpyTruncatedReadError: On a short read when strict is True
        """
        if self.file is None:
            raise NpyFileError("File is not open")

        n_bytes = self.num_bytes()
        position = self.file.tell()
        data = self.file.read(n_bytes)
        if len(data) < n_bytes:
            message = (
                f"Unexpected end of file '{self.filepath}' at position {position}: "
                f"expected to read {n_bytes} bytes for array data, "
                f"only {len(data)} bytes available"
            )
            if strict:
                raise NpyTruncatedReadError(message)
            LOGGER.warning("%s", message)
            data += bytes(n_bytes - len(data))
        return data, n_bytes, self.header['word_size']

    def _read_header(self) -> None:
        if self.file is None:
            raise NpyFileError("File is not open")
        self.header = parse_npy_header(self.file, self.filepath)


def npy_load(filepath: PathLike) -> NpyArray:
    """Load an NPY file into an NpyArray."""
    with NpyReader(filepath) as reader:
        return reader.read_array()


def load_npy_raw(filepath: PathLike, strict: bool = True) -> Tuple[bytes, int, int]:
    """
    Load an NPY payload as raw bytes.

    Returns:
        Tuple of (payload bytes, byte count, word size)
    """
    with NpyReader(filepath) as reader:
        return reader.read_raw(strict=strict)


def load_npy_matrix(filepath: PathLike, dtype: Any = None) -> np.ndarray:
    """
    Load a rank-2 NPY file into a row-major dense matrix.

    Args:
        filepath: Path to the NPY file
        dtype: Scalar type; defaults to the type stored in the header

    Raises:
        ValueError: If the stored array is not rank 2
    """
    return npy_load(filepath).as_matrix(dtype)


def load_npy_dict(paths: Dict[str, PathLike]) -> NpzDict:
    """Load every file of a name-to-path mapping into a name-to-array mapping."""
    return {name: npy_load(path) for name, path in paths.items()}


# ============================================================================
# Writers
# ============================================================================

def _payload_bytes(name: str, data: Any, count: int) -> np.ndarray:
    """
    Return the first count elements of data as a flat uint8 array.

    ndarrays are taken in their own memory order; bytes-like objects are
    taken verbatim; other sequences are converted to the target type.

    Raises:
        NpyTypeMismatchError: If an ndarray does not hold the target type
        NpyShapeMismatchError: If data holds fewer than count elements
    """
    n_bytes = count * WORD_SIZES[name]
    if isinstance(data, np.ndarray):
        if data.dtype != _numpy_dtype(name):
            raise NpyTypeMismatchError(
                f"Array of type {data.dtype} cannot be written as {name}"
            )
        payload = np.ravel(data, order='A').view(np.uint8)
    elif isinstance(data, (bytes, bytearray, memoryview)):
        payload = np.frombuffer(data, dtype=np.uint8)
    else:
        payload = np.asarray(data, dtype=_numpy_dtype(name)).reshape(-1).view(np.uint8)

    if payload.size < n_bytes:
        raise NpyShapeMismatchError(
            f"Payload holds {payload.size} bytes, shape requires {n_bytes} bytes"
        )
    return payload[:n_bytes]


def _element_count(name: str, data: Any) -> int:
    if isinstance(data, np.ndarray):
        return data.size
    if isinstance(data, (bytes, bytearray, memoryview)):
        return memoryview(data).nbytes // WORD_SIZES[name]
    return len(data)


def _write_npy(filepath: PathLike, header: bytes, payload: np.ndarray) -> bool:
    try:
        outfile = open(filepath, 'wb')
    except OSError as e:
        LOGGER.error("Failed to open file for writing: %s (%s)", os.fspath(filepath), e)
        return False

    with outfile:
        outfile.write(header)
        outfile.write(payload)
    return True


def save_npy(filepath: PathLike, dtype: Any, data: Any, shape: Sequence[int],
             fortran_order: bool = False) -> bool:
    """
    Write data to an NPY file.

    The header is built before the file is opened, so an unsupported type or
    shape never truncates an existing file. Exactly product(shape) elements
    are written in the order they are stored; nothing is transposed.

    Args:
        filepath: Destination path (truncated if it exists)
        dtype: Scalar type of the payload
        data: ndarray, bytes-like object or sequence of numbers
        shape: Rank-1 or rank-2 shape recorded in the header
        fortran_order: Layout recorded in the header

    Returns:
        True if the file was written, False if it could not be opened

    Raises:
        NpyUnsupportedDTypeError: If dtype is not in the supported table
        NpyTypeMismatchError: If an ndarray does not hold dtype
        NpyShapeMismatchError: If data is shorter than shape requires
        ValueError: If shape is not rank 1 or 2
    """
    name = resolve_dtype(dtype)
    header = serialize_npy_header(name, shape, fortran_order)
    payload = _payload_bytes(name, data, _product(shape))

    if not _write_npy(filepath, header, payload):
        return False
    LOGGER.info("Saved %s array of shape %s to: %s", name, tuple(shape), os.fspath(filepath))
    return True


def save_array(filepath: PathLike, data: Any, dtype: Any = None,
               size: Optional[int] = None) -> bool:
    """
    Write a rank-1 array.

    Args:
        filepath: Destination path
        data: ndarray, bytes-like object or sequence of numbers
        dtype: Scalar type; defaults to data.dtype for ndarrays
        size: Number of elements to write; defaults to all of data
    """
    if dtype is None:
        dtype = getattr(data, 'dtype', None)
    name = resolve_dtype(dtype)
    if size is None:
        size = _element_count(name, data)
    return save_npy(filepath, name, data, (size,), fortran_order=False)


def save_array_as_matrix(filepath: PathLike, data: Any, rows: int, cols: int,
                         dtype: Any = None) -> bool:
    """Write rows * cols elements of data as a row-major matrix."""
    if dtype is None:
        dtype = getattr(data, 'dtype', None)
    return save_npy(filepath, dtype, data, (rows, cols), fortran_order=False)


def save_matrix(filepath: PathLike, matrix: np.ndarray) -> bool:
    """
    Write a dense matrix with the layout it already has.

    A matrix that is F-contiguous but not C-contiguous is recorded with
    fortran_order True and its column-major storage is written as is.
    Non-contiguous matrices are first copied to row-major storage.

    Raises:
        ValueError: If matrix is not two-dimensional
    """
    if not isinstance(matrix, np.ndarray) or matrix.ndim != 2:
        raise ValueError("Only 2D arrays can be saved as matrices.")

    if not (matrix.flags['C_CONTIGUOUS'] or matrix.flags['F_CONTIGUOUS']):
        matrix = np.ascontiguousarray(matrix)
    fortran_order = bool(matrix.flags['F_CONTIGUOUS'] and not matrix.flags['C_CONTIGUOUS'])
    return save_npy(filepath, matrix.dtype, matrix, matrix.shape, fortran_order)


# ============================================================================
# Folder Stacking
# ============================================================================

def _indexed_path(folder: PathLike, prefix: str, index: int, suffix: str) -> str:
    return os.path.join(os.fspath(folder), f"{prefix}{index}{suffix}")


def count_indexed_files(folder: PathLike, prefix: str, start_index: int, suffix: str) -> int:
    """
    Count the contiguous run of files folder/{prefix}{i}{suffix} from start_index.

    Each candidate is opened to test that it exists; the first missing index
    ends the run, even if higher indices are present.
    """
    count = 0
    index = start_index
    while True:
        try:
            with open(_indexed_path(folder, prefix, index, suffix), 'rb'):
                pass
        except OSError:
            break
        count += 1
        index += 1
    return count


def _check_stack_member(header: Dict[str, Any], first: Dict[str, Any], path: str) -> None:
    if header['shape'] != first['shape']:
        raise NpyShapeMismatchError(
            f"Shape mismatch in file '{path}': expected {tuple(first['shape'])}, "
            f"got {tuple(header['shape'])}"
        )
    if header['word_size'] != first['word_size']:
        raise NpyTypeMismatchError(
            f"Word size mismatch in file '{path}': expected {first['word_size']}, "
            f"got {header['word_size']}"
        )
    if header['fortran_order'] != first['fortran_order']:
        raise NpyLayoutMismatchError(
            f"Matrix order mismatch in file '{path}': expected fortran_order="
            f"{first['fortran_order']}, got {header['fortran_order']}"
        )


def npy_folder_to_matrix(folder: PathLike, prefix: str, start_index: int, suffix: str,
                         dtype: Any, fortran_order: bool = False) -> np.ndarray:
    """
    Stack a folder of same-shaped rank-2 NPY files into one matrix.

    Files are named {prefix}{index}{suffix}. Starting at start_index, the
    contiguous run of present files is found, and file start_index + i is
    copied into row block i of a (rows * file_count, cols) matrix.

    Args:
        folder: Directory holding the files
        prefix: File name part before the index
        start_index: First index of the run
        suffix: File name part after the index (usually '.npy')
        dtype: Scalar type of the files and of the result
        fortran_order: Expected layout of the files and of the result

    Returns:
        The stacked matrix

    Raises:
        NpyFileOpenError: If the first file cannot be opened
        NpyLayoutMismatchError: If a file's layout differs from fortran_order
        NpyShapeMismatchError: If a file is not rank 2 or differs from the first
        NpyTypeMismatchError: If a word size differs from dtype
    """
    name = resolve_dtype(dtype)
    np_dtype = _numpy_dtype(name)

    first_path = _indexed_path(folder, prefix, start_index, suffix)
    with NpyReader(first_path) as reader:
        first = reader.header

    if len(first['shape']) != 2:
        raise NpyShapeMismatchError(
            f"Only 2D arrays can be stacked, file '{first_path}' has shape {tuple(first['shape'])}"
        )
    if first['word_size'] != WORD_SIZES[name]:
        raise NpyTypeMismatchError(
            f"Word size mismatch in file '{first_path}': {name} needs {WORD_SIZES[name]}, "
            f"file has {first['word_size']}"
        )
    if first['fortran_order'] != bool(fortran_order):
        raise NpyLayoutMismatchError(
            f"Matrix order mismatch in file '{first_path}': expected fortran_order="
            f"{bool(fortran_order)}, file has fortran_order={first['fortran_order']}"
        )

    rows, cols = first['shape']
    file_count = count_indexed_files(folder, prefix, start_index, suffix)
    LOGGER.info(
        "Stacking %d file(s) of shape (%d, %d) from '%s'", file_count, rows, cols, os.fspath(folder)
    )

    order = 'F' if fortran_order else 'C'
    matrix = np.empty((rows * file_count, cols), dtype=np_dtype, order=order)
    for i in range(file_count):
        path = _indexed_path(folder, prefix, start_index + i, suffix)
        with NpyReader(path) as reader:
            _check_stack_member(reader.header, first, path)
            arr = reader.read_array()
        block = np.frombuffer(arr.data_holder, dtype=np_dtype).reshape((rows, cols), order=order)
        matrix[i * rows:(i + 1) * rows, :] = block
    return matrix
