"""
Module for representing ASCII biological alphabets
"""
from typing import Union, Final, ClassVar

import numpy as np

from lsalign.core.seq import Seq
from lsalign.utils.resources import RESOURCES


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlphabetError(Exception):
    """Raised when an alphabet is invalid or a sequence contains symbols outside it."""


# Classes --------------------------------------------------------------------------------------------------------------
class Alphabet:
    """
    A class to represent an alphabet of ASCII symbols.

    Symbols are encoded to their index in the alphabet, which is also the row/column
    they occupy in a ``ScoreMatrix`` built for this alphabet.
    """
    __slots__ = ('_data', '_lookup_table', '_trans_table', '_decode_table')
    DTYPE: Final = np.uint8
    INVALID: Final = np.iinfo(DTYPE).max
    MAX_LEN: Final = INVALID  # INVALID is reserved as the sentinel
    ENCODING: Final = 'ascii'

    DNA: ClassVar['Alphabet']
    RNA: ClassVar['Alphabet']
    AMINO: ClassVar['Alphabet']

    def __init__(self, symbols: Union[bytes, str], aliases: dict[bytes, bytes] = None):
        """
        Initializes an Alphabet.

        Args:
            symbols: The symbols in the alphabet as bytes.
            aliases: Optional mapping of extra characters to valid ones (e.g. {b'N': b'A'}).

        Raises:
            AlphabetError: If symbols are not ASCII, too long, or contain duplicates.
        """
        if isinstance(symbols, str): symbols = symbols.encode(self.ENCODING)
        if not symbols: raise AlphabetError('Alphabet must contain at least one symbol')
        if not symbols.isascii(): raise AlphabetError('Alphabet symbols must be a valid ASCII string')
        if len(symbols) > self.MAX_LEN:
            raise AlphabetError(f'Alphabet size cannot exceed {self.MAX_LEN} symbols ({self.DTYPE})')
        if len(set(symbols.upper())) != len(symbols): raise AlphabetError('Alphabet contains duplicate symbols')

        self._data: np.ndarray = np.frombuffer(symbols, dtype=self.DTYPE)

        # Build Lookup Table
        self._lookup_table = np.full(256, self.INVALID, dtype=self.DTYPE)
        indices = np.arange(len(symbols), dtype=self.DTYPE)
        self._lookup_table[np.frombuffer(symbols.lower(), dtype=self.DTYPE)] = indices
        self._lookup_table[np.frombuffer(symbols, dtype=self.DTYPE)] = indices

        if aliases:
            for src, dst in aliases.items():
                if len(src) != 1 or len(dst) != 1: raise AlphabetError("Aliases must be single bytes")
                dst_idx = self._lookup_table[ord(dst)]
                if dst_idx == self.INVALID: raise AlphabetError(f"Alias target {dst} not in alphabet")
                self._lookup_table[ord(src)] = dst_idx
                self._lookup_table[ord(src.lower())] = dst_idx

        self._trans_table = self._lookup_table.tobytes()

        decode_map = np.zeros(256, dtype=self.DTYPE)
        decode_map[:len(self._data)] = self._data
        self._decode_table = decode_map.tobytes()

    def __len__(self):
        return len(self._data)

    def __contains__(self, item):
        try:
            if isinstance(item, (int, np.integer)):
                return self._lookup_table[item] != self.INVALID
            if isinstance(item, (str, bytes)):
                if len(item) != 1: return False
                val = ord(item) if isinstance(item, str) else item[0]
                return self._lookup_table[val] != self.INVALID
        except (IndexError, ValueError, TypeError):
            pass
        return False

    def __iter__(self):
        return iter(self._data)

    def __array__(self, dtype=None, copy=None):
        return self._data.astype(dtype, copy=False) if dtype else self._data

    def __repr__(self):
        return f"Alphabet({self._data.tobytes().decode(self.ENCODING)})"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, Alphabet): return False
        return np.array_equal(self._data, other._data)

    def __hash__(self):
        return hash(self._data.tobytes())

    @property
    def symbols(self) -> bytes:
        """Returns the canonical symbols in index order."""
        return self._data.tobytes()

    def index(self, symbol: Union[str, bytes, int]) -> int:
        """
        Returns the index (encoded value) of a single symbol.

        Raises:
            AlphabetError: If the symbol is not part of the alphabet.
        """
        if isinstance(symbol, str): symbol = symbol.encode(self.ENCODING)
        if isinstance(symbol, bytes):
            if len(symbol) != 1: raise AlphabetError(f'Expected a single symbol, got {symbol!r}')
            symbol = symbol[0]
        if not 0 <= symbol < 256 or (idx := self._lookup_table[symbol]) == self.INVALID:
            raise AlphabetError(f'Symbol {symbol!r} is not in {self}')
        return int(idx)

    def encode(self, text: bytes) -> np.ndarray:
        """
        Encodes a byte string to an array of symbol indices.

        Args:
            text: The text to encode as bytes.

        Returns:
            A numpy array of encoded indices.

        Raises:
            AlphabetError: If the text contains symbols not in the alphabet.
        """
        encoded = np.frombuffer(text.translate(self._trans_table), dtype=self.DTYPE)
        if (bad := np.flatnonzero(encoded == self.INVALID)).size:
            raise AlphabetError(f'Symbol {text[bad[0]:bad[0] + 1]!r} at position {bad[0] + 1} is not in {self}')
        return encoded

    def decode(self, encoded: np.ndarray) -> bytes:
        """Decodes an array of indices back to bytes."""
        if encoded.dtype != self.DTYPE:
            encoded = encoded.astype(self.DTYPE, copy=False)
        return encoded.tobytes().translate(self._decode_table)

    def new_seq(self, data: np.ndarray) -> 'Seq':
        """
        Factory method. The ONLY valid way to create a Seq.
        """
        return Seq(data, self, _validation_token=self)

    def seq_from(self, data: Union['Seq', str, bytes, np.ndarray]) -> 'Seq':
        """Creates a Seq object from various input types, ensuring correct encoding.

        Args:
            data: The input data. Can be a ``Seq``, string, bytes, or numpy array of indices.

        Returns:
            A ``Seq`` object with this alphabet.

        Raises:
            AlphabetError: If the input data contains symbols not in the alphabet.
        """
        if isinstance(data, Seq):
            if data.alphabet != self: raise AlphabetError(f'Sequence has a different alphabet "{data.alphabet}"')
            return data
        if isinstance(data, np.ndarray):
            if data.size and (data.min() < 0 or data.max() >= len(self)):
                raise AlphabetError(f'Encoded values must lie in 0..{len(self) - 1} for {self}')
            return self.new_seq(np.array(data, dtype=self.DTYPE))
        if isinstance(data, str): data = data.encode(self.ENCODING)
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f'Cannot make a sequence from {type(data)}')
        # Copy so the sequence never aliases caller memory
        return self.new_seq(self.encode(bytes(data)).copy())

    def empty_seq(self) -> 'Seq':
        """Returns an empty sequence with this alphabet."""
        return self.new_seq(np.empty(0, dtype=self.DTYPE))

    def random_seq(self, rng: np.random.Generator = None, length: int = None, min_len: int = 5,
                   max_len: int = 5000) -> 'Seq':
        """
        Generates a random sequence from this alphabet.

        Args:
            rng: Random number generator (optional).
            length: Exact length of sequence to generate.
            min_len: Minimum length if length is not specified.
            max_len: Maximum length if length is not specified.

        Examples:
            >>> s = Alphabet.DNA.random_seq(length=10)
            >>> len(s)
            10
        """
        if rng is None: rng = RESOURCES.rng
        if length is None: length = int(rng.integers(min_len, max_len))
        return self.new_seq(rng.integers(0, len(self._data), size=length, dtype=self.DTYPE))


# Constants ------------------------------------------------------------------------------------------------------------
Alphabet.DNA = Alphabet(b'TCAG', aliases={b'U': b'T'})
Alphabet.RNA = Alphabet(b'UCAG', aliases={b'T': b'U'})
Alphabet.AMINO = Alphabet(b'ACDEFGHIKLMNPQRSTVWY',
                          aliases={b'B': b'D', b'Z': b'E', b'J': b'L', b'U': b'C', b'O': b'K'})
