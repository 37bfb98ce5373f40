"""Two-stage compression for JSON response bodies.

Stage 1 is structural. Every distinct scalar, object key list, array and
object is written once into a flat value table and containers refer to
table slots, so the repeated keys and rows typical of REST results
collapse to short references. Each slot is a string tagged by type:

    z|           null
    b|T  b|F     booleans
    i|42         integers
    f|4.2        floats (repr, so 1.0 and 1 stay distinct)
    s|text       strings
    a|0,1,2      array of slot references
    k|0,1        object key list (references to string slots)
    o|3|4,5      object: key list reference, then value references

References are base-36 slot indexes and always point to an earlier slot.
The stage 1 output is the JSON text ``[table, root_reference]``.

Stage 2 gzips that text and base64-encodes the result.
"""

import base64
import binascii
import gzip
import json
import re
import zlib
from typing import Any

from supacache.errors import DecodeError, EncodeError

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_INT_RE = re.compile(r"^-?[0-9]+$")
_REF_RE = re.compile(r"^[0-9a-z]+$")


def _to_ref(index: int) -> str:
    if index == 0:
        return "0"
    digits = []
    while index:
        index, remainder = divmod(index, 36)
        digits.append(_DIGITS[remainder])
    return "".join(reversed(digits))


def _from_ref(ref: str) -> int:
    if not _REF_RE.match(ref):
        raise DecodeError(f"Invalid slot reference: {ref!r}")
    return int(ref, 36)


class _TableWriter:
    """Builds the value table for a single compress call."""

    def __init__(self) -> None:
        self.table: list[str] = []
        self._slots: dict[str, int] = {}

    def _intern(self, token: str) -> str:
        index = self._slots.get(token)
        if index is None:
            index = len(self.table)
            self.table.append(token)
            self._slots[token] = index
        return _to_ref(index)

    def add(self, value: Any) -> str:
        if value is None:
            return self._intern("z|")
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return self._intern("b|T" if value else "b|F")
        if isinstance(value, int):
            return self._intern(f"i|{value}")
        if isinstance(value, float):
            return self._intern(f"f|{value!r}")
        if isinstance(value, str):
            return self._intern(f"s|{value}")
        if isinstance(value, (list, tuple)):
            refs = [self.add(item) for item in value]
            return self._intern("a|" + ",".join(refs))
        if isinstance(value, dict):
            if not value:
                return self._intern("o|")
            key_refs = []
            for key in value:
                if not isinstance(key, str):
                    raise EncodeError(f"Object keys must be strings, got {type(key).__name__}")
                key_refs.append(self.add(key))
            keys_ref = self._intern("k|" + ",".join(key_refs))
            value_refs = [self.add(item) for item in value.values()]
            return self._intern(f"o|{keys_ref}|" + ",".join(value_refs))
        raise EncodeError(f"Value of type {type(value).__name__} is not JSON serializable")


class _TableReader:
    """Rebuilds a JSON value from a value table."""

    def __init__(self, table: list[str]) -> None:
        self._table = table

    def resolve(self, ref: str, limit: int) -> Any:
        index = _from_ref(ref)
        if index >= limit:
            raise DecodeError(f"Slot reference {ref!r} does not point backwards")
        return self._decode(index)

    def _refs(self, raw: str) -> list[str]:
        return raw.split(",") if raw else []

    def _decode(self, index: int) -> Any:
        kind, sep, rest = self._table[index].partition("|")
        if not sep:
            raise DecodeError(f"Slot {index} has no type tag")

        if kind == "z" and not rest:
            return None
        if kind == "b" and rest in ("T", "F"):
            return rest == "T"
        if kind == "i" and _INT_RE.match(rest):
            return int(rest)
        if kind == "f":
            try:
                return float(rest)
            except ValueError as e:
                raise DecodeError(f"Slot {index} holds an invalid float") from e
        if kind == "s":
            return rest
        if kind == "a":
            return [self.resolve(ref, index) for ref in self._refs(rest)]
        if kind == "o":
            if not rest:
                return {}
            keys_ref, sep, values_raw = rest.partition("|")
            if not sep:
                raise DecodeError(f"Slot {index} is a malformed object")
            keys = self._keys(keys_ref, index)
            values = [self.resolve(ref, index) for ref in self._refs(values_raw)]
            if len(keys) != len(values):
                raise DecodeError(f"Slot {index} has {len(keys)} keys but {len(values)} values")
            return dict(zip(keys, values))

        raise DecodeError(f"Slot {index} has an unknown or malformed token")

    def _keys(self, ref: str, limit: int) -> list[str]:
        index = _from_ref(ref)
        if index >= limit:
            raise DecodeError(f"Key list reference {ref!r} does not point backwards")
        kind, sep, rest = self._table[index].partition("|")
        if kind != "k" or not sep:
            raise DecodeError(f"Slot {index} is not a key list")
        keys = [self.resolve(key_ref, index) for key_ref in self._refs(rest)]
        if not all(isinstance(key, str) for key in keys):
            raise DecodeError(f"Key list in slot {index} references a non-string")
        return keys


class JsonCompressor:
    """Structural plus gzip compression of JSON values.

    Example:
        ```python
        compressor = JsonCompressor()
        packed = compressor.compress([{"id": 1}, {"id": 2}])
        assert compressor.decompress(packed) == [{"id": 1}, {"id": 2}]
        ```
    """

    def __init__(self, level: int = 9) -> None:
        """Initialize the compressor.

        Args:
            level: gzip compression level (0-9)
        """
        if not 0 <= level <= 9:
            raise ValueError("Compression level must be between 0 and 9")
        self._level = level

    def compress(self, value: Any) -> str:
        """Compress a JSON value.

        Args:
            value: Any JSON-serializable value

        Returns:
            base64 text of the gzipped structural encoding

        Raises:
            EncodeError: If the value is not JSON-serializable
        """
        writer = _TableWriter()
        root = writer.add(value)
        text = json.dumps([writer.table, root], ensure_ascii=False, separators=(",", ":"))
        try:
            raw = text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodeError(f"Value contains unencodable text: {e}") from e
        compressed = gzip.compress(raw, compresslevel=self._level)
        return base64.b64encode(compressed).decode("ascii")

    def decompress(self, data: str | bytes) -> Any:
        """Reverse compress().

        Args:
            data: Output of compress()

        Returns:
            The original JSON value

        Raises:
            DecodeError: If any stage rejects the input
        """
        try:
            compressed = base64.b64decode(data, validate=True)
            text = gzip.decompress(compressed).decode("utf-8")
            payload = json.loads(text)
        except (binascii.Error, ValueError, OSError, EOFError, zlib.error) as e:
            raise DecodeError(f"Failed to decompress cache body: {e}") from e

        if (
            not isinstance(payload, list)
            or len(payload) != 2
            or not isinstance(payload[0], list)
            or not isinstance(payload[1], str)
            or not all(isinstance(token, str) for token in payload[0])
        ):
            raise DecodeError("Decompressed payload is not a value table")

        table, root = payload
        try:
            return _TableReader(table).resolve(root, len(table))
        except RecursionError as e:
            raise DecodeError("Value table is nested too deeply") from e
