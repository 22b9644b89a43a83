"""
=========================
Field-level schema codec.
=========================

A Schema declares which columns a model knows about and how their values
are converted on the way into the database (input), on the way out
(output), and when a row is serialized to JSON text (encode/decode).

Field declarations:
    True                       Known field, values pass through unchanged
    'json'                     Stored as JSON text, read back as Python objects
    'bool'                     Stored as 0/1, read back as bool
    'date'                     Serialized as ISO-8601 text, decoded to datetime
    {'input': f, 'output': g}  Custom formatters (encode/decode optional)

Undeclared keys are dropped by format_input() and passed through untouched
by format_output().

Example:
    >>> from models.schema import Schema
    >>>
    >>> schema = Schema({'id': True, 'info': 'json', 'active': 'bool'})
    >>> schema.format_input({'id': 1, 'info': {'a': 1}, 'active': 'no', 'x': 9})
    {'id': 1, 'info': '{"a": 1}', 'active': 0}
    >>> schema.format_output({'id': 1, 'info': '{"a": 1}', 'active': 0})
    {'id': 1, 'info': {'a': 1}, 'active': False}
"""

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

_FALSE_STRINGS = {'', 'no', 'off', 'false', '0'}


class SchemaError(ValueError):
    """Exception raised for invalid field declarations or values."""
    pass


@dataclass(frozen=True)
class FieldCodec:
    """Converters for one field. Any of them may be missing."""

    input: Optional[Callable[[Any], Any]] = None
    output: Optional[Callable[[Any], Any]] = None
    encode: Optional[Callable[[Any], Any]] = None
    decode: Optional[Callable[[Any], Any]] = None


def json_input(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def json_output(value: Any) -> Any:
    """Parse a JSON column; NULL and empty text become an empty dict."""
    if value is None:
        return {}
    if isinstance(value, (bytes, bytearray)):
        value = value.decode('utf-8')
    if not isinstance(value, str):
        raise SchemaError(f"json_output: invalid input type: {value!r}")
    if value == '':
        return {}
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise SchemaError(f"json_output: fail to parse JSON: {e}") from e


def bool_input(value: Any) -> int:
    if value is None or value == 0:
        return 0
    if str(value).strip().lower() in _FALSE_STRINGS:
        return 0
    return 1


def bool_output(value: Any) -> bool:
    return bool(value)


def date_encode(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def date_decode(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


FIELD_TYPES: Dict[str, FieldCodec] = {
    'json': FieldCodec(input=json_input, output=json_output),
    'bool': FieldCodec(input=bool_input, output=bool_output),
    'date': FieldCodec(encode=date_encode, decode=date_decode),
}


def _codec_from_mapping(name: str, info: Mapping[str, Any]) -> FieldCodec:
    for key in ('input', 'output'):
        if info.get(key) is None:
            raise SchemaError(f'field "{name}" must provide an {key} formatter')
    for key in ('input', 'output', 'encode', 'decode'):
        if info.get(key) is not None and not callable(info[key]):
            raise SchemaError(f'{key} formatter for field "{name}" must be callable')
    return FieldCodec(
        input=info['input'],
        output=info['output'],
        encode=info.get('encode'),
        decode=info.get('decode')
    )


class Schema:
    """Field declarations and value conversion for one model.

    Attributes:
        field_names: Declared field names in declaration order
    """

    def __init__(self, fields: Mapping[str, Any]):
        """Initialize the schema.

        Args:
            fields: Mapping of field name to declaration (see module docs)

        Raises:
            SchemaError: For unknown type names or invalid formatters
        """
        if not isinstance(fields, Mapping):
            raise SchemaError("fields must be a mapping")

        self._fields: Dict[str, FieldCodec] = {}
        for name, info in fields.items():
            if info is True:
                self._fields[name] = FieldCodec()
            elif isinstance(info, str):
                codec = FIELD_TYPES.get(info.lower())
                if codec is None:
                    raise SchemaError(f'not support type "{info}"')
                self._fields[name] = codec
            elif isinstance(info, Mapping):
                self._fields[name] = _codec_from_mapping(name, info)
            else:
                raise SchemaError(f'options for field "{name}" must be True, a type name or a mapping')

    @property
    def field_names(self) -> List[str]:
        return list(self._fields)

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def format_input(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Prepare a row for writing.

        Args:
            data: Row values keyed by field name

        Returns:
            New dict with undeclared fields dropped and input formatters applied
        """
        formatted = {}
        for name, value in data.items():
            codec = self._fields.get(name)
            if codec is None:
                continue
            formatted[name] = codec.input(value) if codec.input else value
        return formatted

    def format_input_list(self, rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [self.format_input(row) for row in rows]

    def format_output(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Convert a row read from the database.

        Args:
            row: Row values keyed by column name

        Returns:
            New dict with output formatters applied to declared fields
        """
        formatted = {}
        for name, value in row.items():
            codec = self._fields.get(name)
            formatted[name] = codec.output(value) if codec and codec.output else value
        return formatted

    def format_output_list(self, rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [self.format_output(row) for row in rows]

    def serialize(self, data: Mapping[str, Any]) -> str:
        """
        Serialize a row to JSON text, applying encoders.

        Args:
            data: Row values

        Returns:
            JSON text
        """
        encoded = dict(data)
        for name, value in encoded.items():
            codec = self._fields.get(name)
            if codec and codec.encode:
                encoded[name] = codec.encode(value)
        return json.dumps(encoded, ensure_ascii=False)

    def unserialize(self, text: str) -> Dict[str, Any]:
        """
        Parse JSON text produced by serialize(), applying decoders.

        Args:
            text: JSON text

        Returns:
            Row dict

        Raises:
            SchemaError: If text is not a JSON object
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaError(f"cannot unserialize row: {e}") from e
        if not isinstance(data, dict):
            raise SchemaError("serialized row must be a JSON object")
        for name, value in data.items():
            codec = self._fields.get(name)
            if codec and codec.decode:
                data[name] = codec.decode(value)
        return data
