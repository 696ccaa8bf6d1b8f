################################################################################
##     ___                  _   ____  ____
##    / _ \ _   _  ___  ___| |_|  _ \| __ )
##   | | | | | | |/ _ \/ __| __| | | |  _ \
##   | |_| | |_| |  __/\__ \ |_| |_| | |_) |
##    \__\_\\__,_|\___||___/\__|____/|____/
##
##  Copyright (c) 2014-2019 Appsicle
##  Copyright (c) 2019-2024 QuestDB
##
##  Licensed under the Apache License, Version 2.0 (the "License");
##  you may not use this file except in compliance with the License.
##  You may obtain a copy of the License at
##
##  http://www.apache.org/licenses/LICENSE-2.0
##
##  Unless required by applicable law or agreed to in writing, software
##  distributed under the License is distributed on an "AS IS" BASIS,
##  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
##  See the License for the specific language governing permissions and
##  limitations under the License.
##
################################################################################

__all__ = [
    "Buffer",
    "RowState",
]

import functools
import math
import numbers
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Union

from .config import (
    DEFAULT_INIT_BUF_SIZE,
    DEFAULT_MAX_BUF_SIZE,
    DEFAULT_MAX_NAME_LEN,
    _check_positive_int)
from .errors import IngressError, IngressErrorCode, _fqn, _utf8_text
from .timestamp import (
    ServerTimestamp,
    TimestampMicros,
    TimestampNanos,
    _datetime_to_micros)

_INT64_MIN = -2 ** 63
_INT64_MAX = 2 ** 63 - 1

# Control characters, DEL and the UTF-8 BOM.
_ILLEGAL_IN_NAMES = frozenset(
    [chr(c) for c in range(0x20)] + ['\x7f', '\ufeff'] +
    list('?,\'"\\/:)(+*%~'))
_ILLEGAL_IN_COLUMN_NAMES = _ILLEGAL_IN_NAMES | {'.', '-'}

_NAME_ESCAPES = str.maketrans({
    ' ': '\\ ',
    ',': '\\,',
    '=': '\\=',
    '\n': '\\\n',
    '\r': '\\\r',
    '\\': '\\\\'})

_STRING_ESCAPES = str.maketrans({
    '"': '\\"',
    '\n': '\\\n',
    '\r': '\\\r',
    '\\': '\\\\'})


class RowState(Enum):
    """
    Where the buffer is in assembling the current row.

    A row is ``table``, then zero or more ``symbol``, then zero or more
    columns, then ``at`` or ``at_now``.
    """

    NeedTable = 'need_table'
    NeedFirstField = 'need_first_field'
    InSymbols = 'in_symbols'
    InColumns = 'in_columns'


_FIELD_STATES = (RowState.NeedFirstField, RowState.InSymbols)
_COLUMN_STATES = _FIELD_STATES + (RowState.InColumns,)

_NEXT_CALL_HINTS = {
    RowState.NeedTable: 'should have called `table` instead',
    RowState.NeedFirstField:
        'should have called `symbol`, a column method or `at` instead',
    RowState.InSymbols:
        'should have called `symbol`, a column method or `at` instead',
    RowState.InColumns:
        'should have called a column method or `at` instead',
}


def _name_bytes(name: str) -> bytes:
    return name.translate(_NAME_ESCAPES).encode('utf-8')


def _check_name_len(name: str, kind: str, max_name_len: int):
    if not name:
        raise IngressError(
            IngressErrorCode.InvalidName,
            f'{kind} names must have a non-zero length.')
    name_len = len(name.encode('utf-8'))
    if name_len > max_name_len:
        raise IngressError(
            IngressErrorCode.InvalidName,
            f'Bad name: "{name}": {kind} names must be at most '
            f'{max_name_len} bytes long, got {name_len} bytes.')


def _validate_table_name(name, max_name_len: int) -> str:
    name = _utf8_text(name, 'table name')
    _check_name_len(name, 'Table', max_name_len)
    last = len(name) - 1
    for index, ch in enumerate(name):
        if ch == '.':
            if index == 0 or index == last or name[index - 1] == '.':
                raise IngressError(
                    IngressErrorCode.InvalidName,
                    f'Bad string "{name}": Found invalid dot `.` at '
                    f'position {index}.')
        elif ch in _ILLEGAL_IN_NAMES:
            raise IngressError(
                IngressErrorCode.InvalidName,
                f'Bad string "{name}": Table names can\'t contain a '
                f'{ch!r} character, which was found at position {index}.')
    return name


def _validate_column_name(name, max_name_len: int) -> str:
    name = _utf8_text(name, 'column name')
    _check_name_len(name, 'Column', max_name_len)
    for index, ch in enumerate(name):
        if ch in _ILLEGAL_IN_COLUMN_NAMES:
            raise IngressError(
                IngressErrorCode.InvalidName,
                f'Bad string "{name}": Column names can\'t contain a '
                f'{ch!r} character, which was found at position {index}.')
    return name


def _as_int64(value, what: str) -> int:
    """
    Convert an integral value to an ``int`` in the signed 64-bit range.

    Floats are accepted only when finite and exactly integral.
    """
    if isinstance(value, bool):
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad {what}: Expected an integer, not a bool.')
    if isinstance(value, numbers.Integral):
        value = int(value)
    elif isinstance(value, numbers.Real):
        as_float = float(value)
        if not (math.isfinite(as_float) and as_float.is_integer()):
            raise IngressError(
                IngressErrorCode.InvalidValue,
                f'Bad {what}: {value!r} is not an integer.')
        value = int(as_float)
    else:
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad {what}: Expected an integer, not {_fqn(value)}.')
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad {what}: {value} is out of range for a 64-bit signed '
            'integer.')
    return value


def _as_float64(value, what: str) -> float:
    if isinstance(value, bool):
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad {what}: Expected a float, not a bool.')
    if isinstance(value, float):
        return float(value)
    if isinstance(value, numbers.Integral):
        value = int(value)
        try:
            as_float = float(value)
        except OverflowError:
            as_float = math.inf
        if as_float != value:
            raise IngressError(
                IngressErrorCode.InvalidValue,
                f'Bad {what}: {value} can\'t be represented exactly as a '
                '64-bit float.')
        return as_float
    if isinstance(value, numbers.Real):
        return float(value)
    raise IngressError(
        IngressErrorCode.InvalidValue,
        f'Bad {what}: Expected a float, not {_fqn(value)}.')


def _format_f64(value: float) -> bytes:
    if math.isnan(value):
        return b'NaN'
    elif math.isinf(value):
        return b'Infinity' if value > 0 else b'-Infinity'
    # `repr` is the shortest string that round-trips to the same double.
    return repr(value).replace('+', '').encode('ascii')


def _column_ts_micros(value) -> int:
    if isinstance(value, TimestampMicros):
        return _as_int64(value.value, 'column timestamp')
    elif isinstance(value, datetime):
        return _datetime_to_micros(value)
    elif isinstance(value, TimestampNanos):
        raise IngressError(
            IngressErrorCode.InvalidTimestamp,
            'Bad column timestamp: Column timestamps are in microseconds, '
            'use TimestampMicros instead of TimestampNanos.')
    elif isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return _as_int64(value, 'column timestamp')
    raise IngressError(
        IngressErrorCode.InvalidTimestamp,
        'Bad column timestamp: Expected TimestampMicros, datetime or int, '
        f'not {_fqn(value)}.')


def _designated_ts_nanos(value) -> int:
    if isinstance(value, TimestampNanos):
        return value.value
    elif isinstance(value, datetime):
        nanos = _datetime_to_micros(value) * 1000
    elif isinstance(value, TimestampMicros):
        raise IngressError(
            IngressErrorCode.InvalidTimestamp,
            'Bad designated timestamp: The designated timestamp is in '
            'nanoseconds, use TimestampNanos instead of TimestampMicros.')
    elif isinstance(value, numbers.Integral) and not isinstance(value, bool):
        nanos = int(value)
    else:
        raise IngressError(
            IngressErrorCode.InvalidTimestamp,
            '`at` must be of type TimestampNanos, datetime, or '
            f'ServerTimestamp, not {_fqn(value)}.')
    if not 0 <= nanos <= _INT64_MAX:
        raise IngressError(
            IngressErrorCode.InvalidTimestamp,
            f'Bad designated timestamp: {nanos} must be in the range '
            f'0 to {_INT64_MAX}.')
    return nanos


def _present_items(fields, what: str) -> Dict[str, object]:
    """The entries of a `row` argument, skipping `None` values."""
    if fields is None:
        return {}
    if not isinstance(fields, Mapping):
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad `{what}` argument: Expected a dict, not {_fqn(fields)}.')
    return {k: v for k, v in fields.items() if v is not None}


def _abandon_row_on_error(fn):
    """Rewind to the last complete row if ``fn`` raises."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except IngressError:
            self._rewind()
            raise
    return wrapper


class Buffer:
    """
    Construct InfluxDB Line Protocol (ILP) messages.

    Rows are built up one call at a time:

    .. code-block:: python

        from ilp_sender import Buffer

        buf = Buffer()
        buf.table('sensors').symbol('loc', 'ny').column_f64('temp', 23.5)
        buf.at(1700000000000000000)
        assert bytes(buf) == b'sensors,loc=ny temp=23.5 1700000000000000000\\n'

    or with a single call to :func:`Buffer.row`:

    .. code-block:: python

        buf.row(
            'sensors',
            symbols={'loc': 'ny'},
            columns={'temp': 23.5},
            at=TimestampNanos(1700000000000000000))

    Calls must follow the order ``table``, ``symbol`` (any number),
    column methods (any number), then ``at`` or ``at_now``. Any other order
    raises an :class:`IngressError` with the
    ``IngressErrorCode.ProtocolOrderViolation`` code.

    **Error Handling and Recovery**

    If a call raises, the row in progress is abandoned: all the bytes
    written since the last call to ``at`` or ``at_now`` are discarded and
    the buffer expects a new ``table`` call. Complete rows are never
    affected.

    Buffer Constructor Arguments:
      * ``init_buf_size`` (``int``): Initial capacity of the buffer in bytes.
        Defaults to ``65536`` (64KiB).
      * ``max_name_len`` (``int``): Maximum length of a table or column name
        in bytes. Defaults to ``127``.
      * ``max_buf_size`` (``int``): The buffer refuses to grow past this many
        bytes. Defaults to ``104857600`` (100MiB).
    """

    def __init__(
            self,
            init_buf_size: int = DEFAULT_INIT_BUF_SIZE,
            max_name_len: int = DEFAULT_MAX_NAME_LEN,
            max_buf_size: int = DEFAULT_MAX_BUF_SIZE):
        self._init_buf_size = _check_positive_int(
            init_buf_size, 'init_buf_size')
        self._max_name_len = _check_positive_int(max_name_len, 'max_name_len')
        self._max_buf_size = _check_positive_int(max_buf_size, 'max_buf_size')
        if self._init_buf_size > self._max_buf_size:
            raise IngressError(
                IngressErrorCode.InvalidValue,
                f'"init_buf_size" ({init_buf_size}) cannot exceed '
                f'"max_buf_size" ({max_buf_size}).')
        self._buf = bytearray()
        self._capacity = self._init_buf_size
        self._marker = 0
        self._row_count = 0
        self._state = RowState.NeedTable

    @property
    def init_buf_size(self) -> int:
        """
        The initial capacity of the buffer when first created.

        This may grow over time, see ``capacity()``.
        """
        return self._init_buf_size

    @property
    def max_name_len(self) -> int:
        """Maximum length of a table or column name."""
        return self._max_name_len

    @property
    def max_buf_size(self) -> int:
        return self._max_buf_size

    @property
    def row_state(self) -> RowState:
        return self._state

    @property
    def row_count(self) -> int:
        """Number of complete rows in the buffer."""
        return self._row_count

    def reserve(self, additional: int):
        """
        Ensure the buffer has at least `additional` bytes of future capacity.

        :param int additional: Additional bytes to reserve.
        """
        if isinstance(additional, bool) or not isinstance(additional, int) \
                or additional < 0:
            raise IngressError(
                IngressErrorCode.InvalidValue,
                f'Bad reserve size {additional!r}: Expected a non-negative '
                'int.')
        self._ensure_capacity(len(self._buf) + additional)

    def capacity(self) -> int:
        """The current buffer capacity."""
        return self._capacity

    def clear(self):
        """
        Reset the buffer.

        The capacity is retained. Note that flushing a sender also
        clears its buffer.
        """
        del self._buf[:]
        self._marker = 0
        self._row_count = 0
        self._state = RowState.NeedTable

    def __len__(self) -> int:
        """The current number of bytes currently in the buffer."""
        return len(self._buf)

    def __bytes__(self) -> bytes:
        return bytes(self._buf)

    def __str__(self) -> str:
        """Return the constructed buffer as a string. Use for debugging."""
        return self._buf.decode('utf-8')

    def __repr__(self):
        return (
            f'Buffer(len={len(self._buf)}, rows={self._row_count}, '
            f'row_state={self._state.name})')

    def peek(self) -> bytes:
        """The complete rows, excluding any row still being built."""
        return bytes(self._buf[:self._marker])

    def _ensure_capacity(self, needed: int):
        if needed <= self._capacity:
            return
        if needed > self._max_buf_size:
            raise IngressError(
                IngressErrorCode.BufferOverflow,
                f'Max buffer size is {self._max_buf_size} bytes, '
                f'requested buffer size: {needed}.')
        capacity = self._capacity
        while capacity < needed:
            capacity *= 2
        self._capacity = min(capacity, self._max_buf_size)

    def _write(self, data: bytes):
        self._ensure_capacity(len(self._buf) + len(data))
        self._buf += data

    def _rewind(self):
        del self._buf[self._marker:]
        self._state = RowState.NeedTable

    def _check_state(self, op: str, allowed):
        if self._state not in allowed:
            if op == 'symbol' and self._state is RowState.InColumns:
                hint = 'symbols must be written before any other column'
            else:
                hint = _NEXT_CALL_HINTS[self._state]
            raise IngressError(
                IngressErrorCode.ProtocolOrderViolation,
                f'Bad call to `{op}`, {hint}.')

    def _finish_row(self):
        self._marker = len(self._buf)
        self._row_count += 1
        self._state = RowState.NeedTable

    @_abandon_row_on_error
    def table(self, name: str) -> 'Buffer':
        """Start a new row for the table ``name``."""
        self._check_state('table', (RowState.NeedTable,))
        name = _validate_table_name(name, self._max_name_len)
        self._write(_name_bytes(name))
        self._state = RowState.NeedFirstField
        return self

    @_abandon_row_on_error
    def symbol(self, name: str, value: str) -> 'Buffer':
        """Add a symbol (tag) column. Symbols precede all other columns."""
        self._check_state('symbol', _FIELD_STATES)
        name = _validate_column_name(name, self._max_name_len)
        value = _utf8_text(value, 'symbol value')
        self._write(
            b',' + _name_bytes(name) + b'=' +
            value.translate(_NAME_ESCAPES).encode('utf-8'))
        self._state = RowState.InSymbols
        return self

    def _column(self, op: str, name: str, encode, value) -> 'Buffer':
        self._check_state(op, _COLUMN_STATES)
        name = _validate_column_name(name, self._max_name_len)
        encoded = encode(value)
        sep = b',' if self._state is RowState.InColumns else b' '
        self._write(sep + _name_bytes(name) + b'=' + encoded)
        self._state = RowState.InColumns
        return self

    @_abandon_row_on_error
    def column_str(self, name: str, value: str) -> 'Buffer':
        def encode(v):
            v = _utf8_text(v, 'string value')
            return b'"' + v.translate(_STRING_ESCAPES).encode('utf-8') + b'"'
        return self._column('column_str', name, encode, value)

    @_abandon_row_on_error
    def column_bool(self, name: str, value: bool) -> 'Buffer':
        def encode(v):
            if not isinstance(v, bool):
                raise IngressError(
                    IngressErrorCode.InvalidValue,
                    f'Bad bool value: Expected a bool, not {_fqn(v)}.')
            return b't' if v else b'f'
        return self._column('column_bool', name, encode, value)

    @_abandon_row_on_error
    def column_i64(self, name: str, value: int) -> 'Buffer':
        def encode(v):
            return f'{_as_int64(v, "int64 value")}i'.encode('ascii')
        return self._column('column_i64', name, encode, value)

    @_abandon_row_on_error
    def column_f64(self, name: str, value: float) -> 'Buffer':
        def encode(v):
            return _format_f64(_as_float64(v, 'float64 value'))
        return self._column('column_f64', name, encode, value)

    @_abandon_row_on_error
    def column_ts(
            self,
            name: str,
            value: Union[int, TimestampMicros, datetime]) -> 'Buffer':
        """
        Add a timestamp column. Plain ``int`` values are microseconds.
        """
        def encode(v):
            return f'{_column_ts_micros(v)}t'.encode('ascii')
        return self._column('column_ts', name, encode, value)

    @_abandon_row_on_error
    def column(
            self,
            name: str,
            value: Union[bool, int, float, str, TimestampMicros, datetime]
            ) -> 'Buffer':
        """
        Add a column, picking the ILP type from the Python type of
        ``value``.

        .. list-table::
            :header-rows: 1

            * - Python type
              - Serialized as ILP type
            * - ``bool``
              - ``BOOLEAN``
            * - ``int``
              - ``INTEGER``
            * - ``float``
              - ``FLOAT``
            * - ``str``
              - ``STRING``
            * - ``datetime.datetime`` and ``TimestampMicros``
              - ``TIMESTAMP``
        """
        if isinstance(value, bool):
            return self.column_bool(name, value)
        elif isinstance(value, numbers.Integral):
            return self.column_i64(name, value)
        elif isinstance(value, numbers.Real):
            return self.column_f64(name, value)
        elif isinstance(value, str):
            return self.column_str(name, value)
        elif isinstance(value, (TimestampMicros, datetime)):
            return self.column_ts(name, value)
        self._check_state('column', _COLUMN_STATES)
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad column value of type {_fqn(value)}: Expected one of '
            '`bool`, `int`, `float`, `str`, `TimestampMicros` or '
            '`datetime`.')

    @_abandon_row_on_error
    def at(self, timestamp: Union[int, TimestampNanos, datetime]) -> 'Buffer':
        """
        Complete the row with its designated timestamp.

        Plain ``int`` values are nanoseconds since the UNIX epoch.
        Passing ``ServerTimestamp`` is the same as calling ``at_now()``.
        """
        if timestamp is ServerTimestamp:
            return self.at_now()
        self._check_state('at', _COLUMN_STATES)
        nanos = _designated_ts_nanos(timestamp)
        self._write(f' {nanos}\n'.encode('ascii'))
        self._finish_row()
        return self

    @_abandon_row_on_error
    def at_now(self) -> 'Buffer':
        """
        Complete the row without a timestamp: the server assigns one
        on receipt.
        """
        self._check_state('at_now', _COLUMN_STATES)
        self._write(b'\n')
        self._finish_row()
        return self

    @_abandon_row_on_error
    def row(
            self,
            table_name: str,
            *,
            symbols: Optional[Dict[str, Optional[str]]] = None,
            columns: Optional[
                Dict[str, Union[None, bool, int, float, str,
                                TimestampMicros, datetime]]] = None,
            at: Union[TimestampNanos, datetime, object]
            ) -> 'Buffer':
        """
        Add a single row (line) to the buffer.

        .. code-block:: python

            buffer.row(
                'table_name',
                symbols={'sym1': 'abc', 'sym2': 'def', 'sym3': None},
                columns={
                    'col1': True,
                    'col2': 123,
                    'col3': 3.14,
                    'col4': 'xyz',
                    'col5': TimestampMicros(123456789),
                    'col6': datetime(2019, 1, 1, 12, 0, 0),
                    'col7': None},
                at=TimestampNanos(123456789))

        A ``None`` value skips the symbol or column. A row with no
        symbols and no columns is not written at all.

        :param at: The timestamp of the row. This is required!
            If ``ServerTimestamp``, timestamp is assigned by the server.
            If ``datetime``, the timestamp is converted to nanoseconds.
        """
        if not (at is ServerTimestamp or
                isinstance(at, (TimestampNanos, datetime))):
            raise IngressError(
                IngressErrorCode.InvalidTimestamp,
                '`at` must be of type TimestampNanos, datetime, or '
                f'ServerTimestamp, not {_fqn(at)}.')
        self._check_state('row', (RowState.NeedTable,))
        symbols = _present_items(symbols, 'symbols')
        columns = _present_items(columns, 'columns')
        if not symbols and not columns:
            return self
        self.table(table_name)
        for name, value in symbols.items():
            self.symbol(name, value)
        for name, value in columns.items():
            self.column(name, value)
        return self.at(at)
