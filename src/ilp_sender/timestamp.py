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
    "ServerTimestamp",
    "TimestampMicros",
    "TimestampNanos",
]

import time
from datetime import datetime, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _ServerTimestamp:
    """
    A placeholder value to indicate using a server-generated-timestamp.
    """

    def __repr__(self):
        return 'ServerTimestamp'


ServerTimestamp = _ServerTimestamp()


def _datetime_to_micros(dt: datetime) -> int:
    # Naive datetimes are interpreted in the local timezone, as `datetime`
    # itself does.
    if dt.tzinfo is None:
        dt = dt.astimezone()
    delta = dt - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1000000 + delta.microseconds


class _Timestamp:
    _ns_scale = 1

    def __init__(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(
                f'value must be an int, not {type(value).__qualname__}')
        if value < 0:
            raise ValueError('value must be a positive integer')
        self._value = value

    @classmethod
    def from_datetime(cls, dt: datetime):
        if not isinstance(dt, datetime):
            raise TypeError('dt must be a datetime object.')
        return cls(_datetime_to_micros(dt) * (1000 // cls._ns_scale))

    @classmethod
    def now(cls):
        return cls(time.time_ns() // cls._ns_scale)

    @property
    def value(self) -> int:
        return self._value

    def __eq__(self, other):
        return type(self) is type(other) and self._value == other._value

    def __hash__(self):
        return hash((type(self), self._value))

    def __repr__(self):
        return f'{type(self).__name__}({self._value})'


class TimestampMicros(_Timestamp):
    """
    A timestamp in microseconds since the UNIX epoch (UTC).

    You may construct a ``TimestampMicros`` from an integer or a
    ``datetime.datetime``, or simply call the :func:`TimestampMicros.now`
    method.

    .. code-block:: python

        # Recommended way to get the current timestamp.
        TimestampMicros.now()

        # The above is equivalent to:
        TimestampMicros(time.time_ns() // 1000)

        # You can provide a numeric timestamp too. It can't be negative.
        TimestampMicros(1657888365426838)

    ``TimestampMicros`` is accepted by timestamp *columns* only. The
    designated timestamp of a row (see ``at``) is in nanoseconds and takes a
    :class:`TimestampNanos`.
    """
    _ns_scale = 1000


class TimestampNanos(_Timestamp):
    """
    A timestamp in nanoseconds since the UNIX epoch (UTC).

    .. code-block:: python

        TimestampNanos.now()
        TimestampNanos(1657888365426838016)
        TimestampNanos.from_datetime(
            datetime.datetime.now(tz=datetime.timezone.utc))

    We recommend that when using ``datetime`` objects, you explicitly pass in
    the timezone to use. ``datetime`` objects without an associated timezone
    are assumed to be in the local timezone.
    """
    _ns_scale = 1
