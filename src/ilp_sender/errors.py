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
    "IngressError",
    "IngressErrorCode",
]

from enum import Enum
from typing import Union


class IngressErrorCode(Enum):
    """Category of Error."""

    CouldNotResolveAddr = 'could_not_resolve_addr'
    InvalidApiCall = 'invalid_api_call'
    SocketError = 'socket_error'
    InvalidUtf8 = 'invalid_utf8'
    InvalidName = 'invalid_name'
    InvalidValue = 'invalid_value'
    InvalidTimestamp = 'invalid_timestamp'
    ProtocolOrderViolation = 'protocol_order_violation'
    BufferOverflow = 'buffer_overflow'
    AuthError = 'auth_error'
    TlsError = 'tls_error'
    ConfigError = 'config_error'

    def __str__(self) -> str:
        """Return the name of the enum."""
        return self.name

    @property
    def is_invalid_argument(self) -> bool:
        """
        The error was caused by a malformed name or value
        passed in by the caller.
        """
        return self in (
            IngressErrorCode.InvalidUtf8,
            IngressErrorCode.InvalidName,
            IngressErrorCode.InvalidValue,
            IngressErrorCode.InvalidTimestamp)

    @property
    def is_connection_failure(self) -> bool:
        """The error can be raised while establishing a connection."""
        return self in (
            IngressErrorCode.CouldNotResolveAddr,
            IngressErrorCode.SocketError,
            IngressErrorCode.TlsError,
            IngressErrorCode.AuthError)


class IngressError(Exception):
    """An error whilst using the ``Sender`` or constructing its ``Buffer``."""

    def __init__(self, code: IngressErrorCode, msg: str):
        super().__init__(msg)
        self._code = code

    @property
    def code(self) -> IngressErrorCode:
        """Return the error code."""
        return self._code


def _fqn(obj) -> str:
    ty = type(obj)
    module = ty.__module__
    qn = ty.__qualname__
    if module == 'builtins':
        return qn
    else:
        return module + '.' + qn


def _utf8_text(value: Union[str, bytes], what: str) -> str:
    """
    Return ``value`` as a ``str`` that is guaranteed to encode as UTF-8.

    ``bytes`` are accepted and decoded strictly.
    """
    if isinstance(value, bytes):
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError as ude:
            raise IngressError(
                IngressErrorCode.InvalidUtf8,
                f'Bad {what}: {value!r} is not valid UTF-8 '
                f'(byte position {ude.start}).') from ude
    if not isinstance(value, str):
        raise IngressError(
            IngressErrorCode.InvalidUtf8,
            f'Bad {what}: Expected a str, not {_fqn(value)}.')
    try:
        value.encode('utf-8')
    except UnicodeEncodeError as uee:
        bad = ord(value[uee.start])
        raise IngressError(
            IngressErrorCode.InvalidUtf8,
            f'Bad {what}: Invalid codepoint 0x{bad:x} in string '
            f'{value!r}.') from uee
    return value
