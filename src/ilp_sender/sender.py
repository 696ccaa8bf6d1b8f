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
    "Sender",
    "SenderState",
]

import functools
import logging
import os
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Union

from . import auth as _auth
from .buffer import Buffer, RowState
from .config import ConnectionConfig
from .errors import IngressError, IngressErrorCode
from .timestamp import TimestampMicros, TimestampNanos
from .transport import Transport

_LOGGER = logging.getLogger(__name__)


class SenderState(Enum):
    Unconnected = 'unconnected'
    Connected = 'connected'
    Closed = 'closed'


def _fail_fast(fn):
    """
    Require a connected sender and close it if ``fn`` raises.

    Once closed, every later call raises ``IngressErrorCode.InvalidApiCall``.
    """
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        self._check_connected(fn.__name__)
        try:
            return fn(self, *args, **kwargs)
        except IngressError as ie:
            self._poison(ie)
            raise
    return wrapper


class Sender:
    """
    Send rows to the database over ILP/TCP, optionally secured with TLS
    and authenticated.

    .. code-block:: python

        from ilp_sender import Sender

        with Sender('localhost', 9009) as sender:
            sender.table('sensors').symbol('loc', 'ny')
            sender.float64('temp', 23.5).at_now()

    **Lifecycle**

    A sender starts ``SenderState.Unconnected``. Configure it, then call
    :func:`Sender.connect`. Rows are accumulated in an internal
    :class:`Buffer` and sent with :func:`Sender.flush`. :func:`Sender.close`
    releases the connection.

    **Error Handling**

    Any :class:`IngressError` raised while building a row or flushing
    closes the sender: the buffer is discarded, the connection is dropped
    and all later calls raise. Create a new ``Sender`` to continue.

    A failed :func:`Sender.connect` is different: it returns ``False``,
    records the error in :attr:`Sender.last_error` and leaves the sender
    unconnected, so that it can be reconfigured and retried.
    """

    def __init__(
            self,
            host: Optional[Union[str, bytes]] = None,
            port: Optional[Union[int, str]] = None,
            *,
            config: Optional[ConnectionConfig] = None):
        self._config: Optional[ConnectionConfig] = \
            config if config is not None else ConnectionConfig()
        self._state = SenderState.Unconnected
        self._transport: Optional[Transport] = None
        self._buffer: Optional[Buffer] = None
        self._last_error: Optional[IngressError] = None
        if host is not None or port is not None:
            if host is None or port is None:
                raise IngressError(
                    IngressErrorCode.ConfigError,
                    'Both `host` and `port` must be given.')
            self._config.set_endpoint(host, port)

    @staticmethod
    def from_conf(conf_str: str) -> 'Sender':
        """
        Construct a sender from a configuration string.

        .. code-block:: python

            Sender.from_conf('tcps::addr=localhost:9009;username=admin;...')

        See :func:`ConnectionConfig.from_conf` for the accepted keys.
        """
        return Sender(config=ConnectionConfig.from_conf(conf_str))

    @staticmethod
    def from_env() -> 'Sender':
        """
        Construct a sender from the ``QDB_CLIENT_CONF`` environment variable.
        """
        return Sender(config=ConnectionConfig.from_env())

    @property
    def state(self) -> SenderState:
        return self._state

    @property
    def last_error(self) -> Optional[IngressError]:
        """
        The error that caused the last failed ``connect`` or that closed
        the sender, if any.
        """
        return self._last_error

    def _mutable_config(self) -> ConnectionConfig:
        if self._state is not SenderState.Unconnected:
            raise IngressError(
                IngressErrorCode.InvalidApiCall,
                'Configuration can only be changed before `connect`.')
        return self._config

    def endpoint(self, host: Union[str, bytes], port: Union[int, str]):
        self._mutable_config().set_endpoint(host, port)
        return self

    def enable_tls(self):
        """Secure the connection with TLS, trusting the OS root store."""
        self._mutable_config().enable_tls()
        return self

    def enable_tls_with_ca(self, path: Union[str, bytes, os.PathLike]):
        """Secure the connection with TLS, trusting the given PEM file."""
        self._mutable_config().enable_tls_with_ca(path)
        return self

    def disable_tls_verify(self):
        self._mutable_config().disable_tls_verify()
        return self

    def with_auth(
            self,
            user_id: str,
            private_key: str,
            public_key_x: str,
            public_key_y: str):
        self._mutable_config().with_auth(
            user_id, private_key, public_key_x, public_key_y)
        return self

    def with_auth_timeout(self, millis: int):
        self._mutable_config().with_auth_timeout(millis)
        return self

    def connect(self) -> bool:
        """
        Connect to the server, complete the TLS handshake and authenticate
        as configured.

        Returns ``True`` on success. On failure returns ``False``, records
        the cause in :attr:`last_error` and stays unconnected.
        """
        if self._state is SenderState.Connected:
            raise IngressError(
                IngressErrorCode.InvalidApiCall, 'Already connected.')
        elif self._state is SenderState.Closed:
            raise IngressError(
                IngressErrorCode.InvalidApiCall, 'Sender is closed.')
        config = self._config
        if config.host is None:
            raise IngressError(
                IngressErrorCode.ConfigError,
                'No endpoint configured, call `endpoint(host, port)` first.')
        try:
            transport = self._establish(config)
        except IngressError as ie:
            self._last_error = ie
            _LOGGER.warning(
                'Could not connect to %s:%d: %s', config.host, config.port, ie)
            return False
        self._buffer = Buffer(
            init_buf_size=config.init_buf_size,
            max_name_len=config.max_name_len,
            max_buf_size=config.max_buf_size)
        self._transport = transport
        self._config = None
        self._last_error = None
        self._state = SenderState.Connected
        _LOGGER.info('Connected to %s.', transport.peer)
        return True

    @staticmethod
    def _establish(config: ConnectionConfig) -> Transport:
        signing_key = None
        if config.auth is not None:
            signing_key = _auth.load_signing_key(config.auth)
        transport = Transport.connect(
            config.host,
            config.port,
            tls_mode=config.tls_mode,
            tls_ca=config.tls_ca,
            tls_verify=config.tls_verify)
        if signing_key is not None:
            try:
                _auth.authenticate(
                    transport,
                    config.auth.user_id,
                    signing_key,
                    config.auth_timeout)
            except IngressError:
                transport.close()
                raise
        return transport

    def _check_connected(self, op: str):
        if self._state is SenderState.Connected:
            return
        elif self._state is SenderState.Unconnected:
            raise IngressError(
                IngressErrorCode.InvalidApiCall,
                f'Bad call to `{op}`: Sender is not connected, '
                'call `connect()` first.')
        msg = 'Sender is closed.'
        if self._last_error is not None:
            msg = f'Sender is closed after an earlier error: {self._last_error}'
        raise IngressError(IngressErrorCode.InvalidApiCall, msg)

    def _poison(self, err: IngressError):
        _LOGGER.error(
            'Closing sender to %s after error: %s',
            self._transport.peer, err)
        self._last_error = err
        self._release()

    def _release(self):
        self._buffer = None
        transport, self._transport = self._transport, None
        self._state = SenderState.Closed
        if transport is not None:
            transport.close()

    @_fail_fast
    def table(self, name: str) -> 'Sender':
        self._buffer.table(name)
        return self

    @_fail_fast
    def symbol(self, name: str, value: str) -> 'Sender':
        self._buffer.symbol(name, value)
        return self

    @_fail_fast
    def string(self, name: str, value: str) -> 'Sender':
        self._buffer.column_str(name, value)
        return self

    @_fail_fast
    def boolean(self, name: str, value: bool) -> 'Sender':
        self._buffer.column_bool(name, value)
        return self

    @_fail_fast
    def int64(self, name: str, value: int) -> 'Sender':
        self._buffer.column_i64(name, value)
        return self

    @_fail_fast
    def float64(self, name: str, value: float) -> 'Sender':
        self._buffer.column_f64(name, value)
        return self

    @_fail_fast
    def timestamp(
            self,
            name: str,
            value: Union[int, TimestampMicros, datetime]) -> 'Sender':
        self._buffer.column_ts(name, value)
        return self

    @_fail_fast
    def column(self, name: str, value) -> 'Sender':
        """Add a column, typed by ``value``. See :func:`Buffer.column`."""
        self._buffer.column(name, value)
        return self

    @_fail_fast
    def at(self, timestamp: Union[int, TimestampNanos, datetime]) -> 'Sender':
        self._buffer.at(timestamp)
        return self

    @_fail_fast
    def at_now(self) -> 'Sender':
        self._buffer.at_now()
        return self

    @_fail_fast
    def row(
            self,
            table_name: str,
            *,
            symbols: Optional[Dict[str, Optional[str]]] = None,
            columns: Optional[Dict[str, object]] = None,
            at) -> 'Sender':
        """
        Write a whole row to the internal buffer. See :func:`Buffer.row`.
        """
        self._buffer.row(
            table_name, symbols=symbols, columns=columns, at=at)
        return self

    @_fail_fast
    def flush(self):
        """
        Send all complete rows to the server and clear the buffer.

        Blocks until the OS has accepted all the bytes.
        """
        buffer = self._buffer
        if buffer.row_state is not RowState.NeedTable:
            raise IngressError(
                IngressErrorCode.ProtocolOrderViolation,
                'Bad call to `flush`, should have called `at` or `at_now` '
                'to complete the row first.')
        if not len(buffer):
            return
        data = buffer.peek()
        self._transport.sendall(data)
        _LOGGER.debug(
            'Flushed %d bytes (%d rows) to %s.',
            len(data), buffer.row_count, self._transport.peer)
        buffer.clear()

    def close(self):
        """
        Close the connection. Unsent rows are discarded.

        Safe to call any number of times, in any state.
        """
        if self._state is SenderState.Closed:
            return
        if self._transport is not None:
            _LOGGER.info('Closing connection to %s.', self._transport.peer)
        self._release()

    def __enter__(self) -> 'Sender':
        """Connect, raising the connection error on failure."""
        if self._state is not SenderState.Connected and not self.connect():
            raise self._last_error
        return self

    def __exit__(self, exc_type, _exc_val, _exc_tb):
        """
        Flush pending rows unless an exception is being raised, then close.
        """
        try:
            if exc_type is None and self._state is SenderState.Connected:
                self.flush()
        finally:
            self.close()

    def __len__(self) -> int:
        """Number of bytes in the internal buffer."""
        return len(self._buffer) if self._buffer is not None else 0

    def __bytes__(self) -> bytes:
        return bytes(self._buffer) if self._buffer is not None else b''

    def __str__(self) -> str:
        """Return the buffer's contents as a string. Use for debugging."""
        return str(self._buffer) if self._buffer is not None else ''

    def __repr__(self):
        return f'Sender(state={self._state.name})'

    def __del__(self):
        if getattr(self, '_state', SenderState.Closed) is not \
                SenderState.Closed:
            self.close()
