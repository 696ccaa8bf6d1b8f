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
    "Transport",
]

import logging
import socket
import ssl
from typing import Optional

from .config import TlsMode
from .errors import IngressError, IngressErrorCode

_LOGGER = logging.getLogger(__name__)


def _tls_context(
        tls_mode: TlsMode,
        tls_ca: Optional[str],
        tls_verify: bool) -> ssl.SSLContext:
    if tls_mode is TlsMode.CustomCa:
        try:
            context = ssl.create_default_context(cafile=tls_ca)
        except OSError as ose:
            # Also covers `ssl.SSLError` for malformed PEM files.
            raise IngressError(
                IngressErrorCode.TlsError,
                f'Could not load root certificates from "{tls_ca}": '
                f'{ose}') from ose
    else:
        context = ssl.create_default_context()
    if not tls_verify:
        _LOGGER.warning(
            'TLS certificate verification is disabled. '
            'This is unsafe and should only be used for testing.')
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class Transport:
    """
    A connected, optionally TLS-secured, blocking socket.

    Owned by exactly one :class:`Sender`. All socket errors are raised as
    :class:`IngressError`.
    """

    def __init__(self, sock: socket.socket, peer: str):
        self._sock: Optional[socket.socket] = sock
        self._peer = peer

    @classmethod
    def connect(
            cls,
            host: str,
            port: int,
            tls_mode: TlsMode = TlsMode.Disabled,
            tls_ca: Optional[str] = None,
            tls_verify: bool = True) -> 'Transport':
        """
        Open a TCP connection to ``host:port`` and, unless ``tls_mode`` is
        ``TlsMode.Disabled``, complete the TLS handshake.
        """
        peer = f'{host}:{port}'
        context = None
        if tls_mode is not TlsMode.Disabled:
            context = _tls_context(tls_mode, tls_ca, tls_verify)
        try:
            sock = socket.create_connection((host, port))
        except socket.gaierror as gai:
            raise IngressError(
                IngressErrorCode.CouldNotResolveAddr,
                f'Could not resolve "{peer}": {gai}') from gai
        except UnicodeError as ue:
            # IDNA encoding rejects empty or over-long labels.
            raise IngressError(
                IngressErrorCode.CouldNotResolveAddr,
                f'Could not resolve "{peer}": {ue}') from ue
        except OSError as ose:
            raise IngressError(
                IngressErrorCode.SocketError,
                f'Could not connect to "{peer}": {ose}') from ose
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        except OSError as ose:
            sock.close()
            raise IngressError(
                IngressErrorCode.SocketError,
                f'Could not configure socket for "{peer}": {ose}') from ose
        if context is not None:
            try:
                sock = context.wrap_socket(sock, server_hostname=host)
            except OSError as ose:
                sock.close()
                raise IngressError(
                    IngressErrorCode.TlsError,
                    f'TLS handshake with "{peer}" failed: {ose}') from ose
            _LOGGER.debug('TLS handshake with %s complete.', peer)
        return cls(sock, peer)

    @property
    def peer(self) -> str:
        return self._peer

    def _live_sock(self) -> socket.socket:
        if self._sock is None:
            raise IngressError(
                IngressErrorCode.SocketError,
                f'Connection to "{self._peer}" is closed.')
        return self._sock

    def settimeout(self, seconds: Optional[float]):
        self._live_sock().settimeout(seconds)

    def sendall(self, data: bytes):
        """Block until all of ``data`` has been handed to the OS."""
        try:
            self._live_sock().sendall(data)
        except OSError as ose:
            raise IngressError(
                IngressErrorCode.SocketError,
                f'Could not write to "{self._peer}": {ose}') from ose

    def read_line(self, max_len: int) -> bytes:
        """
        Read up to and excluding the next ``\\n``.

        The peer must not send anything past the newline.
        """
        sock = self._live_sock()
        line = bytearray()
        while True:
            try:
                chunk = sock.recv(max_len + 1 - len(line))
            except socket.timeout as timeout:
                raise IngressError(
                    IngressErrorCode.SocketError,
                    f'Timed out reading from "{self._peer}".') from timeout
            except OSError as ose:
                raise IngressError(
                    IngressErrorCode.SocketError,
                    f'Could not read from "{self._peer}": {ose}') from ose
            if not chunk:
                raise IngressError(
                    IngressErrorCode.SocketError,
                    f'Connection closed by "{self._peer}".')
            line += chunk
            end = line.find(b'\n')
            if end != -1:
                if end != len(line) - 1:
                    raise IngressError(
                        IngressErrorCode.SocketError,
                        f'Unexpected data from "{self._peer}" after '
                        'end of line.')
                return bytes(line[:end])
            if len(line) > max_len:
                raise IngressError(
                    IngressErrorCode.SocketError,
                    f'Line from "{self._peer}" exceeds {max_len} bytes.')

    def close(self):
        """Shut down and close the socket. Never raises."""
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as ose:
            _LOGGER.debug('Error shutting down connection to %s: %s',
                          self._peer, ose)
        finally:
            sock.close()
