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
    "Auth",
    "ConnectionConfig",
    "Protocol",
    "TaggedEnum",
    "TlsMode",
]

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union

from .errors import IngressError, IngressErrorCode, _fqn, _utf8_text

DEFAULT_PORT = 9009
DEFAULT_AUTH_TIMEOUT = 15000
DEFAULT_INIT_BUF_SIZE = 64 * 1024
DEFAULT_MAX_BUF_SIZE = 100 * 1024 * 1024
DEFAULT_MAX_NAME_LEN = 127

CONF_ENV_VAR = 'QDB_CLIENT_CONF'


class TaggedEnum(Enum):
    """
    Base class for tagged enums.
    """

    @property
    def tag(self) -> str:
        """
        Short name.
        """
        return self.value

    @classmethod
    def parse(cls, tag) -> 'TaggedEnum':
        """
        Parse from the tag name.
        """
        if tag is None:
            raise IngressError(
                IngressErrorCode.ConfigError,
                f'{cls.__name__} cannot be None.')
        elif isinstance(tag, cls):
            return tag
        elif isinstance(tag, str):
            for entry in cls:
                if entry.tag == tag:
                    return entry
        tags = ', '.join(repr(entry.tag) for entry in cls)
        raise IngressError(
            IngressErrorCode.ConfigError,
            f'Invalid {cls.__name__} {tag!r}, must be one of: {tags}.')


class Protocol(TaggedEnum):
    """
    Protocol to use for sending data.

    ``Tcps`` is ILP over TCP wrapped in TLS.
    """

    Tcp = 'tcp'
    Tcps = 'tcps'

    @property
    def tls_enabled(self) -> bool:
        return self is Protocol.Tcps


class TlsMode(TaggedEnum):
    """
    Whether to use TLS and how to verify the server's certificate.

    * ``Disabled``: plain TCP.
    * ``SystemCas``: verify against the operating system's trust store.
    * ``CustomCa``: verify against the PEM file set as ``tls_ca``.
    """

    Disabled = 'off'
    SystemCas = 'os_roots'
    CustomCa = 'pem_file'


@dataclass(frozen=True)
class Auth:
    """
    ECDSA (P-256, SHA-256) key material for the authentication challenge.

    All four fields are base64url-encoded strings, as found in a JWK.
    """

    user_id: str
    private_key: str
    public_key_x: str
    public_key_y: str

    def __repr__(self):
        # The private key never ends up in logs.
        return f'Auth(user_id={self.user_id!r}, private_key=***)'


def _check_port(port) -> int:
    if isinstance(port, str):
        if not (port.isascii() and port.isdigit()):
            raise IngressError(
                IngressErrorCode.InvalidValue,
                f'Bad port {port!r}: Expected a number.')
        port = int(port)
    if isinstance(port, bool) or not isinstance(port, int):
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad port: Expected an int, not {_fqn(port)}.')
    if not 1 <= port <= 65535:
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'Bad port {port}: Must be in the range 1 to 65535.')
    return port


def _check_positive_int(value, name: str) -> int:
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'"{name}" must be an int, not {_fqn(value)}.')
    if value < 1:
        raise IngressError(
            IngressErrorCode.InvalidValue,
            f'"{name}" must be a positive integer, not {value}.')
    return value


class ConnectionConfig:
    """
    How to reach and authenticate to the server.

    All the setters validate their arguments eagerly and return ``self``,
    so calls can be chained:

    .. code-block:: python

        conf = (ConnectionConfig()
            .set_endpoint('localhost', 9009)
            .enable_tls_with_ca('/path/to/rootCA.pem')
            .with_auth('testUser1', token, token_x, token_y))

    A failed call leaves the config exactly as it was.

    No network I/O takes place until the config is passed to a connecting
    :class:`Sender`, which consumes it.
    """

    def __init__(self):
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self.tls_mode = TlsMode.Disabled
        self.tls_ca: Optional[str] = None
        self.tls_verify = True
        self.auth: Optional[Auth] = None
        self.auth_timeout = DEFAULT_AUTH_TIMEOUT
        self.init_buf_size = DEFAULT_INIT_BUF_SIZE
        self.max_buf_size = DEFAULT_MAX_BUF_SIZE
        self.max_name_len = DEFAULT_MAX_NAME_LEN

    def set_endpoint(self, host: Union[str, bytes], port: Union[int, str]):
        """Set the server's host and ILP/TCP port."""
        host = _utf8_text(host, 'host')
        if not host:
            raise IngressError(
                IngressErrorCode.InvalidValue,
                'Bad host: Must have a non-zero length.')
        port = _check_port(port)
        self.host = host
        self.port = port
        return self

    endpoint = set_endpoint

    def enable_tls(self):
        """Use TLS, verifying the server against the OS trust store."""
        self.tls_mode = TlsMode.SystemCas
        self.tls_ca = None
        return self

    def enable_tls_with_ca(self, path: Union[str, bytes, os.PathLike]):
        """Use TLS, verifying the server against a PEM root CA file."""
        if isinstance(path, os.PathLike):
            path = os.fspath(path)
        path = _utf8_text(path, 'CA path')
        self.tls_mode = TlsMode.CustomCa
        self.tls_ca = path
        return self

    def disable_tls_verify(self):
        """
        Skip the server certificate verification.

        This is insecure and meant for development setups with self-signed
        certificates only.
        """
        self.tls_verify = False
        return self

    def with_auth(
            self,
            user_id: Union[str, bytes],
            private_key: Union[str, bytes],
            public_key_x: Union[str, bytes],
            public_key_y: Union[str, bytes]):
        """
        Authenticate with the given key id and ECDSA key material.
        """
        auth = Auth(
            _utf8_text(user_id, 'user id'),
            _utf8_text(private_key, 'private key'),
            _utf8_text(public_key_x, 'public key x'),
            _utf8_text(public_key_y, 'public key y'))
        self.auth = auth
        return self

    def with_auth_timeout(self, millis: int):
        """Deadline for the server to send the auth challenge."""
        self.auth_timeout = _check_positive_int(millis, 'auth_timeout')
        return self

    def with_buffer_sizes(self, init_buf_size: int, max_buf_size: int):
        init_buf_size = _check_positive_int(init_buf_size, 'init_buf_size')
        max_buf_size = _check_positive_int(max_buf_size, 'max_buf_size')
        if init_buf_size > max_buf_size:
            raise IngressError(
                IngressErrorCode.InvalidValue,
                f'"init_buf_size" ({init_buf_size}) cannot exceed '
                f'"max_buf_size" ({max_buf_size}).')
        self.init_buf_size = init_buf_size
        self.max_buf_size = max_buf_size
        return self

    def with_max_name_len(self, max_name_len: int):
        self.max_name_len = _check_positive_int(max_name_len, 'max_name_len')
        return self

    @property
    def protocol(self) -> Protocol:
        if self.tls_mode is TlsMode.Disabled:
            return Protocol.Tcp
        return Protocol.Tcps

    def __repr__(self):
        return (
            f'ConnectionConfig(host={self.host!r}, port={self.port!r}, '
            f'tls_mode={self.tls_mode}, auth={self.auth!r})')

    @staticmethod
    def from_conf(conf_str: str) -> 'ConnectionConfig':
        """
        Parse a configuration string.

        .. code-block:: python

            ConnectionConfig.from_conf(
                'tcps::addr=localhost:9009;tls_roots=/path/to/ca.pem;')

        Supported keys: ``addr``, ``username``, ``token``, ``token_x``,
        ``token_y``, ``tls_verify``, ``tls_ca``, ``tls_roots``,
        ``auth_timeout``, ``init_buf_size``, ``max_buf_size`` and
        ``max_name_len``.
        """
        protocol, params = _parse_conf_str(conf_str)
        config = ConnectionConfig()

        addr = params.pop('addr', None)
        if addr is None:
            raise IngressError(
                IngressErrorCode.ConfigError,
                'Missing "addr" parameter in config string.')
        host, sep, port = addr.rpartition(':')
        if not sep or host.count(':') and not host.endswith(']'):
            # No port, or an unbracketed IPv6 address.
            host, port = addr, DEFAULT_PORT
        if host.startswith('[') and host.endswith(']'):
            host = host[1:-1]
        config.set_endpoint(host, port)

        auth_keys = ('username', 'token', 'token_x', 'token_y')
        auth_params = [params.pop(key, None) for key in auth_keys]
        if any(value is not None for value in auth_params):
            missing = [
                key for key, value in zip(auth_keys, auth_params)
                if value is None]
            if missing:
                raise IngressError(
                    IngressErrorCode.ConfigError,
                    'Authentication requires all of "username", "token", '
                    f'"token_x" and "token_y": missing {", ".join(missing)}.')
            config.with_auth(*auth_params)

        tls_verify = params.pop('tls_verify', None)
        tls_ca = params.pop('tls_ca', None)
        tls_roots = params.pop('tls_roots', None)
        if not protocol.tls_enabled:
            if any(v is not None for v in (tls_verify, tls_ca, tls_roots)):
                raise IngressError(
                    IngressErrorCode.ConfigError,
                    'TLS settings require the "tcps" protocol.')
        else:
            mode = TlsMode.SystemCas
            if tls_ca is not None:
                mode = TlsMode.parse(tls_ca)
                if mode is TlsMode.Disabled:
                    raise IngressError(
                        IngressErrorCode.ConfigError,
                        f'Invalid tls_ca {tls_ca!r} for the "tcps" protocol.')
            if tls_roots is not None:
                if tls_ca is not None and mode is not TlsMode.CustomCa:
                    raise IngressError(
                        IngressErrorCode.ConfigError,
                        '"tls_roots" requires "tls_ca=pem_file".')
                config.enable_tls_with_ca(tls_roots)
            elif mode is TlsMode.CustomCa:
                raise IngressError(
                    IngressErrorCode.ConfigError,
                    '"tls_ca=pem_file" requires "tls_roots" to be set.')
            else:
                config.enable_tls()
            if tls_verify is not None:
                if tls_verify == 'unsafe_off':
                    config.disable_tls_verify()
                elif tls_verify != 'on':
                    raise IngressError(
                        IngressErrorCode.ConfigError,
                        f'Invalid tls_verify {tls_verify!r}, '
                        'must be "on" or "unsafe_off".')

        if 'auth_timeout' in params:
            config.with_auth_timeout(params.pop('auth_timeout'))
        init_buf_size = params.pop('init_buf_size', config.init_buf_size)
        max_buf_size = params.pop('max_buf_size', config.max_buf_size)
        config.with_buffer_sizes(init_buf_size, max_buf_size)
        if 'max_name_len' in params:
            config.with_max_name_len(params.pop('max_name_len'))

        if params:
            raise IngressError(
                IngressErrorCode.ConfigError,
                f'Unknown config parameter(s): {", ".join(params)}.')
        return config

    @staticmethod
    def from_env() -> 'ConnectionConfig':
        """
        Parse the configuration string held by the ``QDB_CLIENT_CONF``
        environment variable.
        """
        conf_str = os.environ.get(CONF_ENV_VAR)
        if conf_str is None:
            raise IngressError(
                IngressErrorCode.ConfigError,
                f'Environment variable {CONF_ENV_VAR} is not set.')
        return ConnectionConfig.from_conf(conf_str)


def _split_params(rest: str) -> Iterator[Tuple[str, str]]:
    """
    Split ``key=value;key=value;`` pairs.

    A literal ``;`` inside a value is written as ``;;``.
    """
    index = 0
    length = len(rest)
    while index < length:
        eq = rest.find('=', index)
        if eq == -1:
            raise IngressError(
                IngressErrorCode.ConfigError,
                f'Bad config string: Missing "=" after {rest[index:]!r}.')
        key = rest[index:eq]
        if not key or ';' in key:
            raise IngressError(
                IngressErrorCode.ConfigError,
                f'Bad config string: Invalid key {key!r}.')
        value = []
        index = eq + 1
        while index < length:
            ch = rest[index]
            if ch == ';':
                if index + 1 < length and rest[index + 1] == ';':
                    value.append(';')
                    index += 2
                    continue
                break
            value.append(ch)
            index += 1
        index += 1  # Skip the terminating `;`.
        yield key, ''.join(value)


def _parse_conf_str(conf_str: str) -> Tuple[Protocol, Dict[str, str]]:
    conf_str = _utf8_text(conf_str, 'config string')
    service, sep, rest = conf_str.partition('::')
    if not sep:
        raise IngressError(
            IngressErrorCode.ConfigError,
            'Bad config string: Expected "<protocol>::<params>".')
    if service in ('http', 'https'):
        raise IngressError(
            IngressErrorCode.ConfigError,
            f'Protocol {service!r} is not supported, use "tcp" or "tcps".')
    protocol = Protocol.parse(service)
    params = {}
    for key, value in _split_params(rest):
        if key in params:
            raise IngressError(
                IngressErrorCode.ConfigError,
                f'Duplicate config parameter {key!r}.')
        params[key] = value
    return protocol, params
