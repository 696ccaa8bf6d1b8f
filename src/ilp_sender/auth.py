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
    "authenticate",
    "load_signing_key",
]

import base64
import logging

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from .config import Auth
from .errors import IngressError, IngressErrorCode
from .transport import Transport

_LOGGER = logging.getLogger(__name__)

# Challenges sent by the server are 512 bytes long.
_MAX_CHALLENGE_LEN = 4096


def _b64url_int(value: str, what: str) -> int:
    try:
        raw = base64.urlsafe_b64decode(value + '=' * (-len(value) % 4))
    except ValueError as ve:
        raise IngressError(
            IngressErrorCode.AuthError,
            f'Misconfigured ILP authentication keys: Bad {what}: {ve}') from ve
    if not raw:
        raise IngressError(
            IngressErrorCode.AuthError,
            f'Misconfigured ILP authentication keys: Empty {what}.')
    return int.from_bytes(raw, 'big')


def load_signing_key(auth: Auth) -> ec.EllipticCurvePrivateKey:
    """
    Build the P-256 private key from base64url-encoded JWK components.

    The public point must match the private scalar.
    """
    d = _b64url_int(auth.private_key, 'private key')
    x = _b64url_int(auth.public_key_x, 'public key x')
    y = _b64url_int(auth.public_key_y, 'public key y')
    public_numbers = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1())
    try:
        return ec.EllipticCurvePrivateNumbers(d, public_numbers).private_key()
    except ValueError as ve:
        raise IngressError(
            IngressErrorCode.AuthError,
            f'Misconfigured ILP authentication keys: {ve}') from ve


def authenticate(
        transport: Transport,
        user_id: str,
        signing_key: ec.EllipticCurvePrivateKey,
        timeout_millis: int):
    """
    Run the challenge/response exchange on a freshly opened ``transport``.

    The client sends ``user_id``, the server replies with a challenge and
    the client answers with the base64-encoded DER ECDSA-SHA256 signature
    of that challenge. Each message is terminated by a newline.

    Only reading the challenge is bound by ``timeout_millis``.
    """
    _LOGGER.info('Authenticating to %s as %r.', transport.peer, user_id)
    try:
        transport.sendall(user_id.encode('utf-8') + b'\n')
        transport.settimeout(timeout_millis / 1000)
        try:
            challenge = transport.read_line(_MAX_CHALLENGE_LEN)
        finally:
            transport.settimeout(None)
        signature = signing_key.sign(challenge, ec.ECDSA(hashes.SHA256()))
        transport.sendall(base64.b64encode(signature) + b'\n')
    except IngressError as ie:
        raise IngressError(
            IngressErrorCode.AuthError,
            f'Authentication with "{transport.peer}" failed: {ie}') from ie
    _LOGGER.info('Authenticated to %s.', transport.peer)
