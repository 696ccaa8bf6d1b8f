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

"""
API for fast data ingestion over the InfluxDB Line Protocol (ILP).

    * :class:`ilp_sender.Sender` connects to the server and sends rows.

    * :class:`ilp_sender.Buffer` builds rows without a connection.

    * :class:`ilp_sender.ConnectionConfig` holds the endpoint, TLS and
      authentication settings.
"""

__version__ = '1.0.0'

__all__ = [
    "Auth",
    "Buffer",
    "ConnectionConfig",
    "IngressError",
    "IngressErrorCode",
    "Protocol",
    "RowState",
    "Sender",
    "SenderState",
    "ServerTimestamp",
    "TimestampMicros",
    "TimestampNanos",
    "TlsMode",
]

from .buffer import Buffer, RowState
from .config import Auth, ConnectionConfig, Protocol, TlsMode
from .errors import IngressError, IngressErrorCode
from .sender import Sender, SenderState
from .timestamp import ServerTimestamp, TimestampMicros, TimestampNanos
