# Copyright 2015 OpenMarket Ltd
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import struct

from pushframe.errors import ProtocolError, ValidationError, describe_status
from pushframe.stream import read_exactly, write_all


COMMAND_ERROR = 8


class ErrorResponse:
    """
    Sent by the gateway when it rejects a notification, just before it
    closes the connection. The identifier is that of the notification
    that failed: anything sent after it on the same connection has been
    discarded and needs to go out again on a new connection.
    """
    COMMAND = COMMAND_ERROR
    LENGTH = 6

    def __init__(self, status, identifier):
        self.status = status
        self.identifier = identifier

    @property
    def description(self):
        return describe_status(self.status)

    def encode(self):
        if not isinstance(self.status, int) or not 0 <= self.status <= 255:
            raise ValidationError("status must fit in one byte, got %r" % (self.status,))
        if not isinstance(self.identifier, int) or not 0 <= self.identifier <= 2**32 - 1:
            raise ValidationError("identifier must fit in four bytes, got %r" % (self.identifier,))
        return struct.pack("!BBI", self.COMMAND, self.status, self.identifier)

    def write_to(self, stream):
        write_all(stream, self.encode())

    @classmethod
    def read_from(cls, stream):
        # the command byte has already been read
        (status, identifier) = struct.unpack("!BI", read_exactly(stream, cls.LENGTH - 1))
        return cls(status, identifier)

    def to_exception(self):
        return ProtocolError(self)

    def __eq__(self, other):
        return (
            isinstance(other, ErrorResponse) and
            (self.status, self.identifier) == (other.status, other.identifier)
        )

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return "ErrorResponse(status=%d (%s), identifier=%d)" % (
            self.status, self.description, self.identifier
        )
