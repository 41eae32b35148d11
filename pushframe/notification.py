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

"""
The three notification formats understood by the gateway. All integers are
in network byte order.

    Simple (0):   command | token length (2) | token | payload length (2) | payload
    Enhanced (1): command | identifier (4) | expiry (4) | token length (2) | token
                  | payload length (2) | payload
    Framed (2):   command | frame length (4) | items...

Each item of a framed notification is: item id (1) | data length (2) | data.
"""

import struct

from pushframe.errors import MalformedInputError, ValidationError
from pushframe.stream import read_exactly, write_all


COMMAND_SIMPLE = 0
COMMAND_ENHANCED = 1
COMMAND_FRAMED = 2

ITEM_DEVICE_TOKEN = 1
ITEM_PAYLOAD = 2
ITEM_IDENTIFIER = 3
ITEM_EXPIRATION = 4
ITEM_PRIORITY = 5

# Sent immediately. Must trigger an alert, sound or badge on the device.
PRIORITY_IMMEDIATE = 10
# Sent at a time that conserves power. Required for content-available only pushes.
PRIORITY_CONSERVE_POWER = 5

MAX_LEGACY_PAYLOAD_LENGTH = 256
MAX_ITEM_LENGTH = 0xFFFF

# widths of the items that aren't raw data
ITEM_WIDTHS = {
    ITEM_IDENTIFIER: 4,
    ITEM_EXPIRATION: 4,
    ITEM_PRIORITY: 1,
}

ITEM_HEADER_LENGTH = 3
MAX_FRAME_LENGTH = (
    5 * ITEM_HEADER_LENGTH + 2 * MAX_ITEM_LENGTH + sum(ITEM_WIDTHS.values())
)

UINT32_MAX = 2**32 - 1
INT32_MIN = -2**31
INT32_MAX = 2**31 - 1


def _check_bytes(name, value):
    if not isinstance(value, (bytes, bytearray)):
        raise ValidationError("%s must be bytes, not %s" % (name, type(value).__name__))
    if len(value) > MAX_ITEM_LENGTH:
        raise ValidationError(
            "%s is %d bytes: at most %d can be encoded" % (name, len(value), MAX_ITEM_LENGTH)
        )


def _check_range(name, value, lowest, highest):
    if not isinstance(value, int) or not lowest <= value <= highest:
        raise ValidationError(
            "%s must be an integer from %d to %d, got %r" % (name, lowest, highest, value)
        )


class Notification:
    """
    Base class for the notification formats. The token is the raw (not
    hex encoded) device token and the payload is the serialised JSON
    dictionary, both as bytes. Neither is interpreted here.
    """
    COMMAND = None

    def __init__(self, token, payload):
        self.token = token
        self.payload = payload

    def validate(self):
        """
        Throws:
            ValidationError: If the notification can't be represented on the wire
        """
        _check_bytes('token', self.token)
        _check_bytes('payload', self.payload)

    def encode(self):
        self.validate()
        return self._pack()

    def write_to(self, stream):
        # The whole notification goes in one write: interleaving part of it
        # with another write would corrupt the stream for good.
        write_all(stream, self.encode())

    @classmethod
    def read_from(cls, stream):
        """
        Reads the rest of a notification of this format from the stream,
        assuming the command byte has already been taken off it.
        """
        raise NotImplementedError()

    def _pack(self):
        raise NotImplementedError()

    def _fields(self):
        return (self.token, self.payload)

    def __eq__(self, other):
        return type(self) is type(other) and self._fields() == other._fields()

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return "%s(%s)" % (
            type(self).__name__, ", ".join(repr(f) for f in self._fields())
        )


class _LegacyNotification(Notification):
    """
    Shared by the simple and enhanced formats, which carry explicit token
    and payload length fields. These may be given up front to have them
    checked against the data.
    """
    def __init__(self, token, payload, token_length=None, payload_length=None):
        Notification.__init__(self, token, payload)
        self.token_length = token_length
        self.payload_length = payload_length

    def validate(self):
        Notification.validate(self)
        if self.token_length is not None and self.token_length != len(self.token):
            raise ValidationError(
                "Token length is declared as %d but the token is %d bytes" % (
                    self.token_length, len(self.token)
                )
            )
        if self.payload_length is not None and self.payload_length != len(self.payload):
            raise ValidationError(
                "Payload length is declared as %d but the payload is %d bytes" % (
                    self.payload_length, len(self.payload)
                )
            )
        if len(self.payload) > MAX_LEGACY_PAYLOAD_LENGTH:
            raise ValidationError(
                "Payload is %d bytes: command %d allows at most %d" % (
                    len(self.payload), self.COMMAND, MAX_LEGACY_PAYLOAD_LENGTH
                )
            )

    def _pack_token_and_payload(self):
        return (
            struct.pack("!H", len(self.token)) + bytes(self.token) +
            struct.pack("!H", len(self.payload)) + bytes(self.payload)
        )

    @staticmethod
    def _read_token_and_payload(stream):
        token_length = struct.unpack("!H", read_exactly(stream, 2))[0]
        token = read_exactly(stream, token_length)
        payload_length = struct.unpack("!H", read_exactly(stream, 2))[0]
        payload = read_exactly(stream, payload_length)
        return token, payload


class SimpleNotification(_LegacyNotification):
    COMMAND = COMMAND_SIMPLE

    def _pack(self):
        return struct.pack("!B", self.COMMAND) + self._pack_token_and_payload()

    @classmethod
    def read_from(cls, stream):
        token, payload = cls._read_token_and_payload(stream)
        return cls(token, payload)


class EnhancedNotification(_LegacyNotification):
    """
    The simple format plus an identifier, echoed back by the gateway if the
    notification is rejected, and an expiry as a UNIX timestamp. An expiry
    of zero or less asks the gateway not to store the notification at all.
    """
    COMMAND = COMMAND_ENHANCED

    def __init__(self, token, payload, identifier=0, expiry=0,
                 token_length=None, payload_length=None):
        _LegacyNotification.__init__(self, token, payload, token_length, payload_length)
        self.identifier = identifier
        self.expiry = expiry

    def validate(self):
        _LegacyNotification.validate(self)
        _check_range('identifier', self.identifier, 0, UINT32_MAX)
        _check_range('expiry', self.expiry, INT32_MIN, INT32_MAX)

    def _pack(self):
        return (
            struct.pack("!BIi", self.COMMAND, self.identifier, self.expiry) +
            self._pack_token_and_payload()
        )

    @classmethod
    def read_from(cls, stream):
        (identifier, expiry) = struct.unpack("!Ii", read_exactly(stream, 8))
        token, payload = cls._read_token_and_payload(stream)
        return cls(token, payload, identifier=identifier, expiry=expiry)

    def _fields(self):
        return (self.token, self.payload, self.identifier, self.expiry)


def _item(item_id, data):
    return struct.pack("!BH", item_id, len(data)) + bytes(data)


class FramedNotification(Notification):
    """
    The item based format. Identifier, expiry and priority are optional and
    left out of the frame when None. Items are always written in item id
    order but may arrive in any order.
    """
    COMMAND = COMMAND_FRAMED

    def __init__(self, token, payload, identifier=None, expiry=None, priority=None):
        Notification.__init__(self, token, payload)
        self.identifier = identifier
        self.expiry = expiry
        self.priority = priority

    def validate(self):
        Notification.validate(self)
        if self.identifier is not None:
            _check_range('identifier', self.identifier, 0, UINT32_MAX)
        if self.expiry is not None:
            _check_range('expiry', self.expiry, INT32_MIN, INT32_MAX)
        if self.priority is not None:
            _check_range('priority', self.priority, 0, 255)

    def _pack(self):
        items = _item(ITEM_DEVICE_TOKEN, self.token)
        items += _item(ITEM_PAYLOAD, self.payload)
        if self.identifier is not None:
            # strictly speaking this is just bytes but we may as well keep
            # everything in network byte order
            items += _item(ITEM_IDENTIFIER, struct.pack("!I", self.identifier))
        if self.expiry is not None:
            items += _item(ITEM_EXPIRATION, struct.pack("!i", self.expiry))
        if self.priority is not None:
            items += _item(ITEM_PRIORITY, struct.pack("!B", self.priority))

        return struct.pack("!BI", self.COMMAND, len(items)) + items

    @classmethod
    def read_from(cls, stream):
        frame_length = struct.unpack("!I", read_exactly(stream, 4))[0]
        if frame_length > MAX_FRAME_LENGTH:
            raise MalformedInputError(
                "Frame length %d exceeds the largest possible frame (%d)" % (
                    frame_length, MAX_FRAME_LENGTH
                )
            )
        frame = read_exactly(stream, frame_length)

        items = {}
        offset = 0
        while offset < frame_length:
            if frame_length - offset < ITEM_HEADER_LENGTH:
                raise MalformedInputError("Truncated item header at offset %d" % (offset,))
            (item_id, item_length) = struct.unpack_from("!BH", frame, offset)
            offset += ITEM_HEADER_LENGTH
            if offset + item_length > frame_length:
                raise MalformedInputError(
                    "Item %d declares %d bytes but only %d remain in the frame" % (
                        item_id, item_length, frame_length - offset
                    )
                )
            if item_id < ITEM_DEVICE_TOKEN or item_id > ITEM_PRIORITY:
                raise MalformedInputError("Unknown item id %d" % (item_id,))
            if item_id in items:
                raise MalformedInputError("Item %d appears more than once" % (item_id,))
            if item_id in ITEM_WIDTHS and item_length != ITEM_WIDTHS[item_id]:
                raise MalformedInputError(
                    "Item %d must be %d bytes, not %d" % (
                        item_id, ITEM_WIDTHS[item_id], item_length
                    )
                )
            items[item_id] = frame[offset:offset + item_length]
            offset += item_length

        if ITEM_DEVICE_TOKEN not in items:
            raise MalformedInputError("Frame has no device token item")
        if ITEM_PAYLOAD not in items:
            raise MalformedInputError("Frame has no payload item")

        n = cls(items[ITEM_DEVICE_TOKEN], items[ITEM_PAYLOAD])
        if ITEM_IDENTIFIER in items:
            n.identifier = struct.unpack("!I", items[ITEM_IDENTIFIER])[0]
        if ITEM_EXPIRATION in items:
            n.expiry = struct.unpack("!i", items[ITEM_EXPIRATION])[0]
        if ITEM_PRIORITY in items:
            n.priority = struct.unpack("!B", items[ITEM_PRIORITY])[0]
        return n

    def _fields(self):
        return (self.token, self.payload, self.identifier, self.expiry, self.priority)
