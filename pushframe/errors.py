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

# https://developer.apple.com/library/ios/documentation/NetworkingInternet/Conceptual/RemoteNotificationsPG/Chapters/CommunicatingWIthAPS.html
NO_ERROR = 0
PROCESSING = 1
MISSING_TOKEN = 2
MISSING_TOPIC = 3
MISSING_PAYLOAD = 4
INVALID_TOKEN_SIZE = 5
INVALID_TOPIC_SIZE = 6
INVALID_PAYLOAD_SIZE = 7
INVALID_TOKEN = 8
UNKNOWN = 255

# The gateway uses UNKNOWN when it is going away
SHUTDOWN = UNKNOWN

STATUS_DESCRIPTIONS = {
    NO_ERROR: "No errors encountered",
    PROCESSING: "Processing error",
    MISSING_TOKEN: "Missing device token",
    MISSING_TOPIC: "Missing topic",
    MISSING_PAYLOAD: "Missing payload",
    INVALID_TOKEN_SIZE: "Invalid token size",
    INVALID_TOPIC_SIZE: "Invalid topic size",
    INVALID_PAYLOAD_SIZE: "Invalid payload size",
    INVALID_TOKEN: "Invalid token",
    UNKNOWN: "None (unknown)",
}


def describe_status(status):
    return STATUS_DESCRIPTIONS.get(status, STATUS_DESCRIPTIONS[UNKNOWN])


class PushFrameError(Exception):
    pass


class MalformedInputError(PushFrameError):
    """
    A declared length disagrees with the bytes that are actually available.
    The stream position is undefined afterwards, so the connection the bytes
    came from must not be read again.
    """
    pass


class UnknownCommandError(PushFrameError):
    def __init__(self, command):
        super(UnknownCommandError, self).__init__("Unknown command %d" % (command,))
        self.command = command


class ValidationError(PushFrameError):
    pass


class TransportError(PushFrameError):
    pass


class ProtocolError(PushFrameError):
    """
    The gateway rejected a notification. Every notification sent after
    'identifier' on the same connection was discarded by the gateway.
    """
    def __init__(self, response):
        super(ProtocolError, self).__init__(
            "Gateway returned status %d (%s) for identifier %d" % (
                response.status, describe_status(response.status), response.identifier
            )
        )
        self.response = response
        self.status = response.status
        self.identifier = response.identifier
