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

from pushframe.errors import UnknownCommandError
from pushframe.errorresponse import ErrorResponse
from pushframe.notification import (
    SimpleNotification, EnhancedNotification, FramedNotification
)
from pushframe.stream import read_some


# There's no framing around commands so anything not in here can't be
# skipped: we'd have no idea how much to skip.
DECODERS = {
    SimpleNotification.COMMAND: SimpleNotification.read_from,
    EnhancedNotification.COMMAND: EnhancedNotification.read_from,
    FramedNotification.COMMAND: FramedNotification.read_from,
    ErrorResponse.COMMAND: ErrorResponse.read_from,
}


def read_command(stream):
    """
    Reads one command from the stream and decodes it with the decoder for
    its command byte. Blocks until the whole command has arrived.

    Returns:
        A Notification or ErrorResponse, or None if the stream ended cleanly
        before any byte of a new command.
    Throws:
        UnknownCommandError: If the command byte is not known. Nothing past
                             it is consumed.
        MalformedInputError: If the stream ended part way through the
                             command. The stream can't be read further.
    """
    buf = read_some(stream, 1)
    if not buf:
        return None

    command = buf[0]
    decoder = DECODERS.get(command)
    if decoder is None:
        raise UnknownCommandError(command)
    return decoder(stream)
