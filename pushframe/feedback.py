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

import gevent.socket

import logging
import struct

from pushframe.errors import MalformedInputError
from pushframe.stream import read_exactly, read_some
from pushframe.transport import FEEDBACK


logger = logging.getLogger(__name__)


class FeedbackItem:
    """
    A token the feedback service reports as no longer accepting
    notifications, and the time (seconds since the epoch) it found out.
    """
    def __init__(self, token, ts):
        self.token = token
        self.ts = ts

    def __eq__(self, other):
        return (
            isinstance(other, FeedbackItem) and
            (self.token, self.ts) == (other.token, other.ts)
        )

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return "FeedbackItem(%r, %r)" % (self.token, self.ts)


def read_feedback_item(stream):
    """
    Reads one feedback record: time (4) | token length (2) | token.
    Returns None if the stream ended cleanly between records.
    """
    buf = read_some(stream, 1)
    if not buf:
        return None
    buf += read_exactly(stream, 5)
    (ts, toklen) = struct.unpack("!IH", buf)
    token = read_exactly(stream, toklen)
    return FeedbackItem(token, float(ts))


class FeedbackConnection:
    # The feedback service hangs up once it has sent everything, so this
    # only bounds how long we wait for an unresponsive one
    TIMEOUT = 10.0

    def __init__(self, transport_factory, address=None, timeout=TIMEOUT):
        self.transport_factory = transport_factory
        self.address = address
        self.timeout = timeout
        self.sock = None

    def get_all(self):
        """
        Connects to the feedback service and returns all the feedback it
        sends before closing the connection.

        If an error occurs before any feedback is received, it is propagated.
        Otherwise the feedback that had arrived is returned.
        """
        if not self.sock:
            self.sock = self.transport_factory.connect(
                destination=FEEDBACK, address=self.address, delay=False,
                timeout=self.timeout
            )

        feedback = []
        try:
            while True:
                item = read_feedback_item(self.sock)
                if item is None:
                    break
                feedback.append(item)
        except (gevent.socket.error, MalformedInputError):
            logger.exception("Caught exception whilst getting feedback")
            # If we've already got feedback, return it: we won't get it again
            if len(feedback) == 0:
                raise
        finally:
            self._close()

        logger.info("Returning %d feedback items", len(feedback))
        return feedback

    def _close(self):
        try:
            self.sock.close()
        except gevent.socket.error:
            logger.exception("Error closing socket")
        self.sock = None
