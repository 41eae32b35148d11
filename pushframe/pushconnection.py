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

import gevent
import gevent.event
import gevent.lock
import gevent.socket
import gevent.ssl

import logging

from pushframe.dispatch import read_command
from pushframe.errors import MalformedInputError, UnknownCommandError
from pushframe.errorresponse import ErrorResponse
from pushframe.stream import write_all


logger = logging.getLogger(__name__)


class PushConnection:
    """
    Drives one stream to the gateway: writes are serialised so that
    notifications never interleave, and a single reader greenlet drains the
    stream looking for error responses.

    The gateway says nothing about notifications it accepts. When it rejects
    one it sends an ErrorResponse and closes the connection, so once that
    happens (or the connection closes for any other reason) the connection
    is dead and send() will refuse to write to it. Nothing is resent: that
    is up to the caller, who gets the ErrorResponse via on_error.
    """
    def __init__(self, stream, on_error=None):
        """
        Args:
            stream: A connected socket, as returned by TransportFactory.connect()
            on_error: Called with the ErrorResponse if the gateway rejects
                      a notification
        """
        self.stream = stream
        self.on_error = on_error
        self.alive = True
        self.error = None
        self.write_lock = gevent.lock.Semaphore()
        self.closed_event = gevent.event.Event()
        self.read_greenlet = gevent.spawn(self._read_loop)

    def send(self, notification):
        """
        Encodes and writes a notification.
        Throws:
            ValidationError: If the notification can't be encoded. The
                             connection is still usable.
            ProtocolError: If the gateway has rejected an earlier notification
            ConnectionDeadException: If the connection has closed
        """
        data = notification.encode()
        with self.write_lock:
            self._check_alive()
            try:
                write_all(self.stream, data)
            except gevent.socket.error as e:
                logger.exception("Caught exception sending push")
                self._close_connection()
                raise ConnectionDeadException() from e

    def _check_alive(self):
        if self.error is not None:
            raise self.error.to_exception()
        if not self.alive:
            raise ConnectionDeadException()

    def close(self):
        self._close_connection()

    def join(self, timeout=None):
        """
        Waits until the connection has closed, eg. after the gateway has
        sent an error. Returns True if it has.
        """
        return self.closed_event.wait(timeout=timeout)

    def _close_connection(self):
        if not self.alive:
            return
        self.alive = False
        try:
            self.stream.close()
        except gevent.socket.error:
            logger.exception("Caught exception closing socket")
        self.closed_event.set()

    def _read_loop(self):
        while self.alive:
            try:
                packet = read_command(self.stream)
            except UnknownCommandError as e:
                # There's no framing so we can't skip past it
                logger.error("Received unknown command %d: closing connection", e.command)
                self._close_connection()
                return
            except MalformedInputError:
                logger.exception("Received malformed command: closing connection")
                self._close_connection()
                return
            except (gevent.socket.timeout, gevent.ssl.SSLError) as e:
                if not _is_read_timeout(e):
                    if self.alive:
                        logger.exception("Caught exception reading from socket: closing")
                        self._close_connection()
                    return
                # Nothing has arrived, which is the normal case: the gateway
                # only ever speaks to reject a push
                continue
            except gevent.socket.error:
                if self.alive:
                    logger.exception("Caught exception reading from socket: closing")
                    self._close_connection()
                return

            if packet is None:
                logger.info("Connection closed remotely")
                self._close_connection()
                return

            if isinstance(packet, ErrorResponse):
                self._push_failed(packet)
                # we now expect the connection to be closed from the other end
            else:
                logger.warning("Ignoring unexpected %s from gateway", type(packet).__name__)

    def _push_failed(self, response):
        logger.warning(
            "Push with identifier %d failed with status %d (%s)",
            response.identifier, response.status, response.description
        )
        self.error = response
        if self.on_error:
            try:
                self.on_error(response)
            except Exception:
                logger.exception("Caught exception from on_error callback")


def _is_read_timeout(e):
    # gevent reports a read timeout on an SSL socket as an SSLError
    if isinstance(e, gevent.socket.timeout):
        return True
    return isinstance(e, gevent.ssl.SSLError) and "timed out" in str(e)


class ConnectionDeadException(Exception):
    pass
