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

import io
import struct
import unittest

import gevent
import gevent.socket

from pushframe import PushFrame
from pushframe.errors import MalformedInputError, TransportError
from pushframe.feedback import FeedbackConnection, FeedbackItem, read_feedback_item
from pushframe.transport import TransportFactory


def feedback_record(ts, token):
    return struct.pack("!IH", ts, len(token)) + token


class DummyFeedbackServer:
    """
    dummy (non-ssl) feedback server: sends what it's given to each
    client then hangs up, unless hang_up is False
    """

    def __init__(self, data, hang_up=True):
        self.data = data
        self.hang_up = hang_up
        self.clients = []
        self.listen_greenlet = None

    def start(self):
        self.sock = gevent.socket.socket(gevent.socket.AF_INET, gevent.socket.SOCK_STREAM)
        self.sock.bind(('localhost', 0))
        self.sock.listen(1)
        self.listen_greenlet = gevent.spawn(self.listen_loop)

    def stop(self):
        self.listen_greenlet.kill()
        self.sock.close()
        for c in self.clients:
            c.close()

    def listen_loop(self):
        while True:
            (clisock, addr) = self.sock.accept()
            clisock.sendall(self.data)
            if self.hang_up:
                clisock.close()
            else:
                self.clients.append(clisock)

    def get_addr(self):
        return self.sock.getsockname()


class ReadFeedbackTestCase(unittest.TestCase):
    def test_records(self):
        stream = io.BytesIO(feedback_record(1400000000, b'\xbe\xef') + feedback_record(5, b''))
        self.assertEqual(FeedbackItem(b'\xbe\xef', 1400000000.0), read_feedback_item(stream))
        self.assertEqual(FeedbackItem(b'', 5.0), read_feedback_item(stream))
        self.assertIsNone(read_feedback_item(stream))

    def test_truncated(self):
        with self.assertRaises(MalformedInputError):
            read_feedback_item(io.BytesIO(feedback_record(1, b'\xbe\xef')[:-1]))


class FeedbackConnectionTestCase(unittest.TestCase):
    def make_server(self, data, hang_up=True):
        srv = DummyFeedbackServer(data, hang_up=hang_up)
        srv.start()
        self.addCleanup(srv.stop)
        return srv

    def test_get_all(self):
        tokens = [b'\x01' * 32, b'\x02' * 32, b'\x03' * 32]
        srv = self.make_server(b''.join(feedback_record(100 + i, t) for i, t in enumerate(tokens)))
        fbconn = FeedbackConnection(TransportFactory(), srv.get_addr())
        self.assertEqual(
            [FeedbackItem(t, float(100 + i)) for i, t in enumerate(tokens)],
            fbconn.get_all()
        )

    def test_partial_feedback_returned(self):
        srv = self.make_server(feedback_record(1, b'\x01' * 32) + feedback_record(2, b'\x02' * 32)[:10])
        fbconn = FeedbackConnection(TransportFactory(), srv.get_addr())
        self.assertEqual([FeedbackItem(b'\x01' * 32, 1.0)], fbconn.get_all())

    def test_error_before_feedback_raised(self):
        srv = self.make_server(feedback_record(1, b'\x01' * 32)[:3])
        fbconn = FeedbackConnection(TransportFactory(), srv.get_addr())
        with self.assertRaises(MalformedInputError):
            fbconn.get_all()

    def test_via_pushframe(self):
        srv = self.make_server(feedback_record(7, b'\x07' * 32))
        pf = PushFrame(None, platform=('localhost', 1), feedback_address=srv.get_addr())
        self.assertEqual([FeedbackItem(b'\x07' * 32, 7.0)], pf.get_all_feedback())

    def test_no_feedback_address(self):
        pf = PushFrame(None, platform=('localhost', 1))
        with self.assertRaises(ValueError):
            pf.get_all_feedback()

    def test_connection_refused(self):
        sock = gevent.socket.socket(gevent.socket.AF_INET, gevent.socket.SOCK_STREAM)
        sock.bind(('localhost', 0))
        addr = sock.getsockname()
        sock.close()
        with self.assertRaises(TransportError):
            FeedbackConnection(TransportFactory(), addr).get_all()

    def test_server_never_hangs_up(self):
        srv = self.make_server(feedback_record(1, b'\x01' * 32), hang_up=False)
        fbconn = FeedbackConnection(TransportFactory(), srv.get_addr(), timeout=0.2)
        self.assertEqual([FeedbackItem(b'\x01' * 32, 1.0)], fbconn.get_all())

    def test_silent_server_times_out(self):
        srv = self.make_server(b'', hang_up=False)
        fbconn = FeedbackConnection(TransportFactory(), srv.get_addr(), timeout=0.2)
        with self.assertRaises(gevent.socket.timeout):
            fbconn.get_all()
