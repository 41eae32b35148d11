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

import logging

from pushframe.dispatch import read_command
from pushframe.errorresponse import ErrorResponse
from pushframe.errors import (
    PushFrameError, MalformedInputError, UnknownCommandError, ValidationError,
    TransportError, ProtocolError,
)
from pushframe.feedback import FeedbackConnection, FeedbackItem
from pushframe.notification import (
    Notification, SimpleNotification, EnhancedNotification, FramedNotification,
    PRIORITY_IMMEDIATE, PRIORITY_CONSERVE_POWER,
)
from pushframe.pushconnection import PushConnection, ConnectionDeadException
from pushframe.transport import (
    TransportFactory, Certificate, PRODUCTION, SANDBOX, PUSH, FEEDBACK,
)
from pushframe.version import __version__


logger = logging.getLogger(__name__)


class PushFrame:
    """
    Sending a push can be achieved by opening a connection and sending
    notifications down it. To hear about rejected pushes, pass on_error:

        def on_error(response):
            [handle error: everything sent after response.identifier
             on that connection needs to be sent again]

        pf = PushFrame(Certificate('mycert.pem'))
        conn = pf.connect(on_error=on_error)
        conn.send(FramedNotification(token, payload, identifier=1))
    """
    def __init__(self, certificate, platform=SANDBOX, feedback_address=None, delay=True, timeout=None):
        """
        Args:
            certificate: A Certificate, or None to connect without TLS
                         (useful only for testing)
            platform: The platform to use (SANDBOX or PRODUCTION)
                      or a tuple of hostname and port.
            feedback_address: A tuple of hostname and port for the feedback
                              service, if platform is a tuple
            delay: Whether to batch small writes with Nagle's algorithm
            timeout (seconds): Socket timeout for connections
        """
        self.address = None
        self.fbaddress = feedback_address
        if isinstance(platform, str):
            environment = platform
        else:
            environment = SANDBOX
            self.address = platform
            if not self.fbaddress:
                logger.warning(
                    "gateway address manually configured but no feedback_address " +
                    "supplied. Fetching feedback will not work"
                )

        self.transport_factory = TransportFactory(
            certificate=certificate, environment=environment, delay=delay, timeout=timeout
        )
        # fail now rather than on the first connect
        self.transport_factory.resolve(PUSH)

    def connect(self, on_error=None):
        """
        Opens a new connection to the gateway. Blocks the current greenlet
        until the connection is established.
        Throws:
            TransportError: If the connection or handshake fails
        """
        sock = self.transport_factory.connect(destination=PUSH, address=self.address)
        return PushConnection(sock, on_error=on_error)

    def get_all_feedback(self):
        """
        Connects to the feedback service and returns any feedback that is sent
        as a list of FeedbackItem objects.

        Blocks the current greenlet until all feedback is returned.
        """
        if self.address and not self.fbaddress:
            raise ValueError("Attempted to fetch feedback but no feedback_address supplied")

        fbconn = FeedbackConnection(self.transport_factory, self.fbaddress)
        return fbconn.get_all()
