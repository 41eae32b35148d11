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

import gevent.ssl
import gevent.socket

import logging

from pushframe.errors import TransportError


logger = logging.getLogger(__name__)


PRODUCTION = 'prod'
SANDBOX = 'sandbox'

PUSH = 'push'
FEEDBACK = 'feedback'

# from /usr/include/linux/tcp.h: #define TCP_USER_TIMEOUT 18
TCP_USER_TIMEOUT = 18


class Certificate:
    """
    The client identity presented to the gateway during the TLS handshake.
    Args:
        certfile: Path to a certificate file in PEM format
                  This may also include the private key.
        keyfile: Path to the private key file in PEM format
        password: Password for the private key, if it's encrypted
    """
    def __init__(self, certfile, keyfile=None, password=None):
        self.certfile = certfile
        self.keyfile = keyfile
        self.password = password

    def load_into(self, context):
        context.load_cert_chain(self.certfile, keyfile=self.keyfile, password=self.password)

    def __repr__(self):
        return "Certificate(%r, keyfile=%r)" % (self.certfile, self.keyfile)


class TransportFactory:
    """
    Makes connections to the gateway. Each call to connect() gives a new,
    already handshaken stream; nothing is pooled or reused.
    """
    ADDRESSES = {
        (PUSH, PRODUCTION): ('gateway.push.apple.com', 2195),
        (PUSH, SANDBOX): ('gateway.sandbox.push.apple.com', 2195),
        (FEEDBACK, PRODUCTION): ('feedback.push.apple.com', 2196),
        (FEEDBACK, SANDBOX): ('feedback.sandbox.push.apple.com', 2196),
    }

    CONN_TIMEOUT = 10

    def __init__(self, certificate=None, environment=SANDBOX, delay=True,
                 addresses=None, timeout=None, verify=False, cafile=None):
        """
        Args:
            certificate: A Certificate, or None for a plain TCP connection.
                         This is useful only for talking to test servers.
            environment: The environment to use (SANDBOX or PRODUCTION)
            delay: Whether to let Nagle's algorithm batch small writes. This
                   is best when sending lots of notifications in a burst.
            addresses: Replaces ADDRESSES: maps (destination, environment)
                       to a (host, port) tuple
            timeout (seconds): Timeout for connecting and for each socket
                               operation on the connections made, or None
                               to block indefinitely
            verify: Whether to check the gateway's certificate. The gateway
                    authenticates us, so this isn't required.
            cafile: CA certificates to verify the gateway against
        """
        self.certificate = certificate
        self.environment = environment
        self.delay = delay
        self.addresses = dict(addresses if addresses is not None else TransportFactory.ADDRESSES)
        self.timeout = timeout
        self.verify = verify
        self.cafile = cafile

    def resolve(self, destination=PUSH, environment=None):
        if environment is None:
            environment = self.environment
        try:
            return self.addresses[(destination, environment)]
        except KeyError:
            raise TransportError(
                "No address for %s in environment %r" % (destination, environment)
            ) from None

    def connect(self, destination=PUSH, environment=None, address=None, delay=None,
                timeout=None):
        """
        Opens a connection and, if we have a certificate, performs the TLS
        handshake before returning.
        Args:
            destination: PUSH or FEEDBACK
            environment: Overrides the factory's environment
            address: A (host, port) tuple to connect to instead of the
                     address for the destination and environment
            delay: Overrides the factory's delay setting
            timeout (seconds): Overrides the factory's timeout
        Returns:
            A socket ready for reading and writing
        Throws:
            TransportError: If the address can't be resolved or the
                            connection or handshake fails
        """
        if address is None:
            address = self.resolve(destination, environment)
        if delay is None:
            delay = self.delay
        if timeout is None:
            timeout = self.timeout

        logger.info("Establishing new connection to %s", address)
        try:
            sock = gevent.socket.create_connection(address, timeout=timeout)
        except gevent.socket.error as e:
            raise TransportError("Couldn't connect to %s:%d: %s" % (address[0], address[1], e)) from e

        try:
            sock.setsockopt(gevent.socket.IPPROTO_TCP, gevent.socket.TCP_NODELAY, 0 if delay else 1)
        except gevent.socket.error as e:
            sock.close()
            raise TransportError("Couldn't configure write coalescing: %s" % (e,)) from e

        # Without this, connections will take 15 minutes or much, much longer to
        # time out if the connection drops, and pushes sent in that time are lost
        try:
            sock.setsockopt(gevent.socket.IPPROTO_TCP, TCP_USER_TIMEOUT, TransportFactory.CONN_TIMEOUT * 1000)
        except gevent.socket.error:
            logger.warning(
                "Couldn't set TCP_USER_TIMEOUT (only works on Linux >= 2.6.37). " +
                "Unresponsive connections will take a long time to time out."
            )

        if self.certificate is None:
            return sock

        try:
            context = self._ssl_context()
            tls_sock = context.wrap_socket(
                sock, server_hostname=address[0], do_handshake_on_connect=False
            )
            tls_sock.do_handshake()
        except (gevent.ssl.SSLError, gevent.socket.error) as e:
            sock.close()
            raise TransportError("TLS handshake with %s:%d failed: %s" % (address[0], address[1], e)) from e
        return tls_sock

    def _ssl_context(self):
        context = gevent.ssl.SSLContext(gevent.ssl.PROTOCOL_TLS_CLIENT)
        if self.verify:
            if self.cafile:
                context.load_verify_locations(cafile=self.cafile)
            else:
                context.load_default_certs()
        else:
            context.check_hostname = False
            context.verify_mode = gevent.ssl.CERT_NONE
        self.certificate.load_into(context)
        return context
