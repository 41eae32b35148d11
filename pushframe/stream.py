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

from pushframe.errors import MalformedInputError


# Everything here works on either a socket (recv / sendall) or a file-like
# object (read / write) so the codecs can be driven from a BytesIO in tests.

def _reader(stream):
    if hasattr(stream, 'recv'):
        return stream.recv
    return stream.read


def read_some(stream, length):
    """
    Reads up to 'length' bytes. Returns an empty bytes object only if the
    stream has ended.
    """
    return _reader(stream)(length)


def read_exactly(stream, length):
    """
    Reads exactly 'length' bytes from the stream, blocking as necessary.
    Throws:
        MalformedInputError: If the stream ends before that many bytes arrive
    """
    recv = _reader(stream)
    buf = b''
    while len(buf) < length:
        gotdata = recv(length - len(buf))
        if not gotdata:
            raise MalformedInputError(
                "Stream ended after %d of %d expected bytes" % (len(buf), length)
            )
        buf += gotdata
    return buf


def write_all(stream, data):
    if hasattr(stream, 'sendall'):
        stream.sendall(data)
    else:
        stream.write(data)
