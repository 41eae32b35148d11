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
import unittest

from pushframe import errors
from pushframe.errorresponse import ErrorResponse
from pushframe.errors import MalformedInputError, ProtocolError, ValidationError


class ErrorResponseTestCase(unittest.TestCase):
    def test_decode_invalid_token(self):
        stream = io.BytesIO(bytes(bytearray([8, 8, 0, 0, 0, 1])))
        self.assertEqual(8, stream.read(1)[0])
        response = ErrorResponse.read_from(stream)
        self.assertEqual(errors.INVALID_TOKEN, response.status)
        self.assertEqual(1, response.identifier)
        self.assertEqual("Invalid token", response.description)
        self.assertEqual(b'', stream.read())

    def test_encode(self):
        self.assertEqual(
            b'\x08\x0a\x12\x34\x56\x78',
            ErrorResponse(10, 0x12345678).encode()
        )

    def test_write_to(self):
        stream = io.BytesIO()
        ErrorResponse(errors.SHUTDOWN, 99).write_to(stream)
        self.assertEqual(b'\x08\xff\x00\x00\x00\x63', stream.getvalue())

    def test_decode_short(self):
        with self.assertRaises(MalformedInputError):
            ErrorResponse.read_from(io.BytesIO(b'\x08\x00\x00'))

    def test_encode_out_of_range(self):
        with self.assertRaises(ValidationError):
            ErrorResponse(256, 1).encode()
        with self.assertRaises(ValidationError):
            ErrorResponse(1, 2**32).encode()

    def test_unknown_status_description(self):
        self.assertEqual("None (unknown)", ErrorResponse(42, 0).description)

    def test_to_exception(self):
        response = ErrorResponse(errors.MISSING_PAYLOAD, 17)
        e = response.to_exception()
        self.assertIsInstance(e, ProtocolError)
        self.assertEqual(errors.MISSING_PAYLOAD, e.status)
        self.assertEqual(17, e.identifier)
        self.assertIs(response, e.response)
