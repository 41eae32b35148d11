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
Helpers for building payloads. The wire codecs treat payloads as opaque
bytes: checking that one makes sense is up to the caller, using
validate_payload() or otherwise.
"""

import json.encoder

from pushframe.errors import ValidationError
from pushframe.notification import MAX_LEGACY_PAYLOAD_LENGTH

# May as well cache a JSON encoder because we'll be
# using the same configuration each time. Literal UTF-8 rather
# than \u escapes, and no spaces after separators, give the
# shortest encoding.
jsonencoder = json.encoder.JSONEncoder(
    ensure_ascii=False,
    separators=(',', ':')
)


def json_for_payload(payload):
    return jsonencoder.encode(payload).encode('utf8')


def json_for_aps(aps):
    return json_for_payload({'aps': aps})


def validate_payload(payload, max_length=MAX_LEGACY_PAYLOAD_LENGTH):
    """
    Checks that a serialised payload is a JSON object with an 'aps'
    dictionary and is no longer than max_length bytes.
    Throws:
        ValidationError: If it isn't
    """
    if len(payload) > max_length:
        raise ValidationError(
            "Payload is %d bytes, the limit is %d" % (len(payload), max_length)
        )
    try:
        decoded = json.loads(payload.decode('utf8'))
    except ValueError as e:
        raise ValidationError("Payload is not valid UTF-8 JSON: %s" % (e,)) from e
    if not isinstance(decoded, dict):
        raise ValidationError("Payload must be a JSON object")
    if not isinstance(decoded.get('aps'), dict):
        raise ValidationError("Payload must contain an 'aps' dictionary")
    return decoded
