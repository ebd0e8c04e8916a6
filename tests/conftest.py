# SPDX-License-Identifier: Apache-2.0
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

import pytest

from tests.constants import PAYLOAD, tmp_name, write_file


class FakeDevice:
    """Stands in for a pyusb device, records every bulk write"""

    def __init__(self, short_at=None):
        self.writes = []
        self.short_at = short_at

    def write(self, endpoint, data, timeout=None):
        self.writes.append((endpoint, bytes(data), timeout))
        if self.short_at is not None and len(self.writes) == self.short_at:
            return len(data) - 1
        return len(data)


class FakeTransport:
    """Stands in for UsbTransport in command tests"""
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sent = None
        FakeTransport.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass

    def write(self, buf, size):
        self.sent = bytes(buf[:size])
        return size


@pytest.fixture
def fake_transport(monkeypatch):
    from nsihtool import main
    FakeTransport.instances = []
    monkeypatch.setattr(main, "UsbTransport", FakeTransport)
    return FakeTransport


@pytest.fixture
def payload_file(tmp_path):
    return write_file(tmp_name(tmp_path, "u-boot", ".bin"), PAYLOAD)
