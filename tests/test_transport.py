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
import usb.core
import usb.util

from nsihtool import transport
from nsihtool.transport import (
    TransferChunks, TransportError, UsbTransport, MAX_TRANSFER_UNIT, chunk,
    send_image)
from tests.conftest import FakeDevice

MIB = 1024 * 1024


def test_max_transfer_unit():
    assert MAX_TRANSFER_UNIT == MIB


@pytest.mark.parametrize("total, unit, expected", [
    (0, MIB, []),
    (16, MIB, [(0, 16)]),
    (MIB, MIB, [(0, MIB)]),
    (2 * MIB + MIB // 2, MIB, [(0, MIB), (MIB, MIB), (2 * MIB, MIB // 2)]),
    (10, 4, [(0, 4), (4, 4), (8, 2)]),
])
def test_chunks(total, unit, expected):
    chunks = TransferChunks(total, unit)
    assert list(chunks) == expected
    assert len(chunks) == len(expected)
    # Iterating again yields the same sequence
    assert list(chunks) == expected


def test_chunks_invalid_unit():
    with pytest.raises(ValueError):
        TransferChunks(10, 0)


def test_chunk_covers_buffer():
    buf = bytearray(1000)
    chunks = list(chunk(buf, len(buf), 300))
    assert sum(length for _, length in chunks) == len(buf)
    assert chunks[-1] == (900, 100)


def test_write_in_chunks():
    t = UsbTransport(endpoint=0x02, max_unit=4)
    t.dev = FakeDevice()
    buf = bytearray(range(10))

    assert t.write(buf, 10) == 10
    assert [w[0] for w in t.dev.writes] == [0x02] * 3
    assert [w[1] for w in t.dev.writes] == [bytes(range(4)),
                                           bytes(range(4, 8)),
                                           bytes(range(8, 10))]


def test_write_short():
    t = UsbTransport(max_unit=4)
    t.dev = FakeDevice(short_at=1)
    assert t.write(bytearray(10), 10) == 3
    assert len(t.dev.writes) == 1


def test_write_error():
    class FailingDevice:
        def write(self, endpoint, data, timeout=None):
            raise usb.core.USBError("pipe error")

    t = UsbTransport()
    t.dev = FailingDevice()
    with pytest.raises(TransportError, match="bulk transfer"):
        t.write(bytearray(16), 16)


def test_open_no_device(monkeypatch):
    monkeypatch.setattr(usb.core, "find", lambda **kwargs: None)
    with pytest.raises(TransportError, match="failed to open device"):
        with UsbTransport():
            pass


def test_open_and_close(monkeypatch):
    calls = []
    dev = FakeDevice()

    def find(**kwargs):
        calls.append(("find", kwargs))
        return dev

    monkeypatch.setattr(usb.core, "find", find)
    monkeypatch.setattr(usb.util, "claim_interface",
                        lambda d, i: calls.append(("claim", i)))
    monkeypatch.setattr(usb.util, "release_interface",
                        lambda d, i: calls.append(("release", i)))
    monkeypatch.setattr(usb.util, "dispose_resources",
                        lambda d: calls.append(("dispose",)))

    with UsbTransport(vid=0x1234, pid=0x5678, interface=1) as t:
        assert t.dev is dev
        assert t.write(bytearray(32), 32) == 32

    assert t.dev is None
    assert calls == [("find", {"idVendor": 0x1234, "idProduct": 0x5678}),
                     ("claim", 1), ("release", 1), ("dispose",)]


def test_claim_failure(monkeypatch):
    disposed = []

    def claim(d, i):
        raise usb.core.USBError("busy")

    monkeypatch.setattr(usb.core, "find", lambda **kwargs: FakeDevice())
    monkeypatch.setattr(usb.util, "claim_interface", claim)
    monkeypatch.setattr(usb.util, "dispose_resources",
                        lambda d: disposed.append(d))
    with pytest.raises(TransportError, match="claim interface"):
        UsbTransport().open()
    assert len(disposed) == 1


def test_send_image(capsys):
    t = UsbTransport()
    t.dev = FakeDevice()
    assert send_image(t, bytearray(64), 64, verbose=True) == 64
    assert capsys.readouterr().out == \
        "Start transfer, size=64\nFinish transfer, transferred=64\nOK\n"

    assert send_image(t, bytearray(64), 64) == 64
    assert capsys.readouterr().out == ""


def test_send_image_short(capsys):
    t = UsbTransport(max_unit=32)
    t.dev = FakeDevice(short_at=2)
    assert send_image(t, bytearray(64), 64) == 63
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "short load: size=64, transferred=63\n"


def test_default_device():
    t = UsbTransport()
    assert (t.vid, t.pid) == (transport.S5P6818_VID, transport.S5P6818_PID)
    assert t.interface == transport.S5P6818_INTERFACE
    assert t.endpoint == transport.S5P6818_EP_OUT
