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

"""
USB download of a boot image to a SoC waiting in iROMBOOT USB mode.
"""

import sys

import usb.core
import usb.util

S5P6818_VID = 0x04e8
S5P6818_PID = 0x1234
S5P6818_INTERFACE = 0
S5P6818_EP_OUT = 0x02

# Larger bulk transfers are refused by some host controllers.
MAX_TRANSFER_UNIT = 1024 * 1024


class TransportError(Exception):
    pass


class TransferChunks():
    """(offset, length) pairs covering total_size bytes in max_unit pieces.

    Can be iterated any number of times.
    """

    def __init__(self, total_size, max_unit=MAX_TRANSFER_UNIT):
        if max_unit <= 0:
            raise ValueError("Transfer unit must be positive, got {}"
                             .format(max_unit))
        self.total_size = max(total_size, 0)
        self.max_unit = max_unit

    def __len__(self):
        return (self.total_size + self.max_unit - 1) // self.max_unit

    def __iter__(self):
        for offset in range(0, self.total_size, self.max_unit):
            yield offset, min(self.max_unit, self.total_size - offset)


def chunk(buf, total_size, max_unit=MAX_TRANSFER_UNIT):
    assert total_size <= len(buf)
    return TransferChunks(total_size, max_unit)


class UsbTransport():
    def __init__(self, vid=S5P6818_VID, pid=S5P6818_PID,
                 interface=S5P6818_INTERFACE, endpoint=S5P6818_EP_OUT,
                 timeout=0, max_unit=MAX_TRANSFER_UNIT):
        self.vid = vid
        self.pid = pid
        self.interface = interface
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_unit = max_unit
        self.dev = None

    def __repr__(self):
        return "<UsbTransport vid=0x{:04x}, pid=0x{:04x}, interface={}, \
                endpoint=0x{:02x}>".format(self.vid, self.pid,
                                           self.interface, self.endpoint)

    def open(self):
        try:
            dev = usb.core.find(idVendor=self.vid, idProduct=self.pid)
        except usb.core.NoBackendError as e:
            raise TransportError("no USB backend available: {}".format(e))
        if dev is None:
            raise TransportError("failed to open device")
        try:
            usb.util.claim_interface(dev, self.interface)
        except usb.core.USBError as e:
            usb.util.dispose_resources(dev)
            raise TransportError("claim interface: {}".format(e))
        self.dev = dev

    def close(self):
        if self.dev is None:
            return
        try:
            usb.util.release_interface(self.dev, self.interface)
        finally:
            usb.util.dispose_resources(self.dev)
            self.dev = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()

    def write(self, buf, size):
        """Send the first size bytes of buf, return how many were accepted."""
        transferred = 0
        view = memoryview(buf)
        for offset, length in chunk(buf, size, self.max_unit):
            try:
                n = self.dev.write(self.endpoint, view[offset:offset + length],
                                   self.timeout)
            except usb.core.USBError as e:
                raise TransportError("bulk transfer: {}".format(e))
            transferred += n
            if n < length:
                break
        return transferred


def send_image(transport, buf, size, verbose=False):
    """Transfer the image through an opened transport.

    A short transfer is reported but does not count as a failure, the ROM
    may already have started the image.
    """
    if verbose:
        print("Start transfer, size={}".format(size))
    transferred = transport.write(buf, size)
    if verbose:
        print("Finish transfer, transferred={}".format(transferred))
    if transferred == size:
        if verbose:
            print("OK")
    else:
        print("short load: size={}, transferred={}".format(size, transferred),
              file=sys.stderr)
    return transferred
