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
Boot image assembly: reading a bootloader, adding or checking its Boot Header
and writing the result.
"""

import os.path
import sys

import click
from intelhex import IntelHex

from .header import HeaderVariant, HEADER_LAYOUTS, encode, validate

BIN_EXT = "bin"
INTEL_HEX_EXT = "hex"
STDIO_PATH = "-"
MAX_IMAGE_SIZE = 10 * 1024 * 1024
IMAGE_ALIGN = 16


def align_up(num, align):
    assert (align & (align - 1) == 0) and align != 0
    return (num + (align - 1)) & ~(align - 1)


class BootImage:

    def __init__(self, variant=HeaderVariant.STANDARD, load_addr=None,
                 launch_addr=None, in_place=False, inject64=False,
                 boot_method=None):
        self.variant = variant
        self.layout = HEADER_LAYOUTS[variant]
        self.load_addr = load_addr
        self.launch_addr = launch_addr
        self.in_place = in_place
        self.inject64 = inject64
        self.boot_method = boot_method
        self.base_addr = None
        self.buf = bytearray()
        # A header region is only reserved when a header is going to be
        # written; a bare image is expected to carry its own.
        self.offset = self.layout.header_size if load_addr is not None else 0

    def __repr__(self):
        return "<BootImage variant={}, load_addr={}, launch_addr={}, \
                in_place={}, inject64={}, boot_method={}, \
                size=0x{:x}>".format(
                    self.variant.name,
                    hex(self.load_addr) if self.load_addr is not None
                    else "N/A",
                    hex(self.launch_addr) if self.launch_addr is not None
                    else "N/A",
                    self.in_place,
                    self.inject64,
                    self.boot_method,
                    len(self.buf))

    @property
    def size(self):
        """Number of bytes to be sent to the device"""
        return len(self.buf)

    @property
    def payload_size(self):
        return len(self.buf) - self.offset

    @staticmethod
    def read(path):
        """Read the raw content of a bin or Intel HEX file, or stdin.

        Returns a (data, base_addr) tuple, base_addr is None unless the input
        carries addresses.
        """
        if path == STDIO_PATH:
            return sys.stdin.buffer.read(), None
        ext = os.path.splitext(path)[1][1:].lower()
        try:
            if ext == INTEL_HEX_EXT:
                ih = IntelHex(path)
                return bytes(ih.tobinarray()), ih.minaddr()
            with open(path, 'rb') as f:
                return f.read(), None
        except FileNotFoundError:
            raise click.UsageError("Input file not found ({})".format(path))

    def load(self, path):
        """Load a bootloader image from a given file"""
        data, self.base_addr = self.read(path)
        room = MAX_IMAGE_SIZE if self.in_place else MAX_IMAGE_SIZE - self.offset
        if len(data) > room:
            raise click.UsageError("Input file too large ({} bytes, maximum "
                                   "is {})".format(len(data), room))

        # The ROM loads whole 16 byte blocks.
        padding = bytes(align_up(len(data), IMAGE_ALIGN) - len(data))
        if self.in_place:
            if len(data) + len(padding) < self.offset:
                raise click.UsageError("Input file too short")
            self.buf = bytearray(data) + padding
        else:
            if self.base_addr is not None:
                # Adjust base_addr for new header
                self.base_addr -= self.offset
            self.buf = bytearray(self.offset) + data + padding

    def create(self):
        """Write the Boot Header in front of the loaded payload"""
        if self.load_addr is None:
            raise click.UsageError("Load address is required to create a "
                                   "Boot Header")
        if self.launch_addr is None:
            self.launch_addr = (self.load_addr + self.offset) & 0xffffffff
        encode(self.buf, self.variant, self.inject64, self.payload_size,
               self.load_addr, self.launch_addr, self.boot_method)

    def check(self, fix_size=False, verbose=False):
        """Validate the Boot Header already present in the image"""
        return validate(self.buf, self.size, self.variant, fix_size=fix_size,
                        boot_method=self.boot_method, verbose=verbose)

    def save(self, path, hex_addr=None):
        """Save the image to a given file"""
        if path == STDIO_PATH:
            out = sys.stdout.buffer
            out.write(self.buf)
            out.flush()
            return
        ext = os.path.splitext(path)[1][1:].lower()
        if ext == INTEL_HEX_EXT:
            if hex_addr is None:
                hex_addr = (self.base_addr if self.base_addr is not None
                            else self.load_addr)
            if hex_addr is None:
                raise click.UsageError("No address exists in input file "
                                       "neither was it provided by user")
            h = IntelHex()
            h.frombytes(bytes=bytes(self.buf), offset=hex_addr)
            h.tofile(path, 'hex')
        else:
            with open(path, 'wb') as f:
                f.write(self.buf)
