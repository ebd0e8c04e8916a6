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
NSIH Boot Header encoding and validation.

The Boot Header is a fixed-size region in front of a bootloader image which
the SoC's first-stage ROM (iROMBOOT) parses before loading the payload.  Two
layouts exist: the standard 512 byte one and the 1024 byte one used by the
Samsung ARTIK boot loader.
"""

import struct
from collections import namedtuple
from enum import Enum

NSIH_MAGIC = b'NSIH'
SIGNATURE_OFFSET = 0x1fc

HeaderVariant = Enum('HeaderVariant', ['STANDARD', 'ARTIK'])

HeaderLayout = namedtuple('HeaderLayout', ['size', 'load_addr', 'launch_addr',
                                           'boot_method', 'header_size'])

HEADER_LAYOUTS = {
        HeaderVariant.STANDARD: HeaderLayout(size=0x44,
                                             load_addr=0x48,
                                             launch_addr=0x4c,
                                             boot_method=0x57,
                                             header_size=512),
        HeaderVariant.ARTIK:    HeaderLayout(size=0x50,
                                             load_addr=0x58,
                                             launch_addr=0x60,
                                             boot_method=None,
                                             header_size=1024),
}

BOOT_METHODS = {
        'USB':   0,
        'SPI':   1,
        'NAND':  2,
        'SDMMC': 3,
        'SDFS':  4,
}

BOOT_METHOD_NAMES = {v: k for k, v in BOOT_METHODS.items()}

# iROMBOOT code switching the core to AArch64: sets the reset vector
# (RVBARADDR) to the word following the code and requests a warm reset.
TRAMPOLINE_CODE = (
        0xe59f0030,     # ldr r0, =0xc0011000
        0xe590113c,     # ldr r1, [r0, #0x13c]
        0xe3811a0f,     # orr r1, r1, #0xf000
        0xe580113c,     # str r1, [r0, #0x13c]
        0xe59f1024,     # ldr r1, =launch_addr >> 2
        0xe5801140,     # str r1, [r0, #0x140]
        0xe5101d54,     # ldr r1, [r0, #-0xd54]
        0xe3811001,     # orr r1, r1, #1
        0xe5001d54,     # str r1, [r0, #-0xd54]
        0xe5901138,     # ldr r1, [r0, #0x138]
        0xe381160f,     # orr r1, r1, #0xf00000
        0xe5801138,     # str r1, [r0, #0x138]
        0xe320f003,     # wfi
        0xeafffffe,     # b .
        0xc0011000,
)
TRAMPOLINE_TARGET_OFFSET = 4 * len(TRAMPOLINE_CODE)
TRAMPOLINE_SIZE = TRAMPOLINE_TARGET_OFFSET + 4

HeaderError = Enum('HeaderError',
                   ['TOO_SHORT', 'BAD_SIGNATURE', 'UNSUPPORTED_BOOT_METHOD'])

HeaderReport = namedtuple('HeaderReport', ['variant', 'size', 'expected_size',
                                           'size_ok', 'size_fixed',
                                           'load_addr', 'launch_addr',
                                           'boot_method', 'boot_method_name',
                                           'signature_ok',
                                           'trampoline_target'])

HeaderCheck = namedtuple('HeaderCheck', ['ok', 'error', 'report'])


def write_u32le(buf, offset, value):
    struct.pack_into('<I', buf, offset, value & 0xffffffff)


def read_u32le(buf, offset):
    return struct.unpack_from('<I', buf, offset)[0]


def boot_method_name(value):
    return BOOT_METHOD_NAMES.get(value, "unknown")


def inject_trampoline(buf, load_addr, launch_addr):
    """Write the 64-bit switch code at the start of buf.

    The real entry point is stored inside the code, the CPU enters the
    trampoline itself, so the returned value (the load address) is what
    belongs in the header's launch address field.
    """
    for i, word in enumerate(TRAMPOLINE_CODE):
        write_u32le(buf, 4 * i, word)
    write_u32le(buf, TRAMPOLINE_TARGET_OFFSET, launch_addr >> 2)
    return load_addr


def has_trampoline(buf):
    if len(buf) < TRAMPOLINE_SIZE:
        return False
    return all(read_u32le(buf, 4 * i) == word
               for i, word in enumerate(TRAMPOLINE_CODE))


def trampoline_target(buf):
    """Return the entry point encoded in an injected trampoline, or None."""
    if not has_trampoline(buf):
        return None
    return (read_u32le(buf, TRAMPOLINE_TARGET_OFFSET) << 2) & 0xffffffff


def set_boot_method(buf, variant, boot_method):
    """Store boot_method in the header, if the variant has room for it.

    Returns None on success or HeaderError.UNSUPPORTED_BOOT_METHOD, in which
    case the buffer is left unchanged.
    """
    offset = HEADER_LAYOUTS[variant].boot_method
    if offset is None:
        print("warning: boot method is not supported by {} Boot Header, "
              "ignored".format(variant.name.lower()))
        return HeaderError.UNSUPPORTED_BOOT_METHOD
    buf[offset] = boot_method & 0xff
    return None


def encode(buf, variant, inject64, size, load_addr, launch_addr,
           boot_method=None):
    """Write a complete Boot Header into buf."""
    layout = HEADER_LAYOUTS[variant]
    assert len(buf) >= layout.header_size

    if inject64:
        launch_addr = inject_trampoline(buf, load_addr, launch_addr)
    write_u32le(buf, layout.size, size)
    write_u32le(buf, layout.load_addr, load_addr)
    write_u32le(buf, layout.launch_addr, launch_addr)
    if boot_method is not None and boot_method >= 0:
        set_boot_method(buf, variant, boot_method)
    buf[SIGNATURE_OFFSET:SIGNATURE_OFFSET + len(NSIH_MAGIC)] = NSIH_MAGIC


def format_report(report):
    lines = ["Boot Header:"]
    size = "  size:           {} ".format(report.size)
    if report.size_ok:
        size += "(OK)"
    else:
        size += "(real: {}{})".format(report.expected_size,
                                      ", fixed" if report.size_fixed else "")
    lines.append(size)
    lines.append("  load address:   0x{:x}".format(report.load_addr))
    lines.append("  launch address: 0x{:x}".format(report.launch_addr))
    if report.trampoline_target is not None:
        lines.append("  64-bit entry:   0x{:x}".format(
            report.trampoline_target))
    if report.boot_method is not None:
        lines.append("  boot method:    {} ({})".format(
            report.boot_method_name, report.boot_method))
    lines.append("  signature:      {}".format(
        "OK" if report.signature_ok else "BAD"))
    return "\n".join(lines)


def read_report(buf, read_size, variant, size_fixed=False, size=None):
    """Build a HeaderReport from a buffer holding a signed header."""
    layout = HEADER_LAYOUTS[variant]
    expected_size = read_size - layout.header_size
    if size is None:
        size = read_u32le(buf, layout.size)
    if layout.boot_method is not None:
        boot_method = buf[layout.boot_method]
    else:
        boot_method = None
    return HeaderReport(
            variant=variant,
            size=size,
            expected_size=expected_size,
            size_ok=size == expected_size,
            size_fixed=size_fixed,
            load_addr=read_u32le(buf, layout.load_addr),
            launch_addr=read_u32le(buf, layout.launch_addr),
            boot_method=boot_method,
            boot_method_name=(boot_method_name(boot_method)
                              if boot_method is not None else None),
            signature_ok=(buf[SIGNATURE_OFFSET:SIGNATURE_OFFSET + 4] ==
                          NSIH_MAGIC),
            trampoline_target=trampoline_target(buf))


def validate(buf, read_size, variant, fix_size=False, boot_method=None,
             verbose=False):
    """Check the Boot Header found at the start of buf.

    read_size is the number of valid bytes in buf.  A too short region or a
    missing signature is an error when the size field has to be fixed and a
    warning otherwise; a wrong size field alone is only reported.
    """
    layout = HEADER_LAYOUTS[variant]
    severity = "error" if fix_size else "warning"

    if read_size < layout.header_size or len(buf) < layout.header_size:
        print("{}: read data size ({}) is less than boot header size"
              .format(severity, read_size))
        return HeaderCheck(not fix_size, HeaderError.TOO_SHORT, None)

    if buf[SIGNATURE_OFFSET:SIGNATURE_OFFSET + 4] != NSIH_MAGIC:
        print("{}: bad signature in header".format(severity))
        return HeaderCheck(not fix_size, HeaderError.BAD_SIGNATURE, None)

    error = None
    size = read_u32le(buf, layout.size)
    if fix_size:
        write_u32le(buf, layout.size, read_size - layout.header_size)
    if boot_method is not None and boot_method >= 0:
        error = set_boot_method(buf, variant, boot_method)

    report = read_report(buf, read_size, variant, size_fixed=fix_size,
                         size=size)
    if verbose:
        print(format_report(report))
    elif not fix_size and not report.size_ok:
        print("warning: wrong load size in header: {}, real: {}".format(
            report.size, report.expected_size))
    return HeaderCheck(True, error, report)
