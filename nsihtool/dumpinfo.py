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
Parse and print the Boot Header information of a bootloader image.
"""
import os.path

import click
import yaml

from nsihtool import header
from nsihtool.image import BootImage, IMAGE_ALIGN, align_up

HEADER_ITEMS = ("size", "load_addr", "launch_addr", "boot_method",
                "signature")
_LINE_LENGTH = 60


def print_in_frame(header_text, content):
    sepc = " "
    header = "#### " + header_text + sepc
    post_header = "#" * (_LINE_LENGTH - len(header))
    print(header + post_header)

    print("|", sepc * (_LINE_LENGTH - 2), "|", sep="")
    offset = (_LINE_LENGTH - len(content)) // 2
    pre = "|" + (sepc * (offset - 1))
    post = sepc * (_LINE_LENGTH - len(pre) - len(content) - 1) + "|"
    print(pre, content, post, sep="")
    print("|", sepc * (_LINE_LENGTH - 2), "|", sep="")
    print("#" * _LINE_LENGTH)


def print_in_row(row_text):
    row_text = "#### " + row_text + " "
    fill = "#" * (_LINE_LENGTH - len(row_text))
    print(row_text + fill)


def parse_boot_method(value):
    if value is None:
        return "not supported"
    return "{} ({})".format(header.boot_method_name(value), hex(value))


def parse_size(size, expected_size):
    if size == expected_size:
        return "{} (OK)".format(hex(size))
    return "{} (real: {})".format(hex(size), hex(expected_size))


def read_headerinfo(buf, variant):
    """Collect the raw header fields of buf into a dict."""
    layout = header.HEADER_LAYOUTS[variant]
    info = {
        "variant": variant.name.lower(),
        "size": header.read_u32le(buf, layout.size),
        "load_addr": header.read_u32le(buf, layout.load_addr),
        "launch_addr": header.read_u32le(buf, layout.launch_addr),
        "boot_method": (buf[layout.boot_method]
                        if layout.boot_method is not None else None),
        "signature": bytes(buf[header.SIGNATURE_OFFSET:
                               header.SIGNATURE_OFFSET + 4]).decode(
                                   "ascii", errors="replace"),
    }
    target = header.trampoline_target(buf)
    if target is not None:
        info["arm64_entry"] = target
    return info


def dump_headerinfo(imgfile, variant=header.HeaderVariant.STANDARD,
                    outfile=None, silent=False):
    """Parse a bootloader image and print/save its Boot Header."""
    layout = header.HEADER_LAYOUTS[variant]
    b, _ = BootImage.read(imgfile)

    if len(b) < layout.header_size:
        raise click.UsageError(
            "Image is too short for a {} Boot Header ({} < {} bytes)".format(
                variant.name.lower(), len(b), layout.header_size))

    info = read_headerinfo(b, variant)
    if info["signature"] != header.NSIH_MAGIC.decode("ascii"):
        print("Warning: the Boot Header signature is invalid!")

    # Generating output yaml file
    if outfile is not None:
        with open(outfile, "w") as outf:
            # sort_keys - from pyyaml 5.1
            yaml.dump({"header": info}, outf, sort_keys=False)

    if silent:
        return

    print("Printing Boot Header of image:", os.path.basename(imgfile), "\n")

    print_in_row("Boot Header (offset: 0x0, {})".format(info["variant"]))
    expected_size = align_up(len(b), IMAGE_ALIGN) - layout.header_size
    for key in HEADER_ITEMS:
        value = info[key]
        if key == "size":
            value = parse_size(value, expected_size)
        elif key == "boot_method":
            value = parse_boot_method(value)

        if not isinstance(value, str):
            value = hex(value)
        print(key, ":", " " * (19 - len(key)), value, sep="")
    print("#" * _LINE_LENGTH)

    if "arm64_entry" in info:
        frame_content = "AArch64 switch (entry: {})".format(
            hex(info["arm64_entry"]))
        print_in_frame("Trampoline (offset: 0x0)", frame_content)

    frame_header_text = "Payload (offset: {})".format(hex(layout.header_size))
    frame_content = "Bootloader (size: {} Bytes)".format(hex(expected_size))
    print_in_frame(frame_header_text, frame_content)

    print_in_row("End of Image ")
