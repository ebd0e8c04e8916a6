#! /usr/bin/env python3
#
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

import sys

import click

from nsihtool import header, nsihtool_version
from nsihtool.dumpinfo import dump_headerinfo
from nsihtool.image import BootImage, STDIO_PATH
from nsihtool.transport import (
    UsbTransport, TransportError, send_image, S5P6818_VID, S5P6818_PID,
    S5P6818_INTERFACE, S5P6818_EP_OUT)

MIN_PYTHON_VERSION = (3, 6)
if sys.version_info < MIN_PYTHON_VERSION:
    sys.exit("Python %s.%s or newer is required by nsihtool."
             % MIN_PYTHON_VERSION)

valid_boot_methods = [name.lower() for name in header.BOOT_METHODS]


class HexIntParamType(click.ParamType):
    """32-bit value given in hexadecimal, with or without the 0x prefix"""
    name = 'hex'

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            result = int(value, 16)
        except ValueError:
            self.fail('%s is not a valid hexadecimal number' % value,
                      param, ctx)
        if not 0 <= result <= 0xffffffff:
            self.fail('%s does not fit in 32 bits' % value, param, ctx)
        return result


class BootMethodParamType(click.ParamType):
    name = 'method'

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            result = value
        elif value.upper() in header.BOOT_METHODS:
            return header.BOOT_METHODS[value.upper()]
        else:
            try:
                result = int(value, 0)
            except ValueError:
                self.fail('%s is not a valid boot method. Use one of: %s, '
                          'or a number' % (value, ', '.join(valid_boot_methods)),
                          param, ctx)
        if not 0 <= result <= 0xff:
            self.fail('boot method %s does not fit in a byte' % value,
                      param, ctx)
        return result


def get_variant(artik):
    return header.HeaderVariant.ARTIK if artik else header.HeaderVariant.STANDARD


def describe_header(img):
    return "{} Boot Header: load=0x{:x}, launch=0x{:x} size={}{}".format(
        "Embedded" if img.in_place else "Added", img.load_addr,
        img.launch_addr, img.payload_size, " 64-bit" if img.inject64 else "")


@click.argument('startaddr', required=False, type=HexIntParamType())
@click.argument('loadaddr', required=False, type=HexIntParamType())
@click.argument('infile')
@click.option('--endpoint', type=HexIntParamType(), default=hex(S5P6818_EP_OUT),
              show_default=True, help='Bulk OUT endpoint')
@click.option('--interface', type=int, default=S5P6818_INTERFACE,
              show_default=True, help='USB interface to claim')
@click.option('--pid', type=HexIntParamType(), default=hex(S5P6818_PID),
              show_default=True, help='USB product id of the device')
@click.option('--vid', type=HexIntParamType(), default=hex(S5P6818_VID),
              show_default=True, help='USB vendor id of the device')
@click.option('-b', '--boot-method', type=BootMethodParamType(),
              help='Set the boot method byte of a standard Boot Header. '
                   'One of: {}, or a number'.format(
                       ', '.join(valid_boot_methods)))
@click.option('-x', '--arm64', default=False, is_flag=True,
              help='Add code for iROMBOOT to the Boot Header that switches '
                   'to 64-bit')
@click.option('-v', '--verbose', default=False, is_flag=True,
              help='Be verbose')
@click.option('-i', '--in-place', default=False, is_flag=True,
              help='Embed the Boot Header in the first bytes read')
@click.option('-f', '--fix-size', default=False, is_flag=True,
              help='Fix the load size in the Boot Header')
@click.option('-c', '--dry-run', default=False, is_flag=True,
              help='Prepare the image but do not send it (implies -v)')
@click.option('-A', '--artik', default=False, is_flag=True,
              help='Boot Header format for Samsung ARTIK boot loader')
@click.command(help='''Send a bootloader to a device in USB boot mode\n
               If LOADADDR is specified, the image is prepended with a Boot
               Header (512 bytes, 1024 with -A). If STARTADDR is not
               specified, LOADADDR + header size is assumed. Addresses are
               hexadecimal. Without LOADADDR the Boot Header present in the
               image is checked. INFILE "-" reads stdin.''')
def load(infile, loadaddr, startaddr, artik, dry_run, fix_size, in_place,
         verbose, arm64, boot_method, vid, pid, interface, endpoint):
    if dry_run:
        verbose = True
    img = BootImage(variant=get_variant(artik), load_addr=loadaddr,
                    launch_addr=startaddr, in_place=in_place,
                    inject64=arm64, boot_method=boot_method)
    img.load(infile)
    if loadaddr is not None:
        img.create()
        if verbose:
            print(describe_header(img))
    elif not img.check(fix_size=fix_size, verbose=verbose).ok:
        sys.exit(1)

    if dry_run:
        return
    try:
        with UsbTransport(vid=vid, pid=pid, interface=interface,
                          endpoint=endpoint) as transport:
            send_image(transport, img.buf, img.size, verbose=verbose)
    except TransportError as e:
        raise click.ClickException(str(e))


@click.argument('outfile')
@click.argument('infile')
@click.option('--hex-addr', type=HexIntParamType(), required=False,
              help='Adjust address in hex output file (defaults to the load '
                   'address).')
@click.option('-b', '--boot-method', type=BootMethodParamType(),
              help='Set the boot method byte of a standard Boot Header. '
                   'One of: {}, or a number'.format(
                       ', '.join(valid_boot_methods)))
@click.option('-x', '--arm64', default=False, is_flag=True,
              help='Add code for iROMBOOT to the Boot Header that switches '
                   'to 64-bit')
@click.option('-v', '--verbose', default=False, is_flag=True,
              help='Print the created Boot Header')
@click.option('-i', '--in-place', default=False, is_flag=True,
              help='Embed the Boot Header in the first bytes of INFILE')
@click.option('-l', '--launch-addr', type=HexIntParamType(), required=False,
              help='Launch address (defaults to load address + header size)')
@click.option('-L', '--load-addr', type=HexIntParamType(), required=True,
              help='Load address of the image')
@click.option('-A', '--artik', default=False, is_flag=True,
              help='Boot Header format for Samsung ARTIK boot loader')
@click.command(help='''Create a bootloader image with a Boot Header\n
               INFILE and OUTFILE are parsed as Intel HEX if the params have
               .hex extension, otherwise binary format is used. "-" stands
               for stdin/stdout.''')
def create(infile, outfile, artik, load_addr, launch_addr, in_place, verbose,
           arm64, boot_method, hex_addr):
    img = BootImage(variant=get_variant(artik), load_addr=load_addr,
                    launch_addr=launch_addr, in_place=in_place,
                    inject64=arm64, boot_method=boot_method)
    img.load(infile)
    img.create()
    img.save(outfile, hex_addr)
    if verbose:
        click.echo(describe_header(img), err=outfile == STDIO_PATH)


@click.argument('imgfile')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save the checked image, including changes made by -f '
                   'and -b, to outfile')
@click.option('-b', '--boot-method', type=BootMethodParamType(),
              help='Set the boot method byte of a standard Boot Header. '
                   'One of: {}, or a number'.format(
                       ', '.join(valid_boot_methods)))
@click.option('-f', '--fix-size', default=False, is_flag=True,
              help='Fix the load size in the Boot Header')
@click.option('-A', '--artik', default=False, is_flag=True,
              help='Boot Header format for Samsung ARTIK boot loader')
@click.command(help="Check the Boot Header of a bootloader image")
def verify(imgfile, artik, fix_size, boot_method, outfile):
    img = BootImage(variant=get_variant(artik), boot_method=boot_method)
    img.load(imgfile)
    ret = img.check(fix_size=fix_size, verbose=True)
    if ret.error in (None, header.HeaderError.UNSUPPORTED_BOOT_METHOD):
        print("Boot Header was correctly validated")
        if outfile is not None:
            img.save(outfile)
        elif fix_size or boot_method is not None:
            print("warning: changes are not saved without --outfile")
        return
    elif ret.error == header.HeaderError.TOO_SHORT:
        print("Image is shorter than a Boot Header")
    elif ret.error == header.HeaderError.BAD_SIGNATURE:
        print("Invalid Boot Header signature; is this an NSIH image?")
    else:
        print("Unknown return code: {}".format(ret.error))
    sys.exit(1)


@click.argument('imgfile')
@click.option('-o', '--outfile', metavar='filename', required=False,
              help='Save Boot Header information to outfile in YAML format')
@click.option('-s', '--silent', default=False, is_flag=True,
              help='Do not print Boot Header information to output')
@click.option('-A', '--artik', default=False, is_flag=True,
              help='Boot Header format for Samsung ARTIK boot loader')
@click.command(help='Print Boot Header information of a bootloader image')
def dumpinfo(imgfile, artik, outfile, silent):
    dump_headerinfo(imgfile, get_variant(artik), outfile, silent)
    if not silent:
        print("dumpinfo has run successfully")


class AliasesGroup(click.Group):

    _aliases = {
        "embed": "create",
    }

    def list_commands(self, ctx):
        cmds = [k for k in self.commands]
        aliases = [k for k in self._aliases]
        return sorted(cmds + aliases)

    def get_command(self, ctx, cmd_name):
        rv = click.Group.get_command(self, ctx, cmd_name)
        if rv is not None:
            return rv
        if cmd_name in self._aliases:
            return click.Group.get_command(self, ctx, self._aliases[cmd_name])
        return None


@click.command(help='Print nsihtool version information')
def version():
    print(nsihtool_version)


@click.command(cls=AliasesGroup,
               context_settings=dict(help_option_names=['-h', '--help']))
def nsihtool():
    pass


nsihtool.add_command(load)
nsihtool.add_command(create)
nsihtool.add_command(verify)
nsihtool.add_command(dumpinfo)
nsihtool.add_command(version)


if __name__ == '__main__':
    nsihtool()
