#!/usr/bin/env python
#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# To use this, install with:
#
#   pip install --editable '.[cli]'
#
# That will create the command "hidkey" in your path.
#
#
import click, sys, asyncio, json

from hidkey.constants import SIMULATOR_PIPE
from hidkey.utils import B2A, to_checksum_address
from hidkey.exceptions import HIDKeyError
from hidkey.transport import find_devices, find_first
from hidkey.wallet import Wallet
from hidkey import __version__

# dict of options that apply to all commands
global global_opts
global_opts = dict()

# Cleanup display (supress traceback) for user-feedback exceptions
_sys_excepthook = sys.excepthook
def my_hook(ty, val, tb):
    if issubclass(ty, (HIDKeyError, RuntimeError)):
        print("FATAL: %s" % val, file=sys.stderr)
    else:
        return _sys_excepthook(ty, val, tb)
sys.excepthook=my_hook

def fail(msg):
    # show message and stop
    click.echo(f"FAILURE: {msg}", err=True)
    sys.exit(1)

def get_key():
    # Pick a device to work with
    if global_opts.get('verbose', False):
        import hidkey.transport as tt
        tt.VERBOSE = True

    key = find_first(timeout=global_opts.get('timeout'),
                        pipename=global_opts.get('pipe') or SIMULATOR_PIPE)
    if key is None:
        fail("No key device found. Is it plugged in?")

    return key

def run(coro):
    # our commands are one-shot: run until that's done
    return asyncio.run(coro)

async def _open_wallet():
    w = Wallet(get_key())
    await w.init()
    return w

def open_wallet():
    return run(_open_wallet())

def parse_digest(hx):
    # 32 bytes as hex, 0x prefix optional
    try:
        rv = bytes.fromhex(hx[2:] if hx[0:2].lower() == '0x' else hx)
    except ValueError:
        fail("Digest must be hex")

    if len(rv) != 32:
        fail("Digest must be exactly 32 bytes (64 hex digits)")

    return rv

# Accept any prefix of a command name.
#
# from <https://click.palletsprojects.com/en/8.0.x/advanced/?#command-aliases>
class AliasedGroup(click.Group):
    def get_command(self, ctx, cmd_name):
        rv = click.Group.get_command(self, ctx, cmd_name)
        if rv is not None:
            return rv
        matches = [x for x in self.list_commands(ctx)
                   if x.startswith(cmd_name)]
        if not matches:
            return None
        elif len(matches) == 1:
            return click.Group.get_command(self, ctx, matches[0])
        ctx.fail(f"Abiguous command. Pick one of: {' | '.join(sorted(matches))}")

    def resolve_command(self, ctx, args):
        # always return the full command name
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name, cmd, args


#
# Options we want for all commands
#
@click.group(cls=AliasedGroup)
@click.option('--verbose', '-v', is_flag=True,
                    help="Show traffic with device.")
@click.option('--timeout', '-t', type=float, default=None, metavar="SECONDS",
                    help="Give up waiting for the device after this long (default: never)")
@click.option('--pipe', '-p', default=SIMULATOR_PIPE, metavar="PATH",
                    help="Unix socket of the emulator, tried before USB devices.")
@click.version_option(version=__version__)
def main(**kws):
    '''
    Interact with an ethereum key device over USB.

    You can use "ls", or "l" for "list": any distinct prefix for all commands.
    '''
    # global options, mostly not considered here
    global global_opts
    global_opts.update(kws)

@main.command('devices')
def list_devices():
    "List all key devices attached (and the emulator, if running)."

    count = 0
    for key in find_devices(pipename=global_opts.get('pipe') or SIMULATOR_PIPE):
        click.echo(repr(key))
        key.close()
        count += 1

    if not count:
        click.echo("(none found)")

@main.command('hello')
def say_hello():
    "Check the device is there and answering."
    key = get_key()
    run(key.hello())
    key.close()

    click.echo("Device answered.")

@main.command('list')
def list_accounts():
    "Show all accounts (key slots) on the device."
    w = open_wallet()

    if not len(w.directory):
        click.echo("(no accounts)")
    else:
        click.echo('SLOT# | ADDRESS')
        click.echo('------+-------------------------------------------')
        for acct in w.directory:
            click.echo('%4d  | %s' % (acct.index, to_checksum_address(acct.address)))

    w.close()

@main.command('create')
@click.argument('slot', type=click.IntRange(min=0, max=254), metavar="SLOT#")
def create_account(slot):
    "Make a new key in a slot, and show its address."
    key = get_key()
    addr = run(key.create_key(slot))
    key.close()

    if not addr:
        fail(f"Device did not create a key in slot {slot}. Already used?")

    click.echo(to_checksum_address(addr))

@main.command('delete')
@click.argument('address')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
def delete_account(address, yes=False):
    "Destroy the key for an address. Cannot be undone."
    w = open_wallet()
    index = w.get_address_index(address)

    if not yes:
        click.confirm(f"Destroy key in slot {index} for {address}?", abort=True)

    run(w.delete_address(address))
    w.close()

    click.echo(f"Deleted slot {index}.")

@main.command('sign')
@click.argument('address')
@click.argument('digest', metavar="DIGEST_HEX")
@click.option('--json', '-j', 'as_json', is_flag=True, help='Output r, s and v as JSON')
def sign_digest(address, digest, as_json=False):
    "Sign a 32-byte digest (hex) with the key for an address."
    md = parse_digest(digest)

    w = open_wallet()
    sig = run(w.sign_digest(address, md))
    w.close()

    if as_json:
        click.echo(json.dumps(dict(r='0x'+B2A(sig.r), s='0x'+B2A(sig.s), v=sig.v)))
    else:
        click.echo(f'r: 0x{B2A(sig.r)}')
        click.echo(f's: 0x{B2A(sig.s)}')
        click.echo(f'v: {sig.v}')
        click.echo(sig.hex())

@main.command('reset')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
def reset_device(yes=False):
    "Reset the device."
    if not yes:
        click.confirm("Really reset the device?", abort=True)

    key = get_key()
    run(key.reset())
    key.close()

    click.echo("Reset done.")

# EOF
