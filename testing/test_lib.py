#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Tests. Best w/ a device that has at least one key. Does not modify state of device.
#
# Start the emulator first to run the "device" ones without hardware:
#
#   python emulator/ekey.py emulate
#
import asyncio, pytest
from hidkey.constants import *
from hidkey.compat import keccak256
from hidkey.proto import HIDKey
from hidkey.transport import HIDKeyUnixTransport
from hidkey.utils import recover_address, same_address
from hidkey.wallet import Wallet

def test_unix_transport(emu_socket, emu):
    # reader thread, loop handoff and stream reassembly all working
    tr = HIDKeyUnixTransport(emu_socket)
    assert tr.is_emulator
    key = HIDKey(tr, timeout=10)

    async def doit():
        accts = await key.list_accounts()
        raw = await key.sign(accts[0].index, keccak256(b'x'))
        return accts, raw

    accts, raw = asyncio.run(doit())
    assert [a.index for a in accts] == sorted(emu.slots)
    assert len(raw) == 64

    key.close()
    assert tr.is_closed

def test_unix_wallet(emu_socket):
    w = Wallet(HIDKey(HIDKeyUnixTransport(emu_socket), timeout=10))

    async def doit():
        await w.init()
        addr = w.get_addresses()[-1]
        md = keccak256(b'wallet over socket')
        return addr, md, await w.sign_digest(addr, md)

    addr, md, sig = asyncio.run(doit())
    assert same_address(recover_address(md, sig.r, sig.s, sig.v), addr)
    w.close()

@pytest.mark.device
def test_hello(dev):
    asyncio.run(dev.hello())

@pytest.mark.device
def test_accounts(dev):
    accts = asyncio.run(dev.list_accounts())
    if not accts:
        raise pytest.skip("device has no keys")

    seen = set()
    for a in accts:
        assert 0 <= a.index <= MAX_INDEX
        assert a.index not in seen
        seen.add(a.index)
        assert a.address.startswith('0x') and len(a.address) == 42

@pytest.mark.device
def test_sign_digest(dev):
    w = Wallet(dev)
    asyncio.run(w.init())
    if not w.get_addresses():
        raise pytest.skip("device has no keys")

    for n in range(4):
        md = keccak256(b'test %d' % n)
        addr = w.get_addresses()[0]
        sig = asyncio.run(w.sign_digest(addr, md))

        assert int.from_bytes(sig.s, 'big') <= SECP256K1_HALF_N
        assert same_address(recover_address(md, sig.r, sig.s, sig.v), addr)

# EOF
