#!/usr/bin/env python3
#
# (c) Copyright 2021 by Coinkite Inc. All rights reserved.
#
# Emulate the USB key device, over a unix socket, one 64-byte packet at a time.
#
import os, sys, click, random, traceback
from binascii import b2a_hex
from dataclasses import dataclass

from coincurve import PrivateKey
from Crypto.Hash import keccak

# show bytes as hex in a string
B2A = lambda x: b2a_hex(x).decode('ascii')

# Print more?
DEBUG = True

# Be a typical device and give high s values half the time?
HIGH_S = True

# Design parameters: must match hidkey/constants.py
PACKET_SIZE = 64
CMD_HELLO, CMD_RESET, CMD_CREATE_KEY, CMD_DUMP_KEYS, CMD_DELETE, CMD_SIGN = range(6)
RES_KEY_CREATED = 0x01
RES_DUMP_KEYS = 0x02
RES_SIGN = 0x03
RES_DONE = 0xFF
DUMP_END = 0xFF
SECP256K1_N = 0xfffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141

# (index, address) pairs that fit in one DUMP_KEYS response
MAX_PER_DUMP = (PACKET_SIZE - 1) // 21

def prandom(count):
    # make some bytes, randomly, but not: fully deterministic
    return bytes(random.randint(0, 255) for i in range(count))

def pick_privkey():
    # Choose a private key. Verify it's in range. Fully random, except using PRNG
    for retry in range(3):
        priv = prandom(32)
        if 0 < int.from_bytes(priv, 'big') < SECP256K1_N:
            return priv
        print(f'bad luck: {B2A(priv)}')
    else:
        raise ValueError("stuck RNG")

def packet(code, body=b''):
    assert len(body) < PACKET_SIZE
    return (bytes([code]) + body).ljust(PACKET_SIZE, b'\0')

@dataclass
class KeySlot:
    '''
        Info we store for each key slot
    '''
    privkey: bytes

    @property
    def address(self):
        pub = PrivateKey(self.privkey).public_key.format(compressed=False)
        return keccak.new(digest_bits=256, data=pub[1:]).digest()[-20:]

class KeyState:
    '''
        Whole-device state
    '''
    def __init__(self, high_s=None):
        self.slots = {}
        self.high_s = HIGH_S if high_s is None else high_s

    def __repr__(self):
        return f'<KEY: {len(self.slots)} slots used>'

    def handle(self, msg):
        # one request packet in, list of response packets out (always ending w/ DONE)
        assert len(msg) == PACKET_SIZE, 'bad packet size'
        cmd = msg[0]

        method = {
            CMD_HELLO: self.cmd_hello,
            CMD_RESET: self.cmd_reset,
            CMD_CREATE_KEY: self.cmd_create_key,
            CMD_DUMP_KEYS: self.cmd_dump_keys,
            CMD_DELETE: self.cmd_delete,
            CMD_SIGN: self.cmd_sign,
        }.get(cmd)

        # unknown commands just get DONE, as do failures
        resp = method(msg[1:]) if method else []

        return resp + [packet(RES_DONE)]

    # 
    # Commands. Arguments are the packet without the command byte.
    #

    def cmd_hello(self, args):
        return []

    def cmd_reset(self, args):
        self.slots.clear()
        return []

    def cmd_create_key(self, args):
        index = args[0]
        if index in self.slots or index == DUMP_END:
            # declined: no address
            return []

        self.slots[index] = KeySlot(pick_privkey())
        return [packet(RES_KEY_CREATED, self.slots[index].address)]

    def cmd_dump_keys(self, args):
        rv = []
        entries = sorted(self.slots.items())
        for pos in range(0, len(entries), MAX_PER_DUMP):
            body = b''.join(bytes([idx]) + slot.address
                                for idx, slot in entries[pos:pos+MAX_PER_DUMP])
            if len(body) < PACKET_SIZE - 1:
                body += bytes([DUMP_END])
            rv.append(packet(RES_DUMP_KEYS, body))

        return rv

    def cmd_delete(self, args):
        self.slots.pop(args[0], None)
        return []

    def cmd_sign(self, args):
        index = args[0]
        digest = args[1:33]

        if index not in self.slots:
            return []

        sig = PrivateKey(self.slots[index].privkey).sign_recoverable(digest, hasher=None)
        r, s = sig[0:32], int.from_bytes(sig[32:64], 'big')

        if self.high_s and random.randint(0, 1):
            # the other valid s value; device doesn't care about EIP-2
            s = SECP256K1_N - s

        return [packet(RES_SIGN, r), packet(RES_SIGN, s.to_bytes(32, 'big'))]

    def emulate(self, pipename):
        # Using a unix socket as connector, run as an emulator for the device.
        import atexit, socket

        # manage unix socket cleanup for client
        def sock_cleanup():
            if os.path.exists(pipename):
                os.unlink(pipename)
        sock_cleanup()
        atexit.register(sock_cleanup)

        pipe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

        pipe.bind(pipename)
        pipe.listen()
        while 1:
            print(f"Waiting for new connection on: {pipename}")
            con, addr = pipe.accept()

            print(f"Connected.")

            buf = b''
            while 1:
                got = con.recv(PACKET_SIZE - len(buf))
                if not got: break

                buf += got
                if len(buf) < PACKET_SIZE:
                    continue
                msg, buf = buf, b''

                try:
                    resp = self.handle(msg)
                except Exception as exc:
                    # shouldn't happen
                    print(f"FAILED: Command {B2A(msg[0:1])} => {exc}")
                    traceback.print_exc()
                    resp = [packet(RES_DONE)]

                if DEBUG:
                    print(f"Command 0x{msg[0]:02x} ({B2A(msg[1:].rstrip(bytes(1)))}) => "
                            + ', '.join('0x%02x' % r[0] for r in resp))

                for r in resp:
                    con.sendall(r)

            con.close()

# Options we want for all commands
@click.group()
@click.option('--quiet', '-q', is_flag=True, help='Less debugging')
@click.option('--rng-seed', '-r', type=int, default=42, help='Seed value for (not) RNG', metavar="integer")
def main(rng_seed, quiet=False):
    global DEBUG
    DEBUG = not quiet

    random.seed(rng_seed)

@main.command('emulate')
@click.option('--keys', '-k', type=int, default=2, help='Number of keys to create at start')
@click.option('--low-s', '-l', is_flag=True, help='Always give low s values (EIP-2)')
@click.option('--pipe', '-p', type=str, default='/tmp/ekey-pipe', help='Unix pipe for comms', metavar="PATH")
def emulate_key(pipe, keys=2, low_s=False):
    '''
        Emulate a key device with a few keys already made.
    '''
    dev = KeyState(high_s=not low_s)

    for n in range(keys):
        dev.cmd_create_key(bytes([n]))
        print(f"  slot {n}: 0x{B2A(dev.slots[n].address)}")

    print(dev)

    dev.emulate(pipe)

if __name__ == '__main__':
    main()

# EOF
