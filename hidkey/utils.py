# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
import re
from binascii import b2a_hex
from collections import namedtuple
from .constants import *
from .compat import keccak256, CT_sig_to_pubkey
from .exceptions import SigningIntegrityError

# show bytes as hex in a string
B2A = lambda x: b2a_hex(x).decode('ascii')

# one key slot on the device
Account = namedtuple('Account', 'index address')

class Signature(namedtuple('Signature', 'r s v')):
    # r and s are 32 bytes each, v is 27 or 28

    def to_bytes(self):
        return self.r + self.s + bytes([self.v])

    def hex(self):
        return '0x' + B2A(self.to_bytes())

def check_index(index):
    # slot numbers are one byte, and 0xff is reserved as end marker
    if not isinstance(index, int) or not (0 <= index <= MAX_INDEX):
        raise ValueError(f"Slot index must be 0..{MAX_INDEX}, got: {index!r}")
    return index

def build_packet(cmd, index=None, payload=b''):
    # Make a zero-filled HID packet: command code, optional slot index, then payload.
    hdr = bytes([cmd]) if index is None else bytes([cmd, check_index(index)])
    assert len(hdr) + len(payload) <= HID_PACKET_SIZE, 'payload too big'

    return (hdr + bytes(payload)).ljust(HID_PACKET_SIZE, b'\0')

def render_address(raw):
    # 20 bytes into the usual text form, lowercase
    assert len(raw) == ETH_ADDRESS_SIZE
    return '0x' + B2A(raw)

def parse_address(addr):
    # text address (any case, 0x prefix optional) into 20 bytes
    # - checksum case is not enforced, we compare case-insensitively everywhere
    if not isinstance(addr, str) or not re.fullmatch(r'(0x|0X)?[0-9a-fA-F]{40}', addr):
        raise ValueError(f"Not an ethereum address: {addr!r}")
    if addr[0:2] in ('0x', '0X'):
        addr = addr[2:]
    return bytes.fromhex(addr)

def same_address(a, b):
    return parse_address(a) == parse_address(b)

def to_checksum_address(addr):
    # EIP-55 mixed case rendering
    hx = B2A(parse_address(addr))
    md = B2A(keccak256(hx.encode('ascii')))

    return '0x' + ''.join(ch.upper() if int(m, 16) >= 8 else ch for ch, m in zip(hx, md))

def pubkey_to_address(pubkey):
    # keccak of the 64 bytes of X and Y, keep the last 20 bytes
    assert len(pubkey) == 65 and pubkey[0] == 4, 'need uncompressed pubkey'
    return render_address(keccak256(pubkey[1:])[-ETH_ADDRESS_SIZE:])

def parse_key_created(payload):
    # KEY_CREATED: address right after the response code
    return render_address(payload[0:ETH_ADDRESS_SIZE])

def parse_dump_keys(payload):
    # One DUMP_KEYS response: (index, address) pairs until 0xff or end of packet
    # - a partial entry at the very end is dropped
    # - only zeros from here on is the packet's padding, not a slot-0 key
    rv = []
    pos = 0
    while pos < len(payload):
        index = payload[pos]
        if index == DUMP_END or not any(payload[pos:]):
            break
        pos += 1

        raw = payload[pos:pos+ETH_ADDRESS_SIZE]
        if len(raw) != ETH_ADDRESS_SIZE:
            break
        pos += ETH_ADDRESS_SIZE

        rv.append(Account(index, render_address(raw)))

    return rv

def left_pad(val, size=32):
    # big-endian number, padded with zeros on the left
    assert len(val) <= size, 'too long'
    return bytes(val).rjust(size, b'\0')

def normalize_s(s):
    # EIP-2: of the two valid s values, use the smaller one
    # - idempotent, and result is always <= N/2
    if s > SECP256K1_HALF_N:
        return SECP256K1_N - s
    return s

def make_low_s(sig):
    # same thing, on a 64-byte raw signature: returns (r, s) each 32 bytes
    assert len(sig) == 64
    r = left_pad(sig[0:32])
    s = normalize_s(int.from_bytes(sig[32:64], 'big'))

    return r, s.to_bytes(32, 'big')

def recover_address(digest, r, s, v):
    # address of whichever key made this signature, assuming v is right
    return pubkey_to_address(CT_sig_to_pubkey(digest, r + s + bytes([v])))

def make_recoverable_sig(digest, r, s, addr):
    # The device only makes non-recoverable signatures (64 bytes)
    # but we know the address which should be implied by the signature's
    # pubkey, so we can try both values and discover the correct "v"
    assert len(digest) == 32
    assert len(r) == len(s) == 32

    want = parse_address(addr)

    for v in RECOVERY_IDS:
        try:
            got = recover_address(digest, r, s, v)
        except ValueError:
            continue

        if parse_address(got) == want:
            return Signature(r, s, v)

    # failed to recover right pubkey value
    raise SigningIntegrityError(f"Signature was not made by {addr}", address=addr)

# EOF
