#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Test encoding/serializations from utils.py
# 
import pytest

from hidkey.constants import *
from hidkey.compat import keccak256
from hidkey.utils import build_packet, parse_dump_keys, parse_address, to_checksum_address
from hidkey.utils import same_address, left_pad, Account, Signature

def test_keccak():
    # not the same as sha3_256
    assert keccak256(b'') == \
        bytes.fromhex('c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470')

@pytest.mark.parametrize('case', [
    # from EIP-55
    '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed',
    '0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359',
    '0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB',
    '0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb',
])
def test_checksum_address(case):
    assert to_checksum_address(case.lower()) == case
    assert to_checksum_address(case.upper()[2:]) == case

def test_parse_address():
    raw = bytes(range(20))
    assert parse_address('0x' + raw.hex()) == raw
    assert parse_address(raw.hex().upper()) == raw
    assert same_address('0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed',
                        '0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed')

    for bad in ['', '0x', '0x' + 'aa'*19, '0x' + 'aa'*21, '0x' + 'zz'*20, None, b'\0'*20]:
        with pytest.raises(ValueError):
            parse_address(bad)

def test_build_packet():
    assert build_packet(CMD_HELLO) == bytes(64)
    assert build_packet(CMD_DUMP_KEYS) == b'\x03' + bytes(63)
    assert build_packet(CMD_DELETE, 0) == b'\x04' + bytes(63)
    assert build_packet(CMD_CREATE_KEY, 254) == b'\x02\xfe' + bytes(62)

    md = bytes(range(1, 33))
    pkt = build_packet(CMD_SIGN, 3, md)
    assert len(pkt) == HID_PACKET_SIZE
    assert pkt[SIGN_DIGEST_OFFSET:SIGN_DIGEST_OFFSET+32] == md

    with pytest.raises(ValueError):
        build_packet(CMD_SIGN, DUMP_END, md)

def test_parse_dump_keys():
    a = bytes([0x11] * 20)
    b = bytes([0x22] * 20)

    assert parse_dump_keys(b'\xff' + bytes(62)) == []
    assert parse_dump_keys(b'\x04' + a + b'\x07' + b + b'\xff') == \
                [Account(4, '0x' + '11'*20), Account(7, '0x' + '22'*20)]

    # partial entry at end of packet
    assert parse_dump_keys(b'\x04' + a + b'\x05' + b[0:10]) == [Account(4, '0x' + '11'*20)]

    # zero padding after last entry
    assert parse_dump_keys((b'\x00' + a).ljust(63, b'\0')) == [Account(0, '0x' + '11'*20)]
    assert parse_dump_keys(bytes(63)) == []

    # a key whose address really is zero, with more entries after it
    assert parse_dump_keys(b'\x03' + bytes(20) + b'\x04' + a + b'\xff') == \
                [Account(3, '0x' + '00'*20), Account(4, '0x' + '11'*20)]

def test_left_pad():
    assert left_pad(b'\x01') == bytes(31) + b'\x01'
    assert left_pad(bytes(range(32))) == bytes(range(32))
    with pytest.raises(AssertionError):
        left_pad(bytes(33))

def test_signature_render():
    sig = Signature(b'\x01' * 32, b'\x02' * 32, 28)
    assert sig.to_bytes() == b'\x01' * 32 + b'\x02' * 32 + b'\x1c'
    assert sig.hex() == '0x' + '01'*32 + '02'*32 + '1c'

# EOF
