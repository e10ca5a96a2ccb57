#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# System constants.
#

# USB ids of the key device
VENDOR_ID = 0x0483
PRODUCT_ID = 0xa2ca

# HID reports are always this size, both directions
HID_PACKET_SIZE = 64

# Commands: first byte of packets we send
CMD_HELLO = 0x00
CMD_RESET = 0x01
CMD_CREATE_KEY = 0x02
CMD_DUMP_KEYS = 0x03
CMD_DELETE = 0x04
CMD_SIGN = 0x05

CMD_NAMES = {
    CMD_HELLO: 'hello',
    CMD_RESET: 'reset',
    CMD_CREATE_KEY: 'create_key',
    CMD_DUMP_KEYS: 'dump_keys',
    CMD_DELETE: 'delete',
    CMD_SIGN: 'sign',
}

# Responses: first byte of packets we receive
RES_KEY_CREATED = 0x01
RES_DUMP_KEYS = 0x02
RES_SIGN = 0x03
RES_DONE = 0xFF

RES_NAMES = {
    RES_KEY_CREATED: 'key_created',
    RES_DUMP_KEYS: 'dump_keys',
    RES_SIGN: 'sign',
    RES_DONE: 'done',
}

# ends the list of keys inside one DUMP_KEYS packet
# - so it can never be used as a slot index
DUMP_END = 0xFF
MAX_INDEX = 0xFE

# sizes (bytes)
ETH_ADDRESS_SIZE = 20
DIGEST_SIZE = 32
SIG_HALF_SIZE = 32

# offset of digest in SIGN request (after cmd and index)
SIGN_DIGEST_OFFSET = 2

# secp256k1 group order, and the EIP-2 limit on s values
SECP256K1_N = 0xfffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141
SECP256K1_HALF_N = SECP256K1_N // 2

# ethereum recovery ids ("v") we may produce
RECOVERY_IDS = (27, 28)

# emulator listens on this unix socket
SIMULATOR_PIPE = '/tmp/ekey-pipe'

# EOF
