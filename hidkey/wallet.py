#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# wallet.py
#
# Ethereum accounts held on the device, and producing signatures that
# an ethereum node will accept.
#
from .constants import *
from .exceptions import AccountNotFoundError, TransportError
from .utils import parse_address, make_low_s, make_recoverable_sig

class AccountDirectory:
    #
    # Snapshot of the key slots on the device, in the order it listed them.
    #
    def __init__(self, accounts=()):
        self.accounts = list(accounts)

    @classmethod
    async def load(cls, key):
        return cls(await key.list_accounts())

    def __len__(self):
        return len(self.accounts)

    def __iter__(self):
        return iter(self.accounts)

    def addresses(self):
        return [a.address for a in self.accounts]

    def lookup(self, address) -> int:
        # slot index for address, any case
        want = parse_address(address)
        for acct in self.accounts:
            if parse_address(acct.address) == want:
                return acct.index

        raise AccountNotFoundError(address)

class Wallet:
    #
    # Signs for the accounts on one device. Call init() first.
    #
    def __init__(self, key):
        self.key = key
        self.directory = AccountDirectory()

    @classmethod
    def from_hid(cls, timeout=None):
        from .transport import find_first

        key = find_first(timeout=timeout)
        if key is None:
            raise TransportError("No key device found. Is it plugged in?")
        return cls(key)

    def __repr__(self):
        return '<%s: %d accounts on %r>' % (self.__class__.__name__, len(self.directory), self.key)

    async def init(self):
        # (re)read the list of accounts from device
        self.directory = await AccountDirectory.load(self.key)
        return self.directory

    def get_addresses(self):
        return self.directory.addresses()

    def get_address_index(self, address):
        """
        Slot index holding the key for address (any case, 0x optional).
        Uses the account list from the last init(), no device traffic.

        Raises AccountNotFoundError when no slot has that address, and
        ValueError when address isn't a 20-byte hex address at all.
        """
        return self.directory.lookup(address)

    async def create_account(self, index):
        # new key in that slot, returns address or None if device declined
        addr = await self.key.create_key(index)
        await self.init()
        return addr

    async def delete_address(self, address):
        index = self.get_address_index(address)
        await self.key.delete_key(index)
        await self.init()

    async def sign_digest(self, address, digest):
        """
        Sign a 32 byte digest (ie. hash of a serialized transaction) with the
        key for address. Returns Signature(r, s, v) ready to be put into the
        signed transaction.

        The device picks either of the two valid s values and gives no
        recovery id. We apply EIP-2 (low s), then try v=27 and v=28 until the
        signature recovers to the expected address.
        """
        if len(digest) != DIGEST_SIZE:
            raise ValueError("Digest must be exactly 32 bytes")

        index = self.get_address_index(address)

        raw = await self.key.sign(index, digest)

        r, s = make_low_s(raw)

        return make_recoverable_sig(bytes(digest), r, s, address)

    def close(self):
        self.key.close()

# EOF
