#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Exceptions
#

class HIDKeyError(RuntimeError):
    pass

class TransportError(HIDKeyError):
    # device missing, unplugged, write failed, or already closed
    pass

class ProtocolError(HIDKeyError):
    def __init__(self, msg, cmd=None, count=None):
        self.cmd = cmd
        self.count = count
        super().__init__(msg)

class AccountNotFoundError(HIDKeyError):
    def __init__(self, address):
        self.address = address
        super().__init__(f'Account not found: {address}')

class SigningIntegrityError(HIDKeyError):
    # device signature does not belong to the key we asked for
    def __init__(self, msg, address=None):
        self.address = address
        super().__init__(msg)

# EOF
