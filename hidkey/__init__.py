#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#

__version__ = '0.1.0'

__all__ = [ 'proto', 'exceptions', 'transport', 'constants', 'utils', 'wallet' ]

# find connected devices
from hidkey.transport import find_devices, find_first

# packet protocol for the device, wants a transport
from hidkey.proto import HIDKey

# accounts and ethereum signatures
from hidkey.wallet import Wallet, AccountDirectory
