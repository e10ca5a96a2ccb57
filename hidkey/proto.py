#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# proto.py
#
# Implement the packet protocol for the key device: requests, responses and
# matching one to the other.
#
#
import asyncio, threading
from .constants import *
from .exceptions import TransportError, ProtocolError
from .utils import build_packet, parse_key_created, parse_dump_keys

# channel states
IDLE = 'idle'
AWAITING = 'awaiting'

class HIDKey:
    #
    # Protocol/wrapper for the device. Await methods on this instance to get work done.
    #
    # Responses don't say which request they belong to, they just arrive in
    # order and end with DONE. So only one request may be outstanding: the
    # others wait their turn on the lock.
    #
    def __init__(self, transport, timeout=None):
        self.tr = transport
        self.timeout = timeout          # seconds, or None to wait forever
        self.state = IDLE

        self._lock = None
        self._lock_loop = None
        self._claim = threading.Lock()
        self._done = None
        self._responses = None
        self._broken = None

    def __repr__(self):
        where = self.tr.name if self.tr is not None else 'nothing (closed)'
        return '<%s via %s: %s>' % (self.__class__.__name__, where, self.state)

    @property
    def is_closed(self):
        return self.tr is None

    def close(self):
        # release the device; any request still waiting fails
        if self.tr is None:
            raise TransportError('Device already closed')

        tr, self.tr = self.tr, None

        if self._done is not None and not self._done.done():
            self._done.set_exception(TransportError('Device closed while waiting for response'))

        tr.close()

    def _get_lock(self):
        # asyncio locks belong to one event loop; callers may use several
        # (one asyncio.run() per CLI command, for example)
        loop = asyncio.get_running_loop()
        if self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def _check_usable(self):
        if self.tr is None:
            raise TransportError('Device is closed')
        if self._broken:
            raise TransportError(f'Device channel unusable: {self._broken}')

    def _on_packet(self, packet):
        # called on the event loop, in the order the device sent them
        if self.state != AWAITING or self._done is None or self._done.done():
            # unsolicited: nobody is asking
            return

        code = packet[0]
        if code == RES_DONE:
            self._done.set_result(self._responses)
        elif code in RES_NAMES:
            self._responses.append((code, packet[1:]))

    def _on_error(self, exc):
        # reader has stopped, so there won't be any more responses
        self._broken = str(exc)
        if self._done is not None and not self._done.done():
            self._done.set_exception(exc)

    async def send(self, cmd, index=None, payload=b''):
        # Send a command and collect all responses up to DONE.
        # - returns list of (response code, payload) in order received
        # - bad arguments fail here, before anything is written
        packet = build_packet(cmd, index, payload)

        async with self._get_lock():
            self._check_usable()

            # the asyncio lock only covers callers on this loop; another
            # thread with its own loop may already be waiting on the device
            with self._claim:
                if self.state != IDLE:
                    raise TransportError('Another request is already outstanding')
                self.state = AWAITING

            loop = asyncio.get_running_loop()
            self._responses = []
            self._done = loop.create_future()

            try:
                self.tr.attach(loop, self._on_packet, self._on_error)
                self.tr.write(packet)

                if self.timeout is None:
                    return await self._done

                try:
                    return await asyncio.wait_for(self._done, self.timeout)
                except asyncio.TimeoutError:
                    # a late DONE would be taken as the answer to the next request
                    self._broken = f'no response to {CMD_NAMES[cmd]} after {self.timeout}s'
                    raise TransportError(f'Timeout: {self._broken}') from None
            finally:
                self.state = IDLE
                self._done = None
                self._responses = None

    #
    # Commands
    #
    async def hello(self):
        await self.send(CMD_HELLO)

    async def reset(self):
        await self.send(CMD_RESET)

    async def create_key(self, index):
        # Make a new key in slot; returns its address, or None if
        # the device didn't tell us one (ie. declined)
        for code, body in await self.send(CMD_CREATE_KEY, index):
            if code == RES_KEY_CREATED:
                return parse_key_created(body)

        return None

    async def delete_key(self, index):
        await self.send(CMD_DELETE, index)

    async def sign(self, index, digest):
        # Sign 32 byte digest with key in slot; returns 64 bytes: r then s.
        # - not normalized (high s possible), and no recovery id
        if len(digest) != DIGEST_SIZE:
            raise ValueError("Digest must be exactly 32 bytes")

        resp = await self.send(CMD_SIGN, index, bytes(digest))

        halves = [body[0:SIG_HALF_SIZE] for code, body in resp if code == RES_SIGN]
        if len(halves) != 2:
            raise ProtocolError(f'Expected 2 signature packets from sign, got {len(halves)}',
                                    cmd='sign', count=len(halves))

        return halves[0] + halves[1]

    async def list_accounts(self):
        # Every key slot in use: list of Account(index, address)
        rv = []
        for code, body in await self.send(CMD_DUMP_KEYS):
            if code == RES_DUMP_KEYS:
                rv.extend(parse_dump_keys(body))

        return rv

# EOF
