# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# transport.py
#
# Implement the desktop to device connection: real USB HID, or the emulator.
#
# Inbound packets arrive on a reader thread and are handed to the asyncio loop
# of whoever is waiting on them, in the order the device sent them.
#
import os, socket, threading
from .constants import *
from .exceptions import TransportError
from .utils import B2A
from .proto import HIDKey

# Change this to see traffic details
VERBOSE = False

def find_devices(timeout=None, pipename=SIMULATOR_PIPE):
    #
    # Search all connected USB HID devices, and find all keys that are present.
    #
    # - generator function.
    # - emulator (if its socket exists at pipename) comes first
    #

    # emulation running on a Unix socket
    sim = HIDKeyUnixTransport.find_simulator(pipename)
    if sim:
        yield HIDKey(sim, timeout=timeout)

    # only needed for real hardware
    import hid

    for info in hid.enumerate(VENDOR_ID, PRODUCT_ID):
        try:
            tr = HIDKeyHIDTransport(info['path'])
        except TransportError as exc:
            # probably in use by another process
            if VERBOSE:
                print(f"Skipping {info['path']!r}: {exc}")
            continue

        yield HIDKey(tr, timeout=timeout)

def find_first(timeout=None, pipename=SIMULATOR_PIPE):
    # operate on the first device we can find
    for k in find_devices(timeout=timeout, pipename=pipename):
        return k

    return None

def _trace(prefix, names, packet):
    # one line per packet; trailing zero padding isn't interesting
    label = names.get(packet[0], '0x%02x' % packet[0])
    body = B2A(packet[1:].rstrip(b'\0'))
    print(f"{prefix} {label} {body}" if body else f"{prefix} {label}")

class HIDKeyTransportABC:
    #
    # Abstract base class. Low level details about moving packets.
    #
    is_emulator = False
    name = '?'

    # how long the reader blocks before checking if we're closing (seconds)
    POLL_INTERVAL = 0.1

    def __init__(self):
        self._loop = None
        self._receiver = None
        self._on_error = None
        self._reader = None
        self._stop = threading.Event()
        self._closed = False

    def _write_packet(self, packet):
        # send exactly one packet, may raise OSError
        raise NotImplementedError

    def _read_packet(self):
        # block up to POLL_INTERVAL, return a packet or None; may raise OSError
        raise NotImplementedError

    def _release(self):
        # release resources
        pass

    @property
    def is_closed(self):
        return self._closed

    def attach(self, loop, receiver, on_error=None):
        # Deliver inbound packets to receiver(packet), called on the loop's thread.
        # - on_error(exc) is called the same way if reading fails
        if self._closed:
            raise TransportError('Transport is closed')

        self._loop = loop
        self._receiver = receiver
        self._on_error = on_error

        if self._reader is None:
            self._reader = threading.Thread(target=self._reader_main,
                                            name=f'hidkey-rx {self.name}', daemon=True)
            self._reader.start()

    def write(self, packet):
        if self._closed:
            raise TransportError('Transport is closed')

        assert len(packet) == HID_PACKET_SIZE, 'wrong packet size'

        if VERBOSE:
            _trace('>>', CMD_NAMES, packet)

        try:
            self._write_packet(bytes(packet))
        except (OSError, ValueError) as exc:
            raise TransportError(f'Write to device failed: {exc}') from exc

    def close(self):
        if self._closed:
            raise TransportError('Transport already closed')
        self._closed = True

        # stop reader before the handle goes away under it
        self._stop.set()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=self.POLL_INTERVAL * 10)

        self._release()

    def _notify(self, fn, arg):
        loop = self._loop
        if fn is None or loop is None:
            return
        try:
            loop.call_soon_threadsafe(fn, arg)
        except RuntimeError:
            # loop was closed: nobody is waiting for this anymore
            if VERBOSE:
                print(f"Dropped, event loop is closed: {arg!r}")

    def _reader_main(self):
        while not self._stop.is_set():
            try:
                packet = self._read_packet()
            except (OSError, ValueError) as exc:
                if not self._stop.is_set():
                    self._notify(self._on_error, TransportError(f'Read from device failed: {exc}'))
                return

            if not packet:
                continue

            packet = bytes(packet).ljust(HID_PACKET_SIZE, b'\0')

            if VERBOSE:
                _trace('<<', RES_NAMES, packet)

            self._notify(self._receiver, packet)

class HIDKeyHIDTransport(HIDKeyTransportABC):
    #
    # For talking to a real device over USB.
    #

    def __init__(self, path=None):
        import hid

        super().__init__()

        self.dev = hid.device()
        try:
            if path:
                self.dev.open_path(path)
            else:
                self.dev.open(VENDOR_ID, PRODUCT_ID)
        except (OSError, ValueError) as exc:
            raise TransportError(f'Unable to open USB device: {exc}') from exc

        if isinstance(path, bytes):
            path = path.decode('ascii', 'replace')
        self.name = path or 'USB %04x:%04x' % (VENDOR_ID, PRODUCT_ID)

    def _write_packet(self, packet):
        rv = self.dev.write(packet)
        if rv < 0:
            raise OSError(self.dev.error() or 'hid write error')

    def _read_packet(self):
        got = self.dev.read(HID_PACKET_SIZE, int(self.POLL_INTERVAL * 1000))
        return bytes(got) if got else None

    def _release(self):
        self.dev.close()
        del self.dev

class HIDKeyUnixTransport(HIDKeyTransportABC):
    #
    # Emulation running over a Unix socket.
    #
    is_emulator = True

    @classmethod
    def find_simulator(cls, pipename=SIMULATOR_PIPE):
        if os.path.exists(pipename):
            return cls(pipename)
        return None

    def __init__(self, pipename):
        super().__init__()

        self.name = pipename
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            self.sock.connect(pipename)
        except OSError as exc:
            self.sock.close()
            raise TransportError(f'Unable to reach emulator at {pipename}: {exc}') from exc

        self.sock.settimeout(self.POLL_INTERVAL)
        self._rx = b''

    def _write_packet(self, packet):
        self.sock.sendall(packet)

    def _read_packet(self):
        # stream socket: gather until we have one whole packet
        try:
            chunk = self.sock.recv(HID_PACKET_SIZE - len(self._rx))
        except socket.timeout:
            return None

        if not chunk:
            # closed socket causes this
            raise ConnectionError("Emu crashed?")

        self._rx += chunk
        if len(self._rx) < HID_PACKET_SIZE:
            return None

        packet, self._rx = self._rx, b''
        return packet

    def _release(self):
        self.sock.close()

# EOF
