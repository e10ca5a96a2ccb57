import os, sys, threading, time, pytest

from hidkey.constants import HID_PACKET_SIZE
from hidkey.exceptions import TransportError
from hidkey.proto import HIDKey
from hidkey.transport import HIDKeyTransportABC

# emulator is a script, not part of the package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'emulator'))

def pytest_configure(config):
    config.addinivalue_line("markers", "device: needs a real device, or the emulator running")

def res(code, body=b''):
    # a response packet, as the device would send it
    return (bytes([code]) + body).ljust(HID_PACKET_SIZE, b'\0')

def scripted(*responses):
    # handler giving the same responses to every request
    return lambda packet: list(responses)

class LoopbackTransport(HIDKeyTransportABC):
    #
    # No thread, no device: handler(request) gives the response packets, which
    # are delivered on the event loop like a real reader would.
    #
    name = 'loopback'

    def __init__(self, handler, delay=0):
        super().__init__()
        self.handler = handler
        self.delay = delay
        self.sent = []

    def attach(self, loop, receiver, on_error=None):
        if self._closed:
            raise TransportError('Transport is closed')
        self._loop = loop
        self._receiver = receiver
        self._on_error = on_error

    def _write_packet(self, packet):
        self.sent.append(packet)
        for n, resp in enumerate(self.handler(packet)):
            self.inject(resp, n)

    def inject(self, packet, n=0):
        # deliver a packet as if the device sent it
        if self.delay:
            self._loop.call_later(self.delay * (n+1), self._receiver, packet)
        else:
            self._loop.call_soon(self._receiver, packet)

    def fail(self, exc):
        # as if the reader thread died
        self._loop.call_soon(self._on_error, exc)

@pytest.fixture
def emu():
    # emulated device state, two keys made
    import random
    from ekey import KeyState

    random.seed(42)
    dev = KeyState(high_s=True)
    dev.cmd_create_key(bytes([0]))
    dev.cmd_create_key(bytes([1]))
    return dev

@pytest.fixture
def emu_key(emu):
    # channel talking to the emulated device
    return HIDKey(LoopbackTransport(emu.handle))

@pytest.fixture
def emu_socket(tmp_path, emu):
    # emulator listening on a real unix socket, in a thread
    import ekey

    ekey.DEBUG = False
    fn = str(tmp_path / 'ekey')
    threading.Thread(target=emu.emulate, args=(fn,), daemon=True).start()

    for _ in range(100):
        if os.path.exists(fn):
            break
        time.sleep(0.01)

    # bound, give it a moment to listen
    time.sleep(0.05)
    return fn

@pytest.fixture(scope='session')
def dev():
    # a connected device (via USB) .. or the emulator on its unix socket
    from hidkey.transport import find_first

    k = find_first(timeout=5)
    if k is None:
        raise pytest.skip('no device / emulator found')
    yield k
    if not k.is_closed:
        k.close()

# EOF
