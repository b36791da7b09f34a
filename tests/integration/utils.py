"""Integration test utilities for hrosc.

- OSCMessageCapture: Thread-safe capture of OSC messages on a local UDP port
"""

import threading
import time
from collections import deque

from pythonosc import dispatcher, osc_server


class OSCMessageCapture:
    """Captures OSC messages sent to 127.0.0.1 on an ephemeral port.

    Stands in for the avatar endpoint. The bound port is available as
    self.port after start().

    Example:
        capture = OSCMessageCapture()
        capture.start()
        sink = AvatarOSCSink(port=capture.port)
        sink.send_pulse()
        ts, addr, args = capture.wait_for_message("/avatar/parameters/HeartBeat")
        capture.stop()
    """

    def __init__(self, port: int = 0):
        self.port = port
        self.messages = deque(maxlen=1000)
        self.lock = threading.Lock()
        self.server = None
        self.server_thread = None

    def start(self):
        """Start capture server in background thread."""
        disp = dispatcher.Dispatcher()
        disp.set_default_handler(self._capture_handler)

        self.server = osc_server.ThreadingOSCUDPServer(("127.0.0.1", self.port), disp)
        self.port = self.server.server_address[1]

        self.server_thread = threading.Thread(target=self.server.serve_forever)
        self.server_thread.daemon = True
        self.server_thread.start()

    def _capture_handler(self, address, *args):
        with self.lock:
            self.messages.append((time.monotonic(), address, args))

    def wait_for_message(self, address_pattern: str, timeout: float = 5.0):
        """Wait for a message whose address starts with address_pattern.

        Raises:
            TimeoutError: If no matching message received within timeout
        """
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            with self.lock:
                for ts, addr, args in self.messages:
                    if addr.startswith(address_pattern):
                        return (ts, addr, args)
            time.sleep(0.01)
        raise TimeoutError(f"No message matching {address_pattern} within {timeout}s")

    def wait_for_count(self, address_pattern: str, count: int, timeout: float = 5.0):
        """Wait until at least count matching messages have arrived."""
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            messages = self.get_messages_by_address(address_pattern)
            if len(messages) >= count:
                return messages
            time.sleep(0.01)
        raise TimeoutError(f"Fewer than {count} messages matching {address_pattern} within {timeout}s")

    def get_messages_by_address(self, address_pattern: str):
        with self.lock:
            return [(ts, addr, args) for ts, addr, args in self.messages
                    if addr.startswith(address_pattern)]

    def clear(self):
        with self.lock:
            self.messages.clear()

    def stop(self):
        """Stop capture server and close its socket."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
        if self.server_thread:
            self.server_thread.join(timeout=2.0)
