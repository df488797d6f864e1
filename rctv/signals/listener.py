"""Hardware trigger listener reading a line-oriented byte stream."""

import logging
import threading
from typing import BinaryIO, Callable, Optional

logger = logging.getLogger(__name__)

MAX_LINE_BYTES = 4096


class SignalListener:
    """Watches a serial device or FIFO and fires a callback on trigger lines.

    Reading happens in a daemon thread. Any line containing ``pattern`` calls
    ``on_trigger``; everything else is ignored. When the stream fails or hits
    end of file it is reopened after ``reopen_delay`` seconds.
    """

    def __init__(
        self,
        device_path: str,
        on_trigger: Callable[[], bool],
        pattern: bytes = b"TRIGGER",
        reopen_delay: float = 2.0,
    ) -> None:
        if not pattern:
            raise ValueError("Trigger pattern cannot be empty")
        self.device_path = device_path
        self.on_trigger = on_trigger
        self.pattern = pattern
        self.reopen_delay = reopen_delay
        self.logger = logging.getLogger(f"{__name__}.SignalListener")

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._stream: Optional[BinaryIO] = None
        self._stream_lock = threading.Lock()
        self._trigger_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def trigger_count(self) -> int:
        return self._trigger_count

    def start(self) -> None:
        """Start reading in a background thread."""
        if self.is_running:
            self.logger.warning("Signal listener already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._listen_loop,
            name="SignalListener",
            daemon=True,
        )
        self._thread.start()
        self.logger.info(f"Listening for '{self.pattern.decode(errors='replace')}' on {self.device_path}")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the reader thread.

        A read blocked on a quiet device may not return until the next line;
        the thread is a daemon, so it never holds up process exit.
        """
        self._stop_event.set()
        self._close_stream()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                self.logger.debug("Signal listener thread still blocked on read")
        self._thread = None
        self.logger.info("Signal listener stopped")

    def process_line(self, line: bytes) -> bool:
        """Handle one line from the stream.

        Returns:
            True if the line was a trigger and was passed to the controller
        """
        if self.pattern not in line:
            if line.strip():
                self.logger.debug(f"Ignoring line: {line!r}")
            return False

        self._trigger_count += 1
        self.logger.info(f"Trigger received (#{self._trigger_count})")
        try:
            accepted = self.on_trigger()
            self.logger.debug(f"Trigger {'accepted' if accepted else 'ignored'} by controller")
        except Exception:
            self.logger.exception("Error handling trigger")
        return True

    def _listen_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                with open(self.device_path, "rb", buffering=0) as stream:
                    with self._stream_lock:
                        self._stream = stream
                    self.logger.debug(f"Opened {self.device_path}")
                    self._read_lines(stream)
                if not self._stop_event.is_set():
                    self.logger.warning(f"End of stream on {self.device_path}, reopening")
            except (OSError, ValueError) as e:
                if self._stop_event.is_set():
                    break
                self.logger.warning(f"Cannot read {self.device_path}: {e}")
            finally:
                with self._stream_lock:
                    self._stream = None

            self._stop_event.wait(self.reopen_delay)

    def _read_lines(self, stream: BinaryIO) -> None:
        buffer = b""
        while not self._stop_event.is_set():
            chunk = stream.read(256)
            if not chunk:
                return
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                self.process_line(line.rstrip(b"\r"))
            if len(buffer) > MAX_LINE_BYTES:
                # Keep enough of the tail to match a pattern split across the cut
                keep = len(self.pattern) - 1
                self.logger.warning(f"Discarding {len(buffer) - keep} bytes without a line break")
                buffer = buffer[len(buffer) - keep :]

    def _close_stream(self) -> None:
        with self._stream_lock:
            stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except OSError:
                pass  # Reader thread may already be closing it
