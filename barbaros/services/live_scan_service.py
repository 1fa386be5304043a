import threading
import time
from enum import Enum

from barbaros.config.settings import SCAN_INTERVAL_MS
from barbaros.core.camera import OpenCVCameraBackend, select_device
from barbaros.core.errors import (
    CameraFailure, CameraUnavailable, Rejected, ScanError, UnsupportedEnvironment,
)
from barbaros.core.resolver import Outcome, ScanAttempt, resolve
from barbaros.utils.logging import setup_logger


def _default_detector():
    """Lazy import so the zbar library is only loaded when scanning for real."""
    from barbaros.core.qr_detector import QRDetector
    return QRDetector()


class ScanState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    STOPPED = "stopped"
    FAILED = "failed"


class LiveScanSession:
    """
    Scans camera frames for a client badge until one resolves or the
    session is stopped.

    Frames are decoded on a single worker thread every interval_ms. The
    camera stream belongs to the session while it is ACTIVE and is released
    on every way out of that state.
    """

    def __init__(self, on_resolved, on_rejected=None, on_failed=None, backend=None,
                 detector=None, interval_ms: int = SCAN_INTERVAL_MS, device_id: int = None):
        self.logger = setup_logger()
        self.on_resolved = on_resolved
        self.on_rejected = on_rejected
        self.on_failed = on_failed
        self.backend = backend or OpenCVCameraBackend()
        self.detector = detector or _default_detector()
        self.interval = interval_ms / 1000.0

        self.state = ScanState.IDLE
        self.failure = None
        self.devices = []
        self.device = None
        self.selected_device_id = device_id
        self.subject_id = None

        self._stream = None
        self._thread = None
        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._state_lock = threading.RLock()
        self._cycle_lock = threading.Lock()

    # Lifecycle

    def start(self):
        """
        Acquire a camera and begin scanning.

        Returns:
            self

        Raises:
            UnsupportedEnvironment: no camera API available
            CameraUnavailable: no device, permission denied or device busy
        """
        with self._state_lock:
            if self.state in (ScanState.INITIALIZING, ScanState.ACTIVE):
                return self

            self.state = ScanState.INITIALIZING
            self.failure = None
            self.subject_id = None
            self._done.clear()
            try:
                if not self.backend.is_supported():
                    raise UnsupportedEnvironment()
                self.devices = list(self.backend.list_devices())
                device = select_device(self.devices, self.selected_device_id)
                if device is None:
                    raise CameraUnavailable(CameraFailure.NO_DEVICE)
                self._activate(device)
            except ScanError as e:
                self._fail(e)
                raise
            except Exception as e:
                error = CameraUnavailable(CameraFailure.DEVICE_BUSY)
                self._fail(error)
                raise error from e
        return self

    def stop(self):
        """
        Stop scanning and release the camera. Does nothing if not running,
        except that a session never started no longer blocks wait().
        """
        with self._state_lock:
            if self.state is ScanState.IDLE:
                self._done.set()
            if self.state not in (ScanState.INITIALIZING, ScanState.ACTIVE):
                return
            thread = self._halt()
            self.state = ScanState.STOPPED
            self._done.set()
        self._join(thread)
        self.logger.info("Live scan stopped")

    def switch_device(self, device_id: int):
        """
        Select another camera. An active session stops its current stream
        before the new one is opened.
        """
        with self._state_lock:
            if not self.devices:
                self.devices = list(self.backend.list_devices())
            device = next((d for d in self.devices if d.device_id == device_id), None)
            if device is None:
                raise ValueError(f"Unknown camera: {device_id}")
            self.selected_device_id = device_id
            if self.state is not ScanState.ACTIVE:
                return
            thread = self._halt()
        self._join(thread)

        with self._state_lock:
            if self.state is not ScanState.ACTIVE:
                return
            try:
                self._activate(device)
            except ScanError as e:
                self._fail(e)
                raise
            except Exception as e:
                error = CameraUnavailable(CameraFailure.DEVICE_BUSY)
                self._fail(error)
                raise error from e
        self.logger.info(f"Switched camera to {device.label}")

    def wait(self, timeout: float = None) -> bool:
        """
        Block until the session resolves, stops or fails.
        Returns False on timeout.
        """
        return self._done.wait(timeout)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    @property
    def is_active(self):
        return self.state is ScanState.ACTIVE

    # Decode cycle

    def poll(self):
        """
        Run one decode cycle against the current frame.

        Returns:
            ScanAttempt, or None when the session is not active or a cycle
            is already in flight
        """
        if not self._cycle_lock.acquire(blocking=False):
            self.logger.debug("Decode cycle still running, skipping tick")
            return None
        try:
            stream = self._stream
            if self.state is not ScanState.ACTIVE or stream is None:
                return None
            frame = stream.read()
            if frame is None:
                return ScanAttempt(raw_text=None, outcome=Outcome.NO_SYMBOL_FOUND)
            attempt = resolve(self.detector.detect(frame))
        finally:
            self._cycle_lock.release()

        if attempt.resolved:
            self._finish(attempt)
        elif attempt.outcome is Outcome.REJECTED:
            self.logger.warning(f"Rejected scanned code: {attempt.raw_text!r}")
            if self.on_rejected:
                self.on_rejected(Rejected())
        return attempt

    def _run(self, stream, stop_event):
        next_tick = time.monotonic()
        try:
            while not stop_event.is_set():
                try:
                    self.poll()
                except Exception as e:
                    self.logger.error(f"Live scan cycle failed: {e}")
                    self._abort(stream)
                    return

                next_tick += self.interval
                now = time.monotonic()
                if now > next_tick:
                    # Drop ticks missed by a slow cycle instead of replaying them
                    missed = int((now - next_tick) // self.interval) + 1
                    next_tick += missed * self.interval
                stop_event.wait(max(0.0, next_tick - time.monotonic()))
        finally:
            with self._cycle_lock:
                stream.release()

    # State transitions (callers hold _state_lock)

    def _activate(self, device):
        stream = self.backend.open(device)
        self._stream = stream
        self.device = device
        self.selected_device_id = device.device_id
        self._stop_event = threading.Event()
        self.state = ScanState.ACTIVE
        self._thread = threading.Thread(
            target=self._run,
            args=(stream, self._stop_event),
            name=f"live-scan-{device.device_id}",
            daemon=True,
        )
        self._thread.start()
        self.logger.info(f"Live scan started on {device.label}")

    def _halt(self):
        """
        Stop the worker and release the stream. Returns the worker to join.
        """
        self._stop_event.set()
        with self._cycle_lock:
            if self._stream is not None:
                self._stream.release()
                self._stream = None
        thread, self._thread = self._thread, None
        return thread

    def _join(self, thread):
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.interval * 4))

    def _fail(self, error, notify=True):
        self._halt()
        self.state = ScanState.FAILED
        self.failure = error
        if notify:
            self._done.set()
        self.logger.error(f"Live scan failed: {error.reason}: {error.message}")

    def _finish(self, attempt):
        with self._state_lock:
            if self.state is not ScanState.ACTIVE:
                return
            self._halt()
            self.state = ScanState.STOPPED
            self.subject_id = attempt.subject_id
        self.logger.info(f"Scan resolved client {attempt.subject_id} ({attempt.outcome.value})")
        try:
            self.on_resolved(attempt.subject_id)
        finally:
            self._done.set()

    def _abort(self, stream):
        error = CameraUnavailable(
            CameraFailure.DEVICE_BUSY, "Lost access to the camera while scanning."
        )
        with self._state_lock:
            if self.state is not ScanState.ACTIVE or self._stream is not stream:
                return
            self._fail(error, notify=False)
        try:
            if self.on_failed:
                self.on_failed(error)
        finally:
            self._done.set()


def start_live_scan(on_resolved, on_rejected=None, **kwargs) -> LiveScanSession:
    """
    Create a session and start scanning. Keyword arguments go to LiveScanSession.
    """
    return LiveScanSession(on_resolved, on_rejected, **kwargs).start()


def stop_live_scan(session: LiveScanSession):
    if session is not None:
        session.stop()
