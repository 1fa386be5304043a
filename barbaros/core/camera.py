import os
import sys
from dataclasses import dataclass
from pathlib import Path

import cv2

from barbaros.config.settings import (
    CAMERA_FRAME_WIDTH, CAMERA_FRAME_HEIGHT, MAX_CAMERA_INDEXES, REAR_CAMERA_HINTS,
)
from barbaros.core.errors import CameraFailure, CameraUnavailable
from barbaros.utils.logging import setup_logger

V4L_SYSFS = Path("/sys/class/video4linux")


@dataclass(frozen=True)
class CameraDevice:
    device_id: int
    label: str


def select_device(devices, preferred_id=None):
    """
    Pick the camera to scan with.

    An explicit preferred_id wins. With several cameras, a label mentioning
    back/rear/environment is preferred, otherwise the first one is used.

    Returns:
        CameraDevice or None if the list is empty
    """
    if not devices:
        return None
    if preferred_id is not None:
        for device in devices:
            if device.device_id == preferred_id:
                return device
    if len(devices) > 1:
        for device in devices:
            label = device.label.lower()
            if any(hint in label for hint in REAR_CAMERA_HINTS):
                return device
    return devices[0]


class CameraStream:
    """
    An open capture device. release() is safe to call more than once.
    """

    def __init__(self, device: CameraDevice, capture):
        self.device = device
        self._capture = capture

    @property
    def is_open(self):
        return self._capture is not None

    def read(self):
        """
        Grab the current frame.
        Returns the frame array or None if the device produced nothing.
        """
        if self._capture is None:
            raise RuntimeError("Camera stream already released")
        ret, frame = self._capture.read()
        return frame if ret else None

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None


class OpenCVCameraBackend:
    """
    Enumerates and opens cameras through cv2.VideoCapture.
    """

    def __init__(self, max_indexes: int = MAX_CAMERA_INDEXES):
        self.logger = setup_logger()
        self.max_indexes = max_indexes

    def is_supported(self):
        if not hasattr(cv2, "VideoCapture"):
            return False
        registry = getattr(cv2, "videoio_registry", None)
        if registry is None:
            return True
        return len(registry.getCameraBackends()) > 0

    def list_devices(self):
        """
        List available video input devices.
        Uses the video4linux names on Linux, trying indexes elsewhere.
        """
        if sys.platform.startswith("linux") and V4L_SYSFS.exists():
            return self._list_v4l_devices()
        return self._try_indexes()

    def _list_v4l_devices(self):
        devices = []
        for node in sorted(V4L_SYSFS.glob("video*"), key=lambda p: int(p.name[5:] or 0)):
            try:
                # Metadata nodes of the same camera report a non-zero index
                index_file = node / "index"
                if index_file.exists() and index_file.read_text().strip() != "0":
                    continue
                name_file = node / "name"
                label = name_file.read_text().strip() if name_file.exists() else ""
            except OSError as e:
                self.logger.warning(f"Could not read camera info from {node}: {e}")
                continue
            device_id = int(node.name[5:])
            devices.append(CameraDevice(device_id, label or f"Camera {device_id}"))
        return devices

    def _try_indexes(self):
        devices = []
        for index in range(self.max_indexes):
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    devices.append(CameraDevice(index, f"Camera {index}"))
            finally:
                cap.release()
        return devices

    def open(self, device: CameraDevice) -> CameraStream:
        """
        Open device for capture.

        Raises:
            CameraUnavailable: permission denied or device busy
        """
        node = Path(f"/dev/video{device.device_id}")
        if sys.platform.startswith("linux") and node.exists() and not os.access(node, os.R_OK | os.W_OK):
            self.logger.error(f"No permission to open {node}")
            raise CameraUnavailable(CameraFailure.PERMISSION_DENIED)

        cap = cv2.VideoCapture(device.device_id)
        if not cap.isOpened():
            cap.release()
            self.logger.error(f"Failed to open camera {device.label}")
            raise CameraUnavailable(CameraFailure.DEVICE_BUSY)

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, CAMERA_FRAME_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, CAMERA_FRAME_HEIGHT)
        return CameraStream(device, cap)
