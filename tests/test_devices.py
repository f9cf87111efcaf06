from config import config
from vocalflow.capture.devices import OpenCVCaptureDevice


def test_device_mime_type_follows_capture_config(monkeypatch):
    monkeypatch.setattr(config.capture, "mime_type", "video/webm")
    assert OpenCVCaptureDevice().mime_type == "video/webm"


def test_device_mime_type_can_be_overridden():
    device = OpenCVCaptureDevice(mime_type="video/x-matroska")
    assert device.mime_type == "video/x-matroska"
    assert not device.is_open
