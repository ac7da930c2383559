"""CameraCapture tests with cv2.VideoCapture mocked out."""

from unittest.mock import MagicMock, patch

import numpy as np

from camera.capture import CameraCapture

PATCH_TARGET = "camera.capture.cv2.VideoCapture"


def _fake_capture(frames, opened=True):
    cap = MagicMock()
    cap.isOpened.return_value = opened
    cap.get.return_value = 640
    cap.read.side_effect = [(True, f) for f in frames] + [(False, None)]
    return cap


def _clock(values):
    it = iter(values)
    return lambda: next(it)


@patch(PATCH_TARGET)
def test_open_failure(mock_cls):
    mock_cls.return_value = _fake_capture([], opened=False)
    cam = CameraCapture(camera_index=3)
    assert cam.open() is False
    assert not cam.is_open


@patch(PATCH_TARGET)
def test_read_frame_mirrors_and_stamps(mock_cls):
    src = np.zeros((2, 3, 3), dtype=np.uint8)
    src[:, 0] = 255
    mock_cls.return_value = _fake_capture([src])

    cam = CameraCapture(clock=_clock([10.0, 11.0]))
    assert cam.open()
    ok, frame, ts = cam.read_frame()
    assert ok and ts == 10.0
    assert frame[0, 2, 0] == 255 and frame[0, 0, 0] == 0

    ok, frame, _ = cam.read_frame()
    assert not ok and frame is None
    assert not cam.is_open


@patch(PATCH_TARGET)
def test_frames_generator_stops_on_failure(mock_cls):
    frames = [np.full((2, 2, 3), i, dtype=np.uint8) for i in range(3)]
    mock_cls.return_value = _fake_capture(frames)

    with CameraCapture(mirror=False, clock=_clock([0.0, 33.0, 66.0, 99.0])) as cam:
        got = list(cam.frames())
    assert [ts for _, ts in got] == [0.0, 33.0, 66.0]
    assert [int(f[0, 0, 0]) for f, _ in got] == [0, 1, 2]
    mock_cls.return_value.release.assert_called_once()


def test_read_without_open():
    cam = CameraCapture(clock=lambda: 5.0)
    assert cam.read_frame() == (False, None, 5.0)
