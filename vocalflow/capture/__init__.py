from .devices import CaptureDevice, OpenCVCaptureDevice, MediaChunk
from .video_recorder import VideoRecorder, RecordingHandle
from .playback import play_clip


__all__ = [
    'CaptureDevice',
    'OpenCVCaptureDevice',
    'MediaChunk',
    'VideoRecorder',
    'RecordingHandle',
    'play_clip',
]
