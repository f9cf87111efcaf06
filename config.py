"""
VocalFlow - Configuration

All settings for the video interview tool are managed here.
Values come from environment variables or a local .env file.
The Gemini API key is the only setting required for analysis.
"""

import shutil
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from loguru import logger

from vocalflow.utils.logger import setup_logging

load_dotenv()


class CaptureConfig(BaseSettings):
    """Camera / microphone capture settings"""

    # Video
    camera_index: int = 0
    frame_width: int = 1280
    frame_height: int = 720
    fps: int = 30
    video_codec: str = "mp4v"
    mime_type: str = "video/mp4"

    # Audio
    audio_sample_rate: int = 44100
    audio_channels: int = 1
    audio_chunk_size: int = 1024

    # Recording limits (seconds)
    prompt_max_duration: int = 60
    answer_max_duration: int = 90
    tick_interval: float = Field(1.0, description="Seconds between elapsed-time ticks")

    ffmpeg_binary: str = "ffmpeg"
    temp_dir: Path = Path("./temp")

    @field_validator("audio_sample_rate", mode="before")
    @classmethod
    def valid_sample_rate(cls, v: int) -> int:
        if int(v) not in [8000, 16000, 22050, 44100, 48000]:
            raise ValueError("Invalid sample rate")
        return int(v)

    @field_validator("temp_dir", mode="before")
    @classmethod
    def create_temp_dir(cls, v: Path) -> Path:
        Path(v).mkdir(parents=True, exist_ok=True)
        return Path(v)

    model_config = {"env_prefix": "CAPTURE_", "env_file": ".env", "extra": "ignore"}


class AnalyzerConfig(BaseSettings):
    """Gemini analysis settings"""

    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    timeout: float = Field(120.0, description="Seconds before an analysis call is abandoned")

    model_config = {"env_prefix": "GEMINI_", "env_file": ".env", "extra": "ignore"}


class WebhookConfig(BaseSettings):
    """Result delivery settings"""

    timeout: float = 30.0

    model_config = {"env_prefix": "WEBHOOK_", "env_file": ".env", "extra": "ignore"}


class StorageConfig(BaseSettings):
    """Flow record and prompt clip storage"""

    state_dir: Path = Path("./data/state")
    clips_dir: Path = Path("./data/clips")
    flow_key: str = "vocalflow_active_flow"

    @field_validator("state_dir", "clips_dir", mode="before")
    @classmethod
    def create_dirs(cls, v: Path) -> Path:
        Path(v).mkdir(parents=True, exist_ok=True)
        return Path(v)

    model_config = {"env_prefix": "STORAGE_", "env_file": ".env", "extra": "ignore"}


class ApplicationConfig(BaseSettings):
    """General application settings"""

    base_dir: Path = Path(".")
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore"}


class Config:
    """Singleton configuration object"""

    _instance: Optional["Config"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized") and self._initialized:
            return

        self.capture = CaptureConfig()
        self.analyzer = AnalyzerConfig()
        self.webhook = WebhookConfig()
        self.storage = StorageConfig()
        self.app = ApplicationConfig()

        setup_logging(log_level=self.app.log_level, base_dir=self.app.base_dir)

        self._initialized = True

    def validate(self) -> bool:
        """Check that analysis and recording can run on this machine"""
        ok = True
        if not self.analyzer.api_key:
            logger.error("GEMINI_API_KEY is not set, answers will not be analyzed!")
            ok = False
        if shutil.which(self.capture.ffmpeg_binary) is None:
            logger.warning(f"'{self.capture.ffmpeg_binary}' not found, clips will be recorded without audio")
        for path in (self.storage.state_dir, self.storage.clips_dir, self.capture.temp_dir):
            if not path.exists():
                logger.error(f"Missing directory: {path}")
                ok = False
        if ok:
            logger.info("Configuration check passed")
        return ok

    def get_summary(self) -> dict:
        """Return a printable configuration overview"""
        return {
            "analyzer": {
                "model": self.analyzer.model,
                "api_key": "set" if self.analyzer.api_key else "missing",
                "timeout": self.analyzer.timeout,
            },
            "capture": {
                "camera_index": self.capture.camera_index,
                "resolution": f"{self.capture.frame_width}x{self.capture.frame_height}",
                "fps": self.capture.fps,
                "sample_rate": self.capture.audio_sample_rate,
                "prompt_max_duration": self.capture.prompt_max_duration,
                "answer_max_duration": self.capture.answer_max_duration,
            },
            "storage": {
                "state_dir": str(self.storage.state_dir),
                "clips_dir": str(self.storage.clips_dir),
                "flow_key": self.storage.flow_key,
            },
            "webhook": {"timeout": self.webhook.timeout},
        }


# Global config instance
config = Config()
