"""Configuration for the mdpad editor."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from openai import AsyncOpenAI

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "mdpad" / "mdpad.json"


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        log.warning(f"Ignoring non-numeric {name}={value!r}")
        return default


class Config:
    """Editor settings, read from the environment and an optional JSON file.

    Public settings are UPPERCASE attributes; ``save()`` writes all of them
    except the API key and ``load()`` overrides them from disk.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._client: Optional[AsyncOpenAI] = None

        # OCR - "http" posts to OCR_URL, "vision" uses the OpenAI-compatible API
        self.OCR_BACKEND: str = os.environ.get("MDPAD_OCR_BACKEND", "http")
        self.OCR_URL: str = os.environ.get("MDPAD_OCR_URL", "http://127.0.0.1:5000/ocr")
        self.OCR_TIMEOUT: float = _env_float("MDPAD_OCR_TIMEOUT", 120.0)
        self._api_base_url = os.environ.get("OCR_API_BASE_URL", "https://api.openai.com/v1/")
        self._model_name = os.environ.get("OCR_MODEL_NAME", "gpt-4o-mini")
        self._api_key = os.environ.get("OCR_API_KEY")
        self.MAX_TOKENS = 8000
        self.TEMPERATURE = 0.1

        # Window
        self.WINDOW_TITLE = "Markdown Editor"
        self.WINDOW_WIDTH: int = 1440
        self.WINDOW_HEIGHT: int = 900
        self.WINDOW_MIN_WIDTH: int = 1024
        self.WINDOW_MIN_HEIGHT: int = 768
        self.DEV_SERVER_URL: Optional[str] = os.environ.get("MDPAD_DEV_URL")

        # Editor
        self.DEFAULT_VIEW_MODE = "editor"
        self.UNTITLED_NAME = "Untitled"
        self.OUTLINE_DEBOUNCE_MS = 300
        self.SIDEBAR_VISIBLE = True

        # File tree
        self.FILE_EXTENSIONS = [
            ".md",
            ".txt",
            ".markdown",
            ".mdown",
            ".mkd",
            ".mdx",
            ".doc",
            ".docx",
        ]
        self.EXCLUDED_DIRS = ["node_modules", ".git", ".vscode", "dist", "build"]
        self.SHOW_HIDDEN_FILES = False
        self.SHOW_IMAGES_IN_TREE = True

        # Preview
        self.SANITIZE_PREVIEW = True

        # Word import
        self.ANTIWORD_PATH: Optional[str] = os.environ.get("MDPAD_ANTIWORD")

    @property
    def config_path(self) -> Path:
        return self._config_path

    def save(self) -> None:
        """Save configuration to JSON file."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {key: value for key, value in vars(self).items() if not key.startswith("_")}
        data["API_BASE_URL"] = self._api_base_url
        data["MODEL_NAME"] = self._model_name

        with open(self._config_path, "w") as f:
            json.dump(data, f, indent=2)
        log.info(f"Saved configuration to {self._config_path}")

    def load(self) -> None:
        """Load configuration from JSON file."""
        if not self._config_path.exists():
            return

        try:
            with open(self._config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.warning(f"Ignoring unreadable config {self._config_path}: {e}")
            return

        for key, value in data.items():
            if key.startswith("_") or key == "API_KEY":
                continue
            if hasattr(self, key):
                setattr(self, key, value)
        log.debug(f"Loaded configuration from {self._config_path}")

    @property
    def API_BASE_URL(self) -> str:
        """Get the API base URL."""
        return self._api_base_url

    @API_BASE_URL.setter
    def API_BASE_URL(self, value: str) -> None:
        """Set the API base URL and drop the cached client."""
        self._api_base_url = value
        self._client = None

    @property
    def MODEL_NAME(self) -> str:
        return self._model_name

    @MODEL_NAME.setter
    def MODEL_NAME(self, value: str) -> None:
        self._model_name = value

    @property
    def API_KEY(self) -> Optional[str]:
        return self._api_key

    @API_KEY.setter
    def API_KEY(self, value: str) -> None:
        """Set the API key and drop the cached client."""
        if not value:
            raise ValueError("API_KEY cannot be empty")
        self._api_key = value
        self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        """AsyncOpenAI client for the vision OCR backend."""
        if not self._api_key:
            raise ValueError(
                "OCR_API_KEY environment variable is not set. "
                "Please set it with: export OCR_API_KEY='your-api-key'"
            )
        if self._client is None:
            self._client = AsyncOpenAI(base_url=self._api_base_url, api_key=self._api_key)
        return self._client
