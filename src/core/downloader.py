"""
Download management component.
Turns a remote URL into a local mp3 artifact with yt-dlp and owns the
naming and deletion of those temporary files.
"""

import asyncio
import itertools
import logging
import os
import tempfile
import time
from functools import partial
from typing import Optional

import yt_dlp

from utils.constants import YTDL_DOWNLOAD_OPTIONS, ARTIFACT_EXTENSION, ARTIFACT_PREFIX
from utils.exceptions import FetchError, CleanupError

logger = logging.getLogger(__name__)

_ARTIFACT_IDS = itertools.count(1)


class Downloader:
    def __init__(self, download_dir: Optional[str] = None, ffmpeg_path: Optional[str] = None):
        self.download_dir = download_dir or tempfile.gettempdir()
        self.ffmpeg_path = ffmpeg_path
        os.makedirs(self.download_dir, exist_ok=True)

    def new_artifact_stem(self) -> str:
        """Path without extension for a new artifact, unique within the process"""
        name = f"{ARTIFACT_PREFIX}{int(time.time() * 1000)}-{next(_ARTIFACT_IDS)}"
        return os.path.join(self.download_dir, name)

    def _ytdl_options(self, stem: str) -> dict:
        options = {
            **YTDL_DOWNLOAD_OPTIONS,
            'outtmpl': f"{stem}.%(ext)s",
        }
        if self.ffmpeg_path:
            options['ffmpeg_location'] = self.ffmpeg_path
        return options

    def _download(self, url: str, stem: str) -> None:
        with yt_dlp.YoutubeDL(self._ytdl_options(stem)) as ydl:
            ydl.download([url])

    async def fetch(self, url: str) -> str:
        """
        Download the audio of ``url`` and convert it to mp3.

        Args:
            url: Source URL, passed to yt-dlp as is

        Returns:
            str: Path of the new local artifact

        Raises:
            FetchError: If the download or the conversion failed
        """
        stem = self.new_artifact_stem()
        artifact_path = f"{stem}.{ARTIFACT_EXTENSION}"
        logger.info(f"Downloading audio to temporary file: {artifact_path}")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._download, url, stem))
        except Exception as e:
            logger.error(f"Error downloading {url}: {e}")
            raise FetchError(url, e) from e

        if not os.path.exists(artifact_path):
            raise FetchError(url, FileNotFoundError(artifact_path))

        logger.info(f"Download complete: {artifact_path}")
        return artifact_path

    def delete_artifact(self, path: str) -> bool:
        """Delete a finished artifact. Failures are logged and never raised."""
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(str(CleanupError(path, e)))
            return False
        logger.info(f"Temporary file deleted: {path}")
        return True
