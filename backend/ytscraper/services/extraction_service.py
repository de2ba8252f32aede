"""YouTube extraction powered by the yt-dlp command line tool.

yt-dlp runs as a child process so that the tool can be upgraded (YouTube
breaks it regularly) independently of this service, and so that a hung
download can always be killed.
"""

import asyncio
import json
import logging
import os
import shlex
import signal
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Sequence

import requests

from ytscraper.core.exceptions import ExtractionFailed, UpstreamUnavailable
from ytscraper.utils.youtube import watch_url

logger = logging.getLogger(__name__)

# Prefer an mp4/m4a pair so the merge needs no re-encode, fall back to anything.
DEFAULT_FORMAT = "bv*[ext=mp4]+ba[ext=m4a]/b[ext=mp4]/bv*+ba/b"

THUMBNAIL_SUFFIXES = (".jpg", ".jpeg", ".webp", ".png")
SIDECAR_SUFFIXES = (".json", ".part", ".ytdl", ".temp", ".vtt", ".srt", ".description")

STDERR_TAIL_LINES = 20


@dataclass
class ExtractionResult:
    """Standardised output of a successful extraction."""

    video_path: Path
    thumbnail_path: Path | None = None
    title: str = ""
    description: str | None = None
    duration_seconds: float | None = None
    source_id: str | None = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str

    @property
    def diagnostic(self) -> str:
        lines = [line for line in self.stderr.splitlines() if line.strip()]
        return "\n".join(lines[-STDERR_TAIL_LINES:])


class CommandTimeout(Exception):
    pass


class BaseExtractor(ABC):
    """Interface the worker pipeline and the search endpoint depend on."""

    @abstractmethod
    async def download(
        self,
        url: str,
        dest_dir: Path | str | None = None,
        cookies_file: Path | str | None = None,
    ) -> ExtractionResult:
        """Download the video behind ``url`` and return local paths plus metadata."""
        raise NotImplementedError

    @abstractmethod
    async def search(self, query: str, max_results: int) -> List[str]:
        """Resolve a free-text query to at most ``max_results`` distinct video URLs."""
        raise NotImplementedError


class YtDlpExtractor(BaseExtractor):
    def __init__(
        self,
        binary: str | Sequence[str] = "yt-dlp",
        download_timeout: float = 30 * 60,
        search_timeout: float = 60,
        cookies_file: Path | str | None = None,
        download_dir: Path | str | None = None,
        thumbnail_timeout: float = 10,
        format_selector: str = DEFAULT_FORMAT,
        session: requests.Session | None = None,
    ) -> None:
        self._command = shlex.split(binary) if isinstance(binary, str) else list(binary)
        self._download_timeout = download_timeout
        self._search_timeout = search_timeout
        self._cookies_file = str(cookies_file) if cookies_file else None
        self._download_dir = str(download_dir) if download_dir else None
        self._thumbnail_timeout = thumbnail_timeout
        self._format = format_selector
        self._session = session or requests.Session()

    async def download(self, url, dest_dir=None, cookies_file=None) -> ExtractionResult:
        if dest_dir is None:
            dest_dir = tempfile.mkdtemp(prefix="ytscraper-", dir=self._download_dir)
        dest = Path(dest_dir)
        dest.mkdir(parents=True, exist_ok=True)

        args = [
            "--no-playlist",
            "--no-progress",
            "--restrict-filenames",
            "-f", self._format,
            "--merge-output-format", "mp4",
            "--write-info-json",
            "--write-thumbnail",
            "--convert-thumbnails", "jpg",
            "-P", str(dest),
            "-o", "%(id)s.%(ext)s",
        ]
        cookies = cookies_file or self._cookies_file
        if cookies:
            args += ["--cookies", str(cookies)]
        args += ["--", url]

        logger.info(f"[yt-dlp] downloading {url} into {dest}")
        try:
            output = await self._run(args, self._download_timeout)
        except CommandTimeout:
            raise ExtractionFailed(
                f"yt-dlp timed out after {self._download_timeout:g}s downloading {url}"
            )

        if output.returncode != 0:
            raise ExtractionFailed(
                f"yt-dlp exited with code {output.returncode}: {output.diagnostic or 'no output'}"
            )

        info = self._load_info(dest)
        video_path = self._find_media(dest, info.get("id"))
        if video_path is None:
            raise ExtractionFailed(
                f"yt-dlp finished but produced no media file for {url}"
                + (f": {output.diagnostic}" if output.diagnostic else "")
            )

        thumbnail_path = self._find_thumbnail(dest)
        if thumbnail_path is None:
            thumbnail_path = await self._fetch_thumbnail(info, dest)

        return ExtractionResult(
            video_path=video_path,
            thumbnail_path=thumbnail_path,
            title=info.get("title") or video_path.stem,
            description=info.get("description") or None,
            duration_seconds=self._safe_float(info.get("duration")),
            source_id=info.get("id"),
            extra={"webpage_url": info.get("webpage_url") or url},
        )

    async def search(self, query: str, max_results: int) -> List[str]:
        args = [
            "--flat-playlist",
            "--dump-single-json",
            "--no-warnings",
            "--",
            f"ytsearch{max_results}:{query}",
        ]

        logger.info(f"[yt-dlp] searching {query!r} (max_results={max_results})")
        try:
            output = await self._run(args, self._search_timeout)
        except CommandTimeout:
            raise UpstreamUnavailable(f"YouTube search timed out after {self._search_timeout:g}s")

        if output.returncode != 0:
            raise UpstreamUnavailable(
                f"YouTube search failed (exit code {output.returncode}): {output.diagnostic or 'no output'}"
            )

        try:
            payload = json.loads(output.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise UpstreamUnavailable(f"YouTube search returned unreadable output: {exc}") from exc

        urls: List[str] = []
        for entry in payload.get("entries") or []:
            if not isinstance(entry, dict):
                continue
            url = watch_url(entry["id"]) if entry.get("id") else entry.get("url")
            if url and url not in urls:
                urls.append(url)
            if len(urls) >= max_results:
                break
        return urls

    async def _run(self, args: List[str], timeout: float) -> CommandOutput:
        """Run the configured yt-dlp command; the child is killed on timeout or cancellation."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise UpstreamUnavailable(f"Cannot start {self._command[0]}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(proc)
            raise CommandTimeout()
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        return CommandOutput(
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        # Kill the whole session: ffmpeg children hold the output pipes.
        try:
            if os.name == "posix":
                os.killpg(proc.pid, signal.SIGKILL)
            elif proc.returncode is None:
                proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        logger.warning(f"[yt-dlp] killed pid={proc.pid}")

    @staticmethod
    def _load_info(dest: Path) -> dict[str, Any]:
        for path in sorted(dest.glob("*.info.json")):
            try:
                return json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning(f"[yt-dlp] unreadable info json {path}: {exc}")
        return {}

    @staticmethod
    def _find_media(dest: Path, source_id: str | None) -> Path | None:
        candidates = [
            p for p in dest.iterdir()
            if p.is_file()
            and not p.name.endswith(SIDECAR_SUFFIXES)
            and p.suffix.lower() not in THUMBNAIL_SUFFIXES
            and p.stat().st_size > 0
        ]
        if not candidates:
            return None
        if source_id:
            for p in candidates:
                if p.stem == source_id and p.suffix == ".mp4":
                    return p.resolve()
        return max(candidates, key=lambda p: p.stat().st_size).resolve()

    @staticmethod
    def _find_thumbnail(dest: Path) -> Path | None:
        for suffix in THUMBNAIL_SUFFIXES:
            for p in sorted(dest.glob(f"*{suffix}")):
                if p.is_file() and p.stat().st_size > 0:
                    return p.resolve()
        return None

    async def _fetch_thumbnail(self, info: dict[str, Any], dest: Path) -> Path | None:
        url = info.get("thumbnail")
        video_id = info.get("id") or "thumbnail"
        if not url:
            return None

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(
                None, partial(self._session.get, url, timeout=self._thumbnail_timeout)
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning(f"Failed to download thumbnail for {video_id}: {exc}")
            return None

        destination = (dest / f"{video_id}.jpg").resolve()
        destination.write_bytes(response.content)
        return destination

    @staticmethod
    def _safe_float(value: Any) -> float | None:
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None
