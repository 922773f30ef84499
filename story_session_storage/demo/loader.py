"""
Bundled demo story loader.

The demo story ships as a static document at
``projects/<project_dir>/story.json``. Deployments served from a sub-path
publish it under ``<base_path>/projects/<project_dir>/story.json`` instead,
so the loader tries the conventional location first and falls back to the
base-path-qualified one.

The root may be a local directory or an ``http(s)://`` URL.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles
import aiohttp

from ..exceptions import DemoFetchError
from ..protocol import DEMO_STORY, StoryDocument

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0  # seconds


def _is_url(root: str) -> bool:
    return root.startswith(("http://", "https://"))


class DemoDocumentLoader:
    """Fetches the read-only demo document.

    Example:
        >>> loader = DemoDocumentLoader("https://example.org", base_path="/editor")
        >>> document = await loader.fetch()
        >>> document.page_title
        'A Walk Through the Dunes'
    """

    def __init__(
        self,
        root: str | Path = ".",
        base_path: str = "",
        project_dir: str = DEMO_STORY.project_dir,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Args:
            root: Directory or URL the application is served from
            base_path: Sub-path prefix used by sub-path deployments
            project_dir: Demo project directory under ``projects/``
            timeout: HTTP timeout in seconds
        """
        self.root = str(root)
        self.base_path = base_path.strip("/")
        self.project_dir = project_dir
        self.timeout = timeout

    def candidates(self) -> list[str]:
        """Locations tried in order."""
        relative = f"projects/{self.project_dir}/story.json"
        paths = [relative]
        if self.base_path:
            paths.append(f"{self.base_path}/{relative}")

        if _is_url(self.root):
            root = self.root.rstrip("/")
            return [f"{root}/{path}" for path in paths]
        return [str(Path(self.root) / path) for path in paths]

    async def fetch(self) -> StoryDocument:
        """Fetch and validate the demo document.

        Raises:
            DemoFetchError: If no candidate location yields a valid document
        """
        locations = self.candidates()
        last_error: Exception | None = None

        for location in locations:
            try:
                data = await self._read(location)
                return self._validate(location, data)
            except (OSError, aiohttp.ClientError, json.JSONDecodeError, ValueError) as e:
                logger.debug(f"Demo story not available at {location}: {e}")
                last_error = e

        raise DemoFetchError(locations[-1], last_error)

    async def _read(self, location: str) -> Any:
        if _is_url(location):
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(location) as response:
                    response.raise_for_status()
                    return json.loads(await response.text())

        async with aiofiles.open(location, encoding="utf-8") as f:
            return json.loads(await f.read())

    @staticmethod
    def _validate(location: str, data: Any) -> StoryDocument:
        if not isinstance(data, dict):
            raise ValueError(f"{location} is not a JSON object")
        if "pageTitle" not in data:
            raise ValueError(f"{location} has no pageTitle")
        if not isinstance(data.get("blocks"), list):
            raise ValueError(f"{location} has no blocks list")
        return StoryDocument.from_dict(data)
