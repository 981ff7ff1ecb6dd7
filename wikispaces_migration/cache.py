"""
Wikispaces Migration - Remote Record Cache

Memoizes remote lookups for the lifetime of one migration run, so each
page name and each file name is fetched at most once.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .api import WikispacesApi
from .downloader import Downloader, DownloadError
from .models import RemotePage


logger = logging.getLogger(__name__)


class RemoteRecordCache:
    """
    Memoizing layer over the remote API and the file downloader.

    Args:
        api: Remote API client
        downloader: WebDAV file fetcher
        cache_dir: Directory for downloaded files, created on first write
    """

    def __init__(self, api: WikispacesApi, downloader: Downloader, cache_dir: str):
        self.api = api
        self.downloader = downloader
        self.cache_dir = Path(cache_dir)
        self._pages: Dict[str, RemotePage] = {}
        self._all_pages: Optional[List[RemotePage]] = None
        self._files: Dict[str, Path] = {}
        self._seen: Set[Tuple[str, str]] = set()
        self._dir_ready = False

    def get_page(self, name: str) -> RemotePage:
        """
        Get the current-version metadata of a page.

        Raises:
            WikispacesAPIError: On remote faults
        """
        if name not in self._pages:
            if self._all_pages is not None:
                logger.debug(f"Page '{name}' not in full listing, fetching directly")
            self._pages[name] = self.api.get_page(name).unwrap()
        return self._pages[name]

    def get_all_pages(self) -> List[RemotePage]:
        """
        Get every page of the space.

        The first successful listing replaces anything cached by single
        lookups; later calls reuse that snapshot.
        """
        if self._all_pages is None:
            pages = self.api.list_pages().unwrap()
            self._pages = {page.name: page for page in pages}
            self._all_pages = pages
            logger.info(f"Found {len(pages)} pages")
        return list(self._all_pages)

    def first_sighting(self, kind: str, name: str) -> bool:
        """Return True the first time a (kind, name) pair is seen in this run."""
        key = (kind, name)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def _ensure_dir(self) -> None:
        if not self._dir_ready:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._dir_ready = True

    def _cache_path(self, name: str) -> Path:
        """
        Local path for a remote file name.

        Names come from page markup, so anything that is not a plain file
        name inside the cache directory is refused.

        Raises:
            DownloadError: For absolute names, separators or dot segments
        """
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise DownloadError(f"Unsafe file name: {name!r}", url=name)
        destination = self.cache_dir / name
        if destination.resolve().parent != self.cache_dir.resolve():
            raise DownloadError(f"Unsafe file name: {name!r}", url=name)
        return destination

    def download_file(self, name: str) -> Path:
        """
        Get a local path for a remote file, downloading it if needed.

        A file already present in the cache directory is a hit.

        Raises:
            DownloadError: When the file cannot be fetched
        """
        if name in self._files:
            return self._files[name]

        destination = self._cache_path(name)
        if destination.exists():
            logger.debug(f"Using cached file {destination}")
            self._files[name] = destination
            return destination

        data = self.downloader.download_file(name)
        self._ensure_dir()
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
        logger.info(f"Downloaded {name} ({len(data)} bytes)")
        self._files[name] = destination
        return destination
