"""
Wikispaces Migration - WebDAV Downloader

Fetches raw files (and, for diagnostics, page sources) through the
Wikispaces WebDAV interface. Files cannot be downloaded any other way.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth


logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Raised when a WebDAV fetch fails."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class Downloader:
    """
    Authenticated WebDAV client for one space.

    Example:
        downloader = Downloader("user", "secret", "myspace")
        data = downloader.download_file("diagram.png")
    """

    def __init__(
        self,
        user: str,
        password: str,
        space_name: str,
        session: Optional[requests.Session] = None,
        timeout: int = 60,
    ):
        self.space_name = space_name
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(user, password)

    @property
    def base_url(self) -> str:
        return f"https://{self.space_name}.wikispaces.com/space/dav"

    def _get(self, url: str) -> requests.Response:
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Download error for {url}: {e}")
            raise DownloadError(f"Request failed: {e}", url)

        if not response.ok:
            logger.error(f"Download error for {url}: HTTP {response.status_code}")
            raise DownloadError(
                f"HTTP {response.status_code}: {response.reason}",
                url,
                status_code=response.status_code,
            )
        return response

    def download_file(self, name: str) -> bytes:
        """
        Download a file attachment by name.

        Raises:
            DownloadError: On HTTP or transport errors
        """
        url = f"{self.base_url}/files/{quote(name)}"
        return self._get(url).content

    def fetch_page_source(
        self, name: str, version: Optional[int] = None, html: bool = False
    ) -> str:
        """Fetch the markup (or rendered HTML) of a page, optionally at a version."""
        suffix = "_html" if html else ""
        if version is None:
            url = f"{self.base_url}/pages{suffix}/{quote(name)}"
        else:
            url = f"{self.base_url}/history{suffix}/{quote(name)}/{version}"
        return self._get(url).text

    def list_version_ids(self, name: str) -> List[int]:
        """Parse the WebDAV history listing of a page into version ids."""
        quoted = quote(name)
        listing = self._get(f"{self.base_url}/history/{quoted}").text
        pattern = re.compile(
            r'<a href="/space/dav/history/(?:%s|%s)/(\d+)">' % (re.escape(quoted), re.escape(name))
        )
        return [int(v) for v in pattern.findall(listing)]
