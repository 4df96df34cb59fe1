"""Manifest sources for sample applications.

Local templates ship as package data and are rendered with the target
namespace and requesting user. Remote manifests are downloaded once and
served from an on-disk cache afterwards.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from string import Template
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from linkerd_adapter.services.mesh.exceptions import ManifestSourceError

logger = structlog.get_logger()

DEFAULT_MANIFEST_BASE_URL = "https://run.linkerd.io"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "linkerd-adapter"
TEMPLATE_DIR_NAME = "config_templates"


class TemplateRenderer:
    """Renders ``${namespace}`` / ``${user_name}`` manifest templates."""

    def __init__(self, template_dir: Path | None = None) -> None:
        """Initialize the renderer.

        Args:
            template_dir: Directory holding the templates. Defaults to the
                templates bundled with the package.
        """
        self._template_dir = template_dir

    def _read(self, name: str) -> str:
        try:
            if self._template_dir is not None:
                return (self._template_dir / name).read_text()
            bundled = resources.files("linkerd_adapter").joinpath(TEMPLATE_DIR_NAME)
            return bundled.joinpath(name).read_text()
        except (FileNotFoundError, IsADirectoryError) as e:
            raise ManifestSourceError(
                f"error loading template {name}", details=str(e)
            ) from e

    def render(self, name: str, namespace: str, user_name: str = "") -> str:
        """Render template *name*.

        Raises:
            ManifestSourceError: If the template is missing or references
                an unknown placeholder.
        """
        try:
            rendered = Template(self._read(name)).substitute(
                namespace=namespace, user_name=user_name
            )
        except (KeyError, ValueError) as e:
            raise ManifestSourceError(
                f"error executing template {name}", details=str(e)
            ) from e

        logger.debug("rendered_template", template=name, namespace=namespace)
        return rendered


class RemoteManifestCache:
    """Downloads remote manifests and keeps a copy on disk.

    A cached copy is returned without any network round trip.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_MANIFEST_BASE_URL,
        cache_dir: Path = DEFAULT_CACHE_DIR,
        timeout: int = 30,
        retries: int = 3,
    ) -> None:
        """Initialize the cache.

        Args:
            base_url: URL the manifest names are resolved against.
            cache_dir: Directory for downloaded copies.
            timeout: Request timeout in seconds.
            retries: Number of attempts for transient failures.
        """
        self.base_url = base_url.rstrip("/")
        self.cache_dir = Path(cache_dir).expanduser()
        self.timeout = timeout
        self._retries = retries
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def __enter__(self) -> RemoteManifestCache:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def cache_path(self, name: str) -> Path:
        return self.cache_dir / name

    def fetch(self, name: str) -> str:
        """Return manifest *name*, downloading it on first use.

        Raises:
            ManifestSourceError: If the manifest cannot be downloaded.
        """
        path = self.cache_path(name)
        if path.is_file() and path.stat().st_size > 0:
            logger.debug("manifest_cache_hit", manifest=name, path=str(path))
            return path.read_text()

        content = self._download(name)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        logger.info("manifest_cached", manifest=name, path=str(path))
        return content

    def _download(self, name: str) -> str:
        @retry(
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )
        def _request() -> httpx.Response:
            return self.client.get(f"/{name}")

        url = f"{self.base_url}/{name}"
        try:
            response = _request()
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ManifestSourceError(
                f"unable to download {url}",
                details=f"HTTP {e.response.status_code}",
            ) from e
        except httpx.HTTPError as e:
            raise ManifestSourceError(f"unable to download {url}", details=str(e)) from e

        logger.debug("manifest_downloaded", url=url, size=len(response.text))
        return response.text
