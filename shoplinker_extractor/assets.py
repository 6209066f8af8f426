"""Image download through the authenticated browser context."""

import re
from pathlib import Path, PurePosixPath
from typing import List, Tuple, Union
from urllib.parse import urljoin, urlsplit

from loguru import logger
from playwright.sync_api import Error as PlaywrightError

from shoplinker_extractor.errors import AssetUnavailable
from shoplinker_extractor.models import ExtractedFields

UNSAFE_NAME_CHARS = re.compile(r'[\\/:*?"<>|]')
DEFAULT_EXTENSION = ".jpg"


def sanitize_name(name: str) -> str:
    """Make a product code safe to use as a directory name."""
    return UNSAFE_NAME_CHARS.sub("_", name).strip()


def asset_extension(url: str) -> str:
    """Extension of the URL's path component, ``.jpg`` when absent."""
    suffix = PurePosixPath(urlsplit(url).path).suffix
    return suffix or DEFAULT_EXTENSION


class AssetFetcher:
    """Fetches images with the session's cookies and files them per product code."""

    def __init__(self, images_root: Union[str, Path], base_url: str = "", timeout_ms: int = 15000):
        self.images_root = Path(images_root)
        self.base_url = base_url
        self.timeout_ms = timeout_ms

    def absolute_url(self, url: str) -> str:
        if not self.base_url:
            return url
        return urljoin(self.base_url.rstrip("/") + "/", url)

    def product_dir(self, product_code: str) -> Path:
        return self.images_root / sanitize_name(product_code)

    def main_path(self, product_code: str, url: str) -> Path:
        return self.product_dir(product_code) / f"main{asset_extension(url)}"

    def additional_path(self, product_code: str, index: int, url: str) -> Path:
        """Path for the ``index``-th (1-based) additional image."""
        return self.product_dir(product_code) / f"additional_{index}{asset_extension(url)}"

    def fetch(self, context, remote_url: str, destination_path: Union[str, Path]) -> Path:
        """Download ``remote_url`` inside ``context`` and write it to disk.

        ``context`` is a Playwright ``BrowserContext``; its request client
        shares the logged-in cookies, which cannot be obtained separately.

        Raises:
            AssetUnavailable: on a non-success response, an unreadable body,
                a transport error or a failed write
        """
        destination = Path(destination_path)
        try:
            response = context.request.get(remote_url, timeout=self.timeout_ms)
        except PlaywrightError as e:
            raise AssetUnavailable(remote_url, reason=str(e)) from e

        if not response.ok:
            raise AssetUnavailable(remote_url, status=response.status)

        try:
            body = response.body()
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(body)
        except (PlaywrightError, OSError) as e:
            raise AssetUnavailable(remote_url, reason=str(e)) from e

        logger.debug(f"Saved {len(body)} bytes to {destination}")
        return destination

    def download_all(self, context, fields: ExtractedFields) -> Tuple[str, Tuple[str, ...]]:
        """Download the main and additional images of one product.

        A failed asset leaves its path empty; the remaining assets are still
        attempted. Nothing is downloaded when the product code is unknown,
        since the code names the directory.

        Returns:
            (main_image_path, additional_image_paths)
        """
        if not fields.product_code:
            if fields.main_image_url or fields.additional_image_urls:
                logger.warning("Skipping image download: product code could not be derived")
            return "", ()

        main_path = ""
        if fields.main_image_url:
            main_path = self._fetch_or_empty(
                context,
                self.absolute_url(fields.main_image_url),
                lambda url: self.main_path(fields.product_code, url),
                "main image",
            )
        else:
            logger.warning(f"{fields.product_code}: no main image assigned")

        additional_paths: List[str] = []
        for index, raw_url in enumerate(fields.additional_image_urls, start=1):
            additional_paths.append(
                self._fetch_or_empty(
                    context,
                    self.absolute_url(raw_url),
                    lambda url, i=index: self.additional_path(fields.product_code, i, url),
                    f"additional image {index}",
                )
            )

        saved = sum(1 for p in additional_paths if p)
        logger.info(
            f"{fields.product_code}: main image {'saved' if main_path else 'missing'}, "
            f"{saved}/{len(additional_paths)} additional images saved"
        )
        return main_path, tuple(additional_paths)

    def _fetch_or_empty(self, context, url: str, path_for, label: str) -> str:
        try:
            return str(self.fetch(context, url, path_for(url)))
        except AssetUnavailable as e:
            logger.warning(f"Failed to download {label}: {e}")
            return ""
