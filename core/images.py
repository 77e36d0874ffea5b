# core/images.py
import base64
import os
import random
import string
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

from .logger import get_logger
from .models import ALLOWED_EXTENSIONS, MAX_PICKED_IMAGES, StagedImage
from .validation import is_http_url

logger = get_logger(__name__)

DOWNLOAD_TIMEOUT = int(os.getenv("IMAGE_DOWNLOAD_TIMEOUT", "30"))
STORAGE_PREFIX = "items"

_BASE36 = string.digits + string.ascii_lowercase


class ImageReadError(Exception):
    """A staged image's bytes could not be obtained."""


class StorageError(Exception):
    """Upload to object storage failed."""


def get_extension(uri: str, filename: Optional[str] = None) -> str:
    candidate = (filename or uri).split("?")[0].rsplit(".", 1)
    ext = candidate[-1].lower() if len(candidate) == 2 else ""
    return ext if ext in ALLOWED_EXTENSIONS else "jpg"


def get_content_type(extension: str) -> str:
    if extension == "png":
        return "image/png"
    if extension == "webp":
        return "image/webp"
    if extension in ("heic", "heif"):
        return "image/heic"
    return "image/jpeg"


def create_storage_path(extension: str) -> str:
    suffix = "".join(random.choice(_BASE36) for _ in range(8))
    return f"{STORAGE_PREFIX}/{int(time.time() * 1000)}-{suffix}.{extension}"


def _local_path(uri: str) -> Optional[str]:
    if uri.startswith("file://"):
        return uri[len("file://"):]
    if "://" not in uri:
        return uri
    return None


def read_image_bytes(image: StagedImage) -> bytes:
    if image.payload:
        try:
            return base64.b64decode(image.payload)
        except (ValueError, TypeError) as e:
            raise ImageReadError("Unable to decode selected image.") from e

    if is_http_url(image.uri):
        try:
            r = requests.get(image.uri, timeout=DOWNLOAD_TIMEOUT)
            r.raise_for_status()
        except requests.RequestException as e:
            raise ImageReadError("Unable to read image from URL.") from e
        return r.content

    path = _local_path(image.uri)
    if path and os.path.isfile(path):
        with open(path, "rb") as f:
            return f.read()

    raise ImageReadError("Unable to read selected image. Please re-select the image.")


def upload_local_image(image: StagedImage, storage) -> str:
    extension = get_extension(image.uri, image.filename)
    body = read_image_bytes(image)
    return storage.upload(create_storage_path(extension), body, get_content_type(extension))


def upload_local_images(images: List[StagedImage], storage) -> List[StagedImage]:
    """
    Upload every "file" image and return the set with each one swapped for
    its hosted URL. Stops at the first failure; blobs already written stay
    in the bucket.
    """
    updated: List[StagedImage] = []
    for image in images:
        if image.kind == "file":
            remote_url = upload_local_image(image, storage)
            updated.append(
                StagedImage(id=image.id, kind="url", uri=remote_url, filename=image.filename)
            )
        else:
            updated.append(image)

    uploaded = sum(1 for a, b in zip(images, updated) if a is not b)
    if uploaded:
        logger.info("Uploaded %d staged image(s)", uploaded)
    return updated


class ImageStaging:
    """Staged image set for a draft: URL entries and device picks."""

    def __init__(self, alerts, images: Optional[List[StagedImage]] = None):
        self.alerts = alerts
        self.images: List[StagedImage] = list(images or [])

    def __len__(self):
        return len(self.images)

    def uris(self) -> List[str]:
        return [img.uri for img in self.images]

    def add_url(self, url: str) -> bool:
        url = (url or "").strip()
        if not url:
            return False
        if not is_http_url(url):
            self.alerts.show("Invalid URL", "Enter a valid http/https image URL.")
            return False
        if url in self.uris():
            return False

        self.images.append(
            StagedImage(id=f"{int(time.time() * 1000)}-{random.random()}", kind="url", uri=url)
        )
        return True

    def add_picked(
        self,
        assets: Iterable[Dict[str, Any]],
        permission_granted: bool = True,
    ) -> int:
        """
        Add device picks. Each asset is a dict with uri and optionally
        asset_id, filename and base64. Returns how many were added.
        """
        if not permission_granted:
            self.alerts.show("Permission required", "Allow access to pick images.")
            return 0

        existing = set(self.uris())
        picked: List[StagedImage] = []
        for asset in list(assets)[:MAX_PICKED_IMAGES]:
            uri = asset.get("uri")
            if not uri or uri in existing:
                continue
            existing.add(uri)
            picked.append(
                StagedImage(
                    id=asset.get("asset_id") or uri,
                    kind="file",
                    uri=uri,
                    filename=asset.get("filename"),
                    payload=asset.get("base64"),
                )
            )

        self.images.extend(picked)
        return len(picked)

    def remove(self, image_id: str) -> None:
        self.images = [img for img in self.images if img.id != image_id]

    def make_cover(self, image_id: str) -> None:
        idx = next((i for i, img in enumerate(self.images) if img.id == image_id), -1)
        if idx <= 0:
            return
        image = self.images.pop(idx)
        self.images.insert(0, image)

    def upload(self, storage) -> List[StagedImage]:
        self.images = upload_local_images(self.images, storage)
        return self.images

    def clear(self) -> None:
        self.images = []
