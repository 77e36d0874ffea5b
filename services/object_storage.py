# services/object_storage.py
import os
from typing import Callable, Optional

import requests

from core.images import StorageError
from core.logger import get_logger

logger = get_logger(__name__)

SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "images")
STORAGE_TIMEOUT = int(os.getenv("STORAGE_TIMEOUT", "60"))
CACHE_CONTROL = "3600"


class ObjectStorage:
    """
    Uploads blobs to the hosted storage bucket and hands back public URLs.
    """

    def __init__(
        self,
        base_url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        bucket: str = STORAGE_BUCKET,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        http: Optional[requests.Session] = None,
        timeout: int = STORAGE_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.token_provider = token_provider
        self.http = http or requests.Session()
        self.timeout = timeout

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def upload(self, path: str, body: bytes, content_type: str) -> str:
        if not self.base_url:
            raise StorageError("Object storage is not configured (SUPABASE_URL).")

        token = (self.token_provider() if self.token_provider else None) or self.api_key
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": content_type,
            "cache-control": f"max-age={CACHE_CONTROL}",
            "x-upsert": "false",
        }
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"

        logger.info("Uploading %d bytes to %s/%s (%s)", len(body), self.bucket, path, content_type)
        try:
            r = self.http.post(url, data=body, headers=headers, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error("Upload of %s failed: %s", path, e)
            raise StorageError(f"Unable to upload image: {e}") from e

        public = self.public_url(path)
        logger.debug("Uploaded %s -> %s", path, public)
        return public
