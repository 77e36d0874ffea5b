# core/items.py
import re
from typing import Any, Dict, List, Optional

from .images import ImageReadError, ImageStaging, StorageError
from .logger import get_logger
from .models import CATEGORIES, STATUSES, StagedImage
from .validation import normalize_serial

logger = get_logger(__name__)

PAGE_SIZE = 20


def normalize_search_query(query: str) -> str:
    return re.sub(r"\s+", "", query or "").upper()


class ItemsPager:
    """Offset pagination over the user's items, as the list screen scrolls."""

    def __init__(self, api, page_size: int = PAGE_SIZE, status: str = "all", query: str = ""):
        self.api = api
        self.page_size = page_size
        self.status = None if status == "all" else status
        self.query = query.strip() or None
        self.pages: List[List[Dict[str, Any]]] = []
        self.total = 0
        self.error: Optional[str] = None

    @property
    def items(self) -> List[Dict[str, Any]]:
        return [it for page in self.pages for it in page]

    @property
    def next_offset(self) -> Optional[int]:
        if not self.pages:
            return 0
        fetched = sum(len(p) for p in self.pages)
        return fetched if fetched < self.total else None

    @property
    def has_more(self) -> bool:
        return self.next_offset is not None

    def fetch_next(self) -> List[Dict[str, Any]]:
        offset = self.next_offset
        if offset is None:
            return []
        resp = self.api.get_items(
            limit=self.page_size, offset=offset, status=self.status, query=self.query
        )
        if resp.error:
            self.error = resp.message
            logger.warning("Items page at offset %d failed: %s", offset, resp.message)
            return []
        page = list(resp.data or [])
        self.pages.append(page)
        self.total = resp.count
        self.error = None
        return page

    def refresh(self) -> List[Dict[str, Any]]:
        self.pages = []
        self.total = 0
        return self.fetch_next()


def search_registry(api, query: str, **filters) -> List[Dict[str, Any]]:
    normalized = normalize_search_query(query)
    if not normalized:
        return []
    resp = api.search_registry(query=normalized, **filters)
    if resp.error:
        logger.warning("Registry search for %s failed: %s", normalized, resp.message)
        return []
    return list(resp.data or [])


class ItemEditor:
    """Detail screen for one registered item: edit, reorder images, delete."""

    def __init__(self, api, storage, alerts):
        self.api = api
        self.storage = storage
        self.alerts = alerts
        self.item: Optional[Dict[str, Any]] = None
        self.name = ""
        self.serial = ""
        self.category = CATEGORIES[0]
        self.status = STATUSES[0]
        self.description = ""
        self.staging = ImageStaging(alerts)
        self.saving = False

    def load(self, item_id: str) -> Optional[Dict[str, Any]]:
        resp = self.api.get_item(item_id)
        if resp.error or not resp.data:
            logger.info("Item %s not found: %s", item_id, resp.message)
            self.item = None
            return None

        item = resp.data
        self.item = item
        self.name = item.get("name") or ""
        self.serial = item.get("serial_number") or ""
        self.category = item.get("category") or CATEGORIES[0]
        self.status = item.get("status") or STATUSES[0]
        self.description = item.get("description") or ""
        urls = list(item.get("images") or [])
        if not urls and item.get("image_url"):
            urls = [item["image_url"]]
        self.staging = ImageStaging(
            self.alerts,
            [StagedImage(id=u, kind="url", uri=u) for u in urls],
        )
        return item

    def make_cover(self, image_id: str) -> None:
        self.staging.make_cover(image_id)

    def save(self) -> bool:
        if not self.item or self.saving:
            return False
        self.saving = True
        try:
            try:
                images = self.staging.upload(self.storage)
            except (StorageError, ImageReadError) as e:
                self.alerts.show("Upload Failed", str(e) or "Image upload failed")
                return False

            urls = [img.uri for img in images]
            payload = {
                "name": self.name.strip(),
                "serial_number": normalize_serial(self.serial),
                "category": self.category,
                "status": self.status,
                "description": self.description.strip() or None,
                "images": urls,
                "image_url": urls[0] if urls else None,
            }
            resp = self.api.update_item(self.item["id"], payload)
            if resp.error:
                self.alerts.show("Update failed", resp.message or "Could not update item")
                return False
            if isinstance(resp.data, dict):
                self.item = resp.data
            self.alerts.show("Saved", "Item updated")
            return True
        finally:
            self.saving = False

    def delete(self, confirmed: bool) -> bool:
        if not self.item or not confirmed:
            return False
        resp = self.api.delete_item(self.item["id"])
        if resp.error:
            self.alerts.show("Delete failed", resp.message or "Unable to delete")
            return False
        logger.info("Deleted item %s", self.item["id"])
        self.item = None
        return True
