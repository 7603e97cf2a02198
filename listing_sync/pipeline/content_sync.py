"""Create or update the content item that mirrors one source record."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from urllib.parse import urlparse

from listing_sync.common.config_loader import DestinationSettings
from listing_sync.common.constants import POST_STATUS_PUBLISH
from listing_sync.common.errors import StoreError
from listing_sync.common.fs import dumps_compact
from listing_sync.common.http import HttpClient, HttpRequestError
from listing_sync.common.logging import log_event
from listing_sync.pipeline.record_model import RecordModel
from listing_sync.store.content_store import ContentStore

logger = logging.getLogger(__name__)

HIDDEN_SEARCH_OPEN = (
    '<p class="lsync_hidden_search_content" style="line-height:0; overflow:hidden; padding:0; margin:0;">'
)


def hidden_search_content(model: RecordModel) -> str:
    """Searchable text appended to the body: full address and every served postal code."""
    parts = [HIDDEN_SEARCH_OPEN, " " + model.full_address]
    parts.extend(" " + postal_code for postal_code in model.postal_code_ids)
    parts.append("</p>")
    return "".join(parts)


def _logo_filename(url: str) -> str:
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]
    name = Path(urlparse(url).path).name or "logo"
    return f"{digest}-{name}"


class ContentSync:
    def __init__(
        self,
        store: ContentStore,
        settings: DestinationSettings,
        *,
        http_client: HttpClient | None = None,
        media_dir: Path | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.http_client = http_client
        self.media_dir = media_dir

    def find_item_id(self, model: RecordModel) -> int:
        return self.store.find_item_by_meta(self.settings.post_type, model.unique_id_field, model.unique_id)

    def upsert(self, model: RecordModel) -> int:
        """Returns the local item id, or 0 when the write failed."""
        payload = {
            "item_id": self.find_item_id(model),
            "post_type": self.settings.post_type,
            "title": model.display_name,
            "body": model.description + hidden_search_content(model),
            "status": POST_STATUS_PUBLISH,
            "meta": {model.unique_id_field: model.unique_id},
        }
        try:
            item_id = self.store.save_item(**payload)
        except StoreError as exc:
            log_event(
                logger,
                f"Failed to insert/update item: {exc} | {dumps_compact(payload)}",
                level=logging.ERROR,
                event="ITEM_UPSERT_FAIL",
                status="error",
                unique_id=model.unique_id,
                error_code=exc.error_code,
            )
            return 0

        if not item_id:
            log_event(
                logger,
                f"Failed to insert/update item: Unknown error | {dumps_compact(payload)}",
                level=logging.ERROR,
                event="ITEM_UPSERT_FAIL",
                status="error",
                unique_id=model.unique_id,
            )
            return 0

        if self.settings.sync_logos:
            self.attach_logo(model.logo_url, item_id)
        return item_id

    def attach_logo(self, logo_url: str, item_id: int) -> None:
        """Set the logo as featured attachment, downloading it only if no attachment has this source URL."""
        if not logo_url:
            return
        existing = self.store.find_attachment_by_source_url(logo_url)
        if existing:
            self.store.set_featured_attachment(item_id, existing)
            return
        if self.http_client is None or self.media_dir is None:
            return

        target = self.media_dir / _logo_filename(logo_url)
        try:
            self.http_client.download(logo_url, target)
            attachment_id = self.store.add_attachment(str(target), logo_url)
        except (HttpRequestError, OSError) as exc:
            log_event(
                logger,
                f"Failed to download image '{logo_url}' for item ID '{item_id}' | {exc}",
                level=logging.ERROR,
                event="LOGO_DOWNLOAD_FAIL",
                status="error",
                item_id=item_id,
            )
            return
        self.store.set_featured_attachment(item_id, attachment_id)
