"""
Merging a refetched chapter draft into the local page list.
"""
from dataclasses import replace
from typing import Iterable, List, Sequence

from mangaink.core.annotations.document import ensure_document
from mangaink.core.annotations.models import EditorPageItem


def reconcile_pages(
    server_pages: Sequence[EditorPageItem],
    prev_pages: Sequence[EditorPageItem],
    dirty_ids: Iterable[str],
) -> List[EditorPageItem]:
    """
    Merge server pages with the local copy.

    The server is always right about the image descriptor, order index and
    analysis. Annotations come from the server unless the page has unsaved
    local edits, in which case the local document is kept.

    Args:
        server_pages: Pages from the latest draft fetch
        prev_pages: Pages currently held by the editor
        dirty_ids: Ids of pages with unsaved edits

    Returns:
        Merged pages sorted by ``orderIndex``. Pages missing from the server
        response are dropped.
    """
    prev_by_id = {p.id: p for p in prev_pages}
    dirty = set(dirty_ids)

    merged = []
    for server_page in server_pages:
        prev = prev_by_id.get(server_page.id)
        if prev is not None and server_page.id in dirty:
            annotations = ensure_document(server_page.id, prev.annotations)
        else:
            annotations = ensure_document(server_page.id, server_page.annotations)
        merged.append(replace(server_page, annotations=annotations))

    merged.sort(key=lambda p: p.order_index)
    return merged
