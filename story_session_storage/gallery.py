"""
Gallery block media editing.

A gallery block is a dict ``{"type": "gallery", "media": [...]}`` whose
media items look like ``{"src", "type", "caption", "isHero"}``. These
helpers mutate the block in place; the editor re-renders afterwards.
"""

from typing import Any

from .exceptions import StoryValidationError

MAX_MEDIA_ITEMS = 20
MEDIA_TYPES = ("image", "video")


def new_gallery_block() -> dict[str, Any]:
    return {"type": "gallery", "media": []}


def _media(block: dict[str, Any]) -> list[dict[str, Any]]:
    return block.setdefault("media", [])


def add_media(block: dict[str, Any], path: str, media_type: str = "image") -> bool:
    """Append a media item.

    Returns:
        False when path is blank (nothing added), True otherwise

    Raises:
        StoryValidationError: On an unknown media type or a full gallery
    """
    path = (path or "").strip()
    if not path:
        return False
    if media_type not in MEDIA_TYPES:
        raise StoryValidationError("type", "must be image or video", media_type)

    media = _media(block)
    if len(media) >= MAX_MEDIA_ITEMS:
        raise StoryValidationError("media", f"maximum {MAX_MEDIA_ITEMS} media items")

    media.append({"src": path, "type": media_type, "caption": "", "isHero": False})
    return True


def set_caption(block: dict[str, Any], index: int, caption: str) -> None:
    media = _media(block)
    if 0 <= index < len(media):
        media[index]["caption"] = caption


def move_media(block: dict[str, Any], index: int, offset: int) -> bool:
    """Swap an item with its neighbour; out-of-range moves do nothing."""
    media = _media(block)
    target = index + offset
    if not (0 <= index < len(media) and 0 <= target < len(media)) or offset == 0:
        return False
    media[index], media[target] = media[target], media[index]
    return True


def set_hero(block: dict[str, Any], index: int) -> None:
    """Make one item the hero; all others lose the flag."""
    media = _media(block)
    if not 0 <= index < len(media):
        return
    for position, item in enumerate(media):
        item["isHero"] = position == index


def remove_media(block: dict[str, Any], index: int) -> dict[str, Any] | None:
    """Remove and return an item. The caller is responsible for confirmation."""
    media = _media(block)
    if 0 <= index < len(media):
        return media.pop(index)
    return None
