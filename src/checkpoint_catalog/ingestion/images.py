"""
Image URL normalization for IGDB media.

IGDB returns protocol-relative thumbnail URLs such as
``//images.igdb.com/igdb/image/upload/t_thumb/co1wyy.jpg``. The size
is selected by the ``t_*`` path segment, so upgrading a thumbnail is a
matter of swapping that marker.
"""

import re

IGDB_IMAGE_HOST = "images.igdb.com"

COVER_SIZE = "t_cover_big"
SCREENSHOT_SIZE = "t_screenshot_big"
ARTWORK_SIZE = "t_1080p"

# Any of these already meets display quality
HIGH_QUALITY_MARKERS = (
    "t_cover_big",
    "t_cover_big_2x",
    "t_screenshot_big",
    "t_screenshot_big_2x",
    "t_screenshot_huge",
    "t_screenshot_huge_2x",
    "t_720p",
    "t_720p_2x",
    "t_1080p",
    "t_1080p_2x",
    "t_original",
)

LOW_QUALITY_MARKERS = (
    "t_thumb_2x",
    "t_thumb",
    "t_micro_2x",
    "t_micro",
    "t_cover_small_2x",
    "t_cover_small",
    "t_screenshot_med_2x",
    "t_screenshot_med",
    "t_logo_med_2x",
    "t_logo_med",
)

_UPLOAD_SEGMENT = "/image/upload/"


def _marker_pattern(marker: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![A-Za-z0-9]){re.escape(marker)}(?![A-Za-z0-9_])")


def _has_marker(url: str, marker: str) -> bool:
    return _marker_pattern(marker).search(url) is not None


def normalize_url(url: str) -> str:
    """
    Turn protocol-relative, plain-http or bare URLs into absolute https.

    Args:
        url: URL as returned upstream

    Returns:
        str: Absolute https URL (empty input is returned unchanged)
    """
    url = url.strip()
    if not url:
        return url
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("http://"):
        return "https://" + url[len("http://") :]
    if url.startswith("https://"):
        return url
    if url.startswith("/"):
        return f"https://{IGDB_IMAGE_HOST}{url}"
    return f"https://{url}"


def improve_image_quality(url: str, size: str = COVER_SIZE) -> str:
    """
    Upgrade an IGDB image URL to the requested size marker.

    Pure and idempotent: applying it to its own output returns the
    same string.

    Args:
        url: Image URL in any form IGDB produces
        size: Target size marker, e.g. ``t_cover_big`` or ``t_1080p``

    Returns:
        str: Absolute https URL at display quality
    """
    url = normalize_url(url)
    if not url:
        return url

    if _has_marker(url, size) or any(_has_marker(url, m) for m in HIGH_QUALITY_MARKERS):
        return url

    for marker in LOW_QUALITY_MARKERS:
        if _has_marker(url, marker):
            return _marker_pattern(marker).sub(size, url, count=1)

    if _UPLOAD_SEGMENT in url:
        head, _, tail = url.partition(_UPLOAD_SEGMENT)
        return f"{head}{_UPLOAD_SEGMENT}{size}/{tail}"

    directory, _, filename = url.rpartition("/")
    stem, dot, extension = filename.rpartition(".")
    if not dot or not stem:
        return f"{url}_{size}"
    return f"{directory}/{stem}_{size}.{extension}"
