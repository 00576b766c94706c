"""Module discovery: metadata extraction and directory scanning."""

from modtoggler.discovery.engine import DiscoveryEngine
from modtoggler.discovery.extractor import (
    DEFAULT_DENY_LIST,
    MetadataExtractor,
    find_download_link,
)

__all__ = [
    "DEFAULT_DENY_LIST",
    "DiscoveryEngine",
    "MetadataExtractor",
    "find_download_link",
]
