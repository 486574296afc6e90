"""
EPUB reading, markdown transcoding, partitioning and reconstruction.
"""

from .reader import EpubArchive, ResourceItem
from .builder import DocBuilder, BuilderPage
from .partitioner import partition, group, join_partition, partition_archive, preview_chapter
from .transcoder import (
    html_to_markdown,
    markdown_to_xhtml,
    rewrite_image_paths,
    strip_think_tags,
    strip_part_tags,
    replace_jp_symbols,
    part_tag,
)

__all__ = [
    'EpubArchive',
    'ResourceItem',
    'DocBuilder',
    'BuilderPage',
    'partition',
    'group',
    'join_partition',
    'partition_archive',
    'preview_chapter',
    'html_to_markdown',
    'markdown_to_xhtml',
    'rewrite_image_paths',
    'strip_think_tags',
    'strip_part_tags',
    'replace_jp_symbols',
    'part_tag',
]
