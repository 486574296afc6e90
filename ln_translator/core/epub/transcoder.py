"""
Markdown transcoding for EPUB chapters.

Both directions are pure functions:
- html_to_markdown: chapter XHTML -> plain markdown blocks (headings + paragraphs)
- markdown_to_xhtml: translated markdown -> complete XHTML chapter document
- rewrite_image_paths: retarget <img>/<image> references to the rebuilt Images/ folder
"""

import html
import posixpath
import re
from typing import List, Optional

from lxml import etree
from lxml import html as lxml_html
from markdown_it import MarkdownIt

from ln_translator.config import STYLESHEET_NAME, OUTPUT_LANGUAGE, IMAGES_DIR


THINK_TAG_PATTERN = re.compile(r'<think>.*?</think>\s*', re.DOTALL)
PART_TAG_PATTERN = re.compile(r'<part>.*?</part>\s*', re.DOTALL)

JP_QUOTES = str.maketrans({'「': '"', '」': '"', '『': '"', '』': '"'})

# Elements dropped with their whole subtree before conversion
SKIPPED_TAGS = {'head', 'img', 'image', 'script', 'style', 'rt', 'rp'}
HEADING_TAGS = {'h1': 1, 'h2': 2, 'h3': 3, 'h4': 4, 'h5': 5, 'h6': 6}
BLOCK_TAGS = set(HEADING_TAGS) | {'p'}

DEFAULT_IMAGE_BASE = f"../{IMAGES_DIR}"

_IMAGE_TAG_PATTERN = re.compile(r'<(?:svg:)?(img|image)\b[^>]*>', re.IGNORECASE)
_IMG_SRC_PATTERN = re.compile(r'(\ssrc\s*=\s*)(["\'])(.*?)\2', re.IGNORECASE | re.DOTALL)
_IMAGE_HREF_PATTERN = re.compile(r'(\s(?:xlink:)?href\s*=\s*)(["\'])(.*?)\2', re.IGNORECASE | re.DOTALL)

_markdown = MarkdownIt("commonmark", {"html": False, "xhtmlOut": True}).enable(["table", "strikethrough"])


def part_tag(n: int) -> str:
    """Marker placed before the Nth translation unit of a page."""
    return f"\n\n<part>{n}</part>\n\n"


def strip_think_tags(text: str) -> str:
    """Remove <think>...</think> reasoning traces (and the whitespace after them)."""
    return THINK_TAG_PATTERN.sub('', text)


def strip_part_tags(text: str) -> str:
    """Remove <part>N</part> unit markers."""
    return PART_TAG_PATTERN.sub('', text)


def replace_jp_symbols(text: str) -> str:
    """Replace Japanese corner brackets with straight double quotes."""
    return text.translate(JP_QUOTES)


# ============================================================================
# HTML -> Markdown
# ============================================================================

def _parse_document(content) -> Optional[etree._Element]:
    """Parse chapter XHTML, falling back to the HTML parser for broken markup."""
    if isinstance(content, str):
        content = content.encode('utf-8')
    if not content.strip():
        return None

    parser = etree.XMLParser(recover=True, resolve_entities=False, remove_comments=True)
    try:
        root = etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError:
        root = None
    if root is None:
        try:
            root = lxml_html.fromstring(content)
        except (etree.ParserError, ValueError):
            return None
    return root


def _local_name(element) -> Optional[str]:
    if not isinstance(element.tag, str):
        return None
    return etree.QName(element).localname.lower()


def _normalize(text: Optional[str]) -> str:
    if not text:
        return ''
    return ' '.join(text.split())


def _inline_text(element) -> str:
    """Flatten the text of a block element, ignoring skipped descendants."""
    parts = []

    def walk(node):
        if node.text:
            parts.append(node.text)
        for child in node:
            if _local_name(child) not in SKIPPED_TAGS:
                walk(child)
            if child.tail:
                parts.append(child.tail)

    walk(element)
    return _normalize(''.join(parts))


def _collect_blocks(element, blocks: List[str]) -> None:
    name = _local_name(element)
    if name in BLOCK_TAGS:
        text = _inline_text(element)
        if text:
            level = HEADING_TAGS.get(name)
            blocks.append(f"{'#' * level} {text}" if level else text)
        return

    if name is not None and element.text:
        text = _normalize(element.text)
        if text:
            blocks.append(text)

    for child in element:
        child_name = _local_name(child)
        if child_name is not None and child_name not in SKIPPED_TAGS:
            _collect_blocks(child, blocks)
        tail = _normalize(child.tail)
        if tail:
            blocks.append(tail)


def html_to_markdown(content) -> str:
    """
    Convert chapter XHTML to markdown.

    head/img/image/script/style elements are removed with their content,
    h1..h6 become ATX headings, paragraphs become plain text blocks and any
    other text node is kept as its own block. Blocks are joined with newlines.

    Args:
        content: XHTML document as str or bytes

    Returns:
        Markdown text; empty when the chapter carries no text (image-only pages)
    """
    root = _parse_document(content)
    if root is None:
        return ''

    blocks: List[str] = []
    if _local_name(root) not in SKIPPED_TAGS:
        _collect_blocks(root, blocks)
    return '\n'.join(blocks)


# ============================================================================
# Markdown -> XHTML
# ============================================================================

def render_markdown(markdown: str) -> str:
    """Render markdown to an XHTML fragment (raw HTML is escaped, not passed through)."""
    return _markdown.render(markdown)


def markdown_to_xhtml(markdown: str, title: Optional[str] = None, language: str = OUTPUT_LANGUAGE) -> str:
    """
    Render translated markdown as a complete XHTML chapter.

    Think and part regions are removed first, Japanese quotes are replaced,
    and the rendered body is wrapped in a document linking the shared stylesheet.
    """
    text = strip_think_tags(markdown)
    text = strip_part_tags(text)
    text = replace_jp_symbols(text)
    body = render_markdown(text)

    title_xml = f"\n  <title>{html.escape(title)}</title>" if title else ''
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<!DOCTYPE html>\n'
        f'<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" '
        f'xml:lang="{language}" lang="{language}">\n'
        '<head>\n'
        f'  <meta charset="utf-8"/>{title_xml}\n'
        f'  <link rel="stylesheet" type="text/css" href="../{STYLESHEET_NAME}"/>\n'
        '</head>\n'
        '<body>\n'
        f'{body}'
        '</body>\n'
        '</html>\n'
    )


# ============================================================================
# Image path rewriting
# ============================================================================

def _retarget(value: str, base: str) -> str:
    stripped = value.strip()
    if not stripped or stripped.startswith(('data:', 'http://', 'https://')):
        return value
    path = stripped.split('#', 1)[0].split('?', 1)[0]
    file_name = posixpath.basename(path)
    if not file_name:
        return value
    return f"{base.rstrip('/')}/{file_name}"


def rewrite_image_paths(xhtml: str, base: str = DEFAULT_IMAGE_BASE) -> str:
    """
    Point every <img src> and <image xlink:href> at ``base/<file name>``.

    Only the attribute values change; everything else in the document,
    attribute order included, is left exactly as it was.
    """
    def rewrite_tag(match):
        tag = match.group(0)
        pattern = _IMG_SRC_PATTERN if match.group(1).lower() == 'img' else _IMAGE_HREF_PATTERN
        return pattern.sub(
            lambda attr: f"{attr.group(1)}{attr.group(2)}{_retarget(attr.group(3), base)}{attr.group(2)}",
            tag
        )

    return _IMAGE_TAG_PATTERN.sub(rewrite_tag, xhtml)
