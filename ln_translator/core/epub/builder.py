"""
EPUB reconstruction from translated markdown.

The rebuilt archive keeps the source spine order and chapter file names
(Text/<name>), copies images into Images/, restores the cover and writes a
fresh EPUB 3.0 package (OPF, nav document, NCX, default stylesheet).
"""

import io
import posixpath
import uuid
import zipfile
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from lxml import etree
from markdown_it import MarkdownIt

from ln_translator.config import IMAGES_DIR, TEXT_DIR, STYLESHEET_NAME, OUTPUT_LANGUAGE
from ln_translator.core.exceptions import BuildError, DocumentError
from .reader import EpubArchive
from .templates import (
    DEFAULT_STYLESHEET,
    create_container_xml,
    create_content_opf,
    create_nav_xhtml,
    create_toc_ncx,
)
from .transcoder import markdown_to_xhtml, rewrite_image_paths, strip_part_tags, strip_think_tags


OEBPS = "OEBPS"
XHTML_MIME = "application/xhtml+xml"

_toc_parser = MarkdownIt("commonmark")


def _file_name(path: str) -> str:
    return posixpath.basename(path.replace('\\', '/'))


def _stem(path: str) -> str:
    return posixpath.splitext(_file_name(path))[0]


@dataclass
class BuilderPage:
    """Edited or translated chapter content, matched to the source by file stem."""
    path: str
    content: str

    @property
    def stem(self) -> str:
        return _stem(self.path)


@dataclass
class ChapterEntry:
    id: str
    href: str  # relative to the OPF directory
    content: str
    title: Optional[str] = None
    level: int = 1


def parse_toc_titles(markdown: str) -> Dict[str, str]:
    """
    Map link targets of a table-of-contents markdown file to their link text.

    ``- [Prologue](Text/p-001.xhtml)`` yields ``{"p-001.xhtml": "Prologue"}``.
    """
    anchors: Dict[str, str] = {}
    for token in _toc_parser.parse(markdown):
        if token.type != 'inline' or not token.children:
            continue
        href = None
        text_parts: List[str] = []
        for child in token.children:
            if child.type == 'link_open':
                href = child.attrGet('href')
                text_parts = []
            elif child.type == 'link_close':
                if href:
                    target = _file_name(href.split('#', 1)[0])
                    title = ''.join(text_parts).strip()
                    if target and title:
                        anchors.setdefault(target, title)
                href = None
            elif href is not None and child.type in ('text', 'code_inline'):
                text_parts.append(child.content)
    return anchors


def _build_toc_tree(chapters: List[ChapterEntry]) -> List[dict]:
    """Titled chapters at the top level, untitled ones nested under the previous entry."""
    tree: List[dict] = []
    for chapter in chapters:
        entry = {
            'title': chapter.title or _stem(chapter.href),
            'href': chapter.href,
            'children': []
        }
        if chapter.level > 1 and tree:
            tree[-1]['children'].append(entry)
        else:
            tree.append(entry)
    return tree


class DocBuilder:
    """Rebuild an EPUB from the source archive and a set of page overrides."""

    def __init__(self, archive: EpubArchive, log_callback: Optional[Callable] = None):
        self.archive = archive
        self.log_callback = log_callback

    def _log(self, key: str, message: str):
        if self.log_callback:
            self.log_callback(key, message)

    def build(self, name: str, pages: List[BuilderPage],
              toc: Optional[str] = None) -> Tuple[bytes, str]:
        """
        Produce new EPUB bytes.

        Args:
            name: Output name (title of the book; ".epub" is appended if missing)
            pages: Overrides, possibly for a subset of the chapters
            toc: Optional table-of-contents markdown used for chapter titles

        Returns:
            (archive bytes, output file name)

        Raises:
            BuildError: On any archive or encoding failure; nothing partial is returned
        """
        try:
            data = self._build(name, pages, toc)
        except BuildError:
            raise
        except (DocumentError, zipfile.BadZipFile, OSError, ValueError, UnicodeError, etree.LxmlError) as e:
            self._log("build_error", f"EPUB build failed: {e}")
            raise BuildError("EPUB build failed", original_error=e, context={'name': name})

        file_name = name if name.lower().endswith('.epub') else f"{name}.epub"
        self._log("build_complete", f"Built {file_name} ({len(data)} bytes)")
        return data, file_name

    def _build(self, name: str, pages: List[BuilderPage], toc: Optional[str]) -> bytes:
        manifest: List[dict] = [
            {'id': 'stylesheet', 'href': STYLESHEET_NAME, 'media_type': 'text/css'},
            {'id': 'nav', 'href': 'nav.xhtml', 'media_type': XHTML_MIME, 'properties': 'nav'},
            {'id': 'ncx', 'href': 'toc.ncx', 'media_type': 'application/x-dtbncx+xml'},
        ]
        files: List[Tuple[str, bytes]] = []

        images, cover_id = self._collect_images(manifest)
        files.extend(images)

        chapters = self._collect_contents(pages, toc)
        for chapter in chapters:
            manifest.append({'id': chapter.id, 'href': chapter.href, 'media_type': XHTML_MIME})
            files.append((chapter.href, chapter.content.encode('utf-8')))

        title = _stem(name) if name.lower().endswith('.epub') else name
        title = title or self.archive.metadata.title or 'Untitled'
        identifier = self.archive.metadata.identifier or f"urn:uuid:{uuid.uuid4()}"
        toc_tree = _build_toc_tree(chapters)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as epub_zip:
            # mimetype must be the first entry, stored uncompressed
            epub_zip.writestr(zipfile.ZipInfo('mimetype'), 'application/epub+zip',
                              compress_type=zipfile.ZIP_STORED)
            epub_zip.writestr('META-INF/container.xml', create_container_xml(f"{OEBPS}/content.opf"))
            epub_zip.writestr(f"{OEBPS}/content.opf", create_content_opf(
                title, identifier, manifest, [c.id for c in chapters], cover_id, OUTPUT_LANGUAGE))
            epub_zip.writestr(f"{OEBPS}/nav.xhtml", create_nav_xhtml(title, toc_tree))
            epub_zip.writestr(f"{OEBPS}/toc.ncx", create_toc_ncx(title, identifier, toc_tree))
            epub_zip.writestr(f"{OEBPS}/{STYLESHEET_NAME}", DEFAULT_STYLESHEET)
            for href, content in files:
                epub_zip.writestr(f"{OEBPS}/{href}", content)

        return buffer.getvalue()

    def _collect_images(self, manifest: List[dict]) -> Tuple[List[Tuple[str, bytes]], Optional[str]]:
        """Copy images to Images/<file name>; the cover gets the cover-image property."""
        files = []
        cover_id = None
        seen = set()
        cover = self.archive.cover

        for index, item in enumerate(self.archive.images(), 1):
            href = f"{IMAGES_DIR}/{item.file_name}"
            if href in seen:
                self._log("build_warning", f"Skipping duplicate image name: {item.path}")
                continue
            seen.add(href)

            is_cover = cover is not None and item.id == cover.id
            entry = {
                'id': 'cover-image' if is_cover else f"image-{index:03d}",
                'href': href,
                'media_type': item.mime,
            }
            if is_cover:
                entry['properties'] = 'cover-image'
                cover_id = entry['id']
            manifest.append(entry)
            files.append((href, self.archive.read(item.path)))

        return files, cover_id

    def _collect_contents(self, pages: List[BuilderPage], toc: Optional[str]) -> List[ChapterEntry]:
        overrides = {page.stem: page for page in pages}
        if toc is not None:
            titles = parse_toc_titles(toc)
        else:
            titles = {_file_name(path): title for path, title in self.archive.toc.items() if title}
        titles_by_stem = {_stem(target): title for target, title in titles.items()}

        chapters = []
        seen = set()
        for index, path in enumerate(self.archive.spine_paths(), 1):
            file_name = _file_name(path)
            if file_name in seen:
                self._log("build_warning", f"Skipping duplicate chapter name: {path}")
                continue
            seen.add(file_name)

            title = titles.get(file_name) or titles_by_stem.get(_stem(file_name))
            page = overrides.get(_stem(file_name))
            if page is not None and not strip_part_tags(strip_think_tags(page.content)).strip():
                self._log("build_warning", f"No translated text in {page.path}, keeping the source chapter")
                page = None
            if page is not None:
                content = markdown_to_xhtml(page.content, title=title)
            else:
                content = rewrite_image_paths(self.archive.read_text(path))

            chapters.append(ChapterEntry(
                id=f"chapter-{index:03d}",
                href=f"{TEXT_DIR}/{file_name}",
                content=content,
                title=title,
                level=1 if title else 2
            ))
        return chapters
