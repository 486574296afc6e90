"""
EPUB archive reader.

Exposes the parts of an EPUB the pipeline needs: spine order, the manifest
resource table, the cover resource id and the table of contents.
"""

import io
import posixpath
import zipfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import unquote

import aiofiles
from lxml import etree

from ln_translator.config import NAMESPACES
from ln_translator.core.exceptions import DocumentError


XHTML_MEDIA_TYPES = {'application/xhtml+xml', 'text/html'}


@dataclass
class ResourceItem:
    """One manifest entry; ``path`` is the full path inside the archive."""
    id: str
    path: str
    mime: str
    properties: str = ''

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def is_image(self) -> bool:
        return self.mime.startswith('image/')


@dataclass
class EpubMetadata:
    title: str = ''
    language: str = ''
    identifier: str = ''
    creators: List[str] = field(default_factory=list)


def _resolve(base_dir: str, href: str) -> str:
    """Resolve an href relative to ``base_dir`` into a normalized archive path."""
    href = unquote(href.split('#', 1)[0])
    path = posixpath.normpath(posixpath.join(base_dir, href)) if base_dir else posixpath.normpath(href)
    return path.lstrip('/')


def _parse_xml(data: bytes, what: str, source: Optional[str]) -> etree._Element:
    parser = etree.XMLParser(recover=True, resolve_entities=False)
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        raise DocumentError(f"Cannot parse {what}", source=source, original_error=e)
    if root is None:
        raise DocumentError(f"Cannot parse {what}", source=source)
    return root


class EpubArchive:
    """Read-only structured view over EPUB bytes."""

    def __init__(self, data: bytes, name: Optional[str] = None):
        self.name = name
        self.data = data
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, ValueError) as e:
            raise DocumentError("Not a valid EPUB (zip) archive", source=name, original_error=e)

        self._names = set(self._zip.namelist())
        self.opf_path = self._find_opf_file()
        self.opf_dir = posixpath.dirname(self.opf_path)
        self._opf = _parse_xml(self.read(self.opf_path), "package document", name)

        self.resources: Dict[str, ResourceItem] = self._read_manifest()
        self._spine: List[str] = self._read_spine()
        self.cover_id: Optional[str] = self._find_cover_id()
        self.metadata = self._read_metadata()
        self.toc: Dict[str, str] = self._read_toc()

    @classmethod
    def from_bytes(cls, data: bytes, name: Optional[str] = None) -> "EpubArchive":
        return cls(data, name)

    @classmethod
    async def from_path(cls, path: str) -> "EpubArchive":
        """Read an EPUB file without blocking the event loop."""
        try:
            async with aiofiles.open(path, 'rb') as f:
                data = await f.read()
        except OSError as e:
            raise DocumentError("Cannot read EPUB file", source=str(path), original_error=e)
        return cls(data, posixpath.basename(str(path).replace('\\', '/')))

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def namelist(self) -> List[str]:
        return self._zip.namelist()

    def read(self, path: str) -> bytes:
        if path not in self._names:
            raise DocumentError(f"Missing archive entry: {path}", source=self.name)
        try:
            return self._zip.read(path)
        except (zipfile.BadZipFile, OSError) as e:
            raise DocumentError(f"Cannot read archive entry: {path}", source=self.name, original_error=e)

    def read_text(self, path: str) -> str:
        return self.read(path).decode('utf-8', errors='replace')

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def spine_paths(self) -> List[str]:
        """Content-document paths in reading (spine) order."""
        return list(self._spine)

    @property
    def cover(self) -> Optional[ResourceItem]:
        return self.resources.get(self.cover_id) if self.cover_id else None

    def images(self) -> List[ResourceItem]:
        return [item for item in self.resources.values() if item.is_image]

    def _find_opf_file(self) -> str:
        """Locate the package document via META-INF/container.xml, else any .opf."""
        container = 'META-INF/container.xml'
        if container in self._names:
            root = _parse_xml(self._zip.read(container), "container.xml", self.name)
            rootfiles = root.xpath('//container:rootfile/@full-path', namespaces=NAMESPACES)
            for full_path in rootfiles:
                full_path = unquote(full_path).lstrip('/')
                if full_path in self._names:
                    return full_path

        for name in self._zip.namelist():
            if name.endswith('.opf'):
                return name

        raise DocumentError("No package document (.opf) found", source=self.name)

    def _read_manifest(self) -> Dict[str, ResourceItem]:
        resources = {}
        for item in self._opf.xpath('//opf:manifest/opf:item', namespaces=NAMESPACES):
            item_id = item.get('id')
            href = item.get('href')
            if not item_id or not href:
                continue
            resources[item_id] = ResourceItem(
                id=item_id,
                path=_resolve(self.opf_dir, href),
                mime=item.get('media-type', ''),
                properties=item.get('properties', '')
            )
        return resources

    def _read_spine(self) -> List[str]:
        spine = []
        for itemref in self._opf.xpath('//opf:spine/opf:itemref', namespaces=NAMESPACES):
            idref = itemref.get('idref')
            item = self.resources.get(idref)
            if item is None:
                raise DocumentError(
                    f"Spine references unknown manifest id '{idref}'",
                    source=self.name
                )
            spine.append(item.path)
        return spine

    def _find_cover_id(self) -> Optional[str]:
        """Cover from <meta name="cover">, else the cover-image manifest property."""
        for cover_id in self._opf.xpath('//opf:metadata/opf:meta[@name="cover"]/@content',
                                        namespaces=NAMESPACES):
            if cover_id in self.resources:
                return cover_id

        for item in self.resources.values():
            if 'cover-image' in item.properties.split():
                return item.id
        return None

    def _read_metadata(self) -> EpubMetadata:
        def first(xpath):
            values = self._opf.xpath(xpath, namespaces=NAMESPACES)
            return values[0].strip() if values else ''

        return EpubMetadata(
            title=first('//opf:metadata/dc:title/text()'),
            language=first('//opf:metadata/dc:language/text()'),
            identifier=first('//opf:metadata/dc:identifier/text()'),
            creators=[c.strip() for c in
                      self._opf.xpath('//opf:metadata/dc:creator/text()', namespaces=NAMESPACES)]
        )

    def _read_toc(self) -> Dict[str, str]:
        """Map content paths to titles, from the EPUB 3 nav document or the NCX."""
        toc: Dict[str, str] = {}

        nav_items = [item for item in self.resources.values() if 'nav' in item.properties.split()]
        for nav in nav_items:
            if nav.path not in self._names:
                continue
            root = _parse_xml(self.read(nav.path), "navigation document", self.name)
            nav_dir = posixpath.dirname(nav.path)
            for nav_el in root.xpath('//xhtml:nav', namespaces=NAMESPACES):
                nav_type = nav_el.get(f"{{{NAMESPACES['epub']}}}type", '')
                if nav_type and 'toc' not in nav_type.split():
                    continue
                for link in nav_el.xpath('.//xhtml:a[@href]', namespaces=NAMESPACES):
                    title = ' '.join(''.join(link.itertext()).split())
                    toc.setdefault(_resolve(nav_dir, link.get('href')), title)
        if toc:
            return toc

        ncx_items = [item for item in self.resources.values()
                     if item.mime == 'application/x-dtbncx+xml']
        for ncx in ncx_items:
            if ncx.path not in self._names:
                continue
            root = _parse_xml(self.read(ncx.path), "NCX", self.name)
            ncx_dir = posixpath.dirname(ncx.path)
            for point in root.xpath('//ncx:navPoint', namespaces=NAMESPACES):
                src = point.xpath('./ncx:content/@src', namespaces=NAMESPACES)
                label = point.xpath('./ncx:navLabel/ncx:text/text()', namespaces=NAMESPACES)
                if src:
                    title = ' '.join(label[0].split()) if label else ''
                    toc.setdefault(_resolve(ncx_dir, src[0]), title)
        return toc
