"""
Package-document templates for rebuilt EPUB 3.0 archives.
"""

import html
from datetime import datetime, timezone
from typing import List

from ln_translator.config import OUTPUT_LANGUAGE


DEFAULT_STYLESHEET = '''/* Default stylesheet */
html {
    font-size: 100%;
    line-height: 1.6;
}

body {
    font-family: Georgia, serif;
    margin: 0 1em;
}

h1, h2, h3, h4, h5, h6 {
    line-height: 1.3;
    margin-top: 1.5em;
    margin-bottom: 0.5em;
    text-align: center;
}

p {
    margin: 0 0 0.8em 0;
    text-align: justify;
    text-indent: 1.5em;
}

img, svg {
    display: block;
    max-width: 100%;
    height: auto;
    margin: 0 auto;
}

table {
    border-collapse: collapse;
    margin: 1em auto;
}

th, td {
    border: 1px solid #999;
    padding: 0.3em 0.6em;
}
'''


def create_container_xml(opf_path: str = "OEBPS/content.opf") -> str:
    """Create META-INF/container.xml content."""
    return f'''<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>'''


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def create_content_opf(title: str, identifier: str, manifest: List[dict], spine: List[str],
                       cover_id: str = None, language: str = OUTPUT_LANGUAGE) -> str:
    """
    Create content.opf file content.

    Args:
        title: Book title
        identifier: Unique book identifier
        manifest: Items with id, href, media_type and optional properties
        spine: Manifest ids in reading order
        cover_id: Manifest id of the cover image, if any
        language: dc:language value

    Returns:
        Complete OPF XML string
    """
    modified = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')

    manifest_lines = []
    for item in manifest:
        properties = f' properties="{item["properties"]}"' if item.get('properties') else ''
        manifest_lines.append(
            f'    <item id="{_attr(item["id"])}" href="{_attr(item["href"])}" '
            f'media-type="{_attr(item["media_type"])}"{properties}/>'
        )
    manifest_xml = '\n'.join(manifest_lines)
    spine_xml = '\n'.join(f'    <itemref idref="{_attr(item_id)}"/>' for item_id in spine)
    cover_meta = f'\n    <meta name="cover" content="{_attr(cover_id)}"/>' if cover_id else ''

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" unique-identifier="bookid" version="3.0">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>{html.escape(title)}</dc:title>
    <dc:language>{language}</dc:language>
    <dc:identifier id="bookid">{html.escape(identifier)}</dc:identifier>
    <meta property="dcterms:modified">{modified}</meta>{cover_meta}
  </metadata>
  <manifest>
{manifest_xml}
  </manifest>
  <spine toc="ncx">
{spine_xml}
  </spine>
</package>'''


def create_nav_xhtml(title: str, toc_tree: List[dict], language: str = OUTPUT_LANGUAGE) -> str:
    """
    Create the EPUB 3 navigation document.

    ``toc_tree`` entries carry title, href and a list of children (one level deep).
    """
    def render(entries, indent):
        pad = ' ' * indent
        lines = [f'{pad}<ol>']
        for entry in entries:
            link = f'<a href="{_attr(entry["href"])}">{html.escape(entry["title"])}</a>'
            if entry['children']:
                lines.append(f'{pad}  <li>{link}')
                lines.extend(render(entry['children'], indent + 4))
                lines.append(f'{pad}  </li>')
            else:
                lines.append(f'{pad}  <li>{link}</li>')
        lines.append(f'{pad}</ol>')
        return lines

    nav_list = '\n'.join(render(toc_tree, 4)) if toc_tree else '    <ol><li><a href="#">-</a></li></ol>'

    return f'''<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" xml:lang="{language}" lang="{language}">
<head>
  <meta charset="utf-8"/>
  <title>{html.escape(title)}</title>
</head>
<body>
  <nav epub:type="toc" id="toc">
    <h1>{html.escape(title)}</h1>
{nav_list}
  </nav>
</body>
</html>'''


def create_toc_ncx(title: str, identifier: str, toc_tree: List[dict]) -> str:
    """Create toc.ncx (Navigation Control file for EPUB 2 readers)."""
    play_order = 0

    def render(entries, indent):
        nonlocal play_order
        pad = ' ' * indent
        lines = []
        for entry in entries:
            play_order += 1
            lines.append(f'{pad}<navPoint id="navpoint-{play_order}" playOrder="{play_order}">')
            lines.append(f'{pad}  <navLabel>')
            lines.append(f'{pad}    <text>{html.escape(entry["title"])}</text>')
            lines.append(f'{pad}  </navLabel>')
            lines.append(f'{pad}  <content src="{_attr(entry["href"])}"/>')
            lines.extend(render(entry['children'], indent + 2))
            lines.append(f'{pad}</navPoint>')
        return lines

    nav_xml = '\n'.join(render(toc_tree, 4))
    depth = 2 if any(entry['children'] for entry in toc_tree) else 1

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head>
    <meta name="dtb:uid" content="{_attr(identifier)}"/>
    <meta name="dtb:depth" content="{depth}"/>
    <meta name="dtb:totalPageCount" content="0"/>
    <meta name="dtb:maxPageNumber" content="0"/>
  </head>
  <docTitle>
    <text>{html.escape(title)}</text>
  </docTitle>
  <navMap>
{nav_xml}
  </navMap>
</ncx>'''
