"""Unit tests for EPUB reconstruction."""

import io
import zipfile

import pytest
from lxml import etree

from ln_translator.core.epub.builder import BuilderPage, DocBuilder, parse_toc_titles
from ln_translator.core.epub.partitioner import partition_archive
from ln_translator.core.epub.reader import EpubArchive
from ln_translator.core.epub.transcoder import html_to_markdown
from ln_translator.core.exceptions import BuildError


NS = {
    "opf": "http://www.idpf.org/2007/opf",
    "x": "http://www.w3.org/1999/xhtml",
    "ncx": "http://www.daisy.org/z3986/2005/ncx/",
}

TRANSLATED = [
    BuilderPage("out/p-001.md", "\n\n<part>1</part>\n\n<think>hmm</think>\n# Prologue\n\nSpring came. The cherry trees bloomed.\n"),
    BuilderPage("out/p-002.md", "\n\n<part>1</part>\n\n## Chapter One\n\nHe went to school.\n\n「Good morning」, he said.\n"),
]


def _zip(data):
    return zipfile.ZipFile(io.BytesIO(data))


def _opf(data):
    return etree.fromstring(_zip(data).read("OEBPS/content.opf"))


class TestParseTocTitles:
    """Test reading chapter titles from a TOC markdown file."""

    def test_links_mapped_to_file_names(self):
        toc = "# Contents\n\n- [Prologue](Text/p-001.xhtml)\n- [The *First* Day](p-002.xhtml#start)\n"
        assert parse_toc_titles(toc) == {"p-001.xhtml": "Prologue", "p-002.xhtml": "The First Day"}

    def test_no_links(self):
        assert parse_toc_titles("Just text") == {}


class TestDocBuilder:
    """Test building a new archive from a source archive and overrides."""

    def test_archive_layout(self, sample_archive):
        data, name = DocBuilder(sample_archive).build("My Book", TRANSLATED)
        archive = _zip(data)

        assert name == "My Book.epub"
        first = archive.infolist()[0]
        assert first.filename == "mimetype"
        assert first.compress_type == zipfile.ZIP_STORED
        assert archive.read("mimetype") == b"application/epub+zip"

        names = set(archive.namelist())
        assert {"META-INF/container.xml", "OEBPS/content.opf", "OEBPS/nav.xhtml",
                "OEBPS/toc.ncx", "OEBPS/stylesheet.css"} <= names
        assert {"OEBPS/Images/cover.png", "OEBPS/Images/illus.png"} <= names
        assert {"OEBPS/Text/p-001.xhtml", "OEBPS/Text/p-002.xhtml", "OEBPS/Text/p-003.xhtml"} <= names

    def test_package_metadata(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("My Book", TRANSLATED)
        opf = _opf(data)
        assert opf.get("version") == "3.0"
        assert opf.xpath("//opf:metadata/*[local-name()='language']/text()", namespaces=NS) == ["en"]
        assert opf.xpath("//opf:metadata/*[local-name()='title']/text()", namespaces=NS) == ["My Book"]

    def test_cover_marked(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED)
        opf = _opf(data)
        cover = opf.xpath("//opf:item[@properties='cover-image']", namespaces=NS)
        assert len(cover) == 1
        assert cover[0].get("href") == "Images/cover.png"
        assert opf.xpath("//opf:meta[@name='cover']/@content", namespaces=NS) == [cover[0].get("id")]

    def test_spine_order_kept(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED)
        opf = _opf(data)
        hrefs = {item.get("id"): item.get("href") for item in opf.xpath("//opf:item", namespaces=NS)}
        spine = [hrefs[ref] for ref in opf.xpath("//opf:itemref/@idref", namespaces=NS)]
        assert spine == ["Text/p-001.xhtml", "Text/p-002.xhtml", "Text/p-003.xhtml"]

    def test_overrides_rendered_from_markdown(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED)
        chapter = _zip(data).read("OEBPS/Text/p-002.xhtml").decode("utf-8")
        root = etree.fromstring(chapter.encode("utf-8"))
        assert root.xpath("//x:h2/text()", namespaces=NS) == ["Chapter One"]
        assert "<part>" not in chapter
        assert "「" not in chapter
        assert "../stylesheet.css" in chapter

    def test_think_regions_dropped(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED)
        assert "hmm" not in _zip(data).read("OEBPS/Text/p-001.xhtml").decode("utf-8")

    def test_chapters_without_override_keep_source_with_image_paths(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED[:1])
        untouched = _zip(data).read("OEBPS/Text/p-002.xhtml").decode("utf-8")
        assert "第一章" in untouched
        image_page = _zip(data).read("OEBPS/Text/p-003.xhtml").decode("utf-8")
        assert 'src="../Images/illus.png"' in image_page

    def test_blank_override_keeps_source(self, sample_archive, log_calls):
        blank = BuilderPage("out/p-001.md", "\n\n<part>1</part>\n\n<think>nothing yet</think>\n")
        data, _ = DocBuilder(sample_archive, log_calls).build("book", [blank, TRANSLATED[1]])

        chapter = _zip(data).read("OEBPS/Text/p-001.xhtml").decode("utf-8")
        assert html_to_markdown(chapter) == html_to_markdown(sample_archive.read(sample_archive.spine_paths()[0]))
        assert any(call[0] == "build_warning" and "p-001.md" in call[1] for call in log_calls.calls)

    def test_titles_from_source_toc(self, sample_archive):
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED)
        nav = etree.fromstring(_zip(data).read("OEBPS/nav.xhtml"))
        assert nav.xpath("//x:nav//x:a/text()", namespaces=NS) == ["Prologue", "Chapter 1", "Illustration"]

    def test_titles_from_toc_markdown_and_nesting(self, sample_archive):
        toc = "- [Start](p-001.xhtml)\n- [Chapter One](Text/p-002.xhtml)\n"
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED, toc=toc)
        archive = _zip(data)

        nav = etree.fromstring(archive.read("OEBPS/nav.xhtml"))
        top = nav.xpath("//x:nav/x:ol/x:li/x:a/text()", namespaces=NS)
        nested = nav.xpath("//x:nav/x:ol/x:li/x:ol/x:li/x:a/@href", namespaces=NS)
        assert top == ["Start", "Chapter One"]
        assert nested == ["Text/p-003.xhtml"]

        ncx = etree.fromstring(archive.read("OEBPS/toc.ncx"))
        assert len(ncx.xpath("//ncx:navMap/ncx:navPoint", namespaces=NS)) == 2
        assert len(ncx.xpath("//ncx:navPoint/ncx:navPoint", namespaces=NS)) == 1

        chapter = etree.fromstring(archive.read("OEBPS/Text/p-002.xhtml"))
        assert chapter.xpath("//x:title/text()", namespaces=NS) == ["Chapter One"]

    def test_rebuilt_archive_reads_back(self, sample_archive):
        """Round trip: the output opens with the reader, same spine and translated text."""
        data, _ = DocBuilder(sample_archive).build("book", TRANSLATED)
        rebuilt = EpubArchive.from_bytes(data)

        assert [p.rsplit("/", 1)[1] for p in rebuilt.spine_paths()] == ["p-001.xhtml", "p-002.xhtml", "p-003.xhtml"]
        assert rebuilt.cover.file_name == "cover.png"
        markdown = html_to_markdown(rebuilt.read(rebuilt.spine_paths()[0]))
        assert markdown == "# Prologue\nSpring came. The cherry trees bloomed."
        assert [path for path, _ in partition_archive(rebuilt)] == rebuilt.spine_paths()[:2]

    def test_name_with_extension(self, sample_archive):
        _, name = DocBuilder(sample_archive).build("done.epub", [])
        assert name == "done.epub"

    def test_unreadable_resource_raises_build_error(self, sample_archive, log_calls):
        sample_archive._names.discard("OEBPS/Images/illus.png")
        with pytest.raises(BuildError) as exc_info:
            DocBuilder(sample_archive, log_calls).build("book", TRANSLATED)
        assert "illus.png" in exc_info.value.context["original_error"]
        assert log_calls.calls[-1][0] == "build_error"
