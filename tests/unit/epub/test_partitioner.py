"""Unit tests for sentence-aligned partitioning."""

import pytest

from ln_translator.core.epub.partitioner import (
    group,
    join_partition,
    partition,
    partition_archive,
    preview_chapter,
    split_sentences,
)
from ln_translator.core.exceptions import DocumentError


class TestSplitSentences:
    """Test splitting after the ideographic full stop."""

    def test_fragments_keep_terminator(self):
        assert split_sentences("一。二。三") == ["一。", "二。", "三"]

    def test_newlines_stay_in_fragments(self):
        text = "# 見出し\n本文。\n次。"
        assert "".join(split_sentences(text)) == text

    def test_empty(self):
        assert split_sentences("") == []


class TestPartition:
    """Test packing fragments into bounded sections."""

    def test_empty_text_returns_empty_list(self):
        assert partition("") == []

    def test_short_text_single_section(self):
        assert partition("春が来た。桜が咲いた。") == ["春が来た。桜が咲いた。"]

    def test_five_thousand_characters_three_sections(self):
        """Ten 499-char sentences plus a 10-char tail give three sections."""
        sentence = "あ" * 498 + "。"
        text = sentence * 10 + "い" * 10
        assert len(text) == 5000

        sections = partition(text)
        assert len(sections) == 3
        assert [len(s) for s in sections] == [1996, 1996, 1008]
        assert "".join(sections) == text

    def test_sections_stay_below_bound(self):
        text = "".join(f"文{i}" * (i % 40 + 1) + "。" for i in range(300))
        sections = partition(text)
        assert "".join(sections) == text
        assert all(len(section) < 2000 for section in sections)

    def test_flush_before_reaching_bound(self):
        """A section is closed before the next fragment would reach max_chars."""
        assert partition("aaaa。bbbb。", max_chars=10) == ["aaaa。", "bbbb。"]
        assert partition("aaa。bbb。", max_chars=10) == ["aaa。bbb。"]

    def test_oversized_fragment_kept_whole(self):
        long_sentence = "長" * 2500 + "。"
        text = "短い。" + long_sentence + "後。"
        sections = partition(text)
        assert sections == ["短い。", long_sentence, "後。"]

    def test_text_without_terminator(self):
        assert partition("no terminator here") == ["no terminator here"]


class TestGroup:
    """Test grouping sections into translation units."""

    def test_groups_of_three(self):
        assert group(["a", "b", "c", "d"]) == ["a b c", "d"]

    def test_custom_size(self):
        assert group(["a", "b", "c", "d"], size=2) == ["a b", "c d"]

    def test_empty(self):
        assert group([]) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            group(["a"], size=0)


class TestJoinPartition:
    def test_part_headers(self):
        assert join_partition(["一。", "二。"]) == "<part>1</part>\n\n一。\n\n<part>2</part>\n\n二。"


class TestArchivePartition:
    """Test partitioning a whole archive."""

    def test_pages_in_spine_order_without_empty_documents(self, sample_archive):
        pages = partition_archive(sample_archive)
        assert [path for path, _ in pages] == ["OEBPS/Text/p-001.xhtml", "OEBPS/Text/p-002.xhtml"]
        assert pages[0][1] == ["# プロローグ\n春が来た。桜が咲いた。"]

    def test_preview_chapter(self, sample_archive):
        preview = preview_chapter(sample_archive, 1)
        assert preview.startswith("<part>1</part>\n\n## 第一章")
        assert "「おはよう」と言った。" in preview

    def test_preview_out_of_range(self, sample_archive):
        with pytest.raises(DocumentError):
            preview_chapter(sample_archive, 3)
