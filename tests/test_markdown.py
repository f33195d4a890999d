"""Context document conversion."""

from mars_next.content import extract_markdown_sections, process_document_for_agents, text_to_markdown


class TestTextToMarkdown:
    def test_empty(self):
        assert text_to_markdown("") == ""

    def test_setext_headings(self):
        md = text_to_markdown("Title\n=====\nSub\n---\nbody")
        assert "# Title" in md
        assert "## Sub" in md

    def test_short_all_caps_line_becomes_heading(self):
        md = text_to_markdown("RELEASE CHECKLIST\nrun the tests")
        assert md.startswith("## RELEASE CHECKLIST")

    def test_caps_heading_needs_letters_and_length(self):
        assert "##" not in text_to_markdown("OK\n1234567890123")

    def test_lists_are_left_alone(self):
        md = text_to_markdown("- one\n- two\n1. first")
        assert "- one\n- two\n1. first" in md

    def test_indented_run_becomes_code_block(self):
        md = text_to_markdown("Example:\n    x = 1\n    y = 2\nDone.")
        assert "```\nx = 1\ny = 2\n```" in md

    def test_bare_urls_become_links(self):
        md = text_to_markdown("See https://example.com/docs for more")
        assert "[https://example.com/docs](https://example.com/docs)" in md


class TestSections:
    def test_leading_text_goes_to_introduction(self):
        sections = extract_markdown_sections("preamble\n# One\nbody\n## Two\nmore")
        assert [s.title for s in sections] == ["Introduction", "One", "Two"]
        assert "body" in sections[1].content

    def test_empty(self):
        assert extract_markdown_sections("") == []


def test_process_document_keeps_markdown_input_as_is():
    doc = "# Plan\nShip it"
    assert process_document_for_agents(doc, fmt="markdown").startswith("# Plan\nShip it\n")


def test_process_document_converts_plain_text():
    out = process_document_for_agents("QUARTERLY GOALS\nGrow revenue")
    assert out.startswith("## QUARTERLY GOALS")
    assert "Grow revenue" in out
