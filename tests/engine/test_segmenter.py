"""Content segmentation tests."""

from __future__ import annotations

from smartlinker.engine.segmenter import segment
from smartlinker.engine.types import SectionKind


def test_short_paragraphs_are_never_emitted():
    sections = segment("<p>Short.</p><p>This paragraph has exactly six words here.</p>")
    assert len(sections) == 1
    section = sections[0]
    assert section.index == 0
    assert section.kind is SectionKind.PARAGRAPH
    assert section.content == "This paragraph has exactly six words here."
    assert section.word_count == 7


def test_six_word_paragraph_counts_six():
    sections = segment("<p>Brew better coffee at home today.</p>")
    assert [section.word_count for section in sections] == [6]


def test_headings_are_kept_and_give_paragraphs_context():
    sections = segment(
        "<h2>Getting Started</h2><p>Brewing coffee at home takes patience and practice.</p>"
        "<h3>Tools</h3><p>A burr grinder gives you a far more even grind.</p>"
    )
    assert [(s.index, s.kind, s.heading_level) for s in sections] == [
        (0, SectionKind.HEADING, 2),
        (1, SectionKind.PARAGRAPH, 0),
        (2, SectionKind.HEADING, 3),
        (3, SectionKind.PARAGRAPH, 0),
    ]
    assert sections[1].heading == "Getting Started"
    assert sections[3].heading == "Tools"


def test_block_content_is_walked_structurally():
    content = (
        "<!-- wp:heading -->\n<h2>Getting Started</h2>\n<!-- /wp:heading -->\n\n"
        "<!-- wp:paragraph -->\n<p>Brewing coffee at home takes patience &amp; practice.</p>\n<!-- /wp:paragraph -->\n\n"
        "<!-- wp:paragraph -->\n<p>Too short.</p>\n<!-- /wp:paragraph -->\n\n"
        '<!-- wp:heading {"level":4} -->\n<h4>Grinders</h4>\n<!-- /wp:heading -->'
    )
    sections = segment(content)
    assert [s.content for s in sections] == [
        "Getting Started",
        "Brewing coffee at home takes patience & practice.",
        "Grinders",
    ]
    assert sections[0].heading_level == 2
    assert sections[2].heading_level == 4
    assert [s.index for s in sections] == [0, 1, 2]


def test_container_blocks_yield_their_children():
    content = (
        "<!-- wp:columns --><div class=\"wp-block-columns\">"
        "<!-- wp:column --><div class=\"wp-block-column\">"
        "<!-- wp:paragraph --><p>The left column explains water temperature in detail.</p><!-- /wp:paragraph -->"
        "</div><!-- /wp:column -->"
        "<!-- wp:column --><div class=\"wp-block-column\">"
        "<!-- wp:paragraph --><p>The right column compares several popular pour over kettles.</p><!-- /wp:paragraph -->"
        "</div><!-- /wp:column -->"
        "</div><!-- /wp:columns -->"
    )
    sections = segment(content)
    assert [s.content for s in sections] == [
        "The left column explains water temperature in detail.",
        "The right column compares several popular pour over kettles.",
    ]


def test_raw_markup_blocks_yield_no_sections():
    content = (
        '<!-- wp:code --><pre class="wp-block-code"><code>install the package with pip today</code></pre><!-- /wp:code -->\n'
        "<!-- wp:html --><div>custom markup with a long enough sentence inside</div><!-- /wp:html -->\n"
        "<!-- wp:shortcode -->[gallery ids=\"1,2,3\" columns=\"three wide\"]<!-- /wp:shortcode -->\n"
        "<!-- wp:paragraph --><p>Grind size decides how fast the water flows.</p><!-- /wp:paragraph -->"
    )
    sections = segment(content)
    assert [(s.index, s.kind, s.content) for s in sections] == [
        (0, SectionKind.PARAGRAPH, "Grind size decides how fast the water flows."),
    ]


def test_malformed_blocks_fall_back_to_dom_traversal():
    content = "<!-- wp:paragraph --><p>An unclosed block still has readable text inside.</p>"
    sections = segment(content)
    assert [s.content for s in sections] == ["An unclosed block still has readable text inside."]


def test_loose_text_keeps_document_order():
    sections = segment(
        "<div>Intro text with enough words to count here"
        "<p>Nested paragraph with enough words to count too</p></div>"
    )
    assert [s.content for s in sections] == [
        "Intro text with enough words to count here",
        "Nested paragraph with enough words to count too",
    ]


def test_scripts_and_comments_are_ignored():
    sections = segment(
        "<p>Visible words that readers will actually see.<script>var hidden = 1;</script></p>"
        "<!-- an editor note that is not content at all -->"
    )
    assert [s.content for s in sections] == ["Visible words that readers will actually see."]


def test_empty_and_whitespace_content():
    assert segment("") == []
    assert segment("   \n\t ") == []


def test_segmentation_is_deterministic():
    content = "<h2>Title</h2><p>Some paragraph text that is long enough.</p>"
    assert segment(content) == segment(content)
