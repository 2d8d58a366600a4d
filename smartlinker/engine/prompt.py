"""Deterministic prompt construction from sections and candidate documents."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .types import CandidateDocument, Section

PREAMBLE = (
    "You are an AI expert in content analysis and SEO. Your task is to find natural linking "
    "opportunities in content sections while considering their heading context. "
    "Your response must be valid JSON.\n\n"
    "Task: Analyze each content section and its heading context to suggest strategic internal "
    "links that enhance both user experience and SEO value.\n\n"
)

INSTRUCTIONS = """Key Guidelines:
1. Focus on paragraph content, not headings
2. Look for natural opportunities where linking would add value
3. Choose anchor text that:
   - Flows naturally in the sentence
   - Is conversational and readable
   - Provides context about the linked content
   - Is typically 2-4 words long
4. Avoid generic phrases like "click here" or "read more"
5. Prefer sections that tell a story or explain concepts
6. Skip sections that are too technical or list-like

Instructions:
For each linking opportunity, provide:
- section_index: The section number where the link should be placed
- target_post_id: ID of the relevant document to link to
- anchor_text: The exact text to turn into a link (must exist in the section)
- relevance_score: How relevant and natural the link feels (0.1-1.0)

Return ONLY a JSON object like:
{
    "suggestions": [
        {
            "section_index": 0,
            "target_post_id": 123,
            "anchor_text": "natural flowing text",
            "relevance_score": 0.85
        }
    ]
}

Requirements:
- Only suggest links in the listed paragraph sections
- anchor_text must be an exact substring of the section content
- Choose text that forms natural, readable links
- Relevance score should consider both content match and how natural the link feels
"""


def _section_block(section: Section) -> str:
    heading = section.heading or "none"
    return (
        f"Section {section.index} (Under heading: {heading}, {section.word_count} words):\n"
        f"{section.content}\n\n"
    )


def _candidate_block(candidate: CandidateDocument) -> str:
    date = candidate.last_modified.strftime("%Y-%m-%d") if candidate.last_modified else "unknown"
    categories = ", ".join(sorted(candidate.categories))
    return (
        f"Document ID {candidate.id} ({date}):\n"
        f"Title: {candidate.title}\n"
        f"Categories: {categories}\n"
        f"Excerpt: {candidate.excerpt}\n\n"
    )


def build_prompt(sections: Sequence[Section], candidates: Sequence[CandidateDocument]) -> Optional[str]:
    """Return the analysis prompt, or None when there is nothing worth sending."""

    paragraphs: List[Section] = [section for section in sections if section.is_paragraph and section.content]
    if not paragraphs or not candidates:
        return None

    content_text = "".join(_section_block(section) for section in paragraphs)
    target_text = "".join(_candidate_block(candidate) for candidate in candidates)
    return (
        f"{PREAMBLE}"
        f"Content sections to analyze:\n{content_text}"
        f"Available documents to link to:\n{target_text}"
        f"{INSTRUCTIONS}"
    )
