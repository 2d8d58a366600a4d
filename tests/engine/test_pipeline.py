"""End-to-end analysis pass tests with a mocked provider endpoint."""

from __future__ import annotations

import json

import pytest

from smartlinker.engine.errors import NoApiKey
from smartlinker.engine.pipeline import AnalysisPipeline, AnalysisStatus, EmptyReason
from smartlinker.engine.providers import OpenAIProvider

from .conftest import FakeRepository, chat_reply, make_candidate, mock_client

CONTENT = "<h2>Brewing</h2><p>This paragraph has exactly six words here.</p>"


def reply_with(*suggestions):
    body = json.dumps({"suggestions": list(suggestions)})

    def handler(request):
        handler.calls += 1
        return chat_reply(body)

    handler.calls = 0
    return handler


def make_pipeline(engine_config, handler, repository=None, api_key="sk-test"):
    repository = repository or FakeRepository([make_candidate(5, "Five"), make_candidate(7, "Seven")])
    provider = OpenAIProvider(api_key, client=mock_client(handler))
    return AnalysisPipeline(repository, provider, engine_config)


def test_analysis_returns_validated_suggestions(engine_config):
    handler = reply_with(
        {"section_index": 1, "target_post_id": 5, "anchor_text": "six words here", "relevance_score": 0.9},
        {"section_index": 1, "target_post_id": 7, "anchor_text": "paragraph", "relevance_score": 0.8},
    )
    result = make_pipeline(engine_config, handler).analyze(1, CONTENT)

    assert result.status is AnalysisStatus.OK
    assert [s.index for s in result.sections] == [0, 1]
    assert [(s.section_index, s.target_document_id) for s in result.suggestions] == [(1, 5)]


def test_below_threshold_suggestions_are_dropped(engine_config):
    handler = reply_with(
        {"section_index": 1, "target_post_id": 5, "anchor_text": "six words here", "relevance_score": 0.4},
    )
    result = make_pipeline(engine_config, handler).analyze(1, CONTENT)
    assert result.status is AnalysisStatus.EMPTY
    assert result.reason is EmptyReason.NO_SUGGESTIONS
    assert len(result.sections) == 2


def test_empty_content_never_calls_provider(engine_config):
    handler = reply_with()
    result = make_pipeline(engine_config, handler).analyze(1, "")
    assert result.reason is EmptyReason.NO_SECTIONS
    assert handler.calls == 0


def test_heading_only_content_has_no_paragraphs(engine_config):
    handler = reply_with()
    result = make_pipeline(engine_config, handler).analyze(1, "<h2>Only a heading</h2>")
    assert result.reason is EmptyReason.NO_PARAGRAPHS
    assert handler.calls == 0


def test_no_candidates_is_benign(engine_config):
    handler = reply_with()
    repository = FakeRepository([make_candidate(1, "Itself")])
    result = make_pipeline(engine_config, handler, repository).analyze(1, CONTENT)
    assert result.is_empty
    assert result.reason is EmptyReason.NO_CANDIDATES
    assert handler.calls == 0


def test_missing_api_key_fails_first(engine_config):
    handler = reply_with()
    with pytest.raises(NoApiKey):
        make_pipeline(engine_config, handler, api_key="").analyze(1, CONTENT)
    assert handler.calls == 0
