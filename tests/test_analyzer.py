"""Tests for reading analysis."""

import json
import sqlite3

import pytest

from src.studio import db
from src.studio.analyzer import analyze_reading, gather_support_context, parse_analysis, text_to_analyze
from src.studio.errors import GenerationError, NotFoundError
from src.studio.models import ReadingUpdate
from src.studio.readings import capture_reading, get_reading, update_reading

ANALYSIS = {
    "relevance": "Shows agents negotiating agreements.",
    "chapters": ["Chapter 3: Agreements"],
    "tags": ["agents", "o2a"],
    "angle": "Open the issue with it.",
}


class TestParseAnalysis:
    def test_plain_json_object(self):
        analysis = parse_analysis(json.dumps(ANALYSIS))

        assert analysis.relevance == ANALYSIS["relevance"]
        assert analysis.tags == ["agents", "o2a"]

    def test_code_fenced_json(self):
        text = "```json\n" + json.dumps(ANALYSIS) + "\n```"

        assert parse_analysis(text).chapters == ["Chapter 3: Agreements"]

    def test_not_relevant_shape(self):
        analysis = parse_analysis(
            '{"relevance": "NOT_RELEVANT: sports", "chapters": [], "tags": [], "angle": null}'
        )

        assert analysis.angle is None
        assert analysis.chapters == []

    @pytest.mark.parametrize(
        "text",
        [
            "Sure! Here is the analysis: " + json.dumps(ANALYSIS),
            json.dumps(ANALYSIS) + "\nLet me know if you need more.",
            "no json at all",
            "[1, 2, 3]",
            '{"chapters": []}',
            "",
        ],
    )
    def test_rejects_anything_but_one_object(self, text):
        with pytest.raises(GenerationError):
            parse_analysis(text)


class TestTextToAnalyze:
    def test_fallback_order(self, db_path):
        reading, _ = capture_reading(
            db_path, "https://example.com/a", "Title only", excerpt="AI agents are reshaping..."
        )
        assert text_to_analyze(reading) == "AI agents are reshaping..."

        reading.content = ""
        assert text_to_analyze(reading) == "AI agents are reshaping..."

        reading.content = "Full body"
        assert text_to_analyze(reading) == "Full body"

        reading.content = None
        reading.excerpt = None
        assert text_to_analyze(reading) == "Title only"


class TestSupportContext:
    def test_placeholders_without_sources(self, db_path):
        assert gather_support_context(db_path) == {
            "master_narrative": "No master narrative loaded",
            "book_toc": "No book TOC loaded",
            "patterns": "No patterns loaded",
        }

    def test_truncates_each_category(self, db_path):
        db.insert_source(db_path, name="Master Narrative", path="n.md", category="narrative")
        db.insert_source(db_path, name="Book TOC", path="t.md", category="book")
        db.insert_source(db_path, name="Patterns A", path="a.md", category="pattern")
        db.insert_source(db_path, name="Patterns B", path="b.md", category="pattern")
        db.insert_source(db_path, name="Editorial Rules", path="e.md", category="format")
        by_name = {s.name: s for s in db.list_sources(db_path)}
        db.record_snapshot(db_path, by_name["Master Narrative"].id, "n" * 5000, "h1")
        db.record_snapshot(db_path, by_name["Book TOC"].id, "t" * 5000, "h2")
        db.record_snapshot(db_path, by_name["Patterns A"].id, "a" * 5000, "h3")
        db.record_snapshot(db_path, by_name["Patterns B"].id, "b" * 10, "h4")
        db.record_snapshot(db_path, by_name["Editorial Rules"].id, "e" * 10, "h5")

        support = gather_support_context(db_path)

        assert support["master_narrative"] == "n" * 3000
        assert support["book_toc"] == "t" * 2000
        assert support["patterns"] == "a" * 1500 + "\n---\n" + "b" * 10 + "\n---\n"


class TestAnalyzeReading:
    def test_uses_excerpt_when_content_empty(self, db_path, llm_client, response_factory):
        reading, _ = capture_reading(
            db_path, "https://example.com/agents", "Agents", excerpt="AI agents are reshaping..."
        )
        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE readings SET content = '' WHERE id = ?", (reading.id,))
        conn.commit()
        conn.close()
        llm_client.messages.create.return_value = response_factory(json.dumps(ANALYSIS))

        analyze_reading(db_path, reading.id, client=llm_client)

        kwargs = llm_client.messages.create.call_args.kwargs
        assert "Content: AI agents are reshaping..." in kwargs["messages"][0]["content"]
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 500

    def test_overwrites_ai_fields_and_keeps_user_fields(self, db_path, llm_client, response_factory):
        reading, _ = capture_reading(db_path, "https://example.com/x", "X")
        update_reading(db_path, reading.id, ReadingUpdate(user_note="Mine", user_tags=["keep"]))
        llm_client.messages.create.side_effect = [
            response_factory(json.dumps(ANALYSIS)),
            response_factory(json.dumps({"relevance": "Second pass", "chapters": [], "tags": ["new"], "angle": None})),
        ]

        first = analyze_reading(db_path, reading.id, client=llm_client)
        second = analyze_reading(db_path, reading.id, client=llm_client)

        assert first.ai_tags == ["agents", "o2a"]
        assert first.processed_at is not None
        assert second.ai_relevance == "Second pass"
        assert second.ai_chapters == []
        assert second.ai_tags == ["new"]
        assert second.ai_angle is None
        assert second.user_note == "Mine"
        assert second.user_tags == ["keep"]

    def test_unparseable_reply_writes_nothing(self, db_path, llm_client, response_factory):
        reading, _ = capture_reading(db_path, "https://example.com/y", "Y")
        llm_client.messages.create.return_value = response_factory("I could not decide.")

        with pytest.raises(GenerationError):
            analyze_reading(db_path, reading.id, client=llm_client)

        stored = get_reading(db_path, reading.id)
        assert stored.processed_at is None
        assert stored.ai_relevance is None

    def test_missing_reading(self, db_path, llm_client):
        with pytest.raises(NotFoundError):
            analyze_reading(db_path, "missing", client=llm_client)
        llm_client.messages.create.assert_not_called()
