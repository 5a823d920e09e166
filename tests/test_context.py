"""Tests for strategy-document loading and context assembly."""

from datetime import date

from src.studio import db
from src.studio.build_log import create_entry, update_entry
from src.studio.context import NO_BUILD_LOGS, NO_READINGS, assemble_context
from src.studio.models import BuildLogUpdate, ReadingAnalysis
from src.studio.readings import capture_reading
from src.studio.strategy import MASTER_NARRATIVE, load_strategy_document, load_strategy_documents


class TestStrategyDocuments:
    def test_reads_existing_file(self, strategy_dir):
        (strategy_dir / "01-master-narrative.md").write_text("Organizations are programmable.", encoding="utf-8")

        assert load_strategy_document(MASTER_NARRATIVE) == "Organizations are programmable."

    def test_undecodable_file_falls_back_to_placeholder(self, strategy_dir):
        (strategy_dir / "01-master-narrative.md").write_bytes(b"\xff\xfe bad \x80")

        assert load_strategy_document(MASTER_NARRATIVE) == "Master narrative not available."

    def test_missing_files_fall_back_to_placeholders(self, strategy_dir):
        docs = load_strategy_documents()

        assert docs == {
            "master_narrative": "Master narrative not available.",
            "editorial_rules": "Editorial rules not available.",
            "newsletter_format": "Newsletter format not available.",
        }

    def test_one_missing_file_does_not_block_others(self, strategy_dir):
        (strategy_dir / "07-editorial-rules.md").write_text("No hype.", encoding="utf-8")

        docs = load_strategy_documents()

        assert docs["editorial_rules"] == "No hype."
        assert docs["master_narrative"] == "Master narrative not available."


class TestAssembleContext:
    def test_placeholders_when_nothing_selected(self, db_path):
        ctx = assemble_context(db_path, [], [])

        assert ctx.build_logs == NO_BUILD_LOGS
        assert ctx.readings == NO_READINGS
        assert ctx.theme is None

    def test_build_log_block_uses_na_for_empty_fields(self, db_path):
        entry = create_entry(db_path, date(2024, 1, 1))
        update_entry(db_path, entry.id, BuildLogUpdate(client_work="Workshop with a bank"))

        ctx = assemble_context(db_path, [entry.id], [])

        assert ctx.build_logs == (
            "### Week of 2024-01-01\n"
            "**Client Work:** Workshop with a bank\n"
            "**Software Development:** N/A\n"
            "**Prototyping:** N/A\n"
            "**Reading:** N/A"
        )

    def test_reading_block_omits_absent_fields(self, db_path):
        reading, _ = capture_reading(db_path, "https://example.com/a", "Agents at work")

        ctx = assemble_context(db_path, [], [reading.id])

        assert ctx.readings == "### Agents at work\nURL: https://example.com/a"

    def test_reading_block_includes_ai_fields_and_excerpt(self, db_path):
        reading, _ = capture_reading(db_path, "https://example.com/b", "Flows", excerpt="Short excerpt")
        db.update_reading_analysis(
            db_path,
            reading.id,
            ReadingAnalysis(relevance="Connects to flows", chapters=[], tags=[], angle="Use as opener"),
        )

        ctx = assemble_context(db_path, [], [reading.id])

        assert ctx.readings == (
            "### Flows\n"
            "URL: https://example.com/b\n"
            "Relevance: Connects to flows\n"
            "Angle: Use as opener\n"
            "Excerpt: Short excerpt"
        )

    def test_blocks_follow_input_order_with_blank_line(self, db_path):
        first, _ = capture_reading(db_path, "https://example.com/1", "One")
        second, _ = capture_reading(db_path, "https://example.com/2", "Two")

        ctx = assemble_context(db_path, [], [second.id, first.id, second.id])

        blocks = ctx.readings.split("\n\n")
        assert [b.splitlines()[0] for b in blocks] == ["### Two", "### One", "### Two"]

    def test_includes_strategy_documents_and_theme(self, db_path, strategy_dir):
        (strategy_dir / "06-newsletter-format.md").write_text("Five sections.", encoding="utf-8")

        ctx = assemble_context(db_path, [], [], theme="Agreements")

        assert ctx.newsletter_format == "Five sections."
        assert ctx.master_narrative == "Master narrative not available."
        assert ctx.theme == "Agreements"
