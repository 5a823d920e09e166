"""Tests for section generation."""

import sqlite3
from datetime import date

import anthropic
import httpx
import pytest

from src.studio import db
from src.studio.build_log import create_entry
from src.studio.config import settings
from src.studio.context import assemble_context
from src.studio.errors import ConflictError, GenerationError, NotFoundError, ValidationError
from src.studio.generator import generate_section, section_guard
from src.studio.models import NewsletterMetadata, NewsletterUpdate
from src.studio.newsletters import create_newsletter, get_newsletter, update_newsletter
from src.studio.prompts import SECTION_PROMPTS, SECTION_TITLES


def _rename_section(db_path: str, section_id: str, title: str) -> None:
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE content SET title = ? WHERE id = ?", (title, section_id))
    conn.commit()
    conn.close()


class TestPromptCatalog:
    def test_catalog_matches_section_titles(self):
        assert list(SECTION_PROMPTS) == SECTION_TITLES

    def test_user_prompts_are_pure_and_include_theme(self, db_path):
        ctx = assemble_context(db_path, [], [], theme="Agreements over offerings")
        for prompt in SECTION_PROMPTS.values():
            assert prompt.user(ctx) == prompt.user(ctx)
            assert "Agreements over offerings" in prompt.user(ctx)

    def test_prompt_pack_asks_for_three_labeled_prompts(self, db_path):
        text = SECTION_PROMPTS["Prompt Pack"].user(assemble_context(db_path, [], []))
        for label in ("DIAGNOSE", "PROPOSE", "IMPLEMENT"):
            assert f"### {label}" in text


class TestGenerateSection:
    def test_writes_only_the_target_section(self, db_path, llm_client):
        newsletter = create_newsletter(db_path, "Flows")
        target = newsletter.sections[1]

        result = generate_section(db_path, newsletter.id, target.id, client=llm_client)

        assert result.content == "Generated text"
        assert result.tokens_used == 150
        after = get_newsletter(db_path, newsletter.id)
        for before_section, after_section in zip(newsletter.sections, after.sections):
            if after_section.id == target.id:
                assert after_section.body_markdown == "Generated text"
                assert after_section.status == "generated"
                assert after_section.title == before_section.title
                assert after_section.sequence_order == before_section.sequence_order
            else:
                assert after_section.body_markdown == ""
                assert after_section.status == "draft"

    def test_request_parameters(self, db_path, llm_client):
        newsletter = create_newsletter(db_path, "Flows")
        entry = create_entry(db_path, date(2024, 1, 1))

        generate_section(db_path, newsletter.id, newsletter.sections[0].id, [entry.id], [], client=llm_client)

        kwargs = llm_client.messages.create.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 2000
        assert kwargs["system"] == SECTION_PROMPTS["Thesis Fragment"].system
        assert "### Week of 2024-01-01" in kwargs["messages"][0]["content"]
        assert "No readings selected." in kwargs["messages"][0]["content"]

    def test_unknown_section_title_never_calls_model(self, db_path, llm_client):
        newsletter = create_newsletter(db_path, "Flows")
        section = newsletter.sections[2]
        _rename_section(db_path, section.id, "Mystery Section")
        before = get_newsletter(db_path, newsletter.id)

        with pytest.raises(ValidationError, match="Unknown section type: Mystery Section"):
            generate_section(db_path, newsletter.id, section.id, client=llm_client)

        llm_client.messages.create.assert_not_called()
        assert get_newsletter(db_path, newsletter.id) == before

    def test_missing_newsletter(self, db_path, llm_client):
        with pytest.raises(NotFoundError, match="Newsletter not found"):
            generate_section(db_path, "missing", "whatever", client=llm_client)
        llm_client.messages.create.assert_not_called()

    def test_section_from_other_newsletter(self, db_path, llm_client):
        a = create_newsletter(db_path, "A")
        b = create_newsletter(db_path, "B")

        with pytest.raises(NotFoundError, match="Section not found"):
            generate_section(db_path, a.id, b.sections[0].id, client=llm_client)

        llm_client.messages.create.assert_not_called()
        assert get_newsletter(db_path, b.id).sections[0].status == "draft"

    def test_no_text_block_writes_nothing(self, db_path, llm_client, response_factory):
        llm_client.messages.create.return_value = response_factory(text=None)
        newsletter = create_newsletter(db_path, "Flows")

        with pytest.raises(GenerationError, match="No content generated"):
            generate_section(db_path, newsletter.id, newsletter.sections[0].id, client=llm_client)

        assert get_newsletter(db_path, newsletter.id).sections[0].status == "draft"

    def test_api_error_becomes_generation_error(self, db_path, llm_client):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        llm_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)
        newsletter = create_newsletter(db_path, "Flows")

        with pytest.raises(GenerationError):
            generate_section(db_path, newsletter.id, newsletter.sections[0].id, client=llm_client)

        assert get_newsletter(db_path, newsletter.id).sections[0].body_markdown == ""

    def test_second_call_overwrites_first(self, db_path, llm_client, response_factory):
        newsletter = create_newsletter(db_path, "Flows")
        section_id = newsletter.sections[4].id
        llm_client.messages.create.side_effect = [
            response_factory("First draft"),
            response_factory("Second draft"),
        ]

        generate_section(db_path, newsletter.id, section_id, client=llm_client)
        generate_section(db_path, newsletter.id, section_id, client=llm_client)

        assert llm_client.messages.create.call_count == 2
        assert get_newsletter(db_path, newsletter.id).sections[4].body_markdown == "Second draft"

    def test_concurrent_request_for_same_section_is_rejected(self, db_path, llm_client):
        newsletter = create_newsletter(db_path, "Flows")
        section_id = newsletter.sections[0].id

        with section_guard(section_id):
            with pytest.raises(ConflictError):
                generate_section(db_path, newsletter.id, section_id, client=llm_client)
            # Other sections are unaffected.
            generate_section(db_path, newsletter.id, newsletter.sections[1].id, client=llm_client)

        llm_client.messages.create.assert_called_once()
        # Guard is released afterwards.
        generate_section(db_path, newsletter.id, section_id, client=llm_client)

    def test_theme_defaults_to_metadata(self, db_path, llm_client):
        newsletter = create_newsletter(db_path, "Flows")
        update_newsletter(
            db_path, newsletter.id, NewsletterUpdate(metadata=NewsletterMetadata(theme="Agreements"))
        )

        generate_section(db_path, newsletter.id, newsletter.sections[0].id, client=llm_client)

        assert "## THEME FOR THIS ISSUE\nAgreements" in llm_client.messages.create.call_args.kwargs["messages"][0]["content"]

    def test_usage_is_logged(self, db_path, llm_client):
        newsletter = create_newsletter(db_path, "Flows")

        generate_section(db_path, newsletter.id, newsletter.sections[0].id, client=llm_client)

        stats = db.get_api_usage_stats(db_path)
        assert stats["total_input_tokens"] == 100
        assert stats["total_output_tokens"] == 50
        assert stats["by_step"][0]["step"] == "section:Thesis Fragment"

    def test_missing_api_key(self, db_path, monkeypatch):
        monkeypatch.setattr(settings, "anthropic_api_key", "")
        newsletter = create_newsletter(db_path, "Flows")

        with pytest.raises(GenerationError, match="API key"):
            generate_section(db_path, newsletter.id, newsletter.sections[0].id)
