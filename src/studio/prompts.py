from collections.abc import Callable
from dataclasses import dataclass

from .context import NewsletterContext

THESIS_FRAGMENT = "Thesis Fragment"
PATTERN_OF_THE_WEEK = "Pattern of the Week"
PROMPT_PACK = "Prompt Pack"
BUILD_LOG = "Build Log"
CTA = "CTA"

# Order matters: sections are created and exported in this sequence.
SECTION_TITLES = [THESIS_FRAGMENT, PATTERN_OF_THE_WEEK, PROMPT_PACK, BUILD_LOG, CTA]


@dataclass(frozen=True)
class SectionPrompt:
    system: str
    user: Callable[[NewsletterContext], str]


def _theme_block(ctx: NewsletterContext) -> str:
    if not ctx.theme:
        return ""
    return f"## THEME FOR THIS ISSUE\n{ctx.theme}\n\n"


THESIS_FRAGMENT_SYSTEM = """You are the author's editorial assistant. Write a thesis fragment for a bi-weekly newsletter about programmable organizations.

Follow the editorial rules provided for tone and vocabulary. Write in first person as the author."""


def thesis_fragment_prompt(ctx: NewsletterContext) -> str:
    return f"""## MASTER NARRATIVE
{ctx.master_narrative}

## EDITORIAL RULES
{ctx.editorial_rules}

## SELECTED BUILD LOGS
{ctx.build_logs}

## SELECTED READINGS
{ctx.readings}

{_theme_block(ctx)}## TASK
Generate a Thesis Fragment (150-250 words) that:
1. Presents one key idea from this week's work
2. Connects to the broader thesis about programmable organizations
3. Sets up the pattern that follows
4. Uses clear, operator-grade language (no hype)
5. Is written in first person

Output ONLY the thesis fragment text, no preamble or explanation."""


PATTERN_OF_THE_WEEK_SYSTEM = """You are the author's editorial assistant. Write a Pattern of the Week section for a newsletter about programmable organizations.

Follow the editorial rules provided. Use the pattern format: Intent, Forces, Moves, Trade-offs."""


def pattern_of_the_week_prompt(ctx: NewsletterContext) -> str:
    return f"""## MASTER NARRATIVE
{ctx.master_narrative}

## EDITORIAL RULES
{ctx.editorial_rules}

## NEWSLETTER FORMAT REFERENCE
{ctx.newsletter_format}

## SELECTED BUILD LOGS (source material)
{ctx.build_logs}

## SELECTED READINGS (supporting evidence)
{ctx.readings}

{_theme_block(ctx)}## TASK
Generate a Pattern of the Week (400-700 words) with these sections:

**Intent**: What problem does this pattern solve?
**Forces**: What tensions exist?
**Moves**: What are the concrete actions?
**Trade-offs**: What are you giving up?
**Example**: Brief anonymized example from client work or development

Write in a clear, practical style. This is operator-grade content, not marketing.

Output ONLY the pattern content with markdown headers, no preamble."""


PROMPT_PACK_SYSTEM = """You are the author's editorial assistant. Create a Prompt Pack for readers to apply this week's pattern.

Each prompt should be actionable and specific, not generic."""


def prompt_pack_prompt(ctx: NewsletterContext) -> str:
    return f"""## CONTEXT
{ctx.master_narrative}

## BUILD LOGS (this week's work)
{ctx.build_logs}

## READINGS (supporting material)
{ctx.readings}

{_theme_block(ctx)}## TASK
Generate exactly 3 prompts for readers to apply this week's pattern:

1. **DIAGNOSE**: A question/prompt to identify if they have this problem
2. **PROPOSE**: A prompt to generate solution options
3. **IMPLEMENT**: A prompt to create a concrete artifact

Format each prompt as:
### DIAGNOSE
[The prompt text that readers can copy/paste into an AI]

### PROPOSE
[The prompt text]

### IMPLEMENT
[The prompt text]

Make prompts specific and actionable, not generic. They should produce useful outputs.

Output ONLY the three prompts with their headers, no introduction."""


BUILD_LOG_SYSTEM = """You are the author's editorial assistant. Write a Build Log summary for the newsletter.

This should be a concise summary of what changed in the author's products and client work."""


def build_log_prompt(ctx: NewsletterContext) -> str:
    return f"""## SELECTED BUILD LOGS
{ctx.build_logs}

{_theme_block(ctx)}## TASK
Generate a Build Log section (150-250 words) that:
1. Summarizes what changed this week
2. Highlights key developments in client work
3. Notes any significant software/tooling updates
4. Is written in first person
5. Is practical and concrete, not promotional

Output ONLY the build log text, no preamble."""


CTA_SYSTEM = """You are the author's editorial assistant. Write a call-to-action for the newsletter.

Keep it simple, direct, and aligned with the author's goals of finding design partners and building in public."""


def cta_prompt(ctx: NewsletterContext) -> str:
    return f"""## CONTEXT
{ctx.master_narrative}

## BUILD LOGS
{ctx.build_logs}

{_theme_block(ctx)}## TASK
Generate a CTA (50-100 words) that:
1. Invites readers to engage (reply with use case, intro, design partner interest)
2. Feels personal, not salesy
3. Connects to the week's theme
4. Is written in first person

Output ONLY the CTA text, no preamble."""


SECTION_PROMPTS: dict[str, SectionPrompt] = {
    THESIS_FRAGMENT: SectionPrompt(THESIS_FRAGMENT_SYSTEM, thesis_fragment_prompt),
    PATTERN_OF_THE_WEEK: SectionPrompt(PATTERN_OF_THE_WEEK_SYSTEM, pattern_of_the_week_prompt),
    PROMPT_PACK: SectionPrompt(PROMPT_PACK_SYSTEM, prompt_pack_prompt),
    BUILD_LOG: SectionPrompt(BUILD_LOG_SYSTEM, build_log_prompt),
    CTA: SectionPrompt(CTA_SYSTEM, cta_prompt),
}


# ---------------------------------------------------------------------------
# Reading analysis
# ---------------------------------------------------------------------------

ANALYSIS_SYSTEM_PROMPT = """You are the author's editorial assistant.
Your task is to analyze articles and determine their relevance to the author's thesis about programmable organizations.

Respond with exactly one JSON object and nothing else: no prose, no explanation before or after it."""


def analysis_prompt(
    title: str,
    url: str,
    content: str,
    master_narrative: str,
    book_toc: str,
    patterns: str,
) -> str:
    return f"""## CONTEXT - Main Thesis
{master_narrative}

## CONTEXT - Book Structure
{book_toc}

## CONTEXT - Patterns Summary
{patterns}

## NEW ARTICLE
Title: {title}
URL: {url}
Content: {content}

## GENERATE (as a single JSON object):
{{
  "relevance": "2-3 sentences on how this article connects to the thesis",
  "chapters": ["Chapter X: Title", "Chapter Y: Title"],
  "tags": ["tag1", "tag2", "tag3"],
  "angle": "1 sentence: potential angle for using this in a newsletter"
}}

If the article is NOT relevant to the thesis, respond:
{{
  "relevance": "NOT_RELEVANT: [brief explanation]",
  "chapters": [],
  "tags": [],
  "angle": null
}}"""
