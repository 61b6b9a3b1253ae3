"""
Gemini API Client for Newsdesk Workers
Used for: turning a queued social post or feed item into a Telugu news article

The worker builds the prompt and validates the JSON reply; anything that is
not a usable article (API error, timeout, non-JSON, missing title/summary)
surfaces as GenerationError so the queue worker can apply its drop policy.

Expected reply:
    {title, summary, content?, category?, tags_en? | tags?, slug_en? | slug?}
"""

import os
import re
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from ..config.settings import GEMINI_MODEL, GENERATION_TIMEOUT_SECONDS
from ..errors import GenerationError

logger = logging.getLogger(__name__)

# Upper bound on scraped article context sent with the prompt
MAX_CONTEXT_CHARS = 6000


@dataclass
class GeneratedArticle:
    title: str
    summary: str
    content: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    slug: Optional[str] = None


def build_article_prompt(text: str, author_label: Optional[str] = None, context: Optional[str] = None) -> str:
    """Journalistic rewrite prompt: third person, neutral, Telugu output."""
    source_line = f"\n    Source / Author: {author_label}\n" if author_label else ""
    context_block = ""
    if context:
        context_block = f"""
    Supporting Article Text (use only for facts, do not copy):
    \"\"\"{context[:MAX_CONTEXT_CHARS]}\"\"\"
"""

    return f"""
    Role: Professional Telugu News Editor.

    Task: Convert the provided information into a formal, neutral, and factual Telugu news report.

    Strict Guidelines:
    1. **NO First-Person Perspective:** Do not use "I", "We", "My", or write as if you are the author of the post. Write in the third person (objective voice).
    2. **Neutral Tone:** The writing must be professional, unbiased, and suitable for a mainstream news portal.
    3. **Focus on Facts:** Describe the event, incident, or update clearly. If the post is an opinion, report it as "According to reports..." or "It is being discussed that...".
    4. **Structure:**
       - **Title:** Engaging but factual headline (Max 8 words in Telugu).
       - **Summary:** A concise overview of the news (Min 65 words in Telugu).
       - **Content:** The detailed report. Start with the context, explain the main event, and conclude with the significance or outcome.
{source_line}
    Input Data:
    "{text}"
{context_block}
    Output JSON Format:
    {{
      "title": "Telugu Title",
      "summary": "Telugu Summary",
      "content": "Telugu Content",
      "category": "English category name",
      "slug_en": "english-slug-for-url",
      "tags_en": ["tag1", "tag2"]
    }}
    """


def _extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Fallback for replies wrapped in code fences or prose"""
    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    candidates = [fenced.group(1)] if fenced else []
    braces = re.search(r"\{.*\}", text, re.DOTALL)
    if braces:
        candidates.append(braces.group())

    for raw in candidates:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_article_response(text: Optional[str]) -> GeneratedArticle:
    """
    Validate a Gemini reply.

    Raises:
        GenerationError: reply is empty, not JSON, or lacks title/summary
    """
    if not text or not text.strip():
        raise GenerationError("Empty response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = _extract_json_object(text)

    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    if not isinstance(data, dict):
        raise GenerationError("Response is not a JSON object")

    title = _clean_str(data.get("title"))
    summary = _clean_str(data.get("summary"))
    if not title or not summary:
        raise GenerationError("Response missing title or summary")

    raw_tags = data.get("tags_en") or data.get("tags") or []
    if isinstance(raw_tags, str):
        raw_tags = raw_tags.split(",")
    elif not isinstance(raw_tags, list):
        raw_tags = []
    tags = [t.strip() for t in raw_tags if isinstance(t, str) and t.strip()]

    return GeneratedArticle(
        title=title,
        summary=summary,
        content=_clean_str(data.get("content")),
        category=_clean_str(data.get("category")),
        tags=tags,
        slug=_clean_str(data.get("slug_en")) or _clean_str(data.get("slug")),
    )


class GeminiClient:
    """Gemini API wrapper for newsdesk workers"""

    def __init__(self, api_key: str = None, model_name: str = None):
        self.api_key = api_key or os.environ.get('GEMINI_API_KEY')
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")

        genai.configure(api_key=self.api_key)

        self.model_name = model_name or GEMINI_MODEL
        self.model = genai.GenerativeModel(self.model_name)

    def generate(self, prompt: str) -> str:
        """
        Single JSON-mode generation call with a bounded timeout.

        Raises:
            GenerationError: on any API error or empty reply
        """
        try:
            response = self.model.generate_content(
                prompt,
                generation_config=genai.GenerationConfig(
                    temperature=0.4,
                    response_mime_type="application/json"
                ),
                request_options={"timeout": GENERATION_TIMEOUT_SECONDS}
            )
            text = response.text
        except Exception as e:
            logger.error(f"[Gemini] Generation call failed: {e}")
            raise GenerationError(str(e)) from e

        if not text:
            raise GenerationError("Empty response")
        return text

    def write_article(
        self,
        text: str,
        author_label: Optional[str] = None,
        context: Optional[str] = None
    ) -> GeneratedArticle:
        """Rewrite raw post/feed text as a Telugu news article."""
        prompt = build_article_prompt(text, author_label=author_label, context=context)
        return parse_article_response(self.generate(prompt))
