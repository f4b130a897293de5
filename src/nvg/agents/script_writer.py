"""Script writer agent: turns a topic into a narration script."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import InvalidInputError, TransientError
from ..models.options import SCRIPT_STYLES
from ..services.anthropic import AnthropicClient
from ..services.base import ScriptProvider, ScriptText
from .base import BaseAgent

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a scriptwriter for narrated explainer videos.
Write narration that is meant to be read aloud by a text-to-speech voice:
plain sentences, no stage directions, no headings, no bullet points, no emoji.
Separate paragraphs with a blank line. Each paragraph should describe one
visual moment.

Output valid JSON only, with no additional text or markdown formatting:
{"title": "<short video title>", "script": "<the narration>"}"""

STYLE_GUIDANCE = {
    "educational": "Explain clearly and accurately, building from basics to details.",
    "entertaining": "Keep it light, surprising and fun, with a strong hook.",
    "documentary": "Use a measured, authoritative documentary narrator voice.",
    "storytelling": "Tell it as a story with a beginning, a turn and an ending.",
}


@dataclass
class ScriptRequest:
    """Input data for the script writer."""

    topic: str
    style: str = "educational"
    target_duration: float = 60.0
    words_per_minute: int = 150

    @property
    def target_words(self) -> int:
        return max(10, round(self.target_duration / 60 * self.words_per_minute))


class ScriptWriterAgent(BaseAgent[ScriptRequest, ScriptText], ScriptProvider):
    """Writes narration scripts with Claude.

    Serves as the "anthropic" script provider.
    """

    def __init__(self, client: AnthropicClient, words_per_minute: int = 150) -> None:
        super().__init__(client)
        self._words_per_minute = words_per_minute

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "ScriptWriterAgent"

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def generate_script(
        self,
        topic: str,
        style: Optional[str] = None,
        target_duration: Optional[float] = None,
    ) -> ScriptText:
        if not topic or not topic.strip():
            raise InvalidInputError("Topic is empty", provider="anthropic", category="script")
        style = style or "educational"
        if style not in SCRIPT_STYLES:
            raise InvalidInputError(
                f"Unknown script style: {style}. Expected one of: {', '.join(SCRIPT_STYLES)}",
                provider="anthropic",
                category="script",
            )
        return self.run(ScriptRequest(
            topic=topic.strip(),
            style=style,
            target_duration=target_duration or 60.0,
            words_per_minute=self._words_per_minute,
        ))

    def run(self, input_data: ScriptRequest) -> ScriptText:
        """Generate a script for the request.

        Args:
            input_data: Topic, style and length.

        Returns:
            ScriptText with title and narration.

        Raises:
            TransientError: The model answered with something that is not a script.
        """
        self._logger.info(
            f"Writing {input_data.style} script for: '{input_data.topic}' "
            f"(~{input_data.target_words} words)"
        )
        response = self._create_message(
            prompt=self._build_prompt(input_data),
            max_tokens=max(1024, input_data.target_words * 3),
            temperature=0.8,
        )

        try:
            data = self._parse_json(response)
        except ValueError as e:
            raise TransientError(f"Script response was not valid JSON: {e}", provider="anthropic", category="script")

        script = str(data.get("script") or "").strip()
        if not script:
            raise TransientError("Script response had no narration", provider="anthropic", category="script")
        title = str(data.get("title") or "").strip() or input_data.topic[:80]

        self._logger.info(f"Wrote script '{title}' ({len(script.split())} words)")
        return ScriptText(title=title, script=script)

    def _build_prompt(self, input_data: ScriptRequest) -> str:
        """Build the user prompt for script generation."""
        return "\n".join([
            "Write a narration script for the following video:",
            "",
            f"TOPIC: {input_data.topic}",
            f"STYLE: {input_data.style}. {STYLE_GUIDANCE[input_data.style]}",
            f"TARGET LENGTH: about {input_data.target_words} words "
            f"({round(input_data.target_duration)} seconds of narration)",
        ])
