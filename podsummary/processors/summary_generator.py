from typing import Dict, Sequence

import openai

from ..exceptions import SummarizationError
from ..models.episode import Episode
from ..utils.config import WORDS_PER_MINUTE, Credentials
from ..utils.logger import get_logger
from ..utils.text import (
    calculate_target_word_count,
    count_words,
    format_timestamp,
    is_word_count_acceptable,
)

logger = get_logger(__name__)


def combine_transcripts(episodes: Sequence[Episode]) -> str:
    """Joins transcripts in order, each under an episode marker"""
    sections = []
    for number, episode in enumerate(episodes, start=1):
        cutoff_note = ""
        if episode.timestamp:
            cutoff_note = f" (summarize only up to {format_timestamp(episode.timestamp)})"
        sections.append(f"=== EPISODE {number}: {episode.title}{cutoff_note} ===\n\n{episode.transcript or ''}")
    return "\n\n".join(sections)


def build_summary_prompt(combined_transcript: str, target_word_count: int, episode_count: int) -> str:
    return f"""You are creating an audio podcast summary. You will be given transcripts from {episode_count} podcast episode(s), and you need to create a cohesive, engaging summary that will be converted to speech.

IMPORTANT REQUIREMENTS:
1. Target length: EXACTLY {target_word_count} words (±10% is acceptable, but try to hit the target)
2. Write in a conversational, podcast-style tone suitable for audio
3. Cover all episodes in order, providing clear transitions between episodes
4. If an episode has a timestamp cutoff note, only summarize content up to that point
5. Focus on key insights, main topics, and interesting moments
6. Use natural speech patterns (contractions, varied sentence lengths)
7. Do not use headings, bullet points or any markup that cannot be read aloud

TRANSCRIPTS:
{combined_transcript}

Please create your {target_word_count}-word summary now:"""


class SummaryGenerator:
    def __init__(self, model: str = "gpt-4o", words_per_minute: int = WORDS_PER_MINUTE):
        self.model = model
        self.words_per_minute = words_per_minute
        self._clients: Dict[str, openai.AsyncOpenAI] = {}

    def _client(self, api_key: str) -> openai.AsyncOpenAI:
        if api_key not in self._clients:
            self._clients[api_key] = openai.AsyncOpenAI(api_key=api_key)
        return self._clients[api_key]

    async def summarize(self, episodes: Sequence[Episode], target_minutes: int, credentials: Credentials) -> str:
        """Generates a narration-ready summary of the episodes close to the target length"""
        target_word_count = calculate_target_word_count(target_minutes, self.words_per_minute)
        prompt = build_summary_prompt(combine_transcripts(episodes), target_word_count, len(episodes))

        client = self._client(credentials.openai_api_key)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You are a podcast host who writes concise, engaging spoken summaries of podcast episodes."},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=target_word_count * 2,
                temperature=0.7,
            )
        except openai.OpenAIError as e:
            raise SummarizationError(f"Summary generation failed: {e}") from e

        summary = (response.choices[0].message.content or "").strip()
        if not summary:
            raise SummarizationError("Summary generation returned no text")

        actual_word_count = count_words(summary)
        if not is_word_count_acceptable(actual_word_count, target_word_count):
            logger.warning(
                "Summary word count %d deviates from target %d",
                actual_word_count,
                target_word_count,
            )
        return summary
