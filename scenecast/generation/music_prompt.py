"""Condense long music briefs into short generation prompts"""

import logging
from typing import Optional

from openai import AsyncOpenAI

from ..llm.openai_client import choose_model
from ..utils.config import MusicConfig

SYSTEM_PROMPT = """Convert a detailed music description into a concise prompt for AI music generation.

Guidelines:
1. Focus on mood, genre, tempo, and key instruments
2. Keep under {max_chars} characters
3. Remove narrative elements, focus on musical qualities
4. Examples:
   - "Uplifting cinematic orchestra, adventurous theme, fast tempo"
   - "Dark electronic synthwave, 80s retro feel, driving bassline, 120 BPM"
   - "Relaxing lofi hip-hop beat, mellow piano, rainy day vibe\""""


def estimate_music_duration(scene_count: int, seconds_per_scene: int = 5) -> int:
    """Rough runtime used to size the music request"""
    return max(1, scene_count) * seconds_per_scene


class MusicPromptOptimizer:
    """Rewrites a music description with an LLM, falling back to truncation"""

    def __init__(self, client: Optional[AsyncOpenAI], config: MusicConfig):
        self.client = client
        self.config = config
        self.logger = logging.getLogger('scenecast.music_prompt')

    def fallback(self, description: str) -> str:
        return description[:self.config.max_prompt_chars]

    async def optimize(self, description: Optional[str]) -> str:
        description = (description or "").strip() or self.config.default_description
        if not self.config.optimize_prompt or self.client is None:
            return self.fallback(description)

        try:
            response = await self.client.chat.completions.create(
                model=choose_model("music", self.config.prompt_model),
                messages=[
                    {"role": "system",
                     "content": SYSTEM_PROMPT.format(max_chars=self.config.max_prompt_chars)},
                    {"role": "user",
                     "content": f'Convert this to a music prompt: "{description}"'},
                ],
                temperature=0.7,
                max_tokens=80,
            )
            content = response.choices[0].message.content if response.choices else None
            prompt = (content or "").strip().strip('"')
        except Exception as e:
            self.logger.error(f"Error optimizing music prompt: {e}")
            return self.fallback(description)

        if not prompt:
            self.logger.warning("Empty optimized music prompt, using description")
            return self.fallback(description)

        prompt = prompt[:self.config.max_prompt_chars]
        self.logger.info(f"🎵 Optimized music prompt: \"{prompt}\"")
        return prompt
