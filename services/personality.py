"""沟通风格画像

根据用户本人的历史消息，生成 2-3 句话的风格描述，作为分身回复的人设。
"""
import random
from dataclasses import dataclass
from typing import List, Optional

from config.settings import ProfileConfig
from config.logging import get_logger


logger = get_logger(__name__)


GENERIC_PROFILE = "Friendly and articulate communicator who values clarity and respect."
NEUTRAL_PROFILE = "Professional, clear, and concise communicator who values efficiency and clarity."

PROFILE_SYSTEM_PROMPT = (
    "You analyze chat messages written by one person and describe how they communicate. "
    "The description is used to write replies in that person's own voice."
)

PROFILE_USER_PROMPT = """Here are sample messages from the user:

{samples}

Based on these messages, write a brief personality profile (2-3 sentences) that describes:
1. Their tone (formal or informal, warm or reserved, concise or verbose)
2. How they usually greet people and sign off
3. Characteristic vocabulary, expressions or punctuation habits
4. Their overall level of formality

Reply with a single paragraph and no introduction."""


@dataclass
class PersonalityProfile:
    text: str
    generated: bool


class PersonalityProfiler:
    """沟通风格画像生成器

    消息不足 min_messages 条时不调用补全服务，返回通用描述；
    补全失败时返回中性描述，从不抛出异常。
    """

    def __init__(self, completion_client, config: Optional[ProfileConfig] = None, rng: Optional[random.Random] = None):
        self.completion_client = completion_client
        self.config = config or ProfileConfig()
        self._rng = rng or random.Random()

    def sample(self, texts: List[str]) -> List[str]:
        """均匀随机抽取至多 max_samples 条消息"""
        if len(texts) <= self.config.max_samples:
            return list(texts)
        return self._rng.sample(texts, self.config.max_samples)

    async def build_profile(self, texts: List[str]) -> PersonalityProfile:
        """Generate a communication-style profile.

        Args:
            texts: The user's own message texts, oldest first.

        Returns:
            The profile text, flagged ``generated`` only when it came from
            the completion service.
        """
        texts = [text for text in texts if text and text.strip()]
        if len(texts) < self.config.min_messages:
            logger.info(f"[PROFILE] Only {len(texts)} message(s), using generic profile")
            return PersonalityProfile(GENERIC_PROFILE, generated=False)

        samples = self.sample(texts)
        try:
            text = await self.completion_client.complete(
                PROFILE_SYSTEM_PROMPT,
                PROFILE_USER_PROMPT.format(samples="\n\n".join(samples)),
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except Exception as e:
            logger.warning(f"[PROFILE] Generation failed, using neutral profile: {e}")
            return PersonalityProfile(NEUTRAL_PROFILE, generated=False)

        text = text.strip()
        if not text:
            logger.warning("[PROFILE] Empty profile returned, using neutral profile")
            return PersonalityProfile(NEUTRAL_PROFILE, generated=False)

        logger.info(f"[PROFILE] Generated profile from {len(samples)} sample(s)")
        return PersonalityProfile(text, generated=True)
