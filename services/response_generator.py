"""回复生成

组装系统提示词（人设 + 固定指令 + 最近对话 + 检索上下文），调用补全服务，
把结果规范化为富文本文档。失败时返回致歉文档，从不抛出异常。
"""
from typing import Optional

from config.settings import CompletionConfig
from config.logging import get_logger
from services.rich_text import apology_document, ensure_document


logger = get_logger(__name__)

DEFAULT_PERSONA = "You are a helpful AI assistant."
RESPONSE_INSTRUCTION = (
    "You are responding to a message in a chat workspace. "
    "Keep your responses concise, helpful, and conversational."
)


def build_system_prompt(
    personality_profile: Optional[str],
    history: Optional[str] = None,
    context: Optional[str] = None,
) -> str:
    """Compose the system prompt; empty blocks are left out."""
    persona = (personality_profile or "").strip() or DEFAULT_PERSONA
    parts = [f"{persona}\n{RESPONSE_INSTRUCTION}"]

    if history and history.strip():
        parts.append(f"Recent conversation:\n{history.strip()}")

    if context and context.strip():
        parts.append(
            "Here is some relevant context from previous messages. "
            "Use this context to inform your reply, but do not reference it explicitly:\n"
            f"{context.strip()}"
        )

    return "\n\n".join(parts)


class ResponseGenerator:
    """分身回复生成器"""

    def __init__(self, completion_client, config: Optional[CompletionConfig] = None):
        self.completion_client = completion_client
        self.config = config or CompletionConfig()

    async def generate(
        self,
        query: str,
        personality_profile: Optional[str] = None,
        history: Optional[str] = None,
        context: Optional[str] = None,
    ) -> str:
        """Generate a reply document.

        Args:
            query: The incoming message text.
            personality_profile: Persona description; empty uses a default.
            history: Formatted recent conversation.
            context: Retrieved context block.

        Returns:
            A serialized rich-text document; the apology document on failure.
        """
        system_prompt = build_system_prompt(personality_profile, history, context)
        try:
            raw = await self.completion_client.complete(
                system_prompt,
                query,
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except Exception as e:
            logger.error(f"[LLM] Reply generation failed: {e}")
            return apology_document(str(e) or e.__class__.__name__)

        return ensure_document(raw.strip())
