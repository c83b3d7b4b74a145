"""补全服务客户端

向配置的 OpenAI 兼容服务器发送 chat/completions 请求，
同一模型配置多台服务器时轮询使用。
"""
from typing import Dict, List, Optional

import httpx

from config.settings import ServerConfig
from config.logging import get_logger
from services.errors import CompletionError, ConfigurationError


logger = get_logger(__name__)


class CompletionClient:
    """OpenAI-compatible chat completion client."""

    def __init__(
        self,
        servers: Optional[Dict[str, ServerConfig]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        read_timeout: float = 60.0,
    ):
        self._model_server_map: Dict[str, List[ServerConfig]] = {}
        self._counters: Dict[str, int] = {}
        self._transport = transport
        self._read_timeout = read_timeout
        self.http_client: Optional[httpx.AsyncClient] = None

        for server_config in (servers or {}).values():
            for model in server_config.models:
                self._model_server_map.setdefault(model, []).append(server_config)
                self._counters[model] = 0

    def _get_client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self.http_client is None or self.http_client.is_closed:
            self.http_client = httpx.AsyncClient(
                limits=httpx.Limits(
                    max_connections=100,
                    max_keepalive_connections=20,
                    keepalive_expiry=60,
                ),
                timeout=httpx.Timeout(
                    connect=5.0,
                    read=self._read_timeout,
                    write=5.0,
                    pool=5.0,
                ),
                transport=self._transport or httpx.AsyncHTTPTransport(retries=2),
            )
        return self.http_client

    def get_server_for_model(self, model: str) -> ServerConfig:
        """根据模型名获取服务器配置（轮询）"""
        if model not in self._model_server_map:
            raise ConfigurationError(
                f"No completion server configured for model {model!r}. "
                f"Add it to servers in config/servers.yaml or set OPENAI_API_KEY"
            )

        servers = self._model_server_map[model]
        counter = self._counters[model] % len(servers)
        self._counters[model] += 1

        return servers[counter]

    def get_auth_headers(self, server_config: ServerConfig) -> Dict[str, str]:
        """生成认证头"""
        return {
            "Authorization": f"Bearer {server_config.api_key}",
            "Content-Type": "application/json",
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        """Run a single non-streaming chat completion.

        Args:
            system_prompt: System message content.
            user_prompt: User message content.
            model: Model name, must be served by a configured server.
            temperature: Sampling temperature.
            max_tokens: Completion length limit.

        Returns:
            The text of ``choices[0].message.content``.

        Raises:
            ConfigurationError: No server serves ``model``.
            CompletionError: Non-success status, timeout or malformed payload.
        """
        server_config = self.get_server_for_model(model)
        url = f"{server_config.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        client = self._get_client()
        try:
            response = await client.post(url, json=payload, headers=self.get_auth_headers(server_config))
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"[LLM] {model} timed out")
            raise CompletionError(f"completion request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"[LLM] {model} returned {e.response.status_code}: {e.response.text[:200]}")
            raise CompletionError(f"completion request failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[LLM] {model} transport error: {e}")
            raise CompletionError(f"completion request failed: {e}") from e
        except ValueError as e:
            raise CompletionError("completion response is not valid JSON") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionError("completion response has no choices[0].message.content") from e
        if not isinstance(content, str):
            raise CompletionError("completion content is not a string")

        logger.debug(f"[LLM] {model} returned {len(content)} chars")
        return content

    def get_available_models(self) -> List[str]:
        """获取所有可用模型列表"""
        return list(self._model_server_map.keys())

    def has_model(self, model: str) -> bool:
        return model in self._model_server_map

    async def close(self):
        """关闭HTTP客户端"""
        if self.http_client:
            await self.http_client.aclose()
            self.http_client = None
