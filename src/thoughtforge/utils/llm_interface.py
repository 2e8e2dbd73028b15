import asyncio
import aiohttp
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from .debug_logger import null_logger
from .async_utils import limit_async_func_call, rate_limited, with_ai_model_backoff
from .config import RetryConfig
from .error_handling import NonRetryableError, TransientCollaboratorError
from .token_cost_tracker import TokenCostTracker


class LLMInterface:
    def __init__(self, config: dict = None, logger=None, retry_config: RetryConfig = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        if not config:
            raise ValueError("Configuration is required and cannot be None")

        if not config.get("api_key"):
            raise ValueError("API key is required in LLM configuration")
        if not config.get("model_name"):
            raise ValueError("Model name is required in LLM configuration")
        if not config.get("base_url"):
            raise ValueError("Base URL is required in LLM configuration")

        self.model_name = config["model_name"]
        self.api_key = config["api_key"]
        self.base_url = config["base_url"].rstrip("/")
        self.default_max_tokens = config.get("max_tokens", 4096)
        self.default_temperature = config.get("temperature", 0.7)
        self.request_timeout = config.get("timeout", 120)
        self.retry_config = retry_config or RetryConfig()
        self.sleep = sleep

        # Per-client concurrency cap
        self._limited_request = limit_async_func_call(
            max_size=config.get("max_concurrent_calls", 8)
        )(self._request_completion)

        # Async session will be initialized when needed
        self._session = None
        self.logger = logger or null_logger()

        self.cost_tracker = TokenCostTracker(self.model_name, self.logger)

        # Don't log sensitive information
        self.logger.log_info(f"LLM Interface initialized - Model: {self.model_name}", "llm_interface")

    async def get_session(self):
        """Get or create async session"""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            headers = {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            }
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers
            )
        return self._session

    async def chat_completion(
        self,
        messages: List[Dict],
        max_tokens: int = None,
        temperature: float = None,
        caller: str = "unknown"
    ) -> Tuple[str, Optional[Dict]]:
        """
        Generate response using OpenAI-compatible chat completions API and cost tracking.

        This is the only retry layer for model calls: 429/5xx responses and network
        errors are retried according to retry_config, other client errors are raised
        as NonRetryableError on the first attempt.
        """
        retry = self.retry_config
        return await with_ai_model_backoff(
            lambda: self._limited_request(messages, max_tokens, temperature, caller),
            max_retries=retry.max_retries,
            initial_delay=retry.initial_delay,
            max_delay=retry.max_delay,
            backoff_factor=retry.backoff_factor,
            timeout=retry.timeout,
            sleep=self.sleep,
            logger=self.logger,
            caller=f"llm_interface.{caller}",
        )

    @rate_limited(max_calls=60, time_window=60)
    async def _request_completion(self, messages: List[Dict], max_tokens: int = None,
                                  temperature: float = None, caller: str = "unknown") -> Tuple[str, Optional[Dict]]:
        max_tokens = max_tokens or self.default_max_tokens
        temperature = self.default_temperature if temperature is None else temperature
        self.logger.log_debug(f"Making async API call for {caller}", "llm_interface")

        session = await self.get_session()

        async with session.post(
            f"{self.base_url}/chat/completions",
            json={
                "model": self.model_name,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature
            }
        ) as response:
            if response.status == 429 or response.status >= 500:
                body = await response.text()
                raise TransientCollaboratorError(
                    f"{response.status} server error from model provider: {body[:200]}",
                    status=response.status
                )
            if response.status >= 400:
                body = await response.text()
                raise NonRetryableError(
                    f"{response.status} client error from model provider: {body[:200]}",
                    status=response.status
                )
            result = await response.json()

        choices = result.get("choices") or [{}]
        response_text = choices[0].get("message", {}).get("content", "") or ""

        cost_info = self.cost_tracker.track_conversation(caller, messages, response_text)

        self.logger.log_debug(
            f"Async API call successful for {caller} - Response length: {len(response_text)}, "
            f"Tokens: {cost_info['tokens']['total_tokens']}",
            "llm_interface"
        )
        return response_text, cost_info

    async def generate_with_system_prompt(self, system_prompt: str, user_prompt: str,
                                          max_tokens: int = None, temperature: float = None,
                                          caller: str = "unknown") -> str:
        """Generate text with both system and user prompts"""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

        response, cost_info = await self.chat_completion(messages, max_tokens, temperature, caller=caller)

        self.logger.log_llm_conversation(
            agent_name=caller,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            response=response,
            metadata={
                "model": self.model_name,
                "max_tokens": max_tokens or self.default_max_tokens,
                "temperature": temperature,
                "cost_info": cost_info
            }
        )

        return response

    def get_session_cost_summary(self) -> Dict:
        """Get comprehensive cost summary for the current session"""
        return self.cost_tracker.get_session_summary()

    async def close_session(self):
        """Close the async session"""
        if self._session and not self._session.closed:
            try:
                self.cost_tracker.log_session_summary()
                await self._session.close()
                # Give the connector a moment to release sockets
                await asyncio.sleep(0.05)
                self.logger.log_info("Async LLM session closed", "llm_interface")
            except aiohttp.ClientError as e:
                self.logger.log_warning(f"Error closing LLM session: {e}", "llm_interface")
            finally:
                self._session = None

    async def __aenter__(self):
        """Async context manager entry"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close_session()
