"""
LLM Client
==========
Asynchronous client for an OpenAI-compatible chat-completions endpoint, and
the capability interface the AI-backed fix strategies depend on.

Capability Interface:
    Strategies only need ``generate_test_fix(...) -> AIFixResponse`` plus a
    ``model`` name for metadata. Anything providing that (the real client,
    a deterministic stand-in in tests) can be injected.

Untrusted Output:
    - The response is free text; the fixed file is recovered from a
      FIXED_CODE fenced block and the explanation from an EXPLANATION section
    - If no fenced block is found the whole response is used as code, and
      the strategy decides whether that is acceptable
    - Transport errors are raised as CollaboratorError; retries, backoff
      and rate-limit handling are left to the caller
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from testfixer.core.config import HTTP_TIMEOUT_SECONDS
from testfixer.core.errors import CollaboratorError
from testfixer.llm.prompts import SYSTEM_PROMPT, build_fix_prompt

logger = logging.getLogger(__name__)

_SERVICE = "OpenAI"
DEFAULT_EXPLANATION = "AI-generated fix applied"


# ---------------------------------------------------------------------------
# AI Fix Response
# ---------------------------------------------------------------------------
@dataclass
class AIFixResponse:
    """Parsed answer of the generative backend for one failing test."""
    fixed_code: str
    explanation: str = DEFAULT_EXPLANATION
    tokens_used: int = 0


class FixModel(Protocol):
    """What the AI-backed strategies require from a generative backend."""
    model: str

    async def generate_test_fix(
        self,
        test_file: str,
        error_message: str,
        stack_trace: str,
        code_diff: Optional[str] = None,
    ) -> AIFixResponse:
        ...


# ---------------------------------------------------------------------------
# Response Parsing
# ---------------------------------------------------------------------------
_FIXED_CODE_RE = re.compile(
    r"FIXED_CODE:\s*```(?:typescript|javascript|tsx|jsx|ts|js)?\s*([\s\S]*?)```",
    re.IGNORECASE,
)
_EXPLANATION_RE = re.compile(r"EXPLANATION:\s*([\s\S]*?)$", re.IGNORECASE)


def parse_fix_response(response: str) -> tuple[str, str]:
    """
    Split a model answer into (code, explanation).

    Falls back to the whole stripped response for the code and to a
    generic explanation when the expected sections are missing.
    """
    code_match = _FIXED_CODE_RE.search(response)
    explanation_match = _EXPLANATION_RE.search(response)

    code = code_match.group(1).strip() if code_match else ""
    if not code:
        logger.warning("No FIXED_CODE block in model response, using raw text")
        code = response.strip()

    explanation = explanation_match.group(1).strip() if explanation_match else ""
    return code, explanation or DEFAULT_EXPLANATION


# ---------------------------------------------------------------------------
# OpenAI Client
# ---------------------------------------------------------------------------
class OpenAIClient:
    """
    Async HTTP client for the chat-completions API.

    Usage:
        client = OpenAIClient(api_key="sk-...")
        fix = await client.generate_test_fix(content, message, trace, diff)
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def generate_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> tuple[str, int]:
        """
        Send a chat completion request.

        Returns
        -------
        tuple[str, int]
            The first choice's message content and the total tokens used.

        Raises
        ------
        CollaboratorError
            On HTTP error status, timeout or connection failure.
        """
        http = await self._get_http()
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            resp = await http.post(f"{self.base_url}/chat/completions", json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("OpenAI request failed: HTTP %d", status)
            raise CollaboratorError(_SERVICE, f"{status} {e.response.text}", status) from e
        except httpx.HTTPError as e:
            logger.error("OpenAI request failed: %s", e)
            raise CollaboratorError(_SERVICE, str(e) or type(e).__name__) from e

        data = resp.json()
        content = ""
        try:
            choices = data.get("choices", [])
            if choices:
                content = choices[0].get("message", {}).get("content", "") or ""
        except (IndexError, KeyError, TypeError, AttributeError):
            content = ""
        tokens = int((data.get("usage") or {}).get("total_tokens", 0))
        return content, tokens

    async def generate_test_fix(
        self,
        test_file: str,
        error_message: str,
        stack_trace: str,
        code_diff: Optional[str] = None,
    ) -> AIFixResponse:
        """Ask the model for a corrected test file."""
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_fix_prompt(test_file, error_message, stack_trace, code_diff)},
        ]
        # Low temperature keeps fixes close to deterministic
        content, tokens = await self.generate_completion(messages, temperature=0.2, max_tokens=3000)
        code, explanation = parse_fix_response(content)
        logger.info("Model %s produced a fix (%d tokens)", self.model, tokens)
        return AIFixResponse(fixed_code=code, explanation=explanation, tokens_used=tokens)
