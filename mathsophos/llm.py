from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from openai import OpenAI, OpenAIError

from .config import Settings
from .pipeline.errors import ContentRejectedError, LlmJsonError
from .pipeline.pipeline import ContentPipeline

logger = logging.getLogger(__name__)

T = TypeVar("T")

LATEX_FORMATTING_SYSTEM_PROMPT = """# LaTeX formatting rules (mandatory)

1. Math delimiters
   - Inline math: $expression$ (no inner padding: "$x$", not "$ x $").
   - Display math: $$expression$$ on its own line.
   - Never use \\( \\) or \\[ \\].

2. Tables
   - Never split one expression across cells: "| Condition | $|q| < 1$ |", not "| $ | q | < 1$ |".
   - Every cell holds complete expressions only.

3. Completeness
   - Every $ has a matching $, every { a matching }, every \\begin a matching \\end.
   - No line breaks inside inline math.

4. JSON
   - Return one JSON object and nothing else.
   - Escape every backslash in string values (write \\\\frac, not \\frac).
"""


@dataclass(frozen=True)
class KeyPool:
    keys: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.keys)


def next_key(pool: KeyPool, attempt: int) -> str:
    """Key to use for the given attempt: round-robin over the pool."""
    if not pool.keys:
        raise RuntimeError(
            "Missing MATHSOPHOS_API_KEYS / GOOGLE_API_KEY (or OPENAI_API_KEY). Set it in the environment first."
        )
    return pool.keys[attempt % len(pool.keys)]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_s: float = 0.6

    def backoff(self, attempt: int) -> float:
        return self.delay_s * (attempt + 1)


def attempt_with_retry(
    fn: Callable[[int], T],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn(attempt) until it succeeds; re-raise the last error once attempts run out."""
    last_err: Optional[BaseException] = None
    for attempt in range(max(1, policy.max_attempts)):
        try:
            return fn(attempt)
        except retry_on as e:
            last_err = e
            logger.warning("Attempt %d/%d failed: %s", attempt + 1, policy.max_attempts, e)
            if attempt + 1 >= policy.max_attempts:
                break
            sleep(policy.backoff(attempt))
    raise last_err  # type: ignore[misc]


class GenerationClient:
    def __init__(
        self,
        settings: Settings,
        *,
        pipeline: Optional[ContentPipeline] = None,
        client_factory: Callable[..., OpenAI] = OpenAI,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._pool = KeyPool(settings.api_keys)
        next_key(self._pool, 0)  # fail fast without a key
        self._policy = RetryPolicy(max_attempts=settings.max_retries + 1, delay_s=settings.retry_delay_s)
        self._pipeline = pipeline or ContentPipeline.from_settings(settings)
        self._client_factory = client_factory
        self._clients: dict[str, OpenAI] = {}
        self._sleep = sleep

    def _client(self, key: str) -> OpenAI:
        if key not in self._clients:
            self._clients[key] = self._client_factory(api_key=key, base_url=self._settings.base_url)
        return self._clients[key]

    def _complete_once(self, prompt: str, attempt: int, temperature: float, max_tokens: int) -> str:
        client = self._client(next_key(self._pool, attempt))
        resp = client.chat.completions.create(
            model=self._settings.model,
            messages=[
                {"role": "system", "content": LATEX_FORMATTING_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self._settings.timeout_s,
        )
        return (resp.choices[0].message.content or "").strip()

    def complete(self, prompt: str, temperature: float = 0.4, max_tokens: int = 8192) -> str:
        return attempt_with_retry(
            lambda attempt: self._complete_once(prompt, attempt, temperature, max_tokens),
            self._policy,
            sleep=self._sleep,
        )

    def _generate(self, prompt: str, process: Callable[[str], str]) -> str:
        # A fresh completion per attempt: bad JSON or rejected content is regenerated, never kept.
        return attempt_with_retry(
            lambda attempt: process(self._complete_once(prompt, attempt, 0.4, 8192)),
            self._policy,
            retry_on=(LlmJsonError, ContentRejectedError, OpenAIError),
            sleep=self._sleep,
        )

    def generate_lesson(self, prompt: str, header: str = "") -> str:
        return self._generate(prompt, lambda raw: self._pipeline.process_generated_lesson(raw, header))

    def generate_exercise(self, prompt: str, for_pdf: bool = False) -> str:
        return self._generate(prompt, lambda raw: self._pipeline.process_generated_exercise(raw, for_pdf=for_pdf))
