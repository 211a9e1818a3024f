from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    api_keys: tuple[str, ...]
    base_url: str
    model: str
    timeout_s: float
    max_retries: int
    retry_delay_s: float
    image_base_url: str
    max_latex_errors: int


def _unquote(value: str) -> str:
    value = (value or "").strip()
    # Users often set env vars with quotes (e.g. cmd.exe: set GOOGLE_API_KEY="AIza...").
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value


def _env(*names: str, default: str = "") -> str:
    for name in names:
        value = _unquote(os.environ.get(name, ""))
        if value:
            return value
    return default


def load_settings() -> Settings:
    # A comma separated pool rotates keys between retries; a single key also works.
    pool = _env("MATHSOPHOS_API_KEYS")
    if pool:
        api_keys = tuple(k for k in (_unquote(p) for p in pool.split(",")) if k)
    else:
        single = _env("GOOGLE_API_KEY", "OPENAI_API_KEY")
        api_keys = (single,) if single else ()

    base_url = _env(
        "MATHSOPHOS_BASE_URL",
        "OPENAI_BASE_URL",
        default="https://generativelanguage.googleapis.com/v1beta/openai",
    ).rstrip("/")
    model = _env("MATHSOPHOS_MODEL", "OPENAI_MODEL", default="gemini-2.0-flash")

    timeout_s = float(_env("MATHSOPHOS_TIMEOUT_S", default="60"))
    max_retries = int(_env("MATHSOPHOS_MAX_RETRIES", default="2"))
    retry_delay_s = float(_env("MATHSOPHOS_RETRY_DELAY_S", default="0.6"))
    image_base_url = _env("MATHSOPHOS_IMAGE_BASE_URL", default="/uploads/")
    max_latex_errors = int(_env("MATHSOPHOS_MAX_LATEX_ERRORS", default="5"))

    return Settings(
        api_keys=api_keys,
        base_url=base_url,
        model=model,
        timeout_s=timeout_s,
        max_retries=max_retries,
        retry_delay_s=retry_delay_s,
        image_base_url=image_base_url,
        max_latex_errors=max_latex_errors,
    )
