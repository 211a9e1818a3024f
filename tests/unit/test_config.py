from mathsophos.config import load_settings

_ENV_NAMES = (
    "MATHSOPHOS_API_KEYS",
    "GOOGLE_API_KEY",
    "OPENAI_API_KEY",
    "MATHSOPHOS_BASE_URL",
    "OPENAI_BASE_URL",
    "MATHSOPHOS_MODEL",
    "OPENAI_MODEL",
    "MATHSOPHOS_TIMEOUT_S",
    "MATHSOPHOS_MAX_RETRIES",
    "MATHSOPHOS_RETRY_DELAY_S",
    "MATHSOPHOS_IMAGE_BASE_URL",
    "MATHSOPHOS_MAX_LATEX_ERRORS",
)


def _clear(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    s = load_settings()
    assert s.api_keys == ()
    assert s.model == "gemini-2.0-flash"
    assert s.image_base_url == "/uploads/"
    assert s.max_latex_errors == 5
    assert s.max_retries == 2
    assert s.retry_delay_s == 0.6


def test_quoted_key_pool(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("MATHSOPHOS_API_KEYS", '"k1, k2,"')
    assert load_settings().api_keys == ("k1", "k2")


def test_single_key_fallback(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("GOOGLE_API_KEY", "'AIza-test'")
    assert load_settings().api_keys == ("AIza-test",)


def test_overrides(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("OPENAI_BASE_URL", "https://api.example.test/v1/")
    monkeypatch.setenv("MATHSOPHOS_MODEL", "gpt-test")
    monkeypatch.setenv("MATHSOPHOS_MAX_LATEX_ERRORS", "8")
    s = load_settings()
    assert s.base_url == "https://api.example.test/v1"
    assert s.model == "gpt-test"
    assert s.max_latex_errors == 8
