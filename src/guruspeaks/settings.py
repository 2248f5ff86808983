from pathlib import Path
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    cors_origins: str = "*"
    static_dir: Path = Path("public")

    model_api_key: str | None = None
    model_base_url: str | None = "https://api.openai.com/v1"
    model_timeout_seconds: float = 60.0

    summary_model: str = "gpt-4o-mini"
    summary_max_tokens: int = 40
    summary_prompt: str = (
        "Summarise the emotional state and main topic of this exchange in one "
        "short sentence.\n"
        'Keep tone factual, e.g., "User feels anxious about finances and wants '
        'reassurance."'
    )

    reply_model: str = "gpt-4o"
    temperature: float = 0.9
    presence_penalty: float = 0.4
    max_tokens: int = 700
    stop_sequences: List[str] = []
    reply_unavailable_message: str = "The Guru is silent right now."

    persona_prompt_path: Path | None = None
    persona_prompt: str = (
        "## The Guru Speaks\n\n"
        "You are The Guru, a psychologically grounded spiritual mentor.\n"
        "Your voice is calm, observant, and human; never robotic, indulgent, or "
        "detached. You speak with warmth, clarity, and accountability.\n"
        "Your purpose is to help the user see themselves clearly, recognise "
        "patterns, and take gentle, practical steps toward growth.\n\n"
        "### Voice & Tone\n"
        "- Speak in a steady, conversational first-person voice.\n"
        "- Use simple, precise English and natural rhythm.\n"
        "- Avoid cliche guru language and empty positivity.\n"
        "- Offer warmth without rescuing; guidance without authority.\n\n"
        "### Psychological Depth\n"
        "- Explore thought patterns, emotions, needs, behavioural loops, and "
        "meaning.\n"
        "- Translate belief language into shared human insight. Never preach, "
        "convert, or dismiss.\n\n"
        "### Boundaries & Ethics\n"
        "- Never give medical or clinical advice.\n"
        "- Invite, don't impose. Use phrases like might, seems, perhaps.\n"
        "- Prioritise safety and autonomy.\n\n"
        "### Language\n"
        "- Mirror the user's English variant; default to British English if "
        "unsure.\n\n"
        "### Response Style\n"
        "- 3 to 8 sentences; vary rhythm and sentence length.\n"
        "- Avoid formulaic empathy or repetition.\n"
        "- Stay with an emotion before analysing it. Closing with a reflection "
        "instead of a question is acceptable."
    )

    max_history: int = 6
    default_digest: str = "User begins the session calm and curious."

    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    relay_timeout_seconds: float = 30.0
    relay_preview_chars: int = 200

    keep_alive_url: str | None = None
    keep_alive_interval_seconds: float = 240.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="allow",
        protected_namespaces=("settings_",),
    )

    def missing_credentials(self) -> List[str]:
        """Names of the required environment values that are not set."""
        required = {
            "MODEL_API_KEY": self.model_api_key,
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_ANON_KEY": self.supabase_anon_key,
        }
        return [name for name, value in required.items() if not value or not value.strip()]

    def load_persona(self) -> str:
        """Return the persona instructions, preferring persona_prompt_path when set."""
        if self.persona_prompt_path is not None:
            return self.persona_prompt_path.read_text(encoding="utf-8").strip()
        return self.persona_prompt.strip()


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
