import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


DEFAULT_MODEL = 'gpt-3.5-turbo-16k'

OPENAI_MODELS: tuple[str, ...] = (
    'gpt-4o',
    'gpt-4o-mini',
    'gpt-4-1106-preview',
    'gpt-4-vision-preview',
    'gpt-4',
    'gpt-4-0314',
    'gpt-4-0613',
    'gpt-4-32k',
    'gpt-4-32k-0314',
    'gpt-4-32k-0613',
    'gpt-3.5-turbo-1106',
    'gpt-3.5-turbo',
    'gpt-3.5-turbo-16k',
    'gpt-3.5-turbo-0301',
    'gpt-3.5-turbo-0613',
    'gpt-3.5-turbo-16k-0613',
)


def _split_csv(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(',') if item.strip())


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables (and .env)."""

    model: str = DEFAULT_MODEL
    temperature: float = 0.6
    max_tokens: int = 1000
    system_prompt: str = ''
    allowed_models: tuple[str, ...] = field(default=OPENAI_MODELS)
    log_level: str = 'WARNING'
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            model=os.getenv('EURE_MODEL', DEFAULT_MODEL),
            temperature=float(os.getenv('EURE_TEMPERATURE', '0.6')),
            max_tokens=int(os.getenv('EURE_MAX_TOKENS', '1000')),
            system_prompt=os.getenv('EURE_SYSTEM_PROMPT', ''),
            allowed_models=_split_csv(os.getenv('EURE_ALLOWED_MODELS')) or OPENAI_MODELS,
            log_level=os.getenv('EURE_LOG_LEVEL', 'WARNING').upper(),
            log_file=os.getenv('EURE_LOG_FILE') or None,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()
