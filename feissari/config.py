"""Server configuration.

get_config() returns defaults, overridden by {data_dir}/config.json when it
exists, overridden by environment variables (a .env file is loaded first).
"""

import json
import os
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# "echo" wires EchoLLM: no model, every turn takes the fallback reply.
LLMBackend = Literal["gemini", "koboldcpp", "openai", "echo"]

_CONFIG_DEFAULTS: dict[str, Any] = {
    "initial_balance": 100,
    "session_duration_sec": 180,
    "oracle_timeout_sec": 30,
    "llm_provider_url": "",
    "llm_api_key": "",
    "llm_provider_format": "gemini",
    "llm_model": "gemini-2.5-flash",
    "leaderboard_limit": 10,
}

_ENV_KEYS = {
    "initial_balance": "INITIAL_BALANCE",
    "session_duration_sec": "SESSION_DURATION_SEC",
    "oracle_timeout_sec": "ORACLE_TIMEOUT_SEC",
    "llm_provider_url": "LLM_PROVIDER_URL",
    "llm_api_key": "LLM_API_KEY",
    "llm_provider_format": "LLM_PROVIDER_FORMAT",
    "llm_model": "LLM_MODEL",
    "leaderboard_limit": "LEADERBOARD_LIMIT",
}


class GameConfig(BaseModel):
    initial_balance: int = Field(gt=0)
    session_duration_sec: int = Field(gt=0)
    oracle_timeout_sec: float = Field(gt=0)
    llm_provider_url: str = ""
    llm_api_key: str = ""
    llm_provider_format: LLMBackend = "gemini"
    llm_model: str = ""
    leaderboard_limit: int = Field(default=10, gt=0)

    @property
    def llm_configured(self) -> bool:
        if self.llm_provider_format == "echo":
            return True
        # Gemini has a well-known endpoint; it only needs a key.
        if self.llm_provider_format == "gemini":
            return bool(self.llm_api_key or self.llm_provider_url)
        return bool(self.llm_provider_url)


def get_config(data_dir: Path | None = None) -> GameConfig:
    """Read config, returning defaults merged with stored values and env vars."""
    load_dotenv()
    config = dict(_CONFIG_DEFAULTS)
    if data_dir is not None:
        path = data_dir / "config.json"
        if path.is_file():
            stored = json.loads(path.read_text())
            for key in _CONFIG_DEFAULTS:
                if key in stored:
                    config[key] = stored[key]
    for key, env_name in _ENV_KEYS.items():
        value = os.getenv(env_name)
        if value is not None and value != "":
            config[key] = value
    return GameConfig.model_validate(config)
