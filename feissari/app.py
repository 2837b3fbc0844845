import logging
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from feissari.config import GameConfig, get_config
from feissari.game import GameEngine
from feissari.llm import GEMINI_DEFAULT_URL, LLM, EchoLLM, HttpLLM
from feissari.oracle import Oracle
from feissari.routes import router
from feissari.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

logger = logging.getLogger(__name__)


def _build_llm(config: GameConfig) -> LLM | None:
    if not config.llm_configured:
        logger.warning("LLM backend not configured; turns will answer 503")
        return None
    if config.llm_provider_format == "echo":
        logger.warning("Using EchoLLM; every turn gets the fallback reply")
        return EchoLLM()
    url = config.llm_provider_url
    if not url and config.llm_provider_format == "gemini":
        url = GEMINI_DEFAULT_URL
    return HttpLLM(
        provider_url=url,
        api_key=config.llm_api_key,
        provider_format=config.llm_provider_format,
        model=config.llm_model,
    )


def create_app(
    data_dir: Path | None = None,
    llm: LLM | None = None,
    config: GameConfig | None = None,
) -> FastAPI:
    """Build the API with its own store, oracle and engine.

    `llm` overrides the HTTP client built from config (tests pass a stub).
    """
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config = config or get_config(resolved)
    storage = Storage(resolved)

    llm = llm or _build_llm(config)
    oracle = Oracle(llm, timeout=config.oracle_timeout_sec) if llm else None

    app = FastAPI(title="Feissari")
    app.state.config = config
    app.state.engine = GameEngine(
        storage,
        oracle,
        initial_balance=config.initial_balance,
        session_duration=timedelta(seconds=config.session_duration_sec),
    )
    app.include_router(router, prefix="/api")
    return app
