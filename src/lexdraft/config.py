from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Lexdraft"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8790
    log_level: str = "INFO"
    cors_origins: str = "http://127.0.0.1:3000"

    database_url: str = "sqlite:///./data/lexdraft.db"
    data_dir: Path = Path("./data")

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model_research: str = "gpt-5"
    openai_model_extract: str = "gpt-5-mini"
    openai_timeout_sec: int = 120

    local_llm_enabled: bool = False
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_api_key: str = "local"
    local_llm_model: str = "qwen2.5:14b-instruct"
    local_llm_timeout_sec: int = 180

    llm_router_default: str = "openai"
    llm_router_research_provider: str = "openai"
    llm_router_extract_provider: str = "openai"

    retrieval_base_url: str = ""
    retrieval_timeout_sec: int = 20
    retrieval_top_k: int = 5

    step_budget_simple: int = 15
    step_budget_standard: int = 20
    step_budget_evidentiary: int = 25
    step_budget_evaluator: int = 25
    step_budget_recommender: int = 25
    step_budget_gap_analysis: int = 20
    step_budget_section: int = 10

    autosave_quiet_period_sec: float = 2.0
    poll_interval_sec: float = 3.0
    poll_max_attempts: int = 100
    tool_output_max_chars: int = 12000

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("step_budget_simple", "step_budget_standard", "step_budget_evidentiary", "step_budget_section")
    @classmethod
    def validate_budget(cls, value: int) -> int:
        if value < 1:
            raise ValueError("step budgets must be positive")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
