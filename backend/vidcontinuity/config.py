"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        # Load from config.yaml in current directory
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class GoogleCloudConfig(BaseModel):
    """Google Cloud configuration.

    Only needed when a gemini-* model is routed to Vertex AI.
    """

    project_id: Optional[str] = None
    location: str = "us-central1"


class ModelsConfig(BaseModel):
    """Text-generation model identifiers.

    The prefix selects the provider: "ollama/" for Ollama, "gemini-" for
    Vertex AI, anything else for the OpenAI API.
    """

    extraction_model: str = "gpt-4o-mini"
    correction_model: str = "gpt-4o-mini"


class ExtractionConfig(BaseModel):
    """Sampling parameters for visual state extraction (favor determinism)."""

    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=800, gt=0)


class CorrectionConfig(BaseModel):
    """Sampling parameters for auto-correction (favor fluent prose)."""

    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    max_tokens: int = Field(default=200, gt=0)


class LLMConfig(BaseModel):
    """Provider credentials and call policy."""

    # 1 = single attempt; failures fall back immediately
    max_retries: int = Field(default=1, ge=1)
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    ollama_endpoint: str = "http://localhost:11434"
    ollama_api_key: Optional[str] = None

    @field_validator("ollama_endpoint", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize endpoint URLs so host joins stay predictable."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v


class ValidationConfig(BaseModel):
    """Defaults for continuity tracking across a run."""

    anchor_point_interval: int = Field(default=3, ge=1)


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: VIDCONTINUITY_, delimiter: __)
    2. YAML file (config.yaml)
    3. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="VIDCONTINUITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    google_cloud: GoogleCloudConfig = GoogleCloudConfig()
    models: ModelsConfig = ModelsConfig()
    extraction: ExtractionConfig = ExtractionConfig()
    correction: CorrectionConfig = CorrectionConfig()
    llm: LLMConfig = LLMConfig()
    validation: ValidationConfig = ValidationConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Environment variables
        2. YAML file
        3. Init settings (programmatic defaults)
        """
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


# Singleton instance
settings = Settings()
