from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Shauri CBSE Tutor", validation_alias="OPENROUTER_TITLE")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Server-side exam sessions nobody submitted are dropped after this many hours
	exam_session_ttl_hours: int = Field(default=6, validation_alias="EXAM_SESSION_TTL_HOURS")

	# Uploaded images are downscaled so the longest side fits this many pixels
	upload_max_image_side: int = Field(default=1600, validation_alias="UPLOAD_MAX_IMAGE_SIDE")

	# Client side: where the examiner session talks to and keeps its device-local history
	api_url: str = Field(default="http://127.0.0.1:8000", validation_alias="SHAURI_API_URL")
	local_attempts_path: str = Field(default="./shauri_attempts.json", validation_alias="SHAURI_LOCAL_ATTEMPTS")
	transport_timeout_seconds: float = Field(default=60.0, validation_alias="TRANSPORT_TIMEOUT_SECONDS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
