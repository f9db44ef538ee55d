from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

class Settings(BaseSettings):
	# Either name is accepted; API_KEY matches what the browser build used
	gemini_api_key: str | None = Field(default=None, validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"))
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Text model used for notes and quizzes
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Image model used for section illustrations
	gemini_image_model: str = Field(default="imagen-3.0-generate-002", validation_alias="GEMINI_IMAGE_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")
	# Unset means calls wait indefinitely
	gemini_timeout_seconds: float | None = Field(default=None, validation_alias="GEMINI_TIMEOUT_SECONDS")

	# Generation tuning
	quiz_length: int = Field(default=10, validation_alias="QUIZ_LENGTH")
	image_stagger_seconds: float = Field(default=0.1, validation_alias="IMAGE_STAGGER_SECONDS")
	image_aspect_ratio: str = Field(default="16:9", validation_alias="IMAGE_ASPECT_RATIO")
	image_mime_type: str = Field(default="image/jpeg", validation_alias="IMAGE_MIME_TYPE")
	image_style_prefix: str = Field(
		default="Educational illustration, clean, minimalist vector style, vibrant colors. ",
		validation_alias="IMAGE_STYLE_PREFIX",
	)
	placeholder_image_url: str = Field(default="https://picsum.photos/1280/720", validation_alias="PLACEHOLDER_IMAGE_URL")

	# Narration defaults sent to the browser with every utterance
	narration_rate: float = Field(default=1.0, validation_alias="NARRATION_RATE")
	narration_pitch: float = Field(default=1.0, validation_alias="NARRATION_PITCH")

	# Comma separated list, "*" allows any origin
	cors_allow_origins: str = Field(default="*", validation_alias="CORS_ALLOW_ORIGINS")
	# Sessions untouched this long are closed by the periodic sweep
	session_idle_seconds: float = Field(default=3600, validation_alias="SESSION_IDLE_SECONDS")
	session_sweep_seconds: float = Field(default=300, validation_alias="SESSION_SWEEP_SECONDS")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
