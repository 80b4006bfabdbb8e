"""
Application configuration for AllerTrack.

Provides environment-aware settings with conservative defaults. Validation
bounds, backend connection details and analytics options are configurable
to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_VALUES = {
	"your_supabase_project_url",
	"your_supabase_anon_key",
	"https://dummy.supabase.co",
	"dummy_key_for_build",
}


class BackendConfig(BaseModel):
	"""
	Connection settings for the hosted backend.

	Notes:
	- url/anon_key: project endpoint and public API key.
	- timeout_seconds: every network call fails after this bound instead of hanging.
	- retry_*: exponential backoff for network-classed failures only.
	"""

	url: Optional[str] = Field(None, description="Hosted backend base URL")
	anon_key: Optional[str] = Field(None, description="Public API key sent as apikey header")
	incidents_table: str = Field("incidents", min_length=1)
	timeout_seconds: float = Field(10.0, gt=0.0)
	retry_attempts: int = Field(3, ge=1, le=10)
	retry_min_wait: float = Field(1.0, ge=0.0)
	retry_max_wait: float = Field(8.0, ge=0.0)

	@property
	def is_configured(self) -> bool:
		if not self.url or not self.anon_key:
			return False
		if self.url in PLACEHOLDER_VALUES or self.anon_key in PLACEHOLDER_VALUES:
			return False
		return self.url.startswith("http")


class DemoConfig(BaseModel):
	"""
	Demo mode settings.

	Notes:
	- storage_dir: profile directory holding the persisted local storage document.
	- latency_seconds: artificial delay so callers keep their loading-state behaviour.
	"""

	storage_dir: Path = Field(Path(".allertrack"), description="Local storage profile directory")
	latency_seconds: float = Field(0.5, ge=0.0)
	owner_id: str = Field("demo-user", min_length=1)


class ValidationLimits(BaseModel):
	"""
	Bounds enforced on incident input at the boundary.

	The aggregation layer never re-checks these.
	"""

	max_symptoms: int = Field(20, ge=1)
	max_foods: int = Field(50, ge=0)
	max_activities: int = Field(30, ge=0)
	max_medications: int = Field(20, ge=0)
	max_notes_length: int = Field(2000, ge=0)
	max_duration_minutes: int = Field(10080, ge=1, description="7 days in minutes")
	max_past_days: int = Field(365, ge=1)
	max_future_minutes: int = Field(60, ge=0, description="Clock-skew allowance")
	max_search_length: int = Field(100, ge=1)
	max_page_size: int = Field(100, ge=1)
	default_page_size: int = Field(20, ge=1)


class AnalyticsConfig(BaseModel):
	"""
	Analytics options.

	Notes:
	- timezone: IANA name used for calendar month boundaries.
	- prefer_procedures: use the backend aggregate procedures when available.
	"""

	timezone: str = Field("UTC", description="Timezone for month bucketing")
	trend_months: int = Field(12, ge=1)
	top_triggers: int = Field(10, ge=1)
	prefer_procedures: bool = True


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="ALLERTRACK_",
		env_nested_delimiter="__",
		env_file=".env",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	backend: BackendConfig = BackendConfig()
	demo: DemoConfig = DemoConfig()
	validation: ValidationLimits = ValidationLimits()
	analytics: AnalyticsConfig = AnalyticsConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
