from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from addressiq.core.errors import ConfigMissing


class Settings(BaseSettings):
    app_env: str = "dev"
    port: int = 8080
    frontend_origin: str | None = None
    admin_secret: str | None = None
    redis_url: str | None = None

    http_timeout_sec: float = 30.0
    progress_buffer_size: int = 64
    max_workers: int = 32

    # Build metadata, injected at deploy time
    commit_sha: str = "unknown"
    build_date: str = "unknown"
    frontend_commit_sha: str = "unknown"
    frontend_build_date: str = "unknown"

    # Address lookup (required)
    bag_api_url: str

    # Property and valuation
    kadaster_objectinfo_api_url: str | None = None
    kadaster_objectinfo_api_key: str | None = None
    altum_woz_api_url: str | None = None
    altum_woz_api_key: str | None = None
    matrixian_api_url: str | None = None
    matrixian_api_key: str | None = None
    altum_transaction_api_url: str | None = None
    altum_transaction_api_key: str | None = None
    monumenten_api_url: str | None = None

    # Weather and environment
    knmi_weather_api_url: str | None = None
    knmi_solar_api_url: str | None = None
    wur_soil_api_url: str | None = None
    skygeo_subsidence_api_url: str | None = None
    skygeo_api_key: str | None = None
    soil_quality_api_url: str | None = None
    bro_soil_map_api_url: str | None = None
    luchtmeetnet_api_url: str | None = None
    noise_pollution_api_url: str | None = None

    # Energy
    altum_energy_api_url: str | None = None
    altum_energy_api_key: str | None = None
    altum_sustainability_api_url: str | None = None
    altum_sustainability_api_key: str | None = None

    # Water and safety
    flood_risk_api_url: str | None = None
    digital_delta_api_url: str | None = None
    digital_delta_api_key: str | None = None
    safety_experience_api_url: str | None = None
    cbs_api_key: str | None = None
    schiphol_api_url: str | None = None
    schiphol_api_key: str | None = None
    schiphol_app_id: str | None = None

    # Mobility
    ndw_traffic_api_url: str | None = None
    openov_api_url: str | None = None
    parking_api_url: str | None = None

    # Demographics
    cbs_population_api_url: str | None = None
    cbs_statline_api_url: str | None = None
    cbs_square_stats_api_url: str | None = None
    cbs_api_url: str | None = None
    cbs_buurten_api_url: str = "https://api.pdok.nl/cbs/wijken-en-buurten-2024/ogc/v1"

    # Infrastructure and platforms
    green_spaces_api_url: str | None = None
    education_api_url: str | None = None
    building_permits_api_url: str | None = None
    facilities_api_url: str | None = None
    ahn_height_model_api_url: str | None = None
    pdok_api_url: str | None = None
    stratopo_api_url: str | None = None
    stratopo_api_key: str | None = None
    land_use_api_url: str | None = None

    # Location summary (Gemini), runs after the fan-out when a key is set
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-lite:generateContent"
    gemini_api_key: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    def with_overrides(self, credentials: dict[str, str]) -> "Settings":
        """Copy with per-request credentials applied; keys are settings field names."""
        update = {
            field: value
            for field, value in credentials.items()
            if field in type(self).model_fields and value
        }
        if not update:
            return self
        return self.model_copy(update=update)


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        missing = [
            ".".join(str(part) for part in err["loc"]).upper()
            for err in exc.errors()
            if err["type"] == "missing"
        ]
        if missing:
            raise ConfigMissing(f"missing required configuration: {', '.join(missing)}") from exc
        raise


@lru_cache
def get_settings() -> Settings:
    return load_settings()
