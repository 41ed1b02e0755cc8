from pydantic_settings import BaseSettings
from typing import List
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_v1_prefix: str = "/api"

    # CORS
    cors_origins: str = '["http://localhost:3000","http://localhost:5173"]'

    # Internal backends
    api_base_url: str = "http://localhost:3002"
    api_score_url: str = "http://0.0.0.0:8000"

    # Third-party providers
    simplize_base_url: str = "https://api2.simplize.vn/api"
    vietcap_iq_base_url: str = "https://iq.vietcap.com.vn/api/iq-insight-service/v1"
    vietcap_ai_base_url: str = "https://ai.vietcap.com.vn/api"
    vietcap_referer: str = "https://trading.vietcap.com.vn"
    money24h_base_url: str = "https://api-finance-t19.24hmoney.vn/v2/web"
    cafef_base_url: str = "https://msh-appdata.cafef.vn/rest-api/api/v1"
    wordpress_base_url: str = "https://news.iqx.vn/wp-json/news-api/v1"
    tradingview_udf_url: str | None = None

    # Google Sheets (kept server-side, never returned to clients)
    google_sheets_base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    google_sheets_api_key: str | None = None
    google_sheet_id: str = "1ekb2bYAQJZbtmqMUzsagb4uWBdtkAzTq3kuIMHQ22RI"
    industry_trend_range: str = "BoLocXHT"
    valuation_range: str = "BoLocDGHD"
    market_behavior_range: str = "HanhVi"

    # HTTP behaviour
    http_timeout: float = 30.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0  # seconds
    default_revalidate: int = 300  # seconds
    cache_max_entries: int = 1000

    # Per-provider circuit breakers
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout: float = 30.0  # seconds

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        return json.loads(self.cors_origins)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
