from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "PriceWatch"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"
    ALLOWED_ORIGINS: str = ""                  # CSV, e.g. "https://pricewatch.app,https://www.pricewatch.app"

    # Mongo
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "pricewatch"
    MONGO_TLS: bool = False                    # set True for Atlas / mongodb+srv
    PRODUCTS_COLLECTION: str = "products"

    # Redis (optional, used for price-change events)
    REDIS_URL: Optional[str] = None
    PRICE_EVENTS_CHANNEL: str = "pricewatch:price-change"

    # Scheduled refresh
    REFRESH_ENABLED: bool = True
    REFRESH_INTERVAL_HOURS: float = 6
    REFRESH_ITEM_DELAY_S: float = 2.0          # throttle between products in a batch
    REFRESH_TIMEZONE: str = "Asia/Kolkata"
    REFRESH_MISFIRE_GRACE_S: int = 15 * 60

    # Browser automation
    NAVIGATION_TIMEOUT_MS: int = 15_000
    SELECTOR_TIMEOUT_MS: int = 7_000
    BROWSER_HEADLESS: bool = True
    BROWSER_ARGS: str = ""                     # CSV, e.g. "--no-sandbox,--disable-dev-shm-usage"
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    # API
    api_prefix: str = "/api"

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

    @model_validator(mode="after")
    def _check_timeouts(self) -> "Settings":
        if self.SELECTOR_TIMEOUT_MS >= self.NAVIGATION_TIMEOUT_MS:
            raise ValueError("SELECTOR_TIMEOUT_MS must be smaller than NAVIGATION_TIMEOUT_MS")
        return self

    @property
    def browser_args(self) -> list[str]:
        return [a.strip() for a in self.BROWSER_ARGS.split(",") if a.strip()]

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
