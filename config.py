"""
Runtime configuration

Values come from the environment (a local .env file is loaded first).
"""
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "clothing_store"
    server_selection_timeout_ms: int = 5000

    jwt_secret: str = "dev-secret-change-me"
    environment: str = "development"
    vercel: str = ""
    client_url: str = "*"

    admin_email: str = "admin@store.com"
    admin_password: str = "admin123"
    seed_secret: str = ""

    reprice_orders: bool = False
    log_level: str = "INFO"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production" or self.vercel == "1"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.client_url.split(",") if o.strip()] or ["*"]


settings = Settings()
