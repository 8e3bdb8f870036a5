"""
Application-level settings read from the environment.
"""

import os
from typing import List

import dotenv

dotenv.load_dotenv()

DEFAULT_FRONTEND_ORIGINS = "http://localhost:5173,http://localhost:3000"


class AppSettings:
    def __init__(
        self,
        environment: str = None,
        frontend_origins: List[str] = None,
        default_page_size: int = None,
        max_page_size: int = None,
    ):
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self.frontend_origins = frontend_origins or [
            origin.strip()
            for origin in os.getenv("FRONTEND_ORIGINS", DEFAULT_FRONTEND_ORIGINS).split(",")
            if origin.strip()
        ]
        self.default_page_size = default_page_size or int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
        self.max_page_size = max_page_size or int(os.getenv("MAX_PAGE_SIZE", "100"))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def secure_cookies(self) -> bool:
        return self.is_production
