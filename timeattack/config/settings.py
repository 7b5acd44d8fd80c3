from pathlib import Path
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Application settings with validation"""
    
    # Path Configuration
    BASE_DIR: Path = Path.home() / ".timeattack"
    DATA_DIR: Path = BASE_DIR / "data"
    LOG_DIR: Path = BASE_DIR / "logs"
    DEFAULT_DB_PATH: Path = BASE_DIR / "timeattack.db"
    
    # Session Configuration
    DEFAULT_REST_MINUTES: int = Field(
        default=5,
        ge=1,
        le=120,
        description="Rest length offered when none is given"
    )
    WEEK_START_WEEKDAY: int = Field(
        default=0,
        ge=0,
        le=6,
        description="First day of the reporting week (0 = Monday)"
    )
    
    # Task Source Configuration
    IN_PROGRESS_STATE: str = "In Progress"
    STARTED_STATES: List[str] = ["In Progress", "Started", "In Review"]
    COMPLETED_STATES: List[str] = ["Done", "Completed", "Canceled", "Cancelled"]
    
    # Web Configuration
    WEB_PORT: int = 8000
    WEB_HOST: str = "localhost"
    
    # Development Configuration
    DEBUG: bool = False
    ENV: str = "production"
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )
    
    def validate_paths(self) -> None:
        """Ensure all required paths exist"""
        for path in [self.DATA_DIR, self.LOG_DIR, self.DEFAULT_DB_PATH.parent]:
            path.mkdir(parents=True, exist_ok=True)

    def is_started_state(self, state: str) -> bool:
        return state.strip().lower() in {s.lower() for s in self.STARTED_STATES}

    def is_completed_state(self, state: str) -> bool:
        return state.strip().lower() in {s.lower() for s in self.COMPLETED_STATES}

settings = Settings()
