import os
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Bayesian Churn Regression"

    # Paths
    BASE_DIR: str = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    DATA_DIR: str = os.path.join(BASE_DIR, "data")
    RAW_DATA_PATH: str = os.path.join(DATA_DIR, "raw", "telecom_churn.csv")
    OUTPUT_DIR: str = os.path.join(BASE_DIR, "output")

    # Sampler
    CHAINS: int = 4
    ITERATIONS: int = 2000
    WARMUP: Optional[int] = None  # half of ITERATIONS when unset
    CORES: Optional[int] = None
    TARGET_ACCEPT: float = 0.85
    MAX_TREEDEPTH: int = 10
    RANDOM_SEED: Optional[int] = 2024

    # Priors
    LAPLACE_SCALE: float = 1.0

    # Reporting
    LOG_LEVEL: str = "INFO"
    PLOT_FORMAT: str = "png"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CHURN_",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
