from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_POLICY_URL = (
    "https://raw.githubusercontent.com/DIAGNijmegen/rse-grand-challenge-dicom-de-id-procedure/"
    "refs/heads/main/dist/procedure.json"
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    input_dir: Path = Path("input")
    output_dir: Path = Path("output")
    report_filename: str = "preprocessor_logs.txt"

    preprocessor_source: str = "module"
    preprocessor_location: str = ""
    preprocessor_attribute: str = "FILE_PREPROCESSORS"

    policy_source: str = "url"
    policy_location: str = DEFAULT_POLICY_URL

    http_timeout_seconds: int = Field(default=30, gt=0)
    transform_timeout_seconds: float = Field(default=0.0, ge=0)
    capture_level: str = "DEBUG"
    max_workers: int = Field(default=1, ge=1)
    sort_paths: bool = True
