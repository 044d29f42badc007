from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    log_level: str = "INFO"
    date_default_dayfirst: bool = False

    # Encoding detection
    encoding_sample_bytes: int = 8192  # Only the head of the file is scored
    encoding_confidence_floor: float = 0.3
    encoding_default_confidence: float = 0.5

    # Column detection
    template_adopt_threshold: float = 0.7  # Use the template mapping outright
    template_partial_threshold: float = 0.4  # Keep only confident template fields
    template_field_min_confidence: float = 0.6
    template_field_review_confidence: float = 0.75  # Adopted fields below this get a review hint
    field_min_score: float = 0.3
    field_low_confidence: float = 0.6
    content_sample_size: int = 10

    # Duplicate detection
    duplicate_similarity_threshold: float = 0.7
    duplicate_high_confidence_threshold: float = 0.9
    duplicate_date_window_days: int = 7

    # Import batching
    import_batch_size: int = 1000
    import_batch_yield_seconds: float = 0.05

    model_config = ConfigDict(env_file=".env", env_prefix="APPLICATION_IMPORT_", extra="ignore")


settings = Settings()
