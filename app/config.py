from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    razorpay_key_id: str
    razorpay_key_secret: str
    identity_url: str
    database_url: str = "sqlite:///./reservations.db"
    gateway_timeout: float = 15.0
    currency: str = "INR"
    minimum_stay_months: int = 6
    log_level: str = "INFO"
