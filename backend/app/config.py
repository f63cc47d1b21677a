from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": "../.env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Cloudflare R2
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = "generated-designs"
    r2_public_base_url: str = ""  # empty -> presigned URLs
    presigned_url_expiry_seconds: int = 3600

    # Identity provider (user-info endpoint lives at {auth_base_url}/user)
    auth_base_url: str = ""
    auth_api_key: str = ""
    auth_timeout_seconds: float = 10.0

    # Gemini
    google_ai_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash-image"
    gemini_timeout_seconds: float = 150.0
    generated_image_width: int = 1024
    generated_image_height: int = 1024

    # Uploads
    max_upload_bytes: int = 20 * 1024 * 1024

    # Client
    generation_endpoint_url: str = "http://localhost:8000/api/v1/generate-interior-design"
    client_timeout_seconds: float = 180.0

    # App
    environment: str = "development"
    log_level: str = "INFO"


settings = Settings()
