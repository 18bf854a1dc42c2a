from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    service_name: str = "CRM Import API"

    postgres_url: str = "postgresql+psycopg://app:app@db:5432/app"

    jwt_secret: str = "change-me"

    # Import pipeline limits
    import_max_batch_size: int = 500  # Max rows accepted per batch call
    import_max_upload_bytes: int = 20 * 1024 * 1024  # CSV upload cap for /parse
    import_preview_rows: int = 1000  # Rows returned by /parse

    # Middleware configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    log_format: str = "json"  # json or text
    enable_request_logging: bool = True
    cors_origins: str = ""  # Comma-separated list of allowed origins
    enable_gzip: bool = True

    # Metrics configuration (OpenTelemetry)
    enable_metrics: bool = True  # Enable OpenTelemetry metrics
    metrics_namespace: str = ""  # OpenTelemetry meter name (defaults to service_name)
    otel_service_name: str = ""  # OpenTelemetry service name (defaults to service_name)
    otel_exporter_otlp_endpoint: str = ""  # OTLP endpoint (e.g., http://localhost:4318)

    model_config = {
        "env_file": "../.env",
        "env_file_encoding": "utf-8",
    }


settings = Settings()
