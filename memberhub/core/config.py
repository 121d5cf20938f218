from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App Basics
    app_env: str = "dev"
    app_name: str = "MemberHub"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "info"
    app_base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite:///./dev.db"
    db_echo: bool = False
    db_auto_create: bool = True

    # JWT
    jwt_secret: str = "secret_key"
    jwt_alg: str = "HS256"
    jwt_access_ttl_min: int = 60

    # Membership
    member_number_prefix: str = "MEM"
    member_number_length: int = 6
    amount_tolerance: float = 0.01

    # Crypto gateway ("nowpayments" or "btcpay")
    crypto_gateway: str = "nowpayments"
    crypto_currency: str = "usd"
    nowpayments_api_key: str = ""
    nowpayments_base_url: str = "https://api.nowpayments.io/v1"
    nowpayments_ipn_secret: str = ""
    btcpay_url: str = "https://testnet.demo.btcpayserver.org"
    btcpay_api_key: str = ""
    btcpay_store_id: str = ""
    btcpay_webhook_secret: str = ""

    # Tell pydantic to read from .env file
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        extra="ignore",
    )

settings = Settings()
