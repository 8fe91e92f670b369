from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Force de Vente - Commissions"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://crm_user:crm_pass@db:5432/crm_db"

    # Redis (Celery broker)
    REDIS_URL: str = "redis://redis:6379/0"

    # Payment calendar
    CVD_PAYMENT_DAY: int = 15  # Direct sales paid on the 15th of month N+1
    CCA_PAYMENT_DAY: int = 22  # Network commission paid on the 22nd of month N+1

    # MLM
    CAE_QUALIFYING_POINTS: int = 25

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
