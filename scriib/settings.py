from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    database_url: str
    redis_url: str = "redis://redis:6379/0"
    environment: str = "development"
    service_name: str = "api"

    # identity tokens (signed with itsdangerous, see api/auth.py)
    session_secret: str = "change_me_session_secret"
    session_cookie_name: str = "scriib_session"
    identity_token_max_age: int = 60 * 60 * 24 * 7

    cron_secret: str = ""
    admin_emails: str = ""  # comma separated, bootstraps Profile.is_admin
    site_url: str = "https://scriib.ai"

    unipile_api_key: str = ""
    unipile_base_url: str = "https://api1.unipile.com:13111/api/v1"
    unipile_webhook_secret: str = ""

    apify_api_token: str = ""
    apify_profile_actor: str = "VhxlqQXRwhW8H5hNV"
    apify_posts_actor: str = "apimaestro/linkedin-posts-search-scraper-no-cookies"
    enrichment_poll_seconds: float = 5.0
    enrichment_max_attempts: int = 60
    viral_keywords: str = ""  # comma separated, searched daily by the worker

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    linkedin_api_version: str = "202304"
    http_timeout_seconds: int = 30

    # a post left in publishing longer than this is released as failed
    publish_claim_timeout_minutes: int = 15

    # outreach guardrails
    kill_switch: bool = False
    max_actions_per_hour: int = 30

    log_level: str = "INFO"
    db_log_enabled: bool = True
    db_log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def admin_email_set(self) -> set[str]:
        return {e.strip().lower() for e in self.admin_emails.split(",") if e.strip()}

settings = Settings()
