from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STAGERUN_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///stagerun.db"
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "stagerun:jobs"
    status_key: str = "stagerun:status"
    
    # Local execution
    workspace_root: Optional[str] = None  # Defaults to the system temp dir
    local_venv: bool = False
    command_timeout: int = 600  # 10 minutes default
    
    # Remote execution
    ssh_binary: str = "ssh"
    ssh_connect_timeout: int = 10
    credentials_dir: str = "~/.stagerun/keys"
    transport_retries: int = 2
    transport_backoff: float = 2.0
    
    # Notification
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = False
    notify_sender: str = "stagerun@localhost"
    notify_webhook_url: str = ""
    
    audit_enabled: bool = False
    log_level: str = "INFO"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
