#cf_provider\config.py

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cf_provider.poller.poller import PollConfig


class ProviderSettings(BaseSettings):
    """Provider configuration from environment variables (CF_*)."""

    model_config = SettingsConfigDict(
        env_prefix="CF_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Cloud Controller connection (NO DEFAULT API)
    api_url: str
    access_token: Optional[str] = None
    skip_ssl_validation: bool = False
    request_timeout: float = Field(default=60, gt=0)

    # Overall budget for one resource operation
    operation_timeout: float = Field(default=1200, ge=0)

    # Staging
    staging_poll_interval: float = Field(default=5, ge=0)
    staging_poll_delay: float = Field(default=5, ge=0)

    # Deployments and jobs
    deployment_poll_interval: float = Field(default=5, ge=0)
    deployment_poll_delay: float = Field(default=5, ge=0)
    job_poll_interval: float = Field(default=5, ge=0)
    job_poll_delay: float = Field(default=5, ge=0)

    # Process stabilization
    process_poll_interval: float = Field(default=2, ge=0)
    process_poll_delay: float = Field(default=2, ge=0)
    start_poll_interval: float = Field(default=5, ge=0)
    start_poll_delay: float = Field(default=5, ge=0)

    not_found_checks: int = Field(default=2, ge=0)

    # Rollout retries
    update_max_deploy_attempts: int = Field(default=5, ge=1)
    deployment_max_attempts: int = Field(default=3, ge=1)

    zero_instances_stable: bool = True

    log_level: str = "INFO"

    # -------------------------
    # POLL CONFIGS
    # -------------------------

    def _poll(self, interval: float, delay: float, timeout: float) -> PollConfig:
        return PollConfig(
            poll_interval=interval,
            delay=delay,
            timeout=timeout,
            not_found_checks=self.not_found_checks,
        )

    def staging_poll(self, timeout: float) -> PollConfig:
        return self._poll(self.staging_poll_interval, self.staging_poll_delay, timeout)

    def deployment_poll(self, timeout: float) -> PollConfig:
        return self._poll(self.deployment_poll_interval, self.deployment_poll_delay, timeout)

    def job_poll(self, timeout: float) -> PollConfig:
        return self._poll(self.job_poll_interval, self.job_poll_delay, timeout)

    def process_poll(self, timeout: float) -> PollConfig:
        return self._poll(self.process_poll_interval, self.process_poll_delay, timeout)

    def start_poll(self, timeout: float) -> PollConfig:
        return self._poll(self.start_poll_interval, self.start_poll_delay, timeout)
