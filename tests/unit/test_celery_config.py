"""Unit tests for Celery configuration.

Tests the Celery instance, broker and backend URL construction, the
serialization settings and the periodic payment sweep schedule.
"""

import os
from typing import Generator

import pytest


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Fixture to clean environment variables before and after tests."""
    original_env = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(original_env)


def make_valid_env() -> dict[str, str]:
    """Create a complete valid environment configuration."""
    return {
        "POSTGRES_HOST": "localhost",
        "POSTGRES_PORT": "5432",
        "POSTGRES_USER": "testuser",
        "POSTGRES_PASSWORD": "testpass",
        "POSTGRES_DB": "testdb",
        "REDIS_HOST": "redis-test",
        "REDIS_PORT": "6380",
        "SECRET_KEY": "test-secret-key",
    }


class TestCeleryInstance:
    """Tests for the Celery instance."""

    def test_celery_app_has_unique_application_name(self) -> None:
        from tutorlink.core.celery_app import celery_app

        assert celery_app.main == "tutorlink_worker"

    def test_worker_tasks_are_registered(self) -> None:
        from tutorlink.core.celery_app import celery_app
        import tutorlink.worker  # noqa: F401

        assert "send_templated_email" in celery_app.tasks
        assert "expire_stale_payments" in celery_app.tasks


class TestCeleryConfigurationLoading:
    """Tests for configuration loading from environment."""

    def test_broker_and_backend_use_redis_settings(self, clean_env: None) -> None:
        from tutorlink.core.config import Settings

        env = make_valid_env()
        os.environ.update(env)

        settings = Settings(_env_file=None)

        expected_url = f"redis://{env['REDIS_HOST']}:{env['REDIS_PORT']}/0"
        assert settings.celery_broker_url == expected_url
        assert settings.celery_result_backend == expected_url

    def test_default_redis_when_not_specified(self, clean_env: None) -> None:
        from tutorlink.core.config import Settings

        env = make_valid_env()
        del env["REDIS_HOST"]
        del env["REDIS_PORT"]
        os.environ.pop("REDIS_HOST", None)
        os.environ.pop("REDIS_PORT", None)
        os.environ.update(env)

        settings = Settings(_env_file=None)

        assert settings.celery_broker_url == "redis://localhost:6379/0"


class TestCelerySettings:
    """Tests for serialization and execution settings."""

    def test_json_serialization(self) -> None:
        from tutorlink.core.celery_app import celery_app

        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.result_serializer == "json"
        assert "json" in celery_app.conf.accept_content

    def test_utc_and_limits(self) -> None:
        from tutorlink.core.celery_app import celery_app

        assert celery_app.conf.timezone == "UTC"
        assert celery_app.conf.enable_utc is True
        assert celery_app.conf.task_track_started is True
        assert celery_app.conf.task_time_limit == 300
        assert celery_app.conf.result_expires == 3600

    def test_stale_payment_sweep_is_scheduled_hourly(self) -> None:
        from tutorlink.core.celery_app import celery_app

        entry = celery_app.conf.beat_schedule["expire-stale-payments"]
        assert entry["task"] == "expire_stale_payments"
        assert entry["schedule"] == 3600.0
