"""Unit tests for environment-based settings."""

import pytest
from pydantic import ValidationError

from stage_loader.config.settings import Settings, get_settings
from stage_loader.io.loader.models import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("SL_WAREHOUSE__URI", "SL_WAREHOUSE_URI", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestWarehouseConnectionString:
    def test_built_from_components(self, clean_env):
        clean_env.setenv("SL_WAREHOUSE_HOST", "redshift.internal")
        clean_env.setenv("SL_WAREHOUSE_USER", "loader")
        clean_env.setenv("SL_WAREHOUSE_PASSWORD", "pw")
        clean_env.setenv("SL_WAREHOUSE_DB", "analytics")

        settings = Settings()

        assert settings.warehouse_port == 5439
        assert settings.get_warehouse_connection_string() == (
            "postgresql://loader:pw@redshift.internal:5439/analytics"
        )

    def test_uri_overrides_components(self, clean_env):
        clean_env.setenv("SL_WAREHOUSE__URI", "postgresql://u:p@h:5439/d")
        clean_env.setenv("SL_WAREHOUSE_HOST", "ignored")
        assert Settings().get_warehouse_connection_string() == "postgresql://u:p@h:5439/d"

    def test_single_underscore_alias(self, clean_env):
        clean_env.setenv("SL_WAREHOUSE_URI", "postgresql://u@h/d")
        assert Settings().warehouse_uri == "postgresql://u@h/d"

    def test_postgres_scheme_is_normalized(self, clean_env):
        clean_env.setenv("SL_WAREHOUSE__URI", "postgres://u@h:5439/d")
        assert Settings().get_warehouse_connection_string() == "postgresql://u@h:5439/d"


@pytest.mark.unit
class TestProductionValidation:
    def test_prod_accepts_postgresql(self, clean_env):
        clean_env.setenv("ENVIRONMENT", "prod")
        clean_env.setenv("SL_WAREHOUSE__URI", "postgresql://u@h/d")
        assert Settings().ENVIRONMENT == "prod"

    def test_prod_rejects_other_schemes(self, clean_env):
        clean_env.setenv("ENVIRONMENT", "prod")
        clean_env.setenv("SL_WAREHOUSE__URI", "sqlite:///tmp/db")
        with pytest.raises(ValidationError, match="requires a postgresql://"):
            Settings()


@pytest.mark.unit
def test_defaults(clean_env):
    settings = Settings()
    assert settings.ENVIRONMENT == "dev"
    assert settings.keep_staged_files is False
    assert settings.manifest_bucket is None
    assert settings.table_manifests_config == "./config/tables.yml"


@pytest.mark.unit
def test_storage_settings_from_env(clean_env):
    clean_env.setenv("SL_MANIFEST_BUCKET", "manifests")
    clean_env.setenv("SL_KEEP_STAGED_FILES", "true")
    clean_env.setenv("SL_AWS_REGION", "eu-west-1")

    settings = Settings()

    assert settings.manifest_bucket == "manifests"
    assert settings.keep_staged_files is True
    assert settings.aws_region == "eu-west-1"


@pytest.mark.unit
def test_get_settings_is_cached():
    assert get_settings() is get_settings()


@pytest.mark.unit
def test_get_settings_wraps_invalid_environment(clean_env):
    clean_env.setenv("ENVIRONMENT", "prod")
    clean_env.setenv("SL_WAREHOUSE__URI", "sqlite:///tmp/db")

    with pytest.raises(ConfigurationError, match="Invalid stage-loader settings") as excinfo:
        get_settings()
    assert isinstance(excinfo.value.__cause__, ValidationError)
