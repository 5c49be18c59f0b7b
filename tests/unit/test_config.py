"""
Unit tests for the endpoint catalogue and configuration loading
"""

import json

import pytest
from pydantic import ValidationError

from core.config import Settings, load_sync_config, read_endpoints_file, read_password_file
from core.exceptions import ConfigurationError, DecryptionError
from schemas.config import ColumnDef, EndpointConfig, SyncConfig


def make_settings(**overrides) -> Settings:
    values = {
        "WPMS_SERVER": None,
        "WPMS_USERNAME": None,
        "WPMS_PASSWORD": None,
        "WPMS_PASSWORD_FILE": None,
        "WPMS_LOGIN_URI": None,
        "WPMS_SKIP_HASH": False,
        "DATABASE_URL": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def catalogue_file(tmp_path, productivity_endpoint_data, users_endpoint_data):
    path = tmp_path / "endpoints.json"
    path.write_text(json.dumps({
        "server": "https://wpms.example/",
        "credentials": {"username": "file-user", "password": "file-pass"},
        "endpoints": [productivity_endpoint_data, users_endpoint_data],
    }))
    return path


class TestColumnDef:

    def test_type_is_normalized(self):
        column = ColumnDef.model_validate({"Name": "Qty", "Type": "decimal (18, 3)"})
        assert column.sql_type == "DECIMAL(18,3)"
        assert column.is_primary_key is False

    def test_snake_case_names_accepted(self):
        column = ColumnDef(name="Qty", sql_type="int", is_primary_key=True)
        assert column.sql_type == "INT"


class TestEndpointConfig:

    def test_valid_endpoint(self, productivity_endpoint):
        assert productivity_endpoint.primary_key == ["Date", "Whrs", "Oprt", "WrkType"]
        assert productivity_endpoint.http_method == "GET"
        assert productivity_endpoint.incremental.date_column == "Date"
        assert productivity_endpoint.raw_parameters() == {"Date": {"val1": "DYNAMIC:PreviousMondayDate"}}

    def test_numeric_parameter_value_is_stringified(self):
        endpoint = EndpointConfig.model_validate({
            "name": "stock",
            "uri": "/api/Stock",
            "parameters": {"ARTC": {"val1": 1303394}},
        })
        assert endpoint.raw_parameters() == {"ARTC": {"val1": "1303394"}}
        assert endpoint.target_table is None

    def test_mapping_to_unknown_column(self, users_endpoint_data):
        users_endpoint_data["fieldMappings"]["Email"] = "Email"
        with pytest.raises(ValidationError, match="Email"):
            EndpointConfig.model_validate(users_endpoint_data)

    def test_target_table_requires_primary_key(self, users_endpoint_data):
        users_endpoint_data["tableSchema"][0]["IsPrimaryKey"] = False
        with pytest.raises(ValidationError, match="primary-key"):
            EndpointConfig.model_validate(users_endpoint_data)

    def test_unmapped_primary_key(self, users_endpoint_data):
        del users_endpoint_data["fieldMappings"]["Operator"]
        with pytest.raises(ValidationError, match="Operator"):
            EndpointConfig.model_validate(users_endpoint_data)

    def test_primary_key_without_incremental_date(self, productivity_endpoint_data):
        del productivity_endpoint_data["incremental"]
        with pytest.raises(ValidationError, match="Date"):
            EndpointConfig.model_validate(productivity_endpoint_data)

    def test_unknown_placeholder(self, users_endpoint_data):
        users_endpoint_data["parameters"] = {"Date": {"val1": "DYNAMIC:NextFriday"}}
        with pytest.raises(ValidationError, match="NextFriday"):
            EndpointConfig.model_validate(users_endpoint_data)

    def test_three_part_table_name_rejected(self, users_endpoint_data):
        users_endpoint_data["targetTable"] = "db.dbo.TM_USERS"
        with pytest.raises(ValidationError):
            EndpointConfig.model_validate(users_endpoint_data)


class TestSyncConfig:

    def test_urls(self, sync_config):
        assert sync_config.login_url == "https://wpms.test/api/login"
        assert sync_config.url_for("api/Users") == "https://wpms.test/api/Users"
        assert sync_config.url_for("https://other.test/x") == "https://other.test/x"

    def test_get_endpoint(self, sync_config):
        assert sync_config.get_endpoint("users").target_table == "TM_USERS"
        assert sync_config.get_endpoint("missing") is None

    def test_duplicate_endpoint_names(self, users_endpoint_data):
        with pytest.raises(ValidationError, match="Duplicate"):
            SyncConfig.model_validate({
                "server": "https://wpms.test",
                "credentials": {"username": "u", "password": "p"},
                "endpoints": [users_endpoint_data, users_endpoint_data],
            })

    def test_password_not_in_repr(self, sync_config):
        assert "Kik02006!" not in repr(sync_config.credentials)


class TestLoadSyncConfig:

    def test_loads_catalogue(self, catalogue_file):
        config = load_sync_config(make_settings(ENDPOINTS_FILE=str(catalogue_file)))

        assert config.server == "https://wpms.example"
        assert config.credentials.username == "file-user"
        assert [e.name for e in config.endpoints] == ["productivity", "users"]
        assert config.sql_connection_string is None

    def test_environment_overrides_file(self, catalogue_file):
        config = load_sync_config(make_settings(
            ENDPOINTS_FILE=str(catalogue_file),
            WPMS_SERVER="https://override.test",
            WPMS_USERNAME="env-user",
            WPMS_PASSWORD="env-pass",
            WPMS_SKIP_HASH=True,
            DATABASE_URL="sqlite+aiosqlite:///wpms.db",
        ))

        assert config.server == "https://override.test"
        assert config.credentials.username == "env-user"
        assert config.credentials.password == "env-pass"
        assert config.skip_hash is True
        assert config.sql_connection_string == "sqlite+aiosqlite:///wpms.db"

    def test_password_from_file(self, tmp_path, users_endpoint_data):
        catalogue = tmp_path / "endpoints.json"
        catalogue.write_text(json.dumps({
            "server": "https://wpms.test",
            "credentials": {"username": "u"},
            "endpoints": [users_endpoint_data],
        }))
        secret = tmp_path / "password.txt"
        secret.write_text("from-file\n")

        config = load_sync_config(make_settings(
            ENDPOINTS_FILE=str(catalogue),
            WPMS_PASSWORD_FILE=str(secret),
        ))

        assert config.credentials.password == "from-file"

    def test_missing_password(self, tmp_path, users_endpoint_data):
        catalogue = tmp_path / "endpoints.json"
        catalogue.write_text(json.dumps({
            "server": "https://wpms.test",
            "credentials": {"username": "u"},
            "endpoints": [users_endpoint_data],
        }))

        with pytest.raises(DecryptionError):
            load_sync_config(make_settings(ENDPOINTS_FILE=str(catalogue)))

    def test_missing_server(self, tmp_path, users_endpoint_data):
        catalogue = tmp_path / "endpoints.json"
        catalogue.write_text(json.dumps([users_endpoint_data]))

        with pytest.raises(ConfigurationError, match="server"):
            load_sync_config(make_settings(
                ENDPOINTS_FILE=str(catalogue),
                WPMS_USERNAME="u",
                WPMS_PASSWORD="p",
            ))

    def test_invalid_schema_is_configuration_error(self, tmp_path, users_endpoint_data):
        users_endpoint_data["tableSchema"] = []
        catalogue = tmp_path / "endpoints.json"
        catalogue.write_text(json.dumps([users_endpoint_data]))

        with pytest.raises(ConfigurationError):
            load_sync_config(make_settings(
                ENDPOINTS_FILE=str(catalogue),
                WPMS_SERVER="https://wpms.test",
                WPMS_USERNAME="u",
                WPMS_PASSWORD="p",
            ))

    def test_missing_catalogue(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_sync_config(make_settings(ENDPOINTS_FILE=str(tmp_path / "absent.json")))


def test_read_endpoints_file_accepts_list(tmp_path):
    path = tmp_path / "endpoints.json"
    path.write_text("[]")
    assert read_endpoints_file(str(path)) == {"endpoints": []}


@pytest.mark.parametrize("content", ["", "\n", "   \nsecond"])
def test_read_password_file_rejects_empty(tmp_path, content):
    path = tmp_path / "password.txt"
    path.write_text(content)
    with pytest.raises(DecryptionError):
        read_password_file(str(path))
