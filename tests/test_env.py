"""Tests for connection parameters read from the environment."""
import pytest

from typegen.core.errors import MetadataFetchError
from typegen.metadata.env import get_connection_params, resolve_env_names
from typegen.schemas.config import EnvNames


def test_default_names():
    names = resolve_env_names(None)
    assert (names.server, names.db, names.api_key) == ("FM_SERVER", "FM_DATABASE", "OTTO_API_KEY")
    assert names.prefers_api_key is False


def test_custom_names_fill_gaps_with_defaults():
    names = resolve_env_names(EnvNames.model_validate({"server": "CRM_URL", "auth": {"apiKey": "CRM_KEY"}}))
    assert names.server == "CRM_URL"
    assert names.db == "FM_DATABASE"
    assert names.api_key == "CRM_KEY"
    assert names.prefers_api_key is True


def test_api_key_wins_over_username():
    conn = get_connection_params(None, {
        "FM_SERVER": "fm.example.com", "FM_DATABASE": "Shop",
        "OTTO_API_KEY": "dk_1", "FM_USERNAME": "admin", "FM_PASSWORD": "secret",
    })
    assert conn.uses_api_key
    assert conn.username is None


def test_username_and_password():
    conn = get_connection_params(None, {
        "FM_SERVER": "fm.example.com", "FM_DATABASE": "Shop", "FM_USERNAME": "admin", "FM_PASSWORD": "secret",
    })
    assert not conn.uses_api_key
    assert (conn.username, conn.password) == ("admin", "secret")


def test_every_missing_variable_is_reported():
    with pytest.raises(MetadataFetchError) as exc:
        get_connection_params(None, {})
    assert exc.value.missing == ["FM_SERVER", "FM_DATABASE", "OTTO_API_KEY (or FM_USERNAME and FM_PASSWORD)"]
    assert exc.value.suspect == "server"


def test_missing_auth_only():
    with pytest.raises(MetadataFetchError) as exc:
        get_connection_params(None, {"FM_SERVER": "fm.example.com", "FM_DATABASE": "Shop"})
    assert exc.value.suspect == "auth"


def test_username_without_password():
    with pytest.raises(MetadataFetchError, match="Password is required") as exc:
        get_connection_params(None, {"FM_SERVER": "s", "FM_DATABASE": "d", "FM_USERNAME": "admin"})
    assert exc.value.missing == ["FM_PASSWORD"]


def test_empty_values_count_as_missing():
    with pytest.raises(MetadataFetchError) as exc:
        get_connection_params(None, {"FM_SERVER": "", "FM_DATABASE": "Shop", "OTTO_API_KEY": "k"})
    assert exc.value.missing == ["FM_SERVER"]
