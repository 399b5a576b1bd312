"""Settings loading and test-run configuration."""
import pytest
from pydantic import ValidationError

from app.config import REQUIRED_SETTINGS, Settings


@pytest.mark.parametrize("name", REQUIRED_SETTINGS)
def test_missing_required_setting_refuses_to_load(monkeypatch, name):
    monkeypatch.delenv(name)
    with pytest.raises(ValidationError) as exc:
        Settings(_env_file=None)
    assert name in str(exc.value)


def test_deprecation_warnings_are_not_silenced(pytestconfig):
    blanket = [f for f in pytestconfig.getini("filterwarnings") if f.replace(" ", "") == "ignore::DeprecationWarning"]
    assert blanket == []
