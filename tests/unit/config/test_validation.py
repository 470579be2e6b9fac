"""Unit tests for config validation errors."""

from sheetstream.config.validation import ConfigError, InvalidSettingValueError
from sheetstream.kernel.errors import ApplicationError


class TestConfigErrors:
    def test_config_error_is_application_error(self) -> None:
        assert issubclass(ConfigError, ApplicationError)
        assert ConfigError("x").code == "config_error"

    def test_invalid_setting_value_fields(self) -> None:
        err = InvalidSettingValueError("max_sheets", 0, "must be greater than 0")
        assert err.setting_name == "max_sheets"
        assert err.value == 0
        assert err.reason == "must be greater than 0"
        assert err.code == "invalid_setting_value"
        assert "max_sheets" in err.message
        assert isinstance(err, ConfigError)
