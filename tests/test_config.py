#!/usr/bin/env python3
"""
Tests for configuration and logging setup.
"""

import json
import logging

import pytest
from rich.logging import RichHandler

from vistutor.config import (
    DEFAULTS,
    get_config_dir,
    get_config_path,
    get_config_value,
    load_config,
    load_settings,
    save_config,
    set_config_value,
    workspace_dir,
)
from vistutor.logs import setup_logging, verbosity_to_level


class TestConfig:
    """Tests for the JSON config file"""

    def test_home_override(self, vistutor_home):
        """Test that VISTUTOR_HOME picks the config directory"""
        assert get_config_dir() == vistutor_home
        assert vistutor_home.is_dir()
        assert get_config_path() == vistutor_home / 'config.json'

    def test_defaults(self):
        """Test settings with no config file"""
        assert load_config() == {}
        assert load_settings() == DEFAULTS

    def test_save_and_load(self):
        """Test round trip through the file"""
        save_config({'timeout_seconds': 5})
        assert load_config() == {'timeout_seconds': 5}
        assert load_settings()['timeout_seconds'] == 5

    def test_unknown_keys_ignored(self):
        """Test that unrelated keys do not leak into settings"""
        save_config({'colour': 'blue', 'allow_skip': True})
        settings = load_settings()
        assert 'colour' not in settings
        assert settings['allow_skip'] is True

    def test_invalid_json(self):
        """Test that an unreadable config is ignored"""
        get_config_path().write_text('{not json')
        assert load_config() == {}

    def test_non_object_json(self):
        """Test that a JSON list is ignored"""
        get_config_path().write_text(json.dumps([1, 2]))
        assert load_config() == {}

    def test_get_value(self):
        """Test reading one value with defaults"""
        assert get_config_value('progressive') is True
        set_config_value('progressive', False)
        assert get_config_value('progressive') is False
        assert get_config_value('missing', 'x') == 'x'

    def test_set_unknown_key(self):
        """Test that only known settings can be set"""
        with pytest.raises(KeyError, match='Unknown setting'):
            set_config_value('colour', 'blue')

    def test_workspace_under_home(self, vistutor_home):
        """Test the default workspace follows VISTUTOR_HOME"""
        assert workspace_dir() == vistutor_home / 'workspace'

    def test_workspace_configured(self, tmp_path):
        """Test an explicit workspace setting"""
        set_config_value('workspace', str(tmp_path / 'elsewhere'))
        assert workspace_dir() == tmp_path / 'elsewhere'


class TestLogging:
    """Tests for logging setup"""

    @pytest.mark.parametrize('verbosity, expected', [
        (0, 'WARNING'),
        (1, logging.INFO),
        (2, logging.DEBUG),
        (5, logging.DEBUG),
    ])
    def test_verbosity(self, verbosity, expected):
        """Test -v counts map to levels"""
        assert verbosity_to_level(verbosity) == expected

    def test_default_level_from_config(self):
        """Test that the configured level is used without -v"""
        assert verbosity_to_level(0, 'info') == 'INFO'

    def test_setup_logging(self):
        """Test that a single rich handler is installed"""
        setup_logging(logging.INFO)
        setup_logging(logging.DEBUG)
        logger = logging.getLogger('vistutor')
        try:
            assert len(logger.handlers) == 1
            assert isinstance(logger.handlers[0], RichHandler)
            assert logger.level == logging.DEBUG
            assert logger.propagate is False
        finally:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)
            logger.propagate = True
