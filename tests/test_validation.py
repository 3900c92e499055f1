"""Tests for plugin name and archive URL validation."""

import pytest


class TestValidatePluginName:
    """Tests for validate_plugin_name."""

    @pytest.mark.parametrize(
        "name",
        ["my-plugin", "headlamp_plugin", "plugin.v2", "@scope-plugin", "a"],
    )
    def test_accepts_plain_names(self, name: str):
        from archive_plugin_manager.core.validation import validate_plugin_name

        assert validate_plugin_name(name) is True

    @pytest.mark.parametrize(
        "name",
        [
            "../evil",
            "..",
            "evil/..",
            "a/b",
            "/etc",
            "a\\b",
            "..\\windows",
            "plugin..name",
        ],
    )
    def test_rejects_traversal_names(self, name: str):
        from archive_plugin_manager.core.validation import validate_plugin_name

        assert validate_plugin_name(name) is False

    def test_rejects_empty_and_non_string(self):
        from archive_plugin_manager.core.validation import validate_plugin_name

        assert validate_plugin_name("") is False
        assert validate_plugin_name(None) is False
        assert validate_plugin_name(42) is False


class TestValidateArchiveUrl:
    """Tests for validate_archive_url."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/owner/repo/releases/download/v1.0.0/plugin.tar.gz",
            "https://github.com/owner/repo/archive/refs/tags/v1.0.0.tar.gz",
            "https://bitbucket.org/owner/repo/downloads/plugin.tar.gz",
            "https://bitbucket.org/owner/repo/get/v1.0.0.tar.gz",
            "https://gitlab.com/owner/repo/-/archive/v1.0.0/repo-v1.0.0.tar.gz",
            "https://gitlab.com/owner/repo/releases/v1.0.0/plugin.tar.gz",
            "https://github.com/yolossn/headlamp-plugins/raw/main/plugin.tar.gz",
        ],
    )
    def test_accepts_allowed_hosts(self, url: str):
        from archive_plugin_manager.core.validation import validate_archive_url

        assert validate_archive_url(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "http://github.com/owner/repo/releases/download/v1/plugin.tar.gz",
            "https://github.com/owner/repo/raw/main/plugin.tar.gz",
            "https://github.com/owner/releases/plugin.tar.gz",
            "https://evil.com/owner/repo/releases/plugin.tar.gz",
            "https://github.com.evil.com/owner/repo/releases/x.tar.gz",
            "https://gitlab.com/owner/repo/archive/v1.tar.gz",
            "https://bitbucket.org/owner/repo/src/plugin.tar.gz",
            "https://example.com/yolossn/headlamp-plugins/plugin.tar.gz",
            "file:///etc/passwd",
            "",
        ],
    )
    def test_rejects_other_origins(self, url: str):
        from archive_plugin_manager.core.validation import validate_archive_url

        assert validate_archive_url(url) is False

    def test_rejects_missing_url(self):
        from archive_plugin_manager.core.validation import validate_archive_url

        assert validate_archive_url(None) is False
