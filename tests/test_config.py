import logging

import pytest

from staticserver.config import ServerSettings, load_config, parse_config
from staticserver.errors import ConfigError


SAMPLE = """
# listener
ip-address = 127.0.0.1
port=9000

root=/site
index=index.html; index.htm ;
404-error=/404.html
403-error=/403.html
"""


def test_parse_recognised_keys():
    settings = parse_config(SAMPLE)

    assert settings.bind_address == "127.0.0.1"
    assert settings.bind_port == "9000"
    assert settings.root_directory == "/site"
    assert settings.index_files == ("index.html", "index.htm")
    assert settings.not_found_page == "/404.html"
    assert settings.forbidden_page == "/403.html"


def test_defaults_for_missing_keys():
    settings = parse_config("port=1234\n")

    assert settings.bind_port == "1234"
    assert settings.bind_address == ""
    assert settings.root_directory == "."
    assert settings.index_files == ("index.html",)


def test_value_may_contain_equals_sign():
    settings = parse_config("root=/srv/a=b\n")
    assert settings.root_directory == "/srv/a=b"


def test_line_without_separator_is_fatal():
    with pytest.raises(ConfigError) as excinfo:
        parse_config("port=80\n# comment\nbogus line\n")

    assert "line 3" in str(excinfo.value)
    assert "bogus line" in str(excinfo.value)


def test_unknown_key_only_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="staticserver.config"):
        settings = parse_config("port=80\ncolour=blue\n")

    assert settings.bind_port == "80"
    assert "Unknown configuration item (line 2): colour=blue" in caplog.text


def test_load_config_reads_file(tmp_path):
    path = tmp_path / "config.conf"
    path.write_text(SAMPLE)

    assert load_config(str(path)).root_directory == "/site"


def test_load_is_idempotent(tmp_path):
    path = tmp_path / "config.conf"
    path.write_text(SAMPLE)

    first = load_config(str(path))
    second = load_config(str(path))
    assert first == second
    assert hash(first) == hash(second)


def test_unreadable_file_is_fatal(tmp_path):
    with pytest.raises(ConfigError, match="Error reading configuration file"):
        load_config(str(tmp_path / "missing.conf"))


def test_settings_are_read_only():
    settings = ServerSettings(bind_port="80")

    with pytest.raises(AttributeError):
        settings.bind_port = "81"
    with pytest.raises(AttributeError):
        settings.extra = True
    assert settings.bind_port == "80"


@pytest.mark.parametrize("address, expected", [
    ("127.0.0.1", "127.0.0.1:8080"),
    ("", ":8080"),
    ("::1", "[::1]:8080"),
])
def test_listen_address_brackets_ipv6(address, expected):
    assert ServerSettings(bind_address=address, bind_port="8080").listen_address == expected
