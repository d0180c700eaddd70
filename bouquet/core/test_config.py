import json
import logging

from bouquet.core.config import Settings, load_settings


def write(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    return str(path)


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(str(tmp_path / "nope.json")) == Settings()


def test_values_override_defaults(tmp_path):
    path = write(tmp_path, json.dumps({
        "particle_count": 1200,
        "camera_resolution": [1280, 720],
        "name_text": "Ana",
    }))
    settings = load_settings(path)
    assert settings.particle_count == 1200
    assert settings.camera_resolution == (1280, 720)
    assert settings.name_text == "Ana"
    assert settings.love_text == Settings().love_text


def test_unknown_keys_are_ignored(tmp_path, caplog):
    path = write(tmp_path, json.dumps({"particle_count": 10, "sparkle": True}))
    with caplog.at_level(logging.WARNING):
        settings = load_settings(path)
    assert settings.particle_count == 10
    assert "sparkle" in caplog.text


def test_invalid_json_falls_back(tmp_path, caplog):
    path = write(tmp_path, "{not json")
    with caplog.at_level(logging.WARNING):
        assert load_settings(path) == Settings()
    assert "Failed to load config" in caplog.text


def test_non_object_falls_back(tmp_path):
    assert load_settings(write(tmp_path, "[1, 2]")) == Settings()
