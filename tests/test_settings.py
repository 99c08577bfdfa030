import json

from dwc_player.settings import AppSettings, SettingsManager


def test_defaults_when_file_missing(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")

    assert manager.settings == AppSettings()
    assert manager.settings.typewriter_word_delay_ms == 50
    assert manager.settings.lrclib_search_url == "https://lrclib.net/api/search"


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "conf" / "settings.json"
    manager = SettingsManager(path)
    manager.settings.kugou_proxy = "https://kugou.example/"
    manager.settings.typewriter_enabled = False
    manager.save()

    reloaded = SettingsManager(path).settings
    assert reloaded.kugou_proxy == "https://kugou.example"
    assert reloaded.typewriter_enabled is False


def test_load_ignores_unknown_keys_and_clamps(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "typewriter_word_delay_ms": 1,
                "frame_interval_ms": 1000,
                "default_volume": 3,
                "log_level": "debug",
                "overlay_opacity": 0.5,
            }
        ),
        encoding="utf-8",
    )

    settings = SettingsManager(path).settings

    assert settings.typewriter_word_delay_ms == 10
    assert settings.frame_interval_ms == 250
    assert settings.default_volume == 1.0
    assert settings.log_level == "DEBUG"
    assert not hasattr(settings, "overlay_opacity")


def test_invalid_json_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{no es json", encoding="utf-8")

    assert SettingsManager(path).settings == AppSettings()


def test_unknown_log_level_defaults_to_info():
    settings = AppSettings(log_level="verbose")
    settings.validate()
    assert settings.log_level == "INFO"
