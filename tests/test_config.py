from agenda.core.config import Settings, parse_origins


def test_parse_origins_accepts_json_and_commas():
    assert parse_origins('["http://a", " https://b "]') == ["http://a", "https://b"]
    assert parse_origins("http://a, https://b,,") == ["http://a", "https://b"]
    assert parse_origins("") == []
    assert parse_origins(None) == []


def test_malformed_json_falls_back_to_commas():
    assert parse_origins('[http://a, http://b') == ["[http://a", "http://b"]


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("UPCOMING_DAYS", "7")
    monkeypatch.setenv("CORS_ORIGINS", "http://planta.local")
    s = Settings()
    assert s.upcoming_days == 7
    assert s.cors_origin_list == ["http://planta.local"]
    assert s.access_token_expire_minutes == 480
