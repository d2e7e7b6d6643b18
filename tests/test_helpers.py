from helpers import (
    format_uptime,
    chunk_text,
    normalize_hex_color,
    is_http_url,
    truncate
)

class TestHelpers:

    def test_format_uptime(self):
        assert format_uptime(0) == "0h 0m 0s"
        assert format_uptime(59.9) == "0h 0m 59s"
        assert format_uptime(3 * 3600 + 25 * 60 + 7) == "3h 25m 7s"
        # 30 hours stays in hours
        assert format_uptime(30 * 3600) == "30h 0m 0s"
        assert format_uptime(-5) == "0h 0m 0s"

    def test_chunk_text(self):
        assert chunk_text("", 10) == []
        assert chunk_text(None, 10) == []
        assert chunk_text("abc", 10) == ["abc"]
        assert chunk_text("abcdefgh", 3) == ["abc", "def", "gh"]

        text = "x" * 4000
        chunks = chunk_text(text, 1900)
        assert [len(c) for c in chunks] == [1900, 1900, 200]
        assert "".join(chunks) == text

    def test_normalize_hex_color(self):
        assert normalize_hex_color("#00e5e5") == "#00E5E5"
        assert normalize_hex_color("ff5555") == "#FF5555"
        assert normalize_hex_color("  #ABCDEF ") == "#ABCDEF"
        assert normalize_hex_color("#fff") is None
        assert normalize_hex_color("blue") is None
        assert normalize_hex_color("#GGGGGG") is None
        assert normalize_hex_color("") is None
        assert normalize_hex_color(None) is None

    def test_is_http_url(self):
        assert is_http_url("https://example.com/a.png")
        assert is_http_url("http://example.com")
        assert not is_http_url("ftp://example.com/a.png")
        assert not is_http_url("example.com")
        assert not is_http_url("https://exa mple.com")
        assert not is_http_url("")
        assert not is_http_url(None)

    def test_truncate(self):
        assert truncate(None, 10) is None
        assert truncate("short", 10) == "short"
        assert truncate("x" * 10, 10) == "x" * 10
        cut = truncate("x" * 100, 80)
        assert len(cut) == 80
        assert cut.endswith("...")
