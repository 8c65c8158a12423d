from services.naming_service import (
    HOST_KEY_LENGTH,
    ROOM_CODE_CHARS,
    generate_host_key,
    generate_room_code,
    make_unique_display_name,
    normalize_room_code,
    sanitize_display_name,
)


def test_room_code_alphabet():
    for _ in range(200):
        code = generate_room_code()
        assert len(code) == 6
        assert set(code) <= set(ROOM_CODE_CHARS)
    assert not set("O0I1") & set(ROOM_CODE_CHARS)


def test_host_key_length():
    key = generate_host_key()
    assert len(key) == HOST_KEY_LENGTH == 32
    assert key.isalnum()


def test_normalize_room_code():
    assert normalize_room_code("  abc234 ") == "ABC234"


def test_sanitize_display_name():
    assert sanitize_display_name("  Sam  ") == "Sam"
    assert sanitize_display_name("<b>Bob</b>!") == "bBobb"
    assert sanitize_display_name("Mary-Jo Smith") == "Mary-Jo Smith"
    assert len(sanitize_display_name("x" * 50)) == 20
    assert sanitize_display_name("!!!") == ""


def test_unique_display_name_suffixes_in_order():
    taken = []
    for _ in range(4):
        taken.append(make_unique_display_name("Sam", taken))
    assert taken == ["Sam", "Sam1", "Sam2", "Sam3"]


def test_unique_display_name_free_name_unchanged():
    assert make_unique_display_name("Alex", {"Sam", "Sam1"}) == "Alex"
