import pytest

from src.batch_attendance.batch_attendance.database.mysql_base import like_contains


@pytest.mark.parametrize(
    "text, pattern",
    [
        ("streams", "%streams%"),
        ("100%", "%100\\%%"),
        ("snake_case", "%snake\\_case%"),
        ("C:\\tmp", "%C:\\\\tmp%"),
    ],
)
def test_like_contains_matches_wildcards_literally(text, pattern):
    assert like_contains(text) == pattern
