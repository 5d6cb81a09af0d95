import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("DB_URL", "sqlite://")

from donation_app.core.errors import ValidationError
from donation_app.services.demographics import aggregate


def test_aggregate_sums_all_six_groups():
    counts = {
        "white_num": 1,
        "latino_num": 2,
        "black_num": 3,
        "native_num": 4,
        "asian_num": 5,
        "other_num": 6,
    }
    assert aggregate(counts) == 21


def test_missing_groups_count_as_zero():
    assert aggregate({"latino_num": 4}) == 4


@pytest.mark.parametrize("bad", [-1, 1.5, "3", None, True])
def test_rejects_negative_or_non_integer_counts(bad):
    with pytest.raises(ValidationError):
        aggregate({"white_num": 2, "asian_num": bad})


def test_zero_total_is_rejected():
    with pytest.raises(ValidationError, match="cannot be zero"):
        aggregate({"white_num": 0, "other_num": 0})


def test_unknown_group_is_rejected():
    with pytest.raises(ValidationError, match="Unknown demographic"):
        aggregate({"white_num": 1, "martian_num": 2})


def test_number_served_must_match_the_sum():
    assert aggregate({"white_num": 2, "black_num": 3}, number_served=5) == 5
    with pytest.raises(ValidationError, match="must equal"):
        aggregate({"white_num": 2, "black_num": 3}, number_served=7)
