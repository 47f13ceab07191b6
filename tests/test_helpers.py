"""共通ヘルパー・キャッシュのテスト"""

import sys
from datetime import date
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from utils.helpers import (
    business_days_in_month,
    is_business_day,
    load_config,
    national_holidays,
    next_month,
    parse_year_month,
    round_half_up,
    submission_deadline,
    to_reiwa_label,
)


# ============================================================
# 年月・設定
# ============================================================

class TestYearMonth:
    def test_parse_year_month(self):
        assert parse_year_month("2026-02") == (2026, 2)

    @pytest.mark.parametrize("value", ["2026/02", "2026-2", "202602", "2026-13", "2026-00", "", "２０２６-０２"])
    def test_parse_year_month_invalid(self, value):
        """YYYY-MM 以外・月範囲外はValueError"""
        with pytest.raises(ValueError):
            parse_year_month(value)

    def test_next_month_december(self):
        assert next_month(2026, 12) == (2027, 1)

    def test_submission_deadline(self):
        """提出期限は翌月10日"""
        assert submission_deadline("2026-02") == date(2026, 3, 10)
        assert submission_deadline("2026-12") == date(2027, 1, 10)

    def test_to_reiwa_label(self):
        assert to_reiwa_label(2026, 2) == "R8.2"

    def test_round_half_up(self):
        """0.5は切り上げ（銀行丸めではない）"""
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_load_config(self):
        config = load_config(str(PROJECT_ROOT / "config.yaml"))
        assert config["wage"]["minimum_average_monthly_wage"] == 3000
        assert config["output"]["wage_encoding"] == "utf-8-bom"


# ============================================================
# 営業日カレンダー
# ============================================================

class TestBusinessDays:
    def test_february_2026(self):
        """2026年2月: 平日20日 − 建国記念の日(水)・天皇誕生日(月) = 18日"""
        assert business_days_in_month(2026, 2) == 18

    def test_weekend_is_not_business_day(self):
        assert not is_business_day(date(2026, 2, 7))   # 土
        assert not is_business_day(date(2026, 2, 8))   # 日
        assert is_business_day(date(2026, 2, 9))

    def test_happy_monday(self):
        """成人の日 = 1月第2月曜"""
        assert date(2026, 1, 12) in national_holidays(2026)

    def test_equinox(self):
        assert date(2026, 3, 20) in national_holidays(2026)
        assert date(2026, 9, 23) in national_holidays(2026)

    def test_substitute_holiday(self):
        """2026-05-03(日) 憲法記念日 → 5/4・5/5は祝日なので振替は5/6"""
        holidays = national_holidays(2026)
        assert date(2026, 5, 6) in holidays
        assert not is_business_day(date(2026, 5, 6))

