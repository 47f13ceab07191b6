"""共通ヘルパー関数"""

import calendar
import math
import re
from datetime import date, timedelta

import yaml


def load_config(config_path: str = "config.yaml") -> dict:
    """config.yamlを読み込む"""
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_year_month(year_month: str) -> tuple[int, int]:
    """'2026-01' 形式の文字列を (year, month) タプルに変換

    Raises:
        ValueError: YYYY-MM 形式でない、または月が1〜12でない場合
    """
    m = re.fullmatch(r"([0-9]{4})-([0-9]{2})", year_month or "")
    if not m:
        raise ValueError(f"Invalid year-month (expected YYYY-MM): {year_month!r}")
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in year-month: {year_month!r}")
    return year, month


def to_reiwa_label(year: int, month: int) -> str:
    """西暦年月を和暦ラベル(RX.X)に変換。例: (2026, 1) -> 'R8.1'"""
    reiwa_year = year - 2018
    return f"R{reiwa_year}.{month}"


def next_month(year: int, month: int) -> tuple[int, int]:
    """翌月の (year, month) を返す。12月の翌月は翌年1月。"""
    if month == 12:
        return year + 1, 1
    return year, month + 1


def submission_deadline(year_month: str) -> date:
    """国保連への提出期限（翌月10日）を返す。"""
    year, month = parse_year_month(year_month)
    ny, nm = next_month(year, month)
    return date(ny, nm, 10)


def round_half_up(value: float) -> int:
    """四捨五入（日本式: 0.5は切り上げ）。

    Python標準のround()は銀行丸め(偶数丸め)のため、math.floorで明示的に実装。
    """
    return math.floor(value + 0.5)


# ============================================================
# 営業日カレンダー（土日・国民の祝日を除く）
# ============================================================

# 固定祝日 (月, 日)
FIXED_HOLIDAYS = [
    (1, 1),    # 元日
    (2, 11),   # 建国記念の日
    (2, 23),   # 天皇誕生日
    (4, 29),   # 昭和の日
    (5, 3),    # 憲法記念日
    (5, 4),    # みどりの日
    (5, 5),    # こどもの日
    (8, 11),   # 山の日
    (11, 3),   # 文化の日
    (11, 23),  # 勤労感謝の日
]

# ハッピーマンデー (月, 第n月曜)
HAPPY_MONDAYS = [
    (1, 2),    # 成人の日
    (7, 3),    # 海の日
    (9, 3),    # 敬老の日
    (10, 2),   # スポーツの日
]

_holiday_cache: dict[int, frozenset[date]] = {}


def _nth_monday(year: int, month: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (0 - first.weekday()) % 7
    return first + timedelta(days=offset + (n - 1) * 7)


def national_holidays(year: int) -> frozenset[date]:
    """指定年の国民の祝日（固定祝日＋ハッピーマンデー＋春分・秋分＋振替休日）。

    春分・秋分は概算式による。
    """
    if year in _holiday_cache:
        return _holiday_cache[year]

    holidays = {date(year, m, d) for m, d in FIXED_HOLIDAYS}
    holidays.update(_nth_monday(year, m, n) for m, n in HAPPY_MONDAYS)

    leap_adjust = (year - 1980) // 4
    spring = math.floor(20.8431 + 0.242194 * (year - 1980) - leap_adjust)
    autumn = math.floor(23.2488 + 0.242194 * (year - 1980) - leap_adjust)
    holidays.add(date(year, 3, spring))
    holidays.add(date(year, 9, autumn))

    # 振替休日: 祝日が日曜なら、その後の最初の平日（祝日でない日）
    for h in sorted(holidays):
        if h.weekday() == 6:
            substitute = h + timedelta(days=1)
            while substitute in holidays:
                substitute += timedelta(days=1)
            holidays.add(substitute)

    result = frozenset(holidays)
    _holiday_cache[year] = result
    return result


def is_business_day(d: date) -> bool:
    """B型事業所の営業日か判定（土日祝を除外）"""
    if d.weekday() >= 5:
        return False
    return d not in national_holidays(d.year)


def business_days_in_month(year: int, month: int) -> int:
    """指定月の営業日数"""
    last_day = calendar.monthrange(year, month)[1]
    return sum(
        1 for day in range(1, last_day + 1)
        if is_business_day(date(year, month, day))
    )
