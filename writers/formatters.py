"""CSVフィールドフォーマッター

ゼロパディング、全角カナ変換、日付書式など。
"""

import re
import unicodedata
from datetime import date

# 半角カナ（句読点・長音・濁点を含む）
HALF_WIDTH_KANA = re.compile("[\uff61-\uff9f]+")


def zero_pad(value: int | str, width: int) -> str:
    """左ゼロ埋め。桁数を超える値は切り詰めない。"""
    return str(value).rjust(width, "0")


def to_full_width_kana(text: str) -> str:
    """半角カナ → 全角カナ（濁点・半濁点は合成する）

    例: 'ﾔﾏﾀﾞ ﾀﾛｳ' -> 'ヤマダ タロウ'
    半角カナ以外の文字はそのまま。
    """
    if not text:
        return ""
    return HALF_WIDTH_KANA.sub(lambda m: unicodedata.normalize("NFKC", m.group()), text)


def format_date_compact(d: date) -> str:
    """date を YYYYMMDD に変換"""
    return d.strftime("%Y%m%d")


def format_year_month_compact(year_month: str) -> str:
    """YYYY-MM を YYYYMM に変換"""
    return year_month.replace("-", "")


def gender_to_code(gender: str) -> str:
    """性別コード: 男性=1、それ以外=2"""
    return "1" if gender == "male" else "2"


def format_unit_price(price: float) -> str:
    """地域区分単価の表記。11.40 -> '11.4', 10.00 -> '10'"""
    return f"{price:g}"


def format_number(value: float) -> str:
    """整数値なら小数点なしで表記。5.0 -> '5', 5.25 -> '5.25'"""
    if float(value).is_integer():
        return str(int(value))
    return str(value)
