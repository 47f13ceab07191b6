"""サービスコード・単価テーブル

静的テーブル:
  - 地域区分単価（1級地〜7級地、0=その他）
  - 基本報酬単位数（報酬体系 × 区分）
      報酬体系I:    平均工賃月額による9区分
      報酬体系II〜VI: 定員による5区分（III〜VIはdefaultあり）
  - 主な加算コード

動的検索:
  事業所ごとに読み込んだサービスコードマスタを ServiceCodeEngine で検索する。
  コード検索の結果は cachetools.TTLCache（LRU＋有効期限）に保持する。
  加算の単位数は静的テーブルで固定。マスタは有効期間内の名称表示にだけ使う。
"""

from datetime import date

from cachetools import TTLCache

from readers.models import ServiceCode


# 地域区分単価（円/単位）
AREA_UNIT_PRICES = {
    1: 11.40,  # 1級地（東京特別区）
    2: 11.12,  # 2級地
    3: 11.05,  # 3級地
    4: 10.84,  # 4級地
    5: 10.70,  # 5級地
    6: 10.42,  # 6級地
    7: 10.14,  # 7級地
    0: 10.00,  # その他
}

# 報酬体系I の平均工賃月額区分（下限額, 区分名）、高い順
WAGE_TIERS = [
    (45000, "4.5万円以上"),
    (35000, "3.5万円以上4.5万円未満"),
    (30000, "3万円以上3.5万円未満"),
    (25000, "2.5万円以上3万円未満"),
    (20000, "2万円以上2.5万円未満"),
    (15000, "1.5万円以上2万円未満"),
    (10000, "1万円以上1.5万円未満"),
    (5000, "5千円以上1万円未満"),
    (0, "5千円未満"),
]

# 報酬体系II〜VI の定員区分（上限人数, 区分名）
CAPACITY_TIERS = [
    (20, "20人以下"),
    (40, "21〜40人"),
    (60, "41〜60人"),
    (80, "61〜80人"),
]
CAPACITY_OVERFLOW = "81人以上"

# 基本報酬単位数
BASE_REWARD_UNITS = {
    "I": {
        "4.5万円以上": 702,
        "3.5万円以上4.5万円未満": 672,
        "3万円以上3.5万円未満": 647,
        "2.5万円以上3万円未満": 622,
        "2万円以上2.5万円未満": 597,
        "1.5万円以上2万円未満": 572,
        "1万円以上1.5万円未満": 547,
        "5千円以上1万円未満": 522,
        "5千円未満": 502,
    },
    "II": {
        "20人以下": 567,
        "21〜40人": 527,
        "41〜60人": 502,
        "61〜80人": 477,
        "81人以上": 457,
    },
    "III": {
        "20人以下": 556,
        "21〜40人": 546,
        "41〜60人": 536,
        "61〜80人": 526,
        "81人以上": 516,
        "default": 556,
    },
    "IV": {
        "20人以下": 516,
        "21〜40人": 506,
        "41〜60人": 496,
        "61〜80人": 486,
        "81人以上": 476,
        "default": 516,
    },
    "V": {
        "20人以下": 506,
        "21〜40人": 496,
        "41〜60人": 486,
        "61〜80人": 476,
        "81人以上": 466,
        "default": 506,
    },
    "VI": {
        "20人以下": 486,
        "21〜40人": 476,
        "41〜60人": 466,
        "61〜80人": 456,
        "81人以上": 446,
        "default": 486,
    },
}

CAPACITY_BASED_STRUCTURES = {"II", "III", "IV", "V", "VI"}

# 加算コード
PICKUP_ADDITION = "612211"
MEAL_ADDITION = "612311"
ABSENCE_ADDITION = "612611"

ADDITION_CODES = {
    "612211": ("送迎加算(Ⅰ) 片道", 21),
    "612212": ("送迎加算(Ⅱ) 片道", 10),
    "612311": ("食事提供体制加算", 30),
    "612411": ("目標工賃達成指導員配置加算(Ⅰ)", 70),
    "612412": ("目標工賃達成指導員配置加算(Ⅱ)", 36),
    "612511": ("福祉専門職員配置等加算(Ⅰ)", 15),
    "612512": ("福祉専門職員配置等加算(Ⅱ)", 10),
    "612513": ("福祉専門職員配置等加算(Ⅲ)", 6),
    "612611": ("欠席時対応加算", 94),
    "612711": ("医療連携体制加算(Ⅰ)", 32),
}

CACHE_MAXSIZE = 500
CACHE_TTL_SECONDS = 30 * 60


def get_area_unit_price(area_grade: int) -> float:
    """地域区分単価を返す。未知の区分は「その他」の単価。"""
    return AREA_UNIT_PRICES.get(area_grade, AREA_UNIT_PRICES[0])


def get_base_reward_units(reward_structure: str, category: str) -> int:
    """基本報酬単位数を返す。

    未知の報酬体系は0、未知の区分はその体系のdefault（なければ0）。
    """
    structure = BASE_REWARD_UNITS.get(reward_structure)
    if structure is None:
        return 0
    return structure.get(category, structure.get("default", 0))


def wage_category(average_monthly_wage: int | None) -> str:
    """平均工賃月額から報酬体系Iの区分名を返す。未設定は0円扱い。"""
    wage = average_monthly_wage or 0
    for lower, label in WAGE_TIERS:
        if wage >= lower:
            return label
    return WAGE_TIERS[-1][1]


def capacity_category(capacity: int) -> str:
    """定員から報酬体系II〜VIの区分名を返す。"""
    for upper, label in CAPACITY_TIERS:
        if capacity <= upper:
            return label
    return CAPACITY_OVERFLOW


def reward_category(reward_structure: str, capacity: int,
                    average_monthly_wage: int | None) -> str:
    """報酬体系に応じた区分名（I=工賃区分、II〜VI=定員区分）"""
    if reward_structure == "I":
        return wage_category(average_monthly_wage)
    if reward_structure in CAPACITY_BASED_STRUCTURES:
        return capacity_category(capacity)
    return "default"


class ServiceCodeEngine:
    """事業所のサービスコードマスタ検索"""

    def __init__(self, codes: list[ServiceCode] | None = None,
                 cache: TTLCache | None = None):
        """
        Args:
            codes: サービスコードマスタ
            cache: コード検索用キャッシュ（省略時は500件・30分）。
                生成時には事前投入せず、find_by_code のミス時にだけ格納する。
        """
        self.codes = list(codes or [])
        self.cache = cache if cache is not None else TTLCache(
            maxsize=CACHE_MAXSIZE, ttl=CACHE_TTL_SECONDS,
        )

    def find_by_code(self, code: str) -> ServiceCode | None:
        """コードで検索。キャッシュになければマスタを走査して格納する。"""
        cached = self.cache.get(code)
        if cached is not None:
            return cached

        found = next((c for c in self.codes if c.code == code), None)
        if found is not None:
            self.cache[code] = found
        return found

    def find_all_valid(self, on: date) -> list[ServiceCode]:
        """指定日に有効なコード一覧"""
        return [c for c in self.codes if c.is_valid_on(on)]

    def find_additions(self) -> list[ServiceCode]:
        """加算コード一覧"""
        return [c for c in self.codes if c.is_addition]

    def resolve_addition(self, code: str, on: date | None = None) -> tuple[str, int]:
        """加算コードの (名称, 単位数)

        単位数は静的テーブルの値で固定（マスタの単位数は使わない）。
        名称は on 時点で有効なマスタがあればその名称、なければ静的テーブル。
        """
        name, units = ADDITION_CODES.get(code, ("", 0))
        master = self.find_by_code(code)
        if master is not None and (on is None or master.is_valid_on(on)):
            name = master.name
        return name, units
