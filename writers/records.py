"""CSVレコード定義（国保連請求CSV・工賃CSV）"""

from dataclasses import dataclass, field

from calc.validator import ValidationError


# ============================================================
# 国保連請求CSV（コントロール → データ×N → トレーラ）
# ============================================================

@dataclass
class ControlRecord:
    """コントロールレコード（1行目）"""
    exchange_info_id: str         # 交換情報識別番号
    media_type: str               # 媒体区分 (1:磁気テープ, 2:FD, 5:電送)
    prefecture_code: str          # 都道府県番号（2桁）
    insurer_number: str           # 保険者番号
    facility_number: str          # 事業所番号（10桁）
    created_date: str             # 作成年月日 YYYYMMDD
    target_year_month: str        # 対象年月 YYYYMM

    record_type = "control"


@dataclass
class DataRecord:
    """データレコード（利用者ごと）"""
    facility_number: str
    service_type_code: str
    recipient_number: str         # 受給者証番号（10桁）
    name_kana: str                # 氏名（全角カナ）
    date_of_birth: str            # YYYYMMDD
    gender: str                   # 1:男 2:女・その他
    service_code: str
    units: int                    # 単位数
    days: int                     # 日数
    total_service_units: int      # サービス単位数合計
    benefit_claim_amount: int     # 給付費請求額
    copayment_amount: int         # 利用者負担額
    area_unit_price: float        # 地域区分単価

    record_type = "data"


@dataclass
class TrailerRecord:
    """トレーラレコード（最終行）"""
    total_count: int              # データレコード件数
    total_units: int              # 合計単位数
    total_claim_amount: int       # 合計請求額

    record_type = "trailer"


KokuhoRenRecord = ControlRecord | DataRecord | TrailerRecord


# ============================================================
# 工賃CSV
# ============================================================

@dataclass
class WageCsvRecord:
    user_number: str              # 利用者番号
    name: str                     # 氏名
    year_month: str               # 対象年月
    attendance_days: int          # 出勤日数
    total_work_hours: float       # 作業時間(h)
    base_wage: int                # 基本工賃
    skill_wage: int               # 能力給
    attendance_bonus: int         # 皆勤手当
    total_wage: int               # 合計工賃
    deductions: int               # 控除
    net_wage: int                 # 支給額


@dataclass
class CsvExportResult:
    """CSV出力結果。失敗時はファイルを書き込まない。"""
    success: bool
    record_count: int
    errors: list[ValidationError] = field(default_factory=list)
    file_path: str | None = None
    total_amount: int | None = None
