"""テスト共通設定"""

import sys
from datetime import date, timedelta
from pathlib import Path

import openpyxl

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from utils.helpers import load_config
from readers.models import Attendance, Facility, ProductActivity, ProductOutput, ServiceUser

CONFIG = load_config(str(PROJECT_ROOT / "config.yaml"))


def make_facility(**overrides) -> Facility:
    """東京特別区(1級地)・報酬体系II・定員20名の事業所"""
    values = dict(
        facility_id="FAC001",
        name="テスト作業所",
        facility_number="1312345678",
        area_grade=1,
        reward_structure="II",
        capacity=20,
        service_type_code="461111",
        insurer_number="131016",
    )
    values.update(overrides)
    return Facility(**values)


def make_user(user_id: str = "U001", **overrides) -> ServiceUser:
    values = dict(
        user_id=user_id,
        name="山田 太郎",
        name_kana="ヤマダ タロウ",
        recipient_number="1234567890",
        date_of_birth=date(1990, 4, 1),
        gender="male",
        copayment_limit=9300,
        facility_id="FAC001",
    )
    values.update(overrides)
    return ServiceUser(**values)


def make_attendances(
    user_id: str,
    days: int,
    start: date = date(2026, 2, 1),
    attendance_type: str = "present",
    **overrides,
) -> list[Attendance]:
    """start から連続 days 日分の出欠"""
    return [
        Attendance(
            user_id=user_id,
            date=start + timedelta(days=i),
            attendance_type=attendance_type,
            **overrides,
        )
        for i in range(days)
    ]


def make_outputs(
    user_id: str,
    days: int,
    work_minutes: int,
    activity_id: str = "ACT01",
    start: date = date(2026, 2, 1),
) -> list[ProductOutput]:
    return [
        ProductOutput(
            user_id=user_id,
            activity_id=activity_id,
            date=start + timedelta(days=i),
            work_minutes=work_minutes,
        )
        for i in range(days)
    ]


def make_activity(activity_id: str = "ACT01", hourly_rate: int = 200) -> ProductActivity:
    return ProductActivity(activity_id=activity_id, name="軽作業", hourly_rate=hourly_rate)


# ============================================================
# 請求データブック（openpyxl で生成）
# ============================================================

WORKBOOK_SHEETS = {
    "事業所": [
        ["事業所ID", "事業所名", "事業所番号", "地域区分", "報酬体系", "定員",
         "サービス種別コード", "平均工賃月額", "保険者番号"],
        ["FAC001", "テスト作業所", "1312345678", 1, "II", 20, "461111", None, "131016"],
        ["FAC002", "第二作業所", "2712345678", 3, "I", 20, "461111", 36000, "271004"],
    ],
    "利用者": [
        ["利用者ID", "事業所ID", "氏名", "氏名カナ", "受給者証番号", "生年月日", "性別",
         "負担上限月額", "利用中"],
        ["U001", "FAC001", "山田 太郎", "ヤマダ タロウ", "1234567890", date(1990, 4, 1), "男", 9300, "○"],
        ["U002", "FAC001", "佐藤 花子", "ｻﾄｳ ﾊﾅｺ", 987654321, "1985/12/24", "女", 0, "○"],
        ["U003", "FAC001", "退所 済", "タイショ スミ", "1111111111", date(1970, 1, 1), "男", 0, "×"],
        ["U101", "FAC002", "鈴木 一郎", "スズキ イチロウ", "2222222222", date(1980, 5, 5), "male", 0, None],
    ],
    "出欠": [
        ["事業所ID", "利用者ID", "日付", "出席区分", "送迎", "食事提供", "出勤時刻", "退勤時刻", "休憩(分)"],
        *[
            ["FAC001", "U001", date(2026, 2, d), "出席", None, None, "10:00", "15:00", 60]
            for d in range(1, 21)
        ],
        ["FAC001", "U002", date(2026, 2, 2), "出席", "送迎", "○", None, None, None],
        ["FAC001", "U002", date(2026, 2, 3), "欠席(連絡あり)", None, None, None, None, None],
        ["FAC001", "U002", date(2026, 1, 30), "出席", None, None, None, None, None],
        [None, None, None, None, None, None, None, None, None],
        ["FAC002", "U101", date(2026, 2, 2), "present", "both", 1, None, None, None],
    ],
    "生産実績": [
        ["事業所ID", "利用者ID", "作業ID", "日付", "作業時間(分)", "数量"],
        *[
            ["FAC001", "U001", "ACT01", date(2026, 2, d), 300, None]
            for d in range(1, 21)
        ],
        ["FAC001", "U002", "ACT01", date(2026, 2, 2), 120, 15],
        ["FAC001", "U002", "ACT01", date(2026, 1, 30), 120, None],
    ],
    "作業": [
        ["事業所ID", "作業ID", "作業名", "時給", "有効"],
        ["FAC001", "ACT01", "軽作業", 200, "○"],
        ["FAC002", "ACT01", "清掃", 300, "○"],
    ],
    "請求履歴": [
        ["事業所ID", "対象年月"],
        ["FAC001", "2026-01"],
        ["FAC002", date(2026, 2, 1)],
    ],
    "サービスコード": [
        ["サービスコード", "名称", "単位数", "サービス種類", "有効開始日", "有効終了日", "加算"],
        ["612311", "食事提供体制加算", 30, "46", date(2024, 4, 1), None, "○"],
        ["612211", "送迎加算(Ⅰ) 片道", 21, "46", date(2024, 4, 1), None, "○"],
    ],
}


def build_workbook(path: Path, sheets: dict | None = None) -> Path:
    """シート定義 {シート名: [ヘッダー, 行...]} からxlsxを生成"""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in (sheets or WORKBOOK_SHEETS).items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    wb.save(str(path))
    return path
