"""請求データブック読取モジュール

事業所・利用者・出欠・生産実績をまとめたExcelブックから、
月次請求パイプラインの入力データを読み取る。

構造（各シート共通）:
  Row 1: ヘッダー（列名で参照するので列順は自由）
  Row 2+: データ（空行はスキップ）

シート:
  事業所:       事業所ID, 事業所名, 事業所番号, 地域区分, 報酬体系, 定員,
                サービス種別コード, 平均工賃月額, 保険者番号, 法人名, 所在地, 郵便番号, 電話番号
  利用者:       利用者ID, 事業所ID, 氏名, 氏名カナ, 受給者証番号, 生年月日, 性別,
                負担上限月額, 利用中
  出欠:         事業所ID, 利用者ID, 日付, 出席区分, 送迎, 食事提供, 出勤時刻, 退勤時刻, 休憩(分)
  生産実績:     事業所ID, 利用者ID, 作業ID, 日付, 作業時間(分), 数量
  作業:         事業所ID, 作業ID, 作業名, 時給, 有効
  請求履歴:     事業所ID, 対象年月
  サービスコード（任意）: サービスコード, 名称, 単位数, サービス種類, 有効開始日, 有効終了日, 加算

区分値は日本語表記（出席/欠席/…、なし/迎えのみ/…、男/女）とコード値のどちらでもよい。
"""

import re
from datetime import date, datetime
from pathlib import Path

import openpyxl

from readers.models import (
    ATTENDANCE_TYPES,
    GENDERS,
    PICKUP_TRIPS,
    Attendance,
    Facility,
    ProductActivity,
    ProductOutput,
    ServiceCode,
    ServiceUser,
)
from utils.helpers import parse_year_month

REQUIRED_SHEETS = ["事業所", "利用者", "出欠", "生産実績", "作業", "請求履歴"]
SERVICE_CODE_SHEET = "サービスコード"

ATTENDANCE_LABELS = {
    "出席": "present",
    "欠席": "absent",
    "欠席(連絡あり)": "absent_notified",
    "欠席（連絡あり）": "absent_notified",
    "祝日": "holiday",
    "休暇": "leave",
}

PICKUP_LABELS = {
    "": "none",
    "なし": "none",
    "迎えのみ": "pickup_only",
    "送りのみ": "dropoff_only",
    "送迎": "both",
}

GENDER_LABELS = {
    "男": "male",
    "男性": "male",
    "女": "female",
    "女性": "female",
    "その他": "other",
}

TRUE_VALUES = {"○", "〇", "1", "true", "yes", "はい", "有", "あり"}


def _safe_str(val) -> str:
    if val is None:
        return ""
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def _safe_int(val, default: int | None = None) -> int | None:
    """セル値を安全にintに変換。None/空文字はdefault。"""
    if val is None:
        return default
    if isinstance(val, str):
        val = val.replace(",", "").strip()
        if not val:
            return default
        try:
            return int(float(val))
        except ValueError:
            return default
    if isinstance(val, (int, float)):
        return int(val)
    return default


def _to_bool(val, default: bool = False) -> bool:
    if val is None or val == "":
        return default
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        return val != 0
    return str(val).strip().lower() in TRUE_VALUES


def _to_date(val) -> date | None:
    """セル値（datetime / date / 'YYYY-MM-DD' / 'YYYY/MM/DD'）をdateに変換"""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip().replace("/", "-")
    return date.fromisoformat(text)


def _recipient_number(val) -> str:
    """数値セルで落ちた先頭0を補う。空欄や数字以外はそのまま（検証で弾く）"""
    text = _safe_str(val)
    if re.fullmatch(r"[0-9]{1,10}", text):
        return text.zfill(10)
    return text


def _to_code(val, labels: dict[str, str], codes: set[str], what: str, where: str) -> str:
    text = _safe_str(val)
    if text in codes:
        return text
    if text in labels:
        return labels[text]
    raise ValueError(f"Unknown {what} '{text}' at {where}")


def read_sheet_rows(ws) -> list[dict]:
    """ヘッダー行をキーにした辞書のリストを返す。全セル空の行はスキップ。"""
    rows = ws.iter_rows(values_only=True)
    header = next(rows, None)
    if header is None:
        return []
    keys = [_safe_str(h) for h in header]

    result = []
    for row_num, values in enumerate(rows, start=2):
        if all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
            continue
        record = {k: v for k, v in zip(keys, values) if k}
        record["_row"] = row_num
        result.append(record)
    return result


def read_workbook(filepath: str | Path) -> dict[str, list[dict]]:
    """請求データブックを読み込み、{シート名: 行リスト} を返す。

    Raises:
        FileNotFoundError: ファイルがない場合
        ValueError: 必須シートがない場合
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")

    wb = openpyxl.load_workbook(str(path), data_only=True, read_only=True)
    try:
        missing = [s for s in REQUIRED_SHEETS if s not in wb.sheetnames]
        if missing:
            raise ValueError(
                f"Sheets {missing} not found in {path}. Available: {wb.sheetnames}"
            )
        sheets = {name: read_sheet_rows(wb[name]) for name in REQUIRED_SHEETS}
        if SERVICE_CODE_SHEET in wb.sheetnames:
            sheets[SERVICE_CODE_SHEET] = read_sheet_rows(wb[SERVICE_CODE_SHEET])
        else:
            sheets[SERVICE_CODE_SHEET] = []
    finally:
        wb.close()
    return sheets


def _parse_facility(row: dict) -> Facility:
    return Facility(
        facility_id=_safe_str(row.get("事業所ID")),
        name=_safe_str(row.get("事業所名")),
        facility_number=_safe_str(row.get("事業所番号")),
        area_grade=_safe_int(row.get("地域区分"), 0),
        reward_structure=_safe_str(row.get("報酬体系")).upper(),
        capacity=_safe_int(row.get("定員"), 0),
        service_type_code=_safe_str(row.get("サービス種別コード")),
        average_monthly_wage=_safe_int(row.get("平均工賃月額")),
        insurer_number=_safe_str(row.get("保険者番号")),
        corporate_name=_safe_str(row.get("法人名")),
        address=_safe_str(row.get("所在地")),
        postal_code=_safe_str(row.get("郵便番号")),
        phone=_safe_str(row.get("電話番号")),
    )


def _parse_user(row: dict) -> ServiceUser:
    where = f"利用者 row {row['_row']}"
    birth = _to_date(row.get("生年月日"))
    if birth is None:
        raise ValueError(f"Missing 生年月日 at {where}")
    return ServiceUser(
        user_id=_safe_str(row.get("利用者ID")),
        facility_id=_safe_str(row.get("事業所ID")),
        name=_safe_str(row.get("氏名")),
        name_kana=_safe_str(row.get("氏名カナ")),
        recipient_number=_recipient_number(row.get("受給者証番号")),
        date_of_birth=birth,
        gender=_to_code(row.get("性別"), GENDER_LABELS, GENDERS, "gender", where),
        copayment_limit=_safe_int(row.get("負担上限月額"), 0),
        is_active=_to_bool(row.get("利用中"), default=True),
    )


def _parse_attendance(row: dict) -> Attendance:
    where = f"出欠 row {row['_row']}"
    return Attendance(
        user_id=_safe_str(row.get("利用者ID")),
        date=_to_date(row.get("日付")),
        attendance_type=_to_code(
            row.get("出席区分"), ATTENDANCE_LABELS, ATTENDANCE_TYPES, "attendance type", where),
        pickup_type=_to_code(
            row.get("送迎"), PICKUP_LABELS, set(PICKUP_TRIPS), "pickup type", where),
        meal_provided=_to_bool(row.get("食事提供")),
        clock_in=_safe_str(row.get("出勤時刻")) or None,
        clock_out=_safe_str(row.get("退勤時刻")) or None,
        break_minutes=_safe_int(row.get("休憩(分)"), 0),
    )


def _parse_output(row: dict) -> ProductOutput:
    return ProductOutput(
        user_id=_safe_str(row.get("利用者ID")),
        activity_id=_safe_str(row.get("作業ID")),
        date=_to_date(row.get("日付")),
        work_minutes=_safe_int(row.get("作業時間(分)"), 0),
        quantity=_safe_int(row.get("数量")),
    )


def _parse_activity(row: dict) -> ProductActivity:
    return ProductActivity(
        activity_id=_safe_str(row.get("作業ID")),
        name=_safe_str(row.get("作業名")),
        hourly_rate=_safe_int(row.get("時給"), 0),
        is_active=_to_bool(row.get("有効"), default=True),
    )


def _parse_service_code(row: dict) -> ServiceCode:
    return ServiceCode(
        code=_safe_str(row.get("サービスコード")),
        name=_safe_str(row.get("名称")),
        units=_safe_int(row.get("単位数"), 0),
        service_type=_safe_str(row.get("サービス種類")),
        valid_from=_to_date(row.get("有効開始日")) or date.min,
        valid_to=_to_date(row.get("有効終了日")),
        is_addition=_to_bool(row.get("加算")),
    )


def _in_month(d: date | None, year: int, month: int) -> bool:
    return d is not None and d.year == year and d.month == month


def _group_by_user(items) -> dict[str, list]:
    grouped: dict[str, list] = {}
    for item in items:
        grouped.setdefault(item.user_id, []).append(item)
    return grouped


class WorkbookDataProvider:
    """Excelブックを読み取る月次請求データ提供元

    ブックは生成時に一度だけ読み込む。
    """

    def __init__(self, filepath: str | Path):
        self.filepath = Path(filepath)
        self.sheets = read_workbook(self.filepath)

    def _rows(self, sheet: str, facility_id: str) -> list[dict]:
        return [
            r for r in self.sheets[sheet]
            if _safe_str(r.get("事業所ID")) == facility_id
        ]

    async def get_facility(self, facility_id: str) -> Facility:
        rows = self._rows("事業所", facility_id)
        if not rows:
            raise ValueError(f"Facility not found: {facility_id} in {self.filepath}")
        return _parse_facility(rows[0])

    async def get_active_users(self, facility_id: str) -> list[ServiceUser]:
        users = [_parse_user(r) for r in self._rows("利用者", facility_id)]
        return [u for u in users if u.is_active]

    async def get_monthly_attendances(
        self, facility_id: str, year_month: str,
    ) -> dict[str, list[Attendance]]:
        year, month = parse_year_month(year_month)
        records = [_parse_attendance(r) for r in self._rows("出欠", facility_id)]
        return _group_by_user(a for a in records if _in_month(a.date, year, month))

    async def get_monthly_outputs(
        self, facility_id: str, year_month: str,
    ) -> dict[str, list[ProductOutput]]:
        year, month = parse_year_month(year_month)
        records = [_parse_output(r) for r in self._rows("生産実績", facility_id)]
        return _group_by_user(o for o in records if _in_month(o.date, year, month))

    async def get_activities(self, facility_id: str) -> list[ProductActivity]:
        return [_parse_activity(r) for r in self._rows("作業", facility_id)]

    async def get_existing_invoice_year_months(self, facility_id: str) -> list[str]:
        result = []
        for r in self._rows("請求履歴", facility_id):
            val = r.get("対象年月")
            if isinstance(val, (datetime, date)):
                result.append(f"{val.year:04d}-{val.month:02d}")
            elif val:
                result.append(_safe_str(val))
        return result

    def get_service_codes(self) -> list[ServiceCode]:
        """サービスコードマスタ（シートがなければ空）"""
        return [_parse_service_code(r) for r in self.sheets[SERVICE_CODE_SHEET]]
