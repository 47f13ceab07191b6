"""国保連請求CSV出力モジュール

月次請求の計算結果から、国保連へ提出する請求CSVを生成する。

構造:
  1行目: コントロールレコード
  2行目〜: データレコード（請求対象の利用者ごとに1行）
  最終行: トレーラレコード（件数・合計単位数・合計請求額）

書式:
  - カンマ区切り、クォートなし（固定書式の数字・カナ・日付のみ）
  - 数値項目はゼロ埋め（桁あふれは切り詰めない）
      単位数:6 日数:2 サービス単位数合計:8 給付費請求額:10 利用者負担額:10
      トレーラ 件数:6 合計単位数:10 合計請求額:12
  - 改行はCRLF（最終行にも付ける）
  - 文字コードはShift-JIS（cp932）
"""

import logging
from datetime import date
from pathlib import Path

from calc.billing import MonthlyBillingResult
from calc.service_codes import get_area_unit_price
from readers.models import Facility, ServiceUser
from writers.formatters import (
    format_date_compact,
    format_unit_price,
    format_year_month_compact,
    gender_to_code,
    to_full_width_kana,
    zero_pad,
)
from writers.kokuho_ren_validator import ENCODING, validate_kokuho_ren_records
from writers.records import (
    ControlRecord,
    CsvExportResult,
    DataRecord,
    KokuhoRenRecord,
    TrailerRecord,
)

logger = logging.getLogger(__name__)

CRLF = "\r\n"
EXCHANGE_INFO_ID = "7121"
MEDIA_TYPE_TRANSMISSION = "5"


def build_kokuho_ren_records(
    facility: Facility,
    billing: MonthlyBillingResult,
    users: dict[str, ServiceUser],
    created_on: date | None = None,
) -> list[KokuhoRenRecord]:
    """請求計算結果から国保連CSVレコードを生成する。

    利用者ごとの明細（基本報酬・各加算）は1件のデータレコードに集約する。

    Args:
        facility: 事業所
        billing: 月次請求計算結果
        users: {利用者ID: ServiceUser}（見つからない利用者は出力しない）
        created_on: 作成年月日（省略時は本日）
    """
    created_on = created_on or date.today()
    records: list[KokuhoRenRecord] = [
        ControlRecord(
            exchange_info_id=EXCHANGE_INFO_ID,
            media_type=MEDIA_TYPE_TRANSMISSION,
            prefecture_code=facility.facility_number[:2],
            insurer_number=facility.insurer_number,
            facility_number=facility.facility_number,
            created_date=format_date_compact(created_on),
            target_year_month=format_year_month_compact(billing.year_month),
        )
    ]

    area_unit_price = get_area_unit_price(facility.area_grade)
    total_units = 0
    total_claim = 0
    data_count = 0

    for user_billing in billing.user_billings:
        user = users.get(user_billing.user_id)
        if user is None:
            logger.warning(
                "【要確認】利用者マスタに存在しない請求 — 利用者ID '%s' は国保連CSVに出力しません。",
                user_billing.user_id,
            )
            continue

        service_units = sum(d.subtotal_units for d in user_billing.service_details)
        records.append(DataRecord(
            facility_number=facility.facility_number,
            service_type_code=facility.service_type_code,
            recipient_number=user.recipient_number,
            name_kana=to_full_width_kana(user.name_kana),
            date_of_birth=format_date_compact(user.date_of_birth),
            gender=gender_to_code(user.gender),
            service_code=facility.service_type_code,
            units=service_units,
            days=user_billing.attendance_days,
            total_service_units=service_units,
            benefit_claim_amount=user_billing.benefit_amount,
            copayment_amount=user_billing.copayment_amount,
            area_unit_price=area_unit_price,
        ))
        total_units += service_units
        total_claim += user_billing.benefit_amount
        data_count += 1

    records.append(TrailerRecord(
        total_count=data_count,
        total_units=total_units,
        total_claim_amount=total_claim,
    ))
    return records


def _encode_control(r: ControlRecord) -> str:
    return ",".join([
        r.exchange_info_id,
        r.media_type,
        r.prefecture_code,
        r.insurer_number,
        r.facility_number,
        r.created_date,
        r.target_year_month,
    ])


def _encode_data(r: DataRecord) -> str:
    return ",".join([
        r.facility_number,
        r.service_type_code,
        r.recipient_number,
        r.name_kana,
        r.date_of_birth,
        r.gender,
        r.service_code,
        zero_pad(r.units, 6),
        zero_pad(r.days, 2),
        zero_pad(r.total_service_units, 8),
        zero_pad(r.benefit_claim_amount, 10),
        zero_pad(r.copayment_amount, 10),
        format_unit_price(r.area_unit_price),
    ])


def _encode_trailer(r: TrailerRecord) -> str:
    return ",".join([
        zero_pad(r.total_count, 6),
        zero_pad(r.total_units, 10),
        zero_pad(r.total_claim_amount, 12),
    ])


def encode_records(records: list[KokuhoRenRecord]) -> str:
    """レコード群をCSV文字列に変換（各行末CRLF）"""
    lines = []
    for record in records:
        if isinstance(record, ControlRecord):
            lines.append(_encode_control(record))
        elif isinstance(record, DataRecord):
            lines.append(_encode_data(record))
        elif isinstance(record, TrailerRecord):
            lines.append(_encode_trailer(record))
        else:
            raise TypeError(f"Unknown Kokuho-Ren record: {record!r}")
    return "".join(line + CRLF for line in lines)


def export_kokuho_ren_csv(
    records: list[KokuhoRenRecord],
    output_path: str | Path,
    dry_run: bool = False,
    today: date | None = None,
) -> CsvExportResult:
    """国保連CSVを検証してShift-JISで書き出す。

    検証エラーが1件でもあればファイルは書き込まない。
    dry_run=True の場合は検証と集計のみ行う。
    """
    errors = validate_kokuho_ren_records(records, today=today)
    if errors:
        for e in errors:
            logger.warning("国保連CSV検証エラー: %s (%s=%r)", e.message, e.field, e.value)
        return CsvExportResult(success=False, record_count=len(records), errors=errors)

    text = encode_records(records)
    total_amount = sum(r.benefit_claim_amount for r in records if isinstance(r, DataRecord))

    if dry_run:
        return CsvExportResult(
            success=True, record_count=len(records), total_amount=total_amount,
        )

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(text.encode(ENCODING))
    logger.info("国保連CSV出力: %s (%d件)", path, len(records))

    return CsvExportResult(
        success=True,
        record_count=len(records),
        file_path=str(path),
        total_amount=total_amount,
    )
