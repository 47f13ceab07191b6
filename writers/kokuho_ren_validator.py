"""国保連CSV 出力前バリデーション

レコード順序、各項目の書式、Shift-JIS(cp932)で表現できるか、
トレーラ合計のクロスチェックを行う。
1件でもエラーがあればCSVは出力しない。
"""

import re
from dataclasses import fields
from datetime import date

from calc.validator import ValidationError
from writers.records import ControlRecord, DataRecord, KokuhoRenRecord, TrailerRecord

NAME_KANA_PATTERN = re.compile(r"[ァ-ンヴー 　]+")
MAX_MONTHLY_SERVICE_UNITS = 31000
MIN_BIRTH_DATE = date(1900, 1, 1)

# Windows版Shift-JIS（NEC・IBM拡張文字を含む）
ENCODING = "cp932"


def validate_kokuho_ren_records(
    records: list[KokuhoRenRecord],
    today: date | None = None,
) -> list[ValidationError]:
    """国保連CSVレコード群を検証し、エラーのリストを返す（空なら合格）。"""
    errors: list[ValidationError] = []
    if not records:
        errors.append(ValidationError(
            code="EMPTY_RECORDS", message="レコードが空です", field="records",
        ))
        return errors

    today = today or date.today()

    first = records[0]
    if not isinstance(first, ControlRecord):
        errors.append(ValidationError(
            code="INVALID_RECORD_ORDER",
            message="最初のレコードはコントロールレコードである必要があります",
            field="record_type", record_index=0, value=first.record_type,
        ))
    else:
        _validate_control(first, errors)

    last = records[-1]
    if not isinstance(last, TrailerRecord):
        errors.append(ValidationError(
            code="INVALID_RECORD_ORDER",
            message="最後のレコードはトレーラレコードである必要があります",
            field="record_type", record_index=len(records) - 1, value=last.record_type,
        ))

    data_records = [r for r in records if isinstance(r, DataRecord)]
    for i, record in enumerate(data_records):
        _validate_data(record, i, today, errors)

    if isinstance(last, TrailerRecord):
        _validate_trailer(last, data_records, errors)

    for i, record in enumerate(records):
        _validate_encoding(record, i, errors)

    return errors


def _validate_control(record: ControlRecord, errors: list[ValidationError]) -> None:
    checks = [
        ("prefecture_code", r"[0-9]{2}", "都道府県番号は2桁の数字"),
        ("facility_number", r"[0-9]{10}", "事業所番号は10桁の数字"),
        ("created_date", r"[0-9]{8}", "作成年月日はYYYYMMDD形式"),
        ("target_year_month", r"[0-9]{6}", "対象年月はYYYYMM形式"),
    ]
    for field_name, pattern, message in checks:
        value = getattr(record, field_name)
        if not re.fullmatch(pattern, value or ""):
            errors.append(ValidationError(
                code=f"INVALID_{field_name.upper()}",
                message=message, field=field_name, value=value,
            ))


def parse_compact_date(value: str) -> date | None:
    """YYYYMMDD を date に変換。実在しない日付はNone。"""
    if not re.fullmatch(r"[0-9]{8}", value or ""):
        return None
    try:
        return date(int(value[:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return None


def _validate_data(
    record: DataRecord,
    index: int,
    today: date,
    errors: list[ValidationError],
) -> None:
    def error(code: str, field_name: str, message: str) -> None:
        errors.append(ValidationError(
            code=code, message=message, field=field_name,
            record_index=index, value=getattr(record, field_name),
        ))

    if not re.fullmatch(r"[0-9]{10}", record.recipient_number or ""):
        error("INVALID_RECIPIENT_NUMBER", "recipient_number", "受給者証番号は10桁の数字")

    if not NAME_KANA_PATTERN.fullmatch(record.name_kana or ""):
        error("INVALID_NAME_KANA", "name_kana",
              "氏名カナは全角カタカナ(ア-ン・ヴ・ー・スペース)のみ")

    birth = parse_compact_date(record.date_of_birth)
    if birth is None:
        error("INVALID_BIRTH_DATE", "date_of_birth", "生年月日は実在するYYYYMMDD形式")
    elif birth < MIN_BIRTH_DATE or birth > today:
        error("BIRTH_DATE_OUT_OF_RANGE", "date_of_birth",
              "生年月日は1900-01-01以降かつ未来日不可")

    if record.units <= 0:
        error("INVALID_UNITS", "units", "単位数は正の値")

    if record.days < 1 or record.days > 31:
        error("INVALID_DAYS", "days", "日数は1〜31")

    if record.total_service_units > MAX_MONTHLY_SERVICE_UNITS:
        error("UNITS_CAP_EXCEEDED", "total_service_units",
              f"月間サービス単位数は{MAX_MONTHLY_SERVICE_UNITS}以下")

    if record.benefit_claim_amount < 0:
        error("NEGATIVE_CLAIM_AMOUNT", "benefit_claim_amount", "給付費請求額は0以上")


def _validate_trailer(
    trailer: TrailerRecord,
    data_records: list[DataRecord],
    errors: list[ValidationError],
) -> None:
    if trailer.total_count != len(data_records):
        errors.append(ValidationError(
            code="TRAILER_COUNT_MISMATCH",
            message=f"トレーラ件数({trailer.total_count})とデータレコード数({len(data_records)})が不一致",
            field="total_count", value=trailer.total_count,
        ))

    units = sum(d.total_service_units for d in data_records)
    if trailer.total_units != units:
        errors.append(ValidationError(
            code="TRAILER_UNITS_MISMATCH",
            message=f"トレーラ合計単位数({trailer.total_units})とデータ合計({units})が不一致",
            field="total_units", value=trailer.total_units,
        ))

    amount = sum(d.benefit_claim_amount for d in data_records)
    if trailer.total_claim_amount != amount:
        errors.append(ValidationError(
            code="TRAILER_AMOUNT_MISMATCH",
            message=f"トレーラ合計請求額({trailer.total_claim_amount})とデータ合計({amount})が不一致",
            field="total_claim_amount", value=trailer.total_claim_amount,
        ))


def _validate_encoding(
    record: KokuhoRenRecord,
    index: int,
    errors: list[ValidationError],
) -> None:
    for f in fields(record):
        value = getattr(record, f.name)
        if not isinstance(value, str):
            continue
        try:
            value.encode(ENCODING)
        except UnicodeEncodeError as e:
            errors.append(ValidationError(
                code="UNENCODABLE_CHARACTER",
                message=f"Shift-JISで表現できない文字があります: {e.object[e.start:e.end]!r}",
                field=f.name, record_index=index, value=value,
            ))
