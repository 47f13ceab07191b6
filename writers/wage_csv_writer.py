"""工賃CSV出力モジュール

工賃計算結果を経理・確認用のCSVに書き出す。
国保連CSVと違い、各項目は一般的なCSVのクォート規則でエスケープする
（カンマ・ダブルクォート・改行を含む値は "" で囲む）。

文字コード: UTF-8 BOM付き（既定）/ UTF-8 / Shift-JIS（cp932）
改行: CRLF
"""

import csv
import io
import logging
from pathlib import Path

from calc.validator import ValidationError
from calc.wage_calc import MonthlyWageResult
from utils.helpers import round_half_up
from writers.formatters import format_number
from writers.records import CsvExportResult, WageCsvRecord

logger = logging.getLogger(__name__)

CRLF = "\r\n"
UTF8_BOM = "\ufeff"

HEADERS = [
    "利用者番号",
    "氏名",
    "対象年月",
    "出勤日数",
    "作業時間(h)",
    "基本工賃",
    "能力給",
    "皆勤手当",
    "合計工賃",
    "控除",
    "支給額",
]

ENCODINGS = {
    "utf-8-bom": "utf-8",
    "utf-8": "utf-8",
    "shift-jis": "cp932",
}

MINIMUM_AVERAGE_WAGE = 3000


def build_wage_csv_records(result: MonthlyWageResult) -> list[WageCsvRecord]:
    """工賃計算結果からCSVレコードを生成する。作業時間は時間単位・小数2桁。"""
    return [
        WageCsvRecord(
            user_number=w.user_id,
            name=w.name,
            year_month=result.year_month,
            attendance_days=w.attendance_days,
            total_work_hours=round_half_up(w.total_work_minutes / 60 * 100) / 100,
            base_wage=w.base_wage,
            skill_wage=w.skill_wage,
            attendance_bonus=w.attendance_bonus,
            total_wage=w.total_wage,
            deductions=w.deductions,
            net_wage=w.net_wage,
        )
        for w in result.user_wages
    ]


def encode_wage_records(records: list[WageCsvRecord], include_bom: bool = True) -> str:
    """レコード群をCSV文字列に変換（ヘッダー行付き、CRLF）"""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator=CRLF, quoting=csv.QUOTE_MINIMAL)
    writer.writerow(HEADERS)
    for r in records:
        writer.writerow([
            r.user_number,
            r.name,
            r.year_month,
            r.attendance_days,
            format_number(r.total_work_hours),
            r.base_wage,
            r.skill_wage,
            r.attendance_bonus,
            r.total_wage,
            r.deductions,
            r.net_wage,
        ])
    text = buf.getvalue()
    return UTF8_BOM + text if include_bom else text


def export_wage_csv(
    records: list[WageCsvRecord],
    output_path: str | Path,
    encoding: str = "utf-8-bom",
    dry_run: bool = False,
    minimum_wage: int = MINIMUM_AVERAGE_WAGE,
) -> CsvExportResult:
    """工賃CSVを書き出す。

    Args:
        encoding: "utf-8-bom" / "utf-8" / "shift-jis"
        minimum_wage: 平均工賃月額の下限。下回る場合は警告のみ（出力は行う）

    Raises:
        ValueError: 未知のエンコーディング指定
    """
    if encoding not in ENCODINGS:
        raise ValueError(f"Unknown wage CSV encoding: {encoding!r} (expected {list(ENCODINGS)})")

    if not records:
        return CsvExportResult(
            success=False,
            record_count=0,
            errors=[ValidationError(
                code="EMPTY_RECORDS", message="工賃データが空です", field="records",
            )],
        )

    total_amount = sum(r.net_wage for r in records)
    average = round_half_up(total_amount / len(records))
    if average < minimum_wage:
        logger.warning(
            "【要確認】平均工賃月額 %s円 が基準 %s円 を下回っています。",
            f"{average:,}", f"{minimum_wage:,}",
        )

    text = encode_wage_records(records, include_bom=encoding == "utf-8-bom")
    try:
        data = text.encode(ENCODINGS[encoding])
    except UnicodeEncodeError as e:
        bad = e.object[e.start:e.end]
        logger.warning("工賃CSV: %s で表現できない文字 %r", encoding, bad)
        return CsvExportResult(
            success=False,
            record_count=len(records),
            errors=[ValidationError(
                code="UNENCODABLE_CHARACTER",
                message=f"{encoding} で表現できない文字があります: {bad!r}",
                field="encoding", value=bad,
            )],
        )

    if dry_run:
        return CsvExportResult(
            success=True, record_count=len(records), total_amount=total_amount,
        )

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    logger.info("工賃CSV出力: %s (%d件)", path, len(records))

    return CsvExportResult(
        success=True,
        record_count=len(records),
        file_path=str(path),
        total_amount=total_amount,
    )
