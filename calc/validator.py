"""請求バリデーション

二重請求チェック、提出期限チェック、データ整合性検証。
例外は投げず、エラー・警告をリストで返す。
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from calc.billing import MonthlyBillingResult, UserBillingResult
from utils.helpers import submission_deadline

RECIPIENT_NUMBER_PATTERN = re.compile(r"[0-9]{10}")


@dataclass
class ValidationError:
    """バリデーションエラー／警告の1件"""
    code: str
    message: str
    user_id: str | None = None
    field: str | None = None
    record_index: int | None = None
    value: Any = None


@dataclass
class BillingValidationResult:
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)


def validate_billing(
    result: MonthlyBillingResult,
    existing_year_months: Iterable[str] = (),
    today: date | None = None,
) -> BillingValidationResult:
    """月次請求データを検証する。

    Args:
        result: 請求計算結果
        existing_year_months: 請求済みの年月 (YYYY-MM) のリスト
        today: 期限判定の基準日（省略時は本日）
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    today = today or date.today()

    # 1. 二重請求
    if result.year_month in set(existing_year_months):
        errors.append(ValidationError(
            code="DUPLICATE_INVOICE",
            message=f"{result.year_month} の請求データはすでに存在します",
        ))

    # 2. 提出期限（翌月10日）
    try:
        deadline = submission_deadline(result.year_month)
    except ValueError:
        deadline = None
    if deadline is not None and today > deadline:
        warnings.append(ValidationError(
            code="PAST_DEADLINE",
            message=f"{result.year_month} の提出期限 ({deadline.isoformat()}) を過ぎています",
        ))

    # 3. 利用者ごと
    for billing in result.user_billings:
        _validate_user_billing(billing, errors, warnings)

    # 4. 合計値クロスチェック
    calculated_total = sum(b.total_amount for b in result.user_billings)
    if calculated_total != result.total_amount:
        errors.append(ValidationError(
            code="TOTAL_MISMATCH",
            message=f"合計金額不一致: 計算値={calculated_total}, 設定値={result.total_amount}",
            field="total_amount",
        ))

    return BillingValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _validate_user_billing(
    billing: UserBillingResult,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    if not RECIPIENT_NUMBER_PATTERN.fullmatch(billing.recipient_number or ""):
        errors.append(ValidationError(
            code="INVALID_RECIPIENT_NUMBER",
            message=f"受給者証番号が不正です: {billing.recipient_number}",
            user_id=billing.user_id,
            field="recipient_number",
            value=billing.recipient_number,
        ))

    if billing.attendance_days < 0 or billing.attendance_days > 31:
        errors.append(ValidationError(
            code="INVALID_ATTENDANCE_DAYS",
            message=f"出席日数が不正です: {billing.attendance_days}",
            user_id=billing.user_id,
            field="attendance_days",
            value=billing.attendance_days,
        ))

    if billing.total_units <= 0:
        warnings.append(ValidationError(
            code="ZERO_UNITS",
            message="単位数が0です",
            user_id=billing.user_id,
            field="total_units",
            value=billing.total_units,
        ))

    if billing.copayment_amount < 0:
        errors.append(ValidationError(
            code="NEGATIVE_COPAYMENT",
            message=f"利用者負担額が負数です: {billing.copayment_amount}",
            user_id=billing.user_id,
            field="copayment_amount",
            value=billing.copayment_amount,
        ))

    detail_total = sum(d.subtotal_units for d in billing.service_details)
    if detail_total != billing.total_units:
        errors.append(ValidationError(
            code="DETAIL_UNITS_MISMATCH",
            message=f"サービス詳細の合計単位数が不一致: {detail_total} ≠ {billing.total_units}",
            user_id=billing.user_id,
            field="total_units",
        ))
