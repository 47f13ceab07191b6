"""月次請求パイプライン

  1. データ取得（6種を並行取得）
  2. 請求計算
  3. 工賃計算
  4. バリデーション
  5. CSV生成（国保連CSV・工賃CSV）

バリデーション結果に関わらずCSV生成まで進み、validation_passed で呼び出し元に返す。
dry_run=True の場合はファイルを書き込まず、合計額と検証結果だけを返す。
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Protocol

from calc.billing import BillingCalculator, MonthlyBillingResult
from calc.service_codes import ServiceCodeEngine
from calc.validator import BillingValidationResult, validate_billing
from calc.wage_calc import MonthlyWageResult, WageCalculator, WageConfig
from readers.models import (
    Attendance,
    Facility,
    ProductActivity,
    ProductOutput,
    ServiceUser,
)
from utils.helpers import business_days_in_month, parse_year_month
from writers.kokuho_ren_writer import build_kokuho_ren_records, export_kokuho_ren_csv
from writers.records import CsvExportResult
from writers.wage_csv_writer import build_wage_csv_records, export_wage_csv

logger = logging.getLogger(__name__)


class MonthlyBillingDataProvider(Protocol):
    """月次請求の入力データ提供元。IDはすべて業務ID。"""

    async def get_facility(self, facility_id: str) -> Facility:
        ...

    async def get_active_users(self, facility_id: str) -> list[ServiceUser]:
        ...

    async def get_monthly_attendances(
        self, facility_id: str, year_month: str,
    ) -> dict[str, list[Attendance]]:
        ...

    async def get_monthly_outputs(
        self, facility_id: str, year_month: str,
    ) -> dict[str, list[ProductOutput]]:
        ...

    async def get_activities(self, facility_id: str) -> list[ProductActivity]:
        ...

    async def get_existing_invoice_year_months(self, facility_id: str) -> list[str]:
        ...


@dataclass
class MonthlyBillingOptions:
    year_month: str               # YYYY-MM
    facility_id: str
    output_dir: str | Path = "exports"
    dry_run: bool = False
    wage_encoding: str = "utf-8-bom"


@dataclass
class MonthlyBillingPipelineResult:
    year_month: str
    facility_id: str
    billing: MonthlyBillingResult
    wages: MonthlyWageResult
    validation: BillingValidationResult
    billing_csv: CsvExportResult
    wage_csv: CsvExportResult

    @property
    def validation_passed(self) -> bool:
        return self.validation.valid


def billing_csv_path(output_dir: str | Path, year_month: str, facility_id: str) -> Path:
    return Path(output_dir) / f"kokuho-ren_{year_month}_{facility_id}.csv"


def wage_csv_path(output_dir: str | Path, year_month: str, facility_id: str) -> Path:
    return Path(output_dir) / f"wage_{year_month}_{facility_id}.csv"


async def run_monthly_billing(
    provider: MonthlyBillingDataProvider,
    options: MonthlyBillingOptions,
    engine: ServiceCodeEngine | None = None,
    wage_config: WageConfig | None = None,
    today: date | None = None,
) -> MonthlyBillingPipelineResult:
    """月次請求パイプラインを実行する。

    データ提供元の例外はそのまま呼び出し元に伝播する。

    Args:
        provider: データ提供元
        options: 対象年月・事業所・出力先・dry-run
        engine: サービスコードマスタ（省略時は静的テーブルのみ）
        wage_config: 工賃設定（省略時は既定値）
        today: 期限判定・CSV作成日の基準日（省略時は本日）
    """
    year_month = options.year_month
    facility_id = options.facility_id
    year, month = parse_year_month(year_month)
    today = today or date.today()
    wage_config = wage_config or WageConfig()

    logger.info("月次請求パイプライン: %s (%s)", year_month, facility_id)

    # Step 1: データ取得（並行）
    (
        facility,
        users,
        attendance_map,
        output_map,
        activities,
        existing_year_months,
    ) = await asyncio.gather(
        provider.get_facility(facility_id),
        provider.get_active_users(facility_id),
        provider.get_monthly_attendances(facility_id, year_month),
        provider.get_monthly_outputs(facility_id, year_month),
        provider.get_activities(facility_id),
        provider.get_existing_invoice_year_months(facility_id),
    )
    logger.info("利用者数: %d", len(users))

    # Step 2: 請求計算
    billing = BillingCalculator(engine).calculate(year_month, facility, users, attendance_map)
    logger.info("合計請求額: %s円 (%d名)", f"{billing.total_amount:,}", len(billing.user_billings))

    # Step 3: 工賃計算
    expected_days = business_days_in_month(year, month)
    wages = WageCalculator(wage_config).calculate(
        facility_id, year_month, users, attendance_map, output_map, activities, expected_days,
    )
    logger.info(
        "平均工賃: %s円 (基準%s円: %s)",
        f"{wages.average_wage:,}",
        f"{wage_config.minimum_average_monthly_wage:,}",
        "達成" if wages.meets_minimum_threshold else "未達",
    )

    # Step 4: バリデーション
    validation = validate_billing(billing, existing_year_months, today=today)
    for err in validation.errors:
        logger.error("請求バリデーションエラー %s: %s", err.code, err.message)
    for warn in validation.warnings:
        logger.warning("請求バリデーション警告 %s: %s", warn.code, warn.message)

    # Step 5: CSV生成
    user_map = {u.user_id: u for u in users}
    kokuho_records = build_kokuho_ren_records(facility, billing, user_map, created_on=today)
    billing_csv = export_kokuho_ren_csv(
        kokuho_records,
        billing_csv_path(options.output_dir, year_month, facility_id),
        dry_run=options.dry_run,
        today=today,
    )

    wage_records = build_wage_csv_records(wages)
    wage_csv = export_wage_csv(
        wage_records,
        wage_csv_path(options.output_dir, year_month, facility_id),
        encoding=options.wage_encoding,
        dry_run=options.dry_run,
        minimum_wage=wage_config.minimum_average_monthly_wage,
    )

    return MonthlyBillingPipelineResult(
        year_month=year_month,
        facility_id=facility_id,
        billing=billing,
        wages=wages,
        validation=validation,
        billing_csv=billing_csv,
        wage_csv=wage_csv,
    )
