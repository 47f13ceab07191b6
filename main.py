"""就労継続支援B型 月次請求 メインスクリプト

請求データブック(.xlsx) → 請求計算・工賃計算・バリデーション → 国保連請求CSV・工賃CSV

Usage:
    python main.py --month 2026-02 --facility FAC001 --workbook data.xlsx
    python main.py --month 2026-02 --facility FAC001 --workbook data.xlsx --dry-run
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from calc.monthly_billing import MonthlyBillingOptions, run_monthly_billing
from calc.service_codes import ServiceCodeEngine
from calc.wage_calc import WageConfig
from readers.workbook_reader import WorkbookDataProvider
from utils.helpers import load_config, parse_year_month, submission_deadline, to_reiwa_label


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="就労継続支援B型 月次請求システム",
    )
    parser.add_argument(
        "--month", required=True,
        help="対象年月 (YYYY-MM形式、例: 2026-02)",
    )
    parser.add_argument(
        "--facility", required=True,
        help="事業所ID (例: FAC001)",
    )
    parser.add_argument(
        "--workbook", default=None,
        help="請求データブック (.xlsx)。省略時は config.yaml の input.workbook",
    )
    parser.add_argument(
        "--output-dir", default=None,
        help="出力先フォルダ。省略時は config.yaml の output.base_dir",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="計算と検証のみ行い、CSVを書き込まない",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="設定ファイルパス (default: config.yaml)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # --- パラメータ解析 ---
    year, month = parse_year_month(args.month)
    config = load_config(args.config) if Path(args.config).exists() else {}
    input_conf = config.get("input") or {}
    output_conf = config.get("output") or {}

    workbook = args.workbook or input_conf.get("workbook")
    if not workbook:
        print("エラー: --workbook または config.yaml の input.workbook を指定してください")
        return 1
    output_dir = Path(args.output_dir or output_conf.get("base_dir", "exports"))

    print("=== 就労継続支援B型 月次請求 ===")
    print(f"対象月: {to_reiwa_label(year, month)} ({year}年{month}月)")
    print(f"事業所: {args.facility}")
    print(f"入力: {workbook}")
    print(f"出力: {output_dir}{' (dry-run)' if args.dry_run else ''}")
    print(f"提出期限: {submission_deadline(args.month)}")
    print()

    # --- Phase 1: 読取 ---
    print("--- Phase 1: データ読取 ---")
    provider = WorkbookDataProvider(workbook)
    service_codes = provider.get_service_codes()
    print(f"  サービスコードマスタ: {len(service_codes)}件")
    engine = ServiceCodeEngine(service_codes)

    # --- Phase 2: 計算・検証・出力 ---
    print("--- Phase 2: 請求計算・工賃計算・CSV出力 ---")
    options = MonthlyBillingOptions(
        year_month=args.month,
        facility_id=args.facility,
        output_dir=output_dir,
        dry_run=args.dry_run,
        wage_encoding=output_conf.get("wage_encoding", "utf-8-bom"),
    )
    result = asyncio.run(run_monthly_billing(
        provider, options, engine=engine, wage_config=WageConfig.from_config(config),
    ))

    billing = result.billing
    print(f"  請求対象: {len(billing.user_billings)}名")
    print(f"  合計単位数: {billing.total_units:,}")
    print(f"  総費用額: {billing.total_amount:,}円")
    print(f"  利用者負担額: {billing.total_copayment:,}円")
    print(f"  給付費請求額: {billing.total_benefit:,}円")
    print(f"  平均工賃: {result.wages.average_wage:,}円")

    for err in result.validation.errors:
        print(f"  [エラー] {err.code}: {err.message}")
    for warn in result.validation.warnings:
        print(f"  [警告] {warn.code}: {warn.message}")

    for label, export in (("国保連CSV", result.billing_csv), ("工賃CSV", result.wage_csv)):
        if export.success:
            print(f"  {label}: {export.file_path or '(dry-run)'} ({export.record_count}件)")
        else:
            print(f"  {label}: 出力失敗")
            for e in export.errors:
                print(f"    {e.code}: {e.message}")

    print()
    ok = result.validation_passed and result.billing_csv.success and result.wage_csv.success
    print(f"=== {'完了' if ok else '要確認'}: {output_dir} ===")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
