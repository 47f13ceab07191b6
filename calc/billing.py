"""月次請求計算モジュール

出欠データと事業所設定から、利用者ごとの給付費請求額を計算する。

  (基本報酬 + 加算) の単位数 × 地域区分単価 → 総費用額（円未満切り捨て）

加算:
  - 食事提供体制加算: 30単位 × 食事提供ありの出席日数
  - 送迎加算: 21単位 × 片道回数（迎えのみ/送りのみ=1、送迎=2）
  - 欠席時対応加算: 94単位 × 連絡あり欠席の回数（月4回まで）

利用者負担額 = min(総費用額, 負担上限月額)
給付費      = 総費用額 - 利用者負担額
出席日が0日の利用者・利用停止中の利用者は請求対象外（エラーにしない）。
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from calc.service_codes import (
    ABSENCE_ADDITION,
    MEAL_ADDITION,
    PICKUP_ADDITION,
    ServiceCodeEngine,
    get_area_unit_price,
    get_base_reward_units,
    reward_category,
)
from readers.models import Attendance, Facility, ServiceUser
from utils.helpers import parse_year_month

logger = logging.getLogger(__name__)

BASE_SERVICE_NAME = "就労継続支援B型サービス費"
ABSENCE_ADDITION_MONTHLY_CAP = 4


@dataclass
class ServiceDetail:
    """請求明細の1行（サービスコード単位）"""
    service_code: str
    service_name: str
    units: int
    count: int
    subtotal_units: int


@dataclass
class UserBillingResult:
    """1利用者の月次請求"""
    user_id: str
    recipient_number: str
    name_kana: str
    attendance_days: int
    service_details: list[ServiceDetail] = field(default_factory=list)
    total_units: int = 0
    total_amount: int = 0        # 総費用額 = floor(単位数 × 地域区分単価)
    copayment_amount: int = 0    # 利用者負担額
    benefit_amount: int = 0      # 給付費


@dataclass
class MonthlyBillingResult:
    """1事業所の月次請求"""
    facility_id: str
    year_month: str
    user_billings: list[UserBillingResult] = field(default_factory=list)
    total_units: int = 0
    total_amount: int = 0
    total_copayment: int = 0

    @property
    def total_benefit(self) -> int:
        return sum(b.benefit_amount for b in self.user_billings)


def calc_amount(total_units: int, area_unit_price: float) -> int:
    """単位数 × 地域区分単価（円未満切り捨て）

    単価は 11.40 のような10進数なのでDecimalで計算する。
    """
    return math.floor(Decimal(total_units) * Decimal(str(area_unit_price)))


def _detail(code: str, name: str, units: int, count: int) -> ServiceDetail:
    return ServiceDetail(
        service_code=code,
        service_name=name,
        units=units,
        count=count,
        subtotal_units=units * count,
    )


class BillingCalculator:
    """月次請求計算エンジン

    engine を渡すと、加算の名称を事業所のサービスコードマスタから引く
    （対象月の初日に有効な行のみ）。単位数は固定。
    """

    def __init__(self, engine: ServiceCodeEngine | None = None):
        self.engine = engine or ServiceCodeEngine()

    def calculate(
        self,
        year_month: str,
        facility: Facility,
        users: list[ServiceUser],
        attendance_map: dict[str, list[Attendance]],
    ) -> MonthlyBillingResult:
        """全利用者の月次請求を計算する。

        Args:
            year_month: 対象年月 (YYYY-MM)
            facility: 事業所
            users: 利用者リスト（利用停止中を含んでよい）
            attendance_map: {利用者ID: 当月の出欠リスト}

        Returns:
            MonthlyBillingResult
        """
        year, month = parse_year_month(year_month)
        service_month = date(year, month, 1)
        area_unit_price = get_area_unit_price(facility.area_grade)
        base_units = self.base_units(facility)
        user_billings = []

        for user in users:
            if not user.is_active:
                continue
            attendances = attendance_map.get(user.user_id, [])
            present = [a for a in attendances if a.is_present]
            if not present:
                continue

            user_billings.append(
                self.calculate_user(
                    facility, user, present, attendances, base_units, area_unit_price,
                    on=service_month,
                )
            )

        return MonthlyBillingResult(
            facility_id=facility.facility_id,
            year_month=year_month,
            user_billings=user_billings,
            total_units=sum(b.total_units for b in user_billings),
            total_amount=sum(b.total_amount for b in user_billings),
            total_copayment=sum(b.copayment_amount for b in user_billings),
        )

    def calculate_user(
        self,
        facility: Facility,
        user: ServiceUser,
        present: list[Attendance],
        attendances: list[Attendance],
        base_units: int,
        area_unit_price: float,
        on: date | None = None,
    ) -> UserBillingResult:
        """1利用者の請求を計算する。

        Args:
            present: 出席日の出欠
            attendances: 当月の全出欠（欠席時対応加算の判定に使う）
            on: 加算名称を引くマスタの基準日
        """
        attendance_days = len(present)

        # 1. 基本報酬
        details = [
            _detail(facility.service_type_code, BASE_SERVICE_NAME, base_units, attendance_days),
        ]

        # 2. 食事提供体制加算
        meal_days = sum(1 for a in present if a.meal_provided)
        if meal_days > 0:
            name, units = self.engine.resolve_addition(MEAL_ADDITION, on)
            details.append(_detail(MEAL_ADDITION, name, units, meal_days))

        # 3. 送迎加算（片道ごと）
        trips = sum(a.pickup_trips for a in present)
        if trips > 0:
            name, units = self.engine.resolve_addition(PICKUP_ADDITION, on)
            details.append(_detail(PICKUP_ADDITION, name, units, trips))

        # 4. 欠席時対応加算（月4回まで）
        notified = sum(1 for a in attendances if a.attendance_type == "absent_notified")
        absence_count = min(notified, ABSENCE_ADDITION_MONTHLY_CAP)
        if absence_count > 0:
            name, units = self.engine.resolve_addition(ABSENCE_ADDITION, on)
            details.append(_detail(ABSENCE_ADDITION, name, units, absence_count))
        if notified > ABSENCE_ADDITION_MONTHLY_CAP:
            logger.info(
                "欠席時対応加算を月%d回に制限: %s (連絡あり欠席%d回)",
                ABSENCE_ADDITION_MONTHLY_CAP, user.user_id, notified,
            )

        total_units = sum(d.subtotal_units for d in details)
        total_amount = calc_amount(total_units, area_unit_price)
        copayment = min(total_amount, user.copayment_limit)

        return UserBillingResult(
            user_id=user.user_id,
            recipient_number=user.recipient_number,
            name_kana=user.name_kana,
            attendance_days=attendance_days,
            service_details=details,
            total_units=total_units,
            total_amount=total_amount,
            copayment_amount=copayment,
            benefit_amount=total_amount - copayment,
        )

    @staticmethod
    def base_units(facility: Facility) -> int:
        """事業所の基本報酬単位数（報酬体系I=工賃区分、II〜VI=定員区分）"""
        category = reward_category(
            facility.reward_structure, facility.capacity, facility.average_monthly_wage,
        )
        units = get_base_reward_units(facility.reward_structure, category)
        if units == 0:
            logger.warning(
                "【要確認】基本報酬単位数が0です — 事業所 %s の報酬体系 '%s' を確認してください。",
                facility.facility_id, facility.reward_structure,
            )
        return units
