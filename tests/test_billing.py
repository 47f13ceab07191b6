"""月次請求計算・請求バリデーションのテスト"""

import sys
from datetime import date
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from calc.billing import BillingCalculator, MonthlyBillingResult, calc_amount
from calc.service_codes import (
    ABSENCE_ADDITION,
    MEAL_ADDITION,
    PICKUP_ADDITION,
    ServiceCodeEngine,
)
from calc.validator import validate_billing
from conftest import make_attendances, make_facility, make_user
from readers.models import ServiceCode

BEFORE_DEADLINE = date(2026, 3, 5)


def _calculate(facility, users, attendance_map, year_month="2026-02") -> MonthlyBillingResult:
    return BillingCalculator().calculate(year_month, facility, users, attendance_map)


# ============================================================
# 請求計算
# ============================================================

class TestBillingCalculator:
    def test_base_reward_only(self):
        """1級地・報酬体系II・定員20: 567単位×20日 = 11,340単位 → floor(11340×11.40) = 129,276円"""
        user = make_user()
        result = _calculate(make_facility(), [user], {"U001": make_attendances("U001", 20)})

        billing = result.user_billings[0]
        assert billing.attendance_days == 20
        assert billing.total_units == 11340
        assert billing.total_amount == 129276
        assert result.total_amount == 129276

    def test_copayment_capped_by_limit(self):
        """利用者負担 = min(総費用額, 上限月額)、給付費 = 残り"""
        user = make_user(copayment_limit=9300)
        result = _calculate(make_facility(), [user], {"U001": make_attendances("U001", 20)})
        billing = result.user_billings[0]
        assert billing.copayment_amount == 9300
        assert billing.benefit_amount == 129276 - 9300
        assert result.total_copayment == 9300
        assert result.total_benefit == 129276 - 9300

    def test_zero_copayment_limit(self):
        """生活保護等（上限0円）は全額給付費"""
        user = make_user(copayment_limit=0)
        result = _calculate(make_facility(), [user], {"U001": make_attendances("U001", 3)})
        billing = result.user_billings[0]
        assert billing.copayment_amount == 0
        assert billing.benefit_amount == billing.total_amount

    def test_structure_one_uses_wage_tier(self):
        """報酬体系I・平均工賃36,000円 → 672単位"""
        facility = make_facility(reward_structure="I", average_monthly_wage=36000)
        result = _calculate(facility, [make_user()], {"U001": make_attendances("U001", 1)})
        assert result.user_billings[0].service_details[0].units == 672

    def test_additions(self):
        """食事30単位×日、送迎21単位×片道、欠席時対応94単位×回"""
        present = make_attendances("U001", 5, meal_provided=True, pickup_type="both")
        absent = make_attendances(
            "U001", 2, start=date(2026, 2, 10), attendance_type="absent_notified",
        )
        result = _calculate(make_facility(), [make_user()], {"U001": present + absent})
        details = result.user_billings[0].service_details

        codes = [d.service_code for d in details]
        assert codes == ["461111", MEAL_ADDITION, PICKUP_ADDITION, ABSENCE_ADDITION]
        by_code = {d.service_code: d for d in details}
        assert by_code[MEAL_ADDITION].subtotal_units == 30 * 5
        assert by_code[PICKUP_ADDITION].count == 10
        assert by_code[PICKUP_ADDITION].subtotal_units == 21 * 10
        assert by_code[ABSENCE_ADDITION].subtotal_units == 94 * 2
        assert result.user_billings[0].total_units == 567 * 5 + 150 + 210 + 188

    def test_one_way_pickup(self):
        present = (
            make_attendances("U001", 2, pickup_type="pickup_only")
            + make_attendances("U001", 1, start=date(2026, 2, 5), pickup_type="dropoff_only")
        )
        result = _calculate(make_facility(), [make_user()], {"U001": present})
        pickup = [d for d in result.user_billings[0].service_details
                  if d.service_code == PICKUP_ADDITION]
        assert pickup[0].count == 3

    def test_absence_addition_capped_at_four(self):
        """欠席時対応加算は月4回まで"""
        present = make_attendances("U001", 10)
        absent = make_attendances(
            "U001", 6, start=date(2026, 2, 15), attendance_type="absent_notified",
        )
        result = _calculate(make_facility(), [make_user()], {"U001": present + absent})
        absence = [d for d in result.user_billings[0].service_details
                   if d.service_code == ABSENCE_ADDITION]
        assert absence[0].count == 4
        assert absence[0].subtotal_units == 376

    def test_addition_units_ignore_master(self):
        """期限切れマスタの単位数(40)は使わず、食事提供体制加算は30単位×2日"""
        engine = ServiceCodeEngine([ServiceCode(
            code=MEAL_ADDITION, name="食事提供体制加算(旧)", units=40, service_type="46",
            valid_from=date(2018, 4, 1), valid_to=date(2021, 3, 31), is_addition=True,
        )])
        present = make_attendances("U001", 2, meal_provided=True)
        result = BillingCalculator(engine).calculate(
            "2026-02", make_facility(), [make_user()], {"U001": present},
        )
        meal = [d for d in result.user_billings[0].service_details
                if d.service_code == MEAL_ADDITION][0]
        assert meal.units == 30
        assert meal.subtotal_units == 60
        assert meal.service_name == "食事提供体制加算"

    def test_no_present_days_excluded(self):
        """出席0日の利用者は請求対象外（エラーにしない）"""
        users = [make_user("U001"), make_user("U002")]
        attendance_map = {
            "U001": make_attendances("U001", 3),
            "U002": make_attendances("U002", 3, attendance_type="absent"),
        }
        result = _calculate(make_facility(), users, attendance_map)
        assert [b.user_id for b in result.user_billings] == ["U001"]

    def test_inactive_user_excluded(self):
        users = [make_user("U001", is_active=False)]
        result = _calculate(make_facility(), users, {"U001": make_attendances("U001", 3)})
        assert result.user_billings == []
        assert result.total_amount == 0

    def test_no_users(self):
        result = _calculate(make_facility(), [], {})
        assert result.user_billings == []
        assert result.total_units == 0

    def test_totals_are_sums(self):
        users = [make_user("U001"), make_user("U002", copayment_limit=0)]
        attendance_map = {
            "U001": make_attendances("U001", 20),
            "U002": make_attendances("U002", 10, meal_provided=True),
        }
        result = _calculate(make_facility(), users, attendance_map)
        assert result.total_units == sum(b.total_units for b in result.user_billings)
        assert result.total_amount == sum(b.total_amount for b in result.user_billings)
        for b in result.user_billings:
            assert b.total_units == sum(d.subtotal_units for d in b.service_details)
            assert b.copayment_amount + b.benefit_amount == b.total_amount

    def test_calc_amount_floor(self):
        """円未満切り捨て（浮動小数の誤差で1円ずれない）"""
        assert calc_amount(11340, 11.40) == 129276
        assert calc_amount(100, 10.14) == 1014
        assert calc_amount(3, 11.05) == 33

    def test_unknown_structure_zero_units(self):
        facility = make_facility(reward_structure="X")
        assert BillingCalculator.base_units(facility) == 0


# ============================================================
# 請求バリデーション
# ============================================================

class TestValidateBilling:
    def _result(self, **user_overrides):
        return _calculate(
            make_facility(), [make_user(**user_overrides)],
            {"U001": make_attendances("U001", 20)},
        )

    def test_valid(self):
        validation = validate_billing(self._result(), [], today=BEFORE_DEADLINE)
        assert validation.valid
        assert validation.errors == []
        assert validation.warnings == []

    def test_duplicate_invoice(self):
        validation = validate_billing(self._result(), ["2026-01", "2026-02"], today=BEFORE_DEADLINE)
        assert not validation.valid
        assert [e.code for e in validation.errors] == ["DUPLICATE_INVOICE"]

    def test_past_deadline_is_warning(self):
        """提出期限（翌月10日）超過は警告のみ"""
        validation = validate_billing(self._result(), [], today=date(2026, 3, 11))
        assert validation.valid
        assert [w.code for w in validation.warnings] == ["PAST_DEADLINE"]

    def test_deadline_day_is_not_late(self):
        validation = validate_billing(self._result(), [], today=date(2026, 3, 10))
        assert validation.warnings == []

    def test_invalid_recipient_number(self):
        validation = validate_billing(
            self._result(recipient_number="12345"), [], today=BEFORE_DEADLINE,
        )
        assert not validation.valid
        error = validation.errors[0]
        assert error.code == "INVALID_RECIPIENT_NUMBER"
        assert error.user_id == "U001"
        assert error.field == "recipient_number"

    def test_full_width_recipient_number_rejected(self):
        validation = validate_billing(
            self._result(recipient_number="１２３４５６７８９０"), [], today=BEFORE_DEADLINE,
        )
        assert "INVALID_RECIPIENT_NUMBER" in [e.code for e in validation.errors]

    def test_negative_copayment(self):
        result = self._result()
        result.user_billings[0].copayment_amount = -1
        validation = validate_billing(result, [], today=BEFORE_DEADLINE)
        assert "NEGATIVE_COPAYMENT" in [e.code for e in validation.errors]

    def test_total_mismatch(self):
        result = self._result()
        result.total_amount += 1
        validation = validate_billing(result, [], today=BEFORE_DEADLINE)
        assert "TOTAL_MISMATCH" in [e.code for e in validation.errors]

    def test_detail_units_mismatch(self):
        result = self._result()
        result.user_billings[0].total_units += 10
        validation = validate_billing(result, [], today=BEFORE_DEADLINE)
        assert "DETAIL_UNITS_MISMATCH" in [e.code for e in validation.errors]

    def test_zero_units_warning(self):
        result = _calculate(
            make_facility(reward_structure="X"), [make_user()],
            {"U001": make_attendances("U001", 3)},
        )
        validation = validate_billing(result, [], today=BEFORE_DEADLINE)
        assert validation.valid
        assert "ZERO_UNITS" in [w.code for w in validation.warnings]

    def test_invalid_attendance_days(self):
        result = self._result()
        result.user_billings[0].attendance_days = 32
        validation = validate_billing(result, [], today=BEFORE_DEADLINE)
        assert "INVALID_ATTENDANCE_DAYS" in [e.code for e in validation.errors]
