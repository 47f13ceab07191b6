"""工賃計算モジュール

生産実績（作業時間 × 作業単価）から利用者ごとの月額工賃を計算する。
B型事業所は平均工賃月額 3,000円以上を維持する必要がある。

  基本工賃 = Σ 四捨五入(作業分 / 60 × 時給)   ※生産実績1件ごとに丸める
  合計工賃 = 基本工賃 + 能力給 + 皆勤手当
  支給額   = 合計工賃 - 控除（四捨五入(合計工賃 × 控除率)）
"""

import logging
from dataclasses import dataclass, field

from readers.models import Attendance, ProductActivity, ProductOutput, ServiceUser
from utils.helpers import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class WageConfig:
    """工賃設定（config.yaml の wage セクションで上書き可能）"""
    minimum_average_monthly_wage: int = 3000  # 最低平均工賃月額
    perfect_attendance_bonus: int = 1000      # 皆勤手当
    deduction_rate: float = 0                 # 控除率 (0〜1)。昼食代天引きなど

    @classmethod
    def from_config(cls, config: dict | None) -> "WageConfig":
        wage_conf = (config or {}).get("wage") or {}
        defaults = cls()
        return cls(
            minimum_average_monthly_wage=wage_conf.get(
                "minimum_average_monthly_wage", defaults.minimum_average_monthly_wage),
            perfect_attendance_bonus=wage_conf.get(
                "perfect_attendance_bonus", defaults.perfect_attendance_bonus),
            deduction_rate=wage_conf.get("deduction_rate", defaults.deduction_rate),
        )


@dataclass
class UserWageResult:
    """1利用者の月額工賃"""
    user_id: str
    name: str
    attendance_days: int
    total_work_minutes: int
    base_wage: int
    skill_wage: int
    attendance_bonus: int
    total_wage: int
    deductions: int
    net_wage: int


@dataclass
class MonthlyWageResult:
    """1事業所の月額工賃"""
    facility_id: str
    year_month: str
    user_wages: list[UserWageResult] = field(default_factory=list)
    total_wage: int = 0               # 支給額の合計
    average_wage: int = 0
    meets_minimum_threshold: bool = False


class WageCalculator:
    """月次工賃計算エンジン"""

    def __init__(self, config: WageConfig | None = None):
        self.config = config or WageConfig()

    def calculate(
        self,
        facility_id: str,
        year_month: str,
        users: list[ServiceUser],
        attendance_map: dict[str, list[Attendance]],
        output_map: dict[str, list[ProductOutput]],
        activities: list[ProductActivity],
        expected_days: int,
    ) -> MonthlyWageResult:
        """全利用者の月額工賃を計算する。

        Args:
            expected_days: 当月の営業日数（皆勤判定に使う）
        """
        activity_map = {a.activity_id: a for a in activities}
        user_wages = []

        for user in users:
            if not user.is_active:
                continue
            present = [a for a in attendance_map.get(user.user_id, []) if a.is_present]
            if not present:
                continue
            outputs = output_map.get(user.user_id, [])
            user_wages.append(
                self.calculate_user(user, present, outputs, activity_map, expected_days)
            )

        total_wage = sum(w.net_wage for w in user_wages)
        average_wage = round_half_up(total_wage / len(user_wages)) if user_wages else 0

        return MonthlyWageResult(
            facility_id=facility_id,
            year_month=year_month,
            user_wages=user_wages,
            total_wage=total_wage,
            average_wage=average_wage,
            meets_minimum_threshold=average_wage >= self.config.minimum_average_monthly_wage,
        )

    def calculate_user(
        self,
        user: ServiceUser,
        present: list[Attendance],
        outputs: list[ProductOutput],
        activity_map: dict[str, ProductActivity],
        expected_days: int,
    ) -> UserWageResult:
        attendance_days = len(present)
        total_work_minutes = sum(o.work_minutes for o in outputs)

        base_wage = 0
        for output in outputs:
            activity = activity_map.get(output.activity_id)
            if activity is None:
                logger.warning(
                    "【要確認】作業種目不明 — %s の生産実績(%s)の作業ID '%s' が未登録です。",
                    user.user_id, output.date, output.activity_id,
                )
                continue
            base_wage += round_half_up(output.work_minutes / 60 * activity.hourly_rate)

        # 能力給は事業所ごとの設定項目（現状0円）
        skill_wage = 0

        attendance_bonus = (
            self.config.perfect_attendance_bonus if attendance_days >= expected_days else 0
        )

        total_wage = base_wage + skill_wage + attendance_bonus
        deductions = round_half_up(total_wage * self.config.deduction_rate)

        return UserWageResult(
            user_id=user.user_id,
            name=user.name,
            attendance_days=attendance_days,
            total_work_minutes=total_work_minutes,
            base_wage=base_wage,
            skill_wage=skill_wage,
            attendance_bonus=attendance_bonus,
            total_wage=total_wage,
            deductions=deductions,
            net_wage=total_wage - deductions,
        )
