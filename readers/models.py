"""入力エンティティ定義

データ提供元（Excelブック等）から読み取った、1事業所×1ヶ月分の参照データ。
計算中は変更しない。IDはすべて業務ID（事業所ID・利用者ID等）で持つ。
"""

from dataclasses import dataclass
from datetime import date


# 出席区分
ATTENDANCE_TYPES = {
    "present",          # 出席
    "absent",           # 欠席
    "absent_notified",  # 欠席(連絡あり)
    "holiday",          # 祝日
    "leave",            # 休暇
}

# 送迎区分 → 片道回数
PICKUP_TRIPS = {
    "none": 0,          # なし
    "pickup_only": 1,   # 迎えのみ
    "dropoff_only": 1,  # 送りのみ
    "both": 2,          # 送迎
}

GENDERS = {"male", "female", "other"}


@dataclass
class Facility:
    """事業所"""
    facility_id: str
    name: str
    facility_number: str          # 事業所番号（10桁）
    area_grade: int               # 地域区分（1〜7級地、0=その他）
    reward_structure: str         # 報酬体系（I〜VI）
    capacity: int                 # 定員
    service_type_code: str        # サービス種別コード
    average_monthly_wage: int | None = None  # 平均工賃月額（報酬体系Iで使用）
    insurer_number: str = ""      # 保険者番号
    corporate_name: str = ""
    address: str = ""
    postal_code: str = ""
    phone: str = ""


@dataclass
class ServiceUser:
    """利用者"""
    user_id: str
    name: str
    name_kana: str
    recipient_number: str         # 受給者証番号（10桁）
    date_of_birth: date
    gender: str                   # male / female / other
    copayment_limit: int          # 自己負担上限月額
    is_active: bool = True
    facility_id: str = ""


@dataclass
class Attendance:
    """1利用者×1日の出欠"""
    user_id: str
    date: date
    attendance_type: str
    pickup_type: str = "none"
    meal_provided: bool = False
    clock_in: str | None = None   # HH:MM
    clock_out: str | None = None
    break_minutes: int = 0

    @property
    def is_present(self) -> bool:
        return self.attendance_type == "present"

    @property
    def pickup_trips(self) -> int:
        """送迎の片道回数"""
        return PICKUP_TRIPS.get(self.pickup_type, 0)


@dataclass
class ProductActivity:
    """生産活動（作業種目）"""
    activity_id: str
    name: str
    hourly_rate: int              # 作業単価（円/時間）
    is_active: bool = True


@dataclass
class ProductOutput:
    """1利用者×1日×1作業の生産実績"""
    user_id: str
    activity_id: str
    date: date
    work_minutes: int
    quantity: int | None = None


@dataclass
class ServiceCode:
    """サービスコードマスタの1件"""
    code: str                     # 6桁
    name: str
    units: int
    service_type: str
    valid_from: date
    valid_to: date | None = None
    is_addition: bool = False

    def is_valid_on(self, d: date) -> bool:
        return self.valid_from <= d and (self.valid_to is None or self.valid_to >= d)
