from hydration.models.user import User
from hydration.models.push_subscription import PushSubscription
from hydration.models.water_log import IntakeType, WaterLog

__all__ = [
    "User",
    "PushSubscription",
    "IntakeType",
    "WaterLog",
]
