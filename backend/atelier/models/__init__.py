from .auth import User, SessionToken
from .measurements import CustomerMeasurement
from .bespoke import BespokeOrder, BespokeStatusLog, ProductionTask
from .communications import Notification, EmailLog
from .activity import ActivityLog

__all__ = [
    'User', 'SessionToken',
    'CustomerMeasurement',
    'BespokeOrder', 'BespokeStatusLog', 'ProductionTask',
    'Notification', 'EmailLog',
    'ActivityLog',
]
