from .auth import User, SessionToken, PasswordResetToken, CapabilityOverride
from .security import SecurityEvent
from .inventory import Bike
from .customers import Client
from .sales import Purchase
from .jobs import Job
from .settings import BusinessSettings

__all__ = [
    'User', 'SessionToken', 'PasswordResetToken', 'CapabilityOverride',
    'SecurityEvent',
    'Bike',
    'Client',
    'Purchase',
    'Job',
    'BusinessSettings',
]
