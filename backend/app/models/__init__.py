from app.models.user import User
from app.models.drug import Drug
from app.models.scan_event import ScanEvent
from app.models.alert import Alert

__all__ = ["User", "Drug", "ScanEvent", "Alert"]
