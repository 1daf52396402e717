# Import all models here for metadata discovery
from pharmacy_portal.db.base import Base
from pharmacy_portal.models.user import User, UserRole
from pharmacy_portal.models.pac import Pac
from pharmacy_portal.models.wellca import WellcaEntry, ServiceType
from pharmacy_portal.models.audit_log import AuditLog
