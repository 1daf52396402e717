from pharmacy_portal.core.config import Settings, get_settings
