from pharmacy_portal.logs.server_log import api_logger
from pharmacy_portal.logs.debug_log import debug_logger
