from starlette.requests import HTTPConnection

from pharmacy_portal.container import Container
from pharmacy_portal.services.productivity_service import ProductivityService


def get_container(connection: HTTPConnection) -> Container:
    return connection.app.state.container


def get_productivity_service(connection: HTTPConnection) -> ProductivityService:
    return get_container(connection).productivity_service
