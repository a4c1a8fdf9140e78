"""API routes."""

from litestar import Router
from litestar.di import Provide

from squad_health_server.api.admin import admin_router
from squad_health_server.api.coach import coach_router
from squad_health_server.api.doctor import doctor_router
from squad_health_server.api.health import health_router
from squad_health_server.api.messages import messages_router
from squad_health_server.api.notifications import notifications_router
from squad_health_server.api.player import player_router
from squad_health_server.api.realtime import notification_stream
from squad_health_server.core.auth import provide_current_user, provide_socket_id
from squad_health_server.core.config import settings
from squad_health_server.services.realtime import provide_publisher

# Role-scoped routers; guards live on each router
_v1_routers = [
    player_router,
    coach_router,
    doctor_router,
    notifications_router,
    messages_router,
    admin_router,
]

api_v1_router = Router(
    path=settings.api_prefix,
    route_handlers=_v1_routers,
    dependencies={
        "current_user": Provide(provide_current_user),
        "socket_id": Provide(provide_socket_id, sync_to_thread=False),
        "publisher": Provide(provide_publisher, sync_to_thread=False),
    },
)

# - health_router: /health - no auth needed, no version prefix
# - notification_stream: /ws/notifications - websocket, gateway auth
# - api_v1_router: /api/v1/* - role-guarded JSON endpoints
api_routers = [health_router, notification_stream, api_v1_router]

__all__ = ["api_routers"]
