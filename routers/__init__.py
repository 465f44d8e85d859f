from .assets_api import router as assets_api_router
from .assets_ui import router as assets_ui_router
from .borrowers_api import router as borrowers_api_router
from .borrowers_ui import router as borrowers_ui_router
from .loans_api import router as loans_api_router
from .loans_ui import router as loans_ui_router

ALL_ROUTERS = (
    assets_api_router,
    borrowers_api_router,
    loans_api_router,
    assets_ui_router,
    borrowers_ui_router,
    loans_ui_router,
)
