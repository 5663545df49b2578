# agenda/api/router.py
from fastapi import APIRouter
from agenda.api.routes import auth, users, requisiciones, catalogos, historial

api_router = APIRouter()
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(users.router, prefix="/usuarios", tags=["usuarios"])
api_router.include_router(requisiciones.router, prefix="/requisiciones", tags=["requisiciones"])
api_router.include_router(catalogos.router, prefix="/catalogos", tags=["catalogos"])
api_router.include_router(historial.router, prefix="/historial", tags=["historial"])
