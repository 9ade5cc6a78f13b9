"""
Factory d'application pour les entrypoints (photostore.asgi) et les tests.
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Optional

from fastapi import FastAPI
from photostore.context import ShopContext
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware, register_no_cache_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app(context: Optional[ShopContext] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base, sécurité, no-cache
      - gestionnaires d'exceptions
      - tous les routers (pricing, checkout, webhook, admin, health)
    Paramètres:
      context: ShopContext déjà construit (tests); sinon construit au démarrage par le lifespan.
    """
    app = FastAPI(title="PhotographI.nes API", lifespan=lifespan)
    app.state.context = context
    app.state.rate_limit_enabled = False
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
