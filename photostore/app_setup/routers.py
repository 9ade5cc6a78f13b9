"""
Registre central des routers (API v1, admin, health).
- API v1: pricing, checkout, payments (webhook Stripe)
- Admin: commandes (liste, statut, envoi des fichiers)
- Health: health_router
"""
from fastapi import FastAPI
from photostore.pricing import views as pricing_views
from photostore.orders import views as orders_views
from photostore.payments import views as payments_views
from photostore.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(pricing_views.router)
    app.include_router(orders_views.router)
    app.include_router(payments_views.router)
    # Admin
    app.include_router(orders_views.admin_router)
    # Health & monitoring
    app.include_router(health_router)
