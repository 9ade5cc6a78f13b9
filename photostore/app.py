# module photostore.app
from photostore.app_setup.factory import create_app

# App globale (le contexte Supabase/Stripe/Resend est construit au démarrage par le lifespan)
app = create_app()
