from supabase import create_client, Client


def create_service_client(url: str, service_key: str) -> Client:
    """
    Client Supabase service-role (bypass RLS) pour les opérations serveur:
    table orders, bucket de livraison privé, lecture des utilisateurs (auth admin).
    Construit explicitement au démarrage puis injecté via ShopContext.
    """
    if not url:
        raise RuntimeError("SUPABASE_URL manquant pour create_service_client()")
    if not service_key:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour create_service_client()")
    return create_client(url, service_key)
