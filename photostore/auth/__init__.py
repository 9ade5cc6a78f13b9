"""
Module 'auth': identification de l'appelant (jeton Supabase) et contrôle admin.
"""
