"""
Module 'mail': envoi transactionnel (Resend) et rendu des emails de livraison.
"""

from .mailer import ResendMailer
from .templates import render_delivery_email

__all__ = ["ResendMailer", "render_delivery_email"]
