"""
Portail d'enchères: connexion challenge–réponse et inscription avec paiement.
Service FastAPI jouant le rôle du client navigateur face à l'API marketplace amont.
"""
