# backend/wsgi.py
from delivery_ledger import create_app

app = create_app()
