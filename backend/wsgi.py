# backend/wsgi.py
from invoicedesk import create_app

app = create_app()
