# backend/wsgi.py
from bikeshop import create_app

app = create_app()
