"""Commerce FastAPI application.

Processes commands synchronously over HTTP.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → in-memory adapters, sync processing
#   - "production" → postgres + redis, async event processing
from commerce.api import create_app
from commerce.domain import commerce

commerce.init()

app = create_app()
