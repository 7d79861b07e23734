# File: main.py
import uvicorn

from azurebox.config import get_settings
from server import create_app

settings = get_settings()
app = create_app(settings)


if __name__ == "__main__":
    # Port folgt der registrierten Redirect-URI (ohne Port: 80)
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.provider_config().listen_port,
        reload=False,
    )
