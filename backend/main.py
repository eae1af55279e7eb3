"""
Main FastAPI application entry point
"""
from boost_guard.core.config import get_settings
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.main import create_app

LoggingConfig.configure()

app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, reload=False)
