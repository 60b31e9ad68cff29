"""Entry point for running the API as a module."""
import uvicorn

from beer_machine.config import Settings, load_local_env_file
from beer_machine.logging import setup_logging

if __name__ == "__main__":
    load_local_env_file()
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)

    from beer_machine.api import app

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
