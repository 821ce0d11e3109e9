from mentor.app import create_app
from mentor.config import load_settings
from mentor.log import setup_logging

# raises MissingCredential when IO_API_KEY is unset, so the server never starts without it
settings = load_settings()
setup_logging(settings.log_level, settings.log_format)

app = create_app(settings)
