import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # Data files
    books_file: str = os.getenv("LIBRARY_BOOKS_FILE", "books.txt")
    members_file: str = os.getenv("LIBRARY_MEMBERS_FILE", "members.txt")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "WARNING").upper()

    # CLI output: plain | json | rich
    output_mode: str = os.getenv("LIB_CLI_OUTPUT", "plain")

    # Application
    app_name: str = os.getenv("APP_NAME", "City Library")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")


settings = Settings()
