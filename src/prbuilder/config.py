import os
import dotenv
import logging

dotenv.load_dotenv()

GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN")
GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")
GITHUB_SERVER = os.environ.get("GITHUB_SERVER", "https://github.com")
GITHUB_WEBHOOK_SECRET = os.environ.get("GITHUB_WEBHOOK_SECRET")

OVERRIDE_LOGGING = logging.getLevelName(os.environ.get("OVERRIDE_LOGGING", "WARNING"))

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")

BOT_LOGIN = os.environ.get("BOT_LOGIN")

OK_TO_TEST_PHRASE = os.environ.get("OK_TO_TEST_PHRASE", r".*ok\W+to\W+test.*")

USE_COMMENTS = os.environ.get("USE_COMMENTS", "false") == "true"

POLL_CRON = os.environ.get("POLL_CRON", "*/5 * * * *")

HOOK_URL = os.environ.get("HOOK_URL")

STATUS_CONTEXT = os.environ.get("STATUS_CONTEXT", "prbuilder")

PROJECTS_FILE = os.environ.get("PROJECTS_FILE", "projects.yml")

STATE_DIR = os.environ.get("STATE_DIR", ".prbuilder")

DRY_RUN = os.environ.get("DRY_RUN", "false") == "true"
