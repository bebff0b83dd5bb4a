# pr_reviewers/initial_data.py

import logging

from pr_reviewers.core.security import create_admin_token
from pr_reviewers.core.settings import settings
from pr_reviewers.database import init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("PRService.InitialData")

def main() -> None:
    logger.info("Creating database tables...")
    init_db()
    token, expire = create_admin_token()
    logger.info(f"Admin identity '{settings.ADMIN_USER_ID}', token valid until {expire.isoformat()}:")
    print(token)
    logger.info("Finished initial data setup.")

if __name__ == "__main__":
    from dotenv import load_dotenv
    load_dotenv()

    main()
