import os

import pytest
from dotenv import find_dotenv, load_dotenv

# Load .env as early as possible (before pytest_collection_modifyitems)
load_dotenv(find_dotenv(usecwd=True))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    user_id = os.getenv("AGENT_CHAT_USER_ID")
    for item in items:
        if "integration" in item.keywords and not user_id:
            item.add_marker(pytest.mark.skip(reason="AGENT_CHAT_USER_ID missing from environment/.env"))
