import os
import warnings

# Ignore warnings from fanlive.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="fanlive.shared.*")

# Set test environment variables before fanlive config is imported
os.environ.update({"DEMO_MODE": "true", "DEBUG": "false"})

# Import fixtures so they are available to all tests
from tests.fixtures.live_fixtures import *  # noqa: E402, F403
from tests.fixtures.redis_fixtures import *  # noqa: E402, F403
from tests.fixtures.fake_redis import *  # noqa: E402, F403
