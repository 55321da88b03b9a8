"""
Helpers for environment-specific settings.

Each deployment environment reads its variables from its own ``.env.*`` file
at the repository root via python-decouple, falling back to the process
environment when the file is absent.
"""

from pathlib import Path

from decouple import Config, RepositoryEnv
from decouple import config as default_config

ENV_FILES = {
    "development": ".env.dev",
    "production": ".env.production",
}

REPOSITORY_ROOT = Path(__file__).resolve().parent.parent.parent.parent


def load_environment_config(environment):
    """
    Return a decouple config callable for ``environment``.

    Args:
        environment (str): 'development' or 'production'

    Returns:
        Config bound to the environment's .env file, or decouple's default
        config (process environment and a plain ``.env``) if the file is missing
    """
    env_file_name = ENV_FILES.get(environment, ".env")
    env_file_path = REPOSITORY_ROOT / env_file_name

    if env_file_path.exists():
        print(f"✓ Loading environment: {environment} from {env_file_name}")
        return Config(RepositoryEnv(env_file_path))

    print(f"✗ Warning: {env_file_name} not found, using default config")
    return default_config
