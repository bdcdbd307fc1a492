import os

from dotenv import load_dotenv

ENV_LOADED = False


def load_env():
    """
    Load the dotenv file named by ENV_FILE (default `.env`), once per process.
    Variables already present in the environment win.
    """
    global ENV_LOADED
    if ENV_LOADED:
        return

    env_file = os.environ.get("ENV_FILE", ".env")

    # In Docker/K8s the variables are injected directly and the file is absent
    if os.path.exists(env_file):
        load_dotenv(env_file, encoding="utf-8", override=False)

    ENV_LOADED = True
