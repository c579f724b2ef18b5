"""Environment-based configuration for devops-cli."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from dotenv import load_dotenv

from .errors import ConfigError

TOOL_DIR = Path(__file__).resolve().parent.parent.parent

DEFAULT_HOST = "https://dev.azure.com"
DEFAULT_API_VERSION = "7.1"


def load_env(path: Optional[str] = None) -> None:
    """Load .env from the tool directory, then ~/AGENTS.env (or ``path``).

    Variables already present in the environment are never overwritten.
    """
    load_dotenv(TOOL_DIR / ".env")
    env_path = path or os.environ.get("AGENTS_ENV_PATH", os.path.expanduser("~/AGENTS.env"))
    if os.path.exists(env_path):
        load_dotenv(env_path)


@dataclass(frozen=True)
class OrgConfig:
    org: str
    pat: str
    host: str = DEFAULT_HOST
    api_version: str = DEFAULT_API_VERSION

    @property
    def base_url(self) -> str:
        return f"{self.host}/{self.org}/_apis"

    def work_item_url(self, item_id: int) -> str:
        """Absolute reference URL used in relation links."""
        return f"{self.host}/{self.org}/_apis/wit/workItems/{item_id}"


@dataclass(frozen=True)
class Config(OrgConfig):
    project: str = ""

    @property
    def base_url(self) -> str:
        return f"{self.host}/{self.org}/{quote(self.project, safe='')}/_apis"


def _require(name: str, hint: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigError(f"{name} environment variable is not set. {hint}")
    return value


def get_org_config() -> OrgConfig:
    pat = _require("DEVOPS_CLI_PAT", "Set it to your Azure DevOps Personal Access Token.")
    org = _require("DEVOPS_CLI_ORG", "Set it to your Azure DevOps organization name.")
    return OrgConfig(
        org=org,
        pat=pat,
        host=os.environ.get("DEVOPS_CLI_BASE_URL", DEFAULT_HOST).rstrip("/"),
        api_version=os.environ.get("DEVOPS_CLI_API_VERSION", DEFAULT_API_VERSION),
    )


def get_config(project: Optional[str] = None) -> Config:
    org_config = get_org_config()
    project = project or os.environ.get("DEVOPS_CLI_PROJECT", "").strip()
    if not project:
        raise ConfigError("No project specified. Use --project flag or set DEVOPS_CLI_PROJECT.")
    return Config(
        org=org_config.org,
        pat=org_config.pat,
        host=org_config.host,
        api_version=org_config.api_version,
        project=project,
    )
