"""HTTP transport for the Azure DevOps REST API."""

import base64
import json
import logging
from typing import Any, Optional

import requests

from .config import OrgConfig
from .errors import ApiError, Forbidden, NotFound, TransportError, Unauthorized

log = logging.getLogger(__name__)

JSON_PATCH = "application/json-patch+json"


class DevOpsClient:
    """Client for the Azure DevOps REST API.

    Scoped to a project or to the whole organization depending on the
    config it is built from.
    """

    def __init__(self, config: OrgConfig):
        self.config = config
        self.base_url = config.base_url
        self.api_version = config.api_version
        token = base64.b64encode(f":{config.pat}".encode("utf-8")).decode("ascii")
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Basic {token}",
            "Accept": "application/json",
        })

    def execute(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        content_type: str = "application/json",
        api_version: Optional[str] = None,
    ) -> Any:
        """Make an API request and return the parsed JSON body.

        Any non-2xx status raises; nothing is retried.
        """
        separator = "&" if "?" in path else "?"
        url = f"{self.base_url}{path}{separator}api-version={api_version or self.api_version}"
        data = json.dumps(body) if body is not None else None
        log.debug("%s %s", method, path)

        try:
            response = self.session.request(
                method=method,
                url=url,
                data=data,
                headers={"Content-Type": content_type},
                timeout=30,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error: {e}")

        status = response.status_code
        if status == 401:
            raise Unauthorized("401 Unauthorized. Check DEVOPS_CLI_PAT.", status)
        if status == 403:
            raise Forbidden("403 Forbidden. PAT lacks required permissions.", status)
        if status == 404:
            raise NotFound("404 Not Found. Check org/project/path.", status)
        if status < 200 or status >= 300:
            raise ApiError(f"API returned {status}: {response.text}", status)

        try:
            return response.json()
        except ValueError:
            raise TransportError(f"Failed to parse JSON response: {response.text}")
