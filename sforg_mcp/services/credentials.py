"""Flat credential store: one record per org alias in a JSON file."""
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import pydantic
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from sforg_mcp import config
from sforg_mcp.exceptions import NoOrgConnectedError, OrgNotFoundError

logger = logging.getLogger(__name__)


class OrgCredentials(BaseModel):
    """Tokens and identity for one connected org. Stored with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: Optional[str] = None
    instance_url: str
    login_url: str = config.DEFAULT_LOGIN_URL
    username: str = ""
    org_id: str = ""
    display_name: str = ""
    authenticated_at: str = ""

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)

    def summary(self, alias: str) -> dict:
        return {
            "alias": alias,
            "username": self.username,
            "instanceUrl": self.instance_url,
            "orgId": self.org_id,
            "authenticatedAt": self.authenticated_at,
        }


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def load_orgs() -> Dict[str, OrgCredentials]:
    """Read every stored org. A missing or unreadable file is an empty store."""
    path = config.CREDS_FILE
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable credentials file %s: %s", path, e)
        return {}
    if not isinstance(raw, dict):
        logger.warning("Ignoring credentials file %s: top level is not an object", path)
        return {}

    orgs = {}
    for alias, record in raw.items():
        try:
            orgs[alias] = OrgCredentials.model_validate(record)
        except pydantic.ValidationError as e:
            logger.warning("Skipping malformed credentials for '%s': %s", alias, e)
    return orgs


def save_orgs(orgs: Dict[str, OrgCredentials]) -> None:
    path = config.CREDS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {alias: creds.to_json() for alias, creds in orgs.items()}
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def save_org(alias: str, creds: OrgCredentials) -> None:
    orgs = load_orgs()
    orgs[alias] = creds
    save_orgs(orgs)
    logger.info("Saved credentials for '%s' (%s)", alias, creds.username or creds.instance_url)


def remove_org(alias: str) -> bool:
    orgs = load_orgs()
    if alias not in orgs:
        return False
    del orgs[alias]
    save_orgs(orgs)
    logger.info("Removed credentials for '%s'", alias)
    return True


def get_org(alias: Optional[str] = None) -> Tuple[str, OrgCredentials]:
    """Resolve an org: the given alias, else DEFAULT_ORG, else the first stored org.

    An explicit alias that is not stored is an error rather than a silent
    switch to another org.
    """
    orgs = load_orgs()
    if alias:
        if alias in orgs:
            return alias, orgs[alias]
        raise OrgNotFoundError(alias)

    if config.DEFAULT_ORG and config.DEFAULT_ORG in orgs:
        return config.DEFAULT_ORG, orgs[config.DEFAULT_ORG]
    if not orgs:
        raise NoOrgConnectedError()
    return next(iter(orgs.items()))


def update_tokens(alias: str, access_token: str, instance_url: Optional[str] = None) -> None:
    """Write a refreshed token back to the stored record, if it still exists."""
    orgs = load_orgs()
    creds = orgs.get(alias)
    if creds is None:
        return
    creds.access_token = access_token
    if instance_url:
        creds.instance_url = instance_url
    save_orgs(orgs)
