"""Notification email list passed to Jenkins builds."""

import re
from email.utils import parseaddr

from hook_common.models import Deploy

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_email(email: str) -> bool:
    """Validate email format."""
    return EMAIL_PATTERN.match(email) is not None


def notify_emails(deploy: Deploy, email_domain: str | None = None) -> str:
    """
    Collect the addresses to notify about a build, comma separated.

    The deployer and buddy are always included; commit authors only when
    the stage asks for it. Invalid addresses are dropped, and when
    email_domain is set only addresses in that domain (case-insensitive)
    are kept. Order of first appearance is preserved.
    """
    candidates = [deploy.user.email]
    if deploy.buddy:
        candidates.append(deploy.buddy.email)
    if deploy.stage.jenkins_email_committers:
        candidates.extend(deploy.commit_author_emails)

    emails: list[str] = []
    for candidate in candidates:
        if not candidate:
            continue
        _, address = parseaddr(candidate)
        if not validate_email(address):
            continue
        if email_domain:
            domain = address.rsplit("@", 1)[1]
            if domain.lower() != email_domain.lower():
                continue
        if address not in emails:
            emails.append(address)
    return ",".join(emails)
