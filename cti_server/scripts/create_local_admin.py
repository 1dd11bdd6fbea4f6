"""
Script to provision a local admin for development and print a bearer token
the local token verifier accepts.
"""

import asyncio
import argparse
from typing import Optional

from sqlmodel import select

from cti_server.core.config import Settings, get_settings
from cti_server.core.database import async_session_factory, get_session_context, init_db
from cti_server.core.identity import issue_dev_token
from cti_server.models.organization import Organization
from cti_server.models.user import User
from cti_server.services.lifecycle import claim_version
from cti_shared.schemas.common import Role, UserStatus


async def create_admin(
    email: str,
    subject: str,
    *,
    session_factory=None,
    settings: Optional[Settings] = None,
) -> tuple[User, str]:
    """Create (or promote) ``subject`` as admin; returns the user and a dev token."""
    settings = settings or get_settings()
    email = email.lower()

    async with get_session_context(session_factory or async_session_factory) as session:
        # 1. Find or create the user
        result = await session.execute(select(User).where(User.external_subject_id == subject))
        user = result.scalar_one_or_none()
        if not user:
            user = User(external_subject_id=subject, email=email, first_name=email.split("@")[0])
            session.add(user)
            print(f"Created user: {email}")
        else:
            print(f"User {email} already exists.")

        # 2. Attach to the default organization if unassigned
        org = None
        if user.organization_id:
            org = await session.get(Organization, user.organization_id)
        changed = org is None or user.role != Role.ADMIN.value
        if org is None:
            result = await session.execute(
                select(Organization).where(Organization.name == settings.default_org_name)
            )
            org = result.scalars().first()
            if not org:
                org = Organization(name=settings.default_org_name)
                session.add(org)
                print("Created default organization.")
            user.organization_id = org.id

        # 3. Membership changes bump the version of an existing organization.
        # Promotion to admin never strands an organization without one.
        if changed and org not in session.new:
            await claim_version(org, session)

        user.role = Role.ADMIN.value
        user.status = UserStatus.ACTIVE.value
        session.add(user)

    token = issue_dev_token(subject, email=email, settings=settings)
    return user, token


async def main(email: str, subject: str, create_tables: bool) -> None:
    if create_tables:
        await init_db()
    user, token = await create_admin(email, subject)
    print(f"{email} is admin of organization {user.organization_id}.")
    print(f"Authorization: Bearer {token}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--subject", default=None, help="Identity subject (defaults to the email)")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")

    args = parser.parse_args()

    asyncio.run(main(args.email, args.subject or args.email, args.create_tables))
