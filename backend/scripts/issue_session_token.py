#!/usr/bin/env python
"""Issue a session token for a tenant user.

There is no login endpoint in this service: sign-in happens upstream and
hands the claims over. This script covers local setup and manual testing by
creating the session row and printing the signed token.

Usage:
    python backend/scripts/issue_session_token.py

Environment Variables:
    DATABASE_URL: Database connection string
    JWT_SECRET: Token signing secret (required)
    TENANT_ID: Tenant the session belongs to (required)
    USER_ID: User the session belongs to (required)
    USER_ROLE: Role claim (default: admin)
    USER_NAME: Display name claim (optional)
"""

import asyncio
import os
import sys
from pathlib import Path

# Add backend/src to Python path
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from auth.device import DeviceMeta
from auth.roles import parse_role
from auth.schemas import SessionClaims
from dependencies import build_services


async def issue(tenant_id: str, user_id: str, role: str, name: str | None) -> str:
    services = build_services()
    claims = SessionClaims(user_id=user_id, tenant_id=tenant_id, role=role, name=name)
    return await services.token_service.create_token(
        claims,
        device_meta=DeviceMeta(user_agent="issue_session_token.py", ip_address=None),
    )


def main():
    tenant_id = os.getenv("TENANT_ID")
    user_id = os.getenv("USER_ID")
    if not tenant_id or not user_id:
        print("ERROR: TENANT_ID and USER_ID environment variables are required")
        print("Example: TENANT_ID=tenant-a USER_ID=user-1 python issue_session_token.py")
        sys.exit(1)

    role = os.getenv("USER_ROLE", "admin")
    if parse_role(role) is None:
        print(f"ERROR: Unknown role: {role}")
        sys.exit(1)

    token = asyncio.run(issue(tenant_id, user_id, role, os.getenv("USER_NAME")))

    print("SUCCESS: Session created")
    print(f"  Tenant: {tenant_id}")
    print(f"  User:   {user_id}")
    print(f"  Role:   {role}")
    print(f"  Token:  {token}")


if __name__ == "__main__":
    main()
