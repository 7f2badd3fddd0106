"""
Basic Sign-In Example - Email code sign-in, token access, sign-out.

Usage:
    AUTHSYNC_PUBLISHABLE_KEY=pk_test_... python examples/basic_sign_in.py ada@example.com
"""

import asyncio
import logging
import sys

from authsync import AuthClient, EmailCode, VerificationRejected


async def main(email: str):
    client = AuthClient.from_env()

    session = await client.start()
    if session is not None:
        print(f"Resumed session {session.session_id} ({session.status.value})")
    else:
        pending = await client.sign_in(email, EmailCode())
        print(f"Code sent to {pending.identifier} ({pending.channel.value})")

        while session is None:
            code = input("Verification code: ").strip()
            try:
                session = await client.submit_verification(code)
            except VerificationRejected:
                print("Wrong code, try again")

        print(f"\nSigned in as {client.current_user().display_name}")
        print(f"Session ID: {session.session_id}")

    # Token for a backend call
    token = await client.current_token()
    print(f"\nToken: {token.value[:40]}...")
    print(f"Expires at: {token.expires_at.isoformat()}")

    # Sign out
    await client.sign_out()
    print("\nSigned out")

    await client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))
