import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from social.tube.pod.app.config import Settings
from social.tube.pod.errors import PodAccessError
from social.tube.pod.library import users
from social.tube.pod.model import Base
from social.tube.pod.model.base import create_database_engine
from social.tube.pod.model.clients import DEFAULT_GRANT_TYPES
from social.tube.pod.model.users import ROLE_ADMIN, ROLE_USER
from social.tube.pod.oauth import clients
from social.tube.pod.oauth.passwords import generate_secret

logger = logging.getLogger(__name__)


async def initDb(settings: Settings) -> None:
    engine = create_database_engine(settings.database_dsn)
    try:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()
    print("Schema created")


async def createClient(
    settings: Settings,
    name: str,
    client_id: Optional[str],
    client_secret: Optional[str],
    grant_types: str,
) -> None:
    client_id = client_id or clients.generate_client_id()
    client_secret = client_secret or clients.generate_client_secret()

    engine = create_database_engine(settings.database_dsn)
    database_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    try:
        async with database_session_maker() as database_session:
            await clients.register(
                database_session,
                client_id,
                client_secret,
                name=name,
                grant_types=grant_types,
            )
    finally:
        await engine.dispose()

    print(f"client_id: {client_id}")
    print(f"client_secret: {client_secret}")


async def createUser(settings: Settings, username: str, password: str, role: str) -> None:
    engine = create_database_engine(settings.database_dsn)
    database_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    try:
        async with database_session_maker() as database_session:
            user = await users.create(
                database_session,
                username,
                password,
                role=role,
                iterations=settings.password_hash_iterations,
            )
    finally:
        await engine.dispose()

    print(f"Created {user.role} {user.username} with id {user.id}")


async def genSecret() -> None:
    print(generate_secret(32))


async def realMain() -> None:
    parser = argparse.ArgumentParser(prog="tube-pod-util", description="Pod utilities")

    subparsers = parser.add_subparsers(dest="command", required=True)

    _ = subparsers.add_parser("init-db", help="Create missing database tables")
    _ = subparsers.add_parser("gen-secret", help="Generate a random secret")

    create_client = subparsers.add_parser(
        "create-client", help="Register an OAuth client and print its credentials"
    )
    create_client.add_argument("--name", default="", help="Display name of the client.")
    create_client.add_argument("--client-id", help="Use this client id instead of a generated one.")
    create_client.add_argument(
        "--client-secret", help="Use this secret instead of a generated one."
    )
    create_client.add_argument(
        "--grant-types",
        default=DEFAULT_GRANT_TYPES,
        help="Space-delimited grant types the client may use.",
    )

    create_user = subparsers.add_parser("create-user", help="Create a user")
    create_user.add_argument("username", help="The username of the new user.")
    create_user.add_argument("password", help="The password of the new user.")
    create_user.add_argument(
        "--role", choices=[ROLE_USER, ROLE_ADMIN], default=ROLE_USER, help="The user's role."
    )

    args = vars(parser.parse_args())
    command = args.get("command", None)

    if command == "gen-secret":
        await genSecret()
        return

    settings = Settings()  # type: ignore

    try:
        if command == "init-db":
            await initDb(settings)
        elif command == "create-client":
            await createClient(
                settings,
                args["name"],
                args.get("client_id"),
                args.get("client_secret"),
                args["grant_types"],
            )
        elif command == "create-user":
            await createUser(settings, args["username"], args["password"], args["role"])
    except PodAccessError as e:
        parser.exit(1, f"{parser.prog}: {e}\n")


def main() -> None:
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
