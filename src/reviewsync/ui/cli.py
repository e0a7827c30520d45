# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from reviewsync.app import (
    Runtime,
    add_client,
    create_business,
    disconnect_provider,
    finish_connection,
    list_client_reviews,
    start_connection,
    submit_internal_review,
    sync_google_reviews,
    sync_xero_clients,
)
from reviewsync.config import configure_logging, optional_env
from reviewsync.domain.clients import ClientOverview
from reviewsync.domain.errors import SyncError
from reviewsync.domain.model import ProviderKind, Sentiment

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

log = logging.getLogger(__name__)

USER_ID_ENV = "REVIEWSYNC_USER_ID"

type Handler = Callable[[Runtime, argparse.Namespace], tuple[object, bool]]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile Xero clients and Google reviews")
    parser.add_argument(
        "--user-id",
        type=str,
        default=optional_env(USER_ID_ENV),
        help=f"Acting user id (defaults to ${USER_ID_ENV})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    business = subparsers.add_parser("business", help="Business management commands")
    business_sub = business.add_subparsers(dest="subcommand", required=True)
    business_create = business_sub.add_parser("create", help="Create a business")
    business_create.add_argument("--display-name", type=str, required=True)
    business_create.add_argument("--place-id", type=str, help="Google place id")
    business_create.add_argument("--review-link", type=str, help="Google review link")

    client = subparsers.add_parser("client", help="Client management commands")
    client_sub = client.add_subparsers(dest="subcommand", required=True)
    client_add = client_sub.add_parser("add", help="Add a client by hand")
    client_add.add_argument("--business-id", type=str, required=True)
    client_add.add_argument("--name", type=str, required=True)
    client_add.add_argument("--email", type=str)
    client_add.add_argument("--phone", type=str)
    client_add.add_argument("--review", type=str, help="Review text the client already gave")

    clients = subparsers.add_parser("clients", help="Client listing commands")
    clients_sub = clients.add_subparsers(dest="subcommand", required=True)
    clients_list = clients_sub.add_parser("list", help="List clients with their review")
    clients_list.add_argument("--business-id", type=str, required=True)

    review = subparsers.add_parser("review", help="Internal review commands")
    review_sub = review.add_subparsers(dest="subcommand", required=True)
    review_submit = review_sub.add_parser("submit", help="Record a client's own review")
    review_submit.add_argument("--business-id", type=str, required=True)
    review_submit.add_argument("--client-id", type=str, required=True)
    review_submit.add_argument(
        "--sentiment", choices=[Sentiment.GOOD.value, Sentiment.BAD.value], required=True
    )
    review_submit.add_argument("--text", type=str, required=True)
    review_submit.add_argument("--stars", type=float, help="Star rating from 0 to 5")

    connect = subparsers.add_parser("connect", help="Provider connection commands")
    connect_sub = connect.add_subparsers(dest="subcommand", required=True)
    providers = [kind.value for kind in ProviderKind]
    connect_start = connect_sub.add_parser("start", help="Print the provider authorise URL")
    connect_start.add_argument("--business-id", type=str, required=True)
    connect_start.add_argument("--provider", choices=providers, required=True)
    connect_start.add_argument("--return-to", type=str, help="Path to return to afterwards")
    connect_finish = connect_sub.add_parser("finish", help="Complete the OAuth callback")
    connect_finish.add_argument("--provider", choices=providers, required=True)
    connect_finish.add_argument("--state", type=str, required=True)
    connect_finish.add_argument("--code", type=str, required=True)
    connect_disconnect = connect_sub.add_parser("disconnect", help="Disconnect a provider")
    connect_disconnect.add_argument("--business-id", type=str, required=True)
    connect_disconnect.add_argument("--provider", choices=providers, required=True)

    sync = subparsers.add_parser("sync", help="Reconciliation runs")
    sync_sub = sync.add_subparsers(dest="subcommand", required=True)
    sync_xero = sync_sub.add_parser("xero", help="Import invoiced Xero customers")
    sync_xero.add_argument("--business-id", type=str, required=True)
    sync_xero.add_argument("--since", type=str, help="Invoice date lower bound (YYYY-MM-DD)")
    sync_xero.add_argument("--tenant-id", type=str)
    sync_xero.add_argument("--force-refresh", action="store_true")
    sync_google = sync_sub.add_parser("google", help="Import Google reviews")
    sync_google.add_argument("--business-id", type=str, required=True)
    sync_google.add_argument("--tenant-id", type=str)
    sync_google.add_argument("--force-refresh", action="store_true")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value}") from exc


def _require_user(args: argparse.Namespace) -> str:
    user_id = (args.user_id or "").strip()
    if not user_id:
        raise ValueError(f"Missing --user-id (or set {USER_ID_ENV})")
    return user_id


def _business_create(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    business = create_business(
        runtime,
        user_id=_require_user(args),
        display_name=args.display_name,
        google_place_id=args.place_id,
        google_review_link=args.review_link,
    )
    return {
        "id": str(business.id),
        "display_name": business.display_name,
        "slug": business.slug,
        "google_place_id": business.google_place_id,
    }, True


def _client_add(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    client = add_client(
        runtime,
        user_id=_require_user(args),
        business_id=_parse_uuid(args.business_id),
        display_name=args.name,
        email=args.email,
        phone=args.phone,
        initial_review=args.review,
    )
    return ClientOverview(client=client, review=None).to_dict(), True


def _clients_list(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    overviews = list_client_reviews(
        runtime, user_id=_require_user(args), business_id=_parse_uuid(args.business_id)
    )
    return [overview.to_dict() for overview in overviews], True


def _review_submit(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    review = submit_internal_review(
        runtime,
        user_id=_require_user(args),
        business_id=_parse_uuid(args.business_id),
        client_id=_parse_uuid(args.client_id),
        sentiment=Sentiment(args.sentiment),
        text=args.text,
        stars=args.stars,
    )
    return {
        "id": str(review.id),
        "client_id": str(review.client_id),
        "primary_source": review.primary_source.value,
        "stars": review.stars,
        "happy": review.happy,
    }, True


def _connect_start(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    started = start_connection(
        runtime,
        user_id=_require_user(args),
        business_id=_parse_uuid(args.business_id),
        provider=ProviderKind(args.provider),
        return_to=args.return_to,
    )
    return {"authorize_url": started.authorize_url, "state": started.state}, True


def _connect_finish(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    outcome = finish_connection(
        runtime, provider=ProviderKind(args.provider), state=args.state, code=args.code
    )
    return outcome.to_dict(), True


def _connect_disconnect(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    changed = disconnect_provider(
        runtime,
        user_id=_require_user(args),
        business_id=_parse_uuid(args.business_id),
        provider=ProviderKind(args.provider),
    )
    return {"provider": args.provider, "disconnected": changed}, True


def _sync_xero(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    result = sync_xero_clients(
        runtime,
        user_id=_require_user(args),
        business_id=_parse_uuid(args.business_id),
        since=_parse_date(args.since),
        tenant_id=args.tenant_id,
        force_refresh=args.force_refresh,
    )
    return result.to_dict(), result.ok


def _sync_google(runtime: Runtime, args: argparse.Namespace) -> tuple[object, bool]:
    result = sync_google_reviews(
        runtime,
        user_id=_require_user(args),
        business_id=_parse_uuid(args.business_id),
        tenant_id=args.tenant_id,
        force_refresh=args.force_refresh,
    )
    return result.to_dict(), result.ok


HANDLERS: dict[tuple[str, str], Handler] = {
    ("business", "create"): _business_create,
    ("client", "add"): _client_add,
    ("clients", "list"): _clients_list,
    ("review", "submit"): _review_submit,
    ("connect", "start"): _connect_start,
    ("connect", "finish"): _connect_finish,
    ("connect", "disconnect"): _connect_disconnect,
    ("sync", "xero"): _sync_xero,
    ("sync", "google"): _sync_google,
}


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        handler = HANDLERS[(parsed_args.command, parsed_args.subcommand)]
    except (ValueError, KeyError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        with Runtime.from_env() as runtime:
            payload, ok = handler(runtime, parsed_args)
    except ValueError as exc:
        log.error(f"Invalid input: {exc}")  # noqa: TRY400
        sys.exit(2)
    except SyncError as exc:
        log.error(f"{exc.code}: {exc.message}")  # noqa: TRY400
        _emit({"error": exc.to_dict()})
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)

    _emit(payload)
    if not ok:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
