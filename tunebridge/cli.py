from __future__ import annotations

import argparse
import json
import threading
from typing import List, Optional

from colorama import Fore, Style, init as colorama_init
from dotenv import load_dotenv

from tunebridge.config import TransferSettings
from tunebridge.errors import AuthError, TransferError, ValidationError
from tunebridge.jobs import JobStatus, TransferJob
from tunebridge.launcher import BatchLauncher, BatchRequest, PlaylistSelection, TransferBatch
from tunebridge.session import TokenSession
from tunebridge.transfer_client import TransferClient
from tunebridge.utils.logging import setup_logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Transfer playlists between music services")
    p.add_argument("--from", dest="source", default="spotify", help="Source service (spotify, youtube, youtube-music)")
    p.add_argument("--to", dest="destination", help="Destination service")
    p.add_argument(
        "--playlist",
        dest="playlists",
        action="append",
        default=[],
        metavar="ID[=NAME]",
        help="Playlist to transfer; repeat for several. NAME becomes the new playlist name.",
    )
    p.add_argument("--token", help="App auth token (defaults to TUNEBRIDGE_TOKEN)")
    p.add_argument(
        "--connected",
        help="Comma-separated connected services (defaults to TUNEBRIDGE_CONNECTED, else source and destination)",
    )
    p.add_argument("--concurrency", type=int, help="Playlists transferred at once (default 1, in order)")
    p.add_argument("--poll-interval", type=float, help="Seconds between status polls")
    p.add_argument("--last", action="store_true", help="Show the most recent transfer known to the server and exit")
    return p


def parse_playlist_arg(value: str) -> PlaylistSelection:
    playlist_id, _, name = value.partition("=")
    return PlaylistSelection(id=playlist_id.strip(), name=name.strip())


def _build_session(args: argparse.Namespace) -> TokenSession:
    env_session = TokenSession.from_env()
    token = args.token or env_session.token
    if args.connected:
        connected: List[str] = [c.strip() for c in args.connected.split(",") if c.strip()]
        return TokenSession(token, connected)
    if env_session.connected:
        return TokenSession(token, env_session.connected)
    return TokenSession(token, [args.source, args.destination or ""])


def _status_colour(job: TransferJob) -> str:
    if job.status == JobStatus.COMPLETED:
        return Fore.GREEN
    if job.status == JobStatus.FAILED:
        return Fore.RED
    return Fore.CYAN


def _print_summary(batch: TransferBatch) -> None:
    print()
    for job in batch.jobs:
        print(_status_colour(job) + f"  {job.status.value:<10} {job.playlist_name}: {job.message}" + Style.RESET_ALL)
    ok, failed = batch.counts()
    colour = Fore.GREEN if failed == 0 else Fore.YELLOW
    print(colour + f"\nFinished: {ok} transferred, {failed} failed." + Style.RESET_ALL)


def run_cli(args: Optional[argparse.Namespace] = None) -> int:
    load_dotenv()
    colorama_init(autoreset=True)
    logger = setup_logger()
    parser = build_parser()
    if args is None:
        args = parser.parse_args()
    settings = TransferSettings.from_env()
    if args.concurrency:
        settings.concurrency = max(1, args.concurrency)
    if args.poll_interval is not None:
        settings.poll_interval_s = max(0.0, args.poll_interval)
    session = _build_session(args)

    if args.last:
        token = session.get_auth_token()
        if not token:
            print(Fore.RED + "Missing or expired auth token. Please login first." + Style.RESET_ALL)
            return 2
        try:
            last = TransferClient(token, settings).get_last_transfer()
        except TransferError as e:
            print(Fore.RED + f"Could not fetch last transfer: {e}" + Style.RESET_ALL)
            return 1
        print(json.dumps(last, indent=2) if last else "No transfer yet.")
        return 0

    if not args.destination:
        parser.error("--to is required")

    request = BatchRequest(
        source_provider=args.source,
        destination_provider=args.destination,
        playlists=[parse_playlist_arg(v) for v in args.playlists if v.strip()],
    )
    launcher = BatchLauncher(session, settings)
    print_lock = threading.Lock()
    last_line = {"value": ""}
    batch_ref: dict = {}

    def on_change(_job: TransferJob) -> None:
        progress = batch_ref["batch"].progress() if batch_ref.get("batch") else None
        if progress is None:
            return
        line = f"[{progress.overall_percent:3d}%] {progress.completed_count}/{progress.total} done"
        if progress.active_job_message:
            line += f" · {progress.active_job_message}"
        with print_lock:
            if line != last_line["value"]:
                last_line["value"] = line
                print(Fore.GREEN + line + Style.RESET_ALL)

    try:
        batch = launcher.launch(request, background=True, listener=on_change)
    except (ValidationError, AuthError) as e:
        print(Fore.RED + str(e) + Style.RESET_ALL)
        return 2
    batch_ref["batch"] = batch
    try:
        batch.wait()
    except KeyboardInterrupt:
        logger.warning("Interrupted; cancelling transfers")
        batch.cancel()
    _print_summary(batch)
    progress = batch.progress()
    return 0 if progress.failed_count == 0 and progress.completed_count == progress.total else 1
