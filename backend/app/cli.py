"""Playback session from the command line.

Resolves the visitor identity, then records progress for one title against
the progress API until interrupted (or ``--seconds`` elapse)::

    cinestream login <user-id>
    cinestream watch tv 1399 --season 1 --episode 2
    cinestream whoami
"""
import argparse
import asyncio
import logging
import sys
from typing import Callable

from app.config import get_settings
from app.models.progress import MediaType
from app.services.identity import IdentityResolver, default_resolver
from app.services.progress_client import ProgressApiClient
from app.services.progress_store import ProgressStore
from app.services.recorder import ContentKey, ProgressRecorder, RecorderState, ResumeOffer, format_position

logger = logging.getLogger(__name__)


def ask_resume(offer: ResumeOffer) -> bool:
    answer = input(f"Resume from {offer.describe()}? [Y/n] ").strip().lower()
    return answer in ("", "y", "yes")


async def watch(
    store: ProgressStore,
    resolver: IdentityResolver,
    content: ContentKey,
    *,
    duration: float | None = None,
    resume: bool | None = None,
    seconds: float | None = None,
    ask: Callable[[ResumeOffer], bool] = ask_resume,
    **recorder_options,
) -> float:
    """Play one title and return the position written by the final flush.

    ``resume`` answers the resume prompt up front; when None the viewer is asked.
    """
    identity = resolver.resolve()
    async with ProgressRecorder(store, identity, content, duration, **recorder_options) as recorder:
        if recorder.state == RecorderState.resume_prompt:
            choice = resume if resume is not None else ask(recorder.resume_offer)
            if choice:
                await recorder.resume()
            else:
                await recorder.start_over()
        logger.info(f"Playing {content} from {format_position(recorder.timestamp)} as {identity.kind}")
        if seconds is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(seconds)
    return recorder.timestamp


async def _run_watch(args: argparse.Namespace, resolver: IdentityResolver) -> float:
    client = ProgressApiClient(args.api_url or get_settings().api_base_url)
    content = ContentKey(MediaType(args.media_type), args.content_id, args.season, args.episode)
    try:
        return await watch(
            client, resolver, content,
            duration=args.duration, resume=args.resume, seconds=args.seconds,
        )
    finally:
        await client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cinestream", description="CineStream playback session")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("whoami", help="Show the identity progress is saved under")
    login = sub.add_parser("login", help="Save progress under an account from now on")
    login.add_argument("user_id")
    sub.add_parser("logout", help="Go back to the guest identity")

    watch_cmd = sub.add_parser("watch", help="Play a title and record progress")
    watch_cmd.add_argument("media_type", choices=[m.value for m in MediaType])
    watch_cmd.add_argument("content_id", type=int)
    watch_cmd.add_argument("--season", type=int)
    watch_cmd.add_argument("--episode", type=int)
    watch_cmd.add_argument("--duration", type=float, help="Length in seconds, if known")
    watch_cmd.add_argument("--seconds", type=float, help="Stop after this many seconds of play")
    watch_cmd.add_argument("--api-url", help="Progress API base URL")
    choice = watch_cmd.add_mutually_exclusive_group()
    choice.add_argument("--resume", dest="resume", action="store_true", default=None)
    choice.add_argument("--start-over", dest="resume", action="store_false")
    return parser


def _describe(identity) -> str:
    return f"{identity.kind}: {identity.user_id or identity.session_id}"


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    resolver = default_resolver()

    if args.command == "whoami":
        print(_describe(resolver.resolve()))
    elif args.command == "login":
        print(_describe(resolver.login(args.user_id)))
    elif args.command == "logout":
        print(_describe(resolver.logout()))
    elif args.command == "watch":
        try:
            position = asyncio.run(_run_watch(args, resolver))
        except KeyboardInterrupt:
            print("Stopped")
            return 0
        print(f"Saved position {format_position(position)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
