"""LabelTimer - Alarm debug entry point.

Rings an alarm or schedules a notification series from the command line,
to check sounds, vibration and auto-stop by hand.
"""

import argparse
import logging
import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from labeltimer.core.alarm_player import AlarmPlayer, PlaybackError
from labeltimer.core.notifications import (
    LocalNotificationCenter,
    NotificationRequest,
    NotificationScheduler,
)
from labeltimer.core.repeat_mode import RepeatMode
from labeltimer.core.scheduler import ThreadScheduler
from labeltimer.core.settings import AlarmSettings, SettingsError, load_settings
from labeltimer.core.sounds import AlarmSound

logger = logging.getLogger("labeltimer")

DEBUG_PREFIX = "debug-"


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if debug else logging.INFO
    format_str = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt="%H:%M:%S",
    )
    # Reduce noise from libraries
    logging.getLogger("pygame").setLevel(logging.WARNING)


def run_ring(
    player: AlarmPlayer,
    sound: str,
    repeat_mode: RepeatMode,
    vibrate: bool,
    seconds: float,
    stop_event: threading.Event | None = None,
) -> int:
    """Ring one alarm for `seconds`, then stop it.

    Returns:
        Process exit code.
    """
    alarm_id = f"{DEBUG_PREFIX}ring"
    try:
        player.start_sound(alarm_id, sound, repeat_mode)
    except PlaybackError as e:
        logger.error("Could not ring '%s': %s", sound, e)
        return 1

    if vibrate:
        player.start_vibration(alarm_id)

    stop_event = stop_event or threading.Event()
    try:
        stop_event.wait(seconds)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        player.stop(alarm_id)
    return 0


def run_notify(
    settings: AlarmSettings,
    player: AlarmPlayer,
    scheduler: ThreadScheduler,
    base_id: str,
    delay: float,
    interval: float,
    count: int,
    sound: str | None,
) -> int:
    """Schedule a notification series and wait for it to be delivered.

    Each delivery plays its sound once through the player.

    Returns:
        Process exit code (2 for an unknown sound).
    """
    alarm_sound = AlarmSound.from_name(sound) if sound else None
    if sound and alarm_sound is None:
        known = ", ".join(s.file_name for s in AlarmSound)
        logger.error("Unknown sound '%s' (known: %s)", sound, known)
        return 2

    all_delivered = threading.Event()

    def on_deliver(request: NotificationRequest) -> None:
        try:
            player.start_sound(
                request.identifier,
                request.sound or settings.default_sound,
                RepeatMode.once(),
            )
        except PlaybackError as e:
            logger.warning("Notification '%s' has no sound: %s", request.identifier, e)
        if not center.pending():
            all_delivered.set()

    center = LocalNotificationCenter(scheduler, on_deliver=on_deliver)
    notifications = NotificationScheduler(
        center, max_pending=settings.max_pending_notifications
    )

    end_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
    requests = notifications.schedule_repeating(
        base_id=f"{DEBUG_PREFIX}{base_id}",
        title="LabelTimer",
        body=f"Timer '{base_id}' finished",
        sound=alarm_sound,
        end_date=end_date,
        repeating_interval=interval,
        count=count,
    )
    if not requests:
        return 1

    logger.info("Pending: %s", ", ".join(notifications.pending_ids()))
    try:
        all_delivered.wait(delay + interval * count + 1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        notifications.cancel_with_prefix(DEBUG_PREFIX)
        player.stop_all()
    logger.info("Delivered: %s", ", ".join(notifications.delivered_ids()))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labeltimer",
        description="LabelTimer alarm debug tool",
    )
    parser.add_argument("--config", type=Path, default=None, help="Settings JSON file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ring = sub.add_parser("ring", help="Ring an alarm")
    ring.add_argument("--sound", default=None, help="Catalog name or file path")
    ring.add_argument(
        "--repeat", default="infinite", help="once | infinite | repeat:N (default: infinite)"
    )
    ring.add_argument("--vibrate", action="store_true", help="Also vibrate")
    ring.add_argument("--seconds", type=float, default=10.0, help="Ring duration")

    notify = sub.add_parser("notify", help="Schedule a repeating notification series")
    notify.add_argument("--base-id", default="timer", help="Series id")
    notify.add_argument("--in", dest="delay", type=float, default=5.0, help="Seconds until first")
    notify.add_argument("--interval", type=float, default=None, help="Seconds between")
    notify.add_argument("--count", type=int, default=3, help="Number of notifications")
    notify.add_argument("--sound", default=None, help="Catalog sound name")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        settings = load_settings(args.config)
    except SettingsError as e:
        logger.error("%s", e)
        return 2

    scheduler = ThreadScheduler()
    player = AlarmPlayer.from_settings(settings, scheduler=scheduler)

    if args.command == "ring":
        try:
            repeat_mode = RepeatMode.parse(args.repeat)
        except ValueError as e:
            logger.error("%s", e)
            return 2
        return run_ring(
            player,
            args.sound or settings.default_sound,
            repeat_mode,
            args.vibrate,
            args.seconds,
        )

    return run_notify(
        settings,
        player,
        scheduler,
        base_id=args.base_id,
        delay=args.delay,
        interval=args.interval or settings.notification_interval,
        count=args.count,
        sound=args.sound,
    )


if __name__ == "__main__":
    sys.exit(main())
