#!/usr/bin/env python3
"""
Terminal Segment Clock
A full-screen terminal clock drawn with Unicode seven-segment digits

Usage: python segment_clock.py [-24] [--seconds] [--colour NAME]

Press q (or Ctrl+C) to quit.
"""

import argparse
import logging
import math
import os
import re
import select
import signal
import sys
import termios
import time
import tty
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, NamedTuple, Optional

import colorama
from colorama import Fore, Style
from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger(__name__)

# Unicode 13.0 "SEGMENTED DIGIT ZERO" .. "SEGMENTED DIGIT NINE"
SEGMENTED_DIGIT_ZERO = 0x1FBF0
SEPARATOR = ':'

GLYPHS = {str(digit): chr(SEGMENTED_DIGIT_ZERO + digit) for digit in range(10)}
# There is no segmented colon, the plain one lines up well enough
GLYPHS[SEPARATOR] = SEPARATOR

# Terminal control sequences
ENTER_ALT_SCREEN = "\x1b[?1049h"
LEAVE_ALT_SCREEN = "\x1b[?1049l"
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
CURSOR_HOME = "\x1b[H"
CLEAR_SCREEN = "\x1b[2J"
ERASE_LINE = "\x1b[K"
ERASE_BELOW = "\x1b[J"

QUIT_KEYS = b"qQ\x03\x04"  # q, Q, Ctrl+C, Ctrl+D

# CSI (ESC [ ... final), SS3 (ESC O x), or ESC followed by one byte
ESCAPE_SEQUENCE = re.compile(rb"\x1b(?:\[[0-?]*[ -/]*[@-~]|O.|.)?", re.DOTALL)

COLOURS = {
    name.lower().replace('_ex', ''): getattr(Fore, name)
    for name in dir(Fore)
    if not name.startswith('_') and name != 'RESET'
}


class TerminalError(Exception):
    """The terminal could not be set up or restored."""


class QuitSignal(Exception):
    """Raised from the SIGTERM/SIGHUP handler to leave the refresh loop."""


class TimeReading(NamedTuple):
    hour: int
    minute: int
    second: int

    @classmethod
    def from_datetime(cls, moment):
        return cls(moment.hour, moment.minute, moment.second)


@dataclass(frozen=True)
class DisplayConfig:
    use_24_hour: bool = False
    show_seconds: bool = False
    colour: Optional[str] = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> 'DisplayConfig':
        """Build the display settings from parsed command line flags."""
        return cls(
            use_24_hour=args.use_24_hour,
            show_seconds=args.seconds,
            colour=args.colour,
        )


def read_clock():
    return TimeReading.from_datetime(datetime.now())


def to_12_hour(hour):
    """Convert 0-23 to wall-clock 1-12 (midnight and noon are both 12)"""
    hour %= 12
    return hour or 12


def format_cells(reading: TimeReading, config: DisplayConfig) -> List[str]:
    """
    Split a time reading into display cells.

    Every cell is a single digit or the separator. Hours and minutes are
    always two cells each, seconds are appended only when enabled.
    """
    hour = reading.hour if config.use_24_hour else to_12_hour(reading.hour)

    groups = [hour, reading.minute]
    if config.show_seconds:
        groups.append(reading.second)

    cells = []
    for i, value in enumerate(groups):
        if i:
            cells.append(SEPARATOR)
        cells.extend(f"{value:02d}")
    return cells


def segmentify(cells) -> str:
    """Map each cell to its seven-segment glyph"""
    return "".join(GLYPHS.get(cell, cell) for cell in cells)


def colourize(text: str, colour: Optional[str]) -> str:
    """Wrap text in the escape codes for a colour name"""
    if not colour:
        return text
    return COLOURS[colour] + text + Style.RESET_ALL


def get_terminal_size(fd: int):
    """Get terminal dimensions"""
    try:
        columns, rows = os.get_terminal_size(fd)
        return columns, rows
    except OSError:
        return 80, 24  # Default fallback


def render_frame(reading: TimeReading, config: DisplayConfig, width: int, height: int) -> str:
    """
    Render one full-screen frame.

    The glyph line is centred on the screen. Every row above it is erased,
    and everything below it is erased in one go, so the terminal is never
    asked to scroll. Rows are joined with CRLF because raw mode does not
    translate newlines.
    """
    glyphs = segmentify(format_cells(reading, config))

    padding = max(0, (width - len(glyphs)) // 2)
    vertical_padding = max(0, (height - 1) // 2)

    rows = [ERASE_LINE] * vertical_padding
    rows.append(" " * padding + colourize(glyphs, config.colour) + ERASE_LINE)

    return CURSOR_HOME + "\r\n".join(rows) + ERASE_BELOW


def seconds_until_next_tick(now):
    """Time left until the wall clock reaches the next whole second"""
    return math.floor(now) + 1 - now


class TerminalSession:
    """
    Puts the terminal into clock mode for the duration of a with block.

    On enter: alternate screen, hidden cursor, raw input, and SIGTERM/SIGHUP
    turned into QuitSignal. On exit all of it is undone, whatever the reason
    for leaving.
    """

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.old_settings = None
        self.old_handlers = {}

    @staticmethod
    def _quit(signum, frame):
        raise QuitSignal(signal.Signals(signum).name)

    def __enter__(self):
        if not (self.stdin.isatty() and self.stdout.isatty()):
            raise TerminalError("not attached to a terminal")

        fd = self.stdin.fileno()
        try:
            self.old_settings = termios.tcgetattr(fd)
            tty.setraw(fd)
        except termios.error as e:
            raise TerminalError(f"cannot switch terminal to raw mode: {e}") from e

        try:
            self.stdout.write(ENTER_ALT_SCREEN + HIDE_CURSOR + CLEAR_SCREEN)
            self.stdout.flush()
        except OSError:
            termios.tcsetattr(fd, termios.TCSADRAIN, self.old_settings)
            raise

        for signum in (signal.SIGTERM, signal.SIGHUP):
            self.old_handlers[signum] = signal.signal(signum, self._quit)

        logger.debug("terminal session started on fd %d", fd)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        for signum, handler in self.old_handlers.items():
            signal.signal(signum, handler)
        self.old_handlers = {}

        try:
            self.stdout.write(SHOW_CURSOR + LEAVE_ALT_SCREEN)
            self.stdout.flush()
        finally:
            try:
                termios.tcsetattr(self.stdin.fileno(), termios.TCSADRAIN, self.old_settings)
            except termios.error as e:
                raise TerminalError(f"cannot restore terminal mode: {e}") from e

        logger.debug("terminal session restored")
        return False

    def size(self):
        return get_terminal_size(self.stdout.fileno())


class ClockDisplay:
    """Repaints the clock once per second until a quit key arrives."""

    def __init__(self, config: DisplayConfig, input_fd: int, output,
                 size: Callable = lambda: (80, 24),
                 clock: Callable[[], TimeReading] = read_clock,
                 now: Callable[[], float] = time.time):
        self.config = config
        self.input_fd = input_fd
        self.output = output
        self.size = size
        self.clock = clock
        self.now = now
        self.last_size = None
        self.frames = 0

    def paint(self):
        """Draw the current time"""
        width, height = self.size()
        frame = render_frame(self.clock(), self.config, width, height)

        if self.last_size != (width, height):
            if self.last_size is not None:
                logger.debug("terminal resized to %dx%d", width, height)
                frame = CLEAR_SCREEN + frame
            self.last_size = (width, height)

        self.output.write(frame)
        self.output.flush()
        self.frames += 1

    def quit_requested(self) -> bool:
        """Read pending input and report whether it asks us to quit"""
        data = os.read(self.input_fd, 64)
        if not data:
            logger.info("input closed")
            return True
        # Function and arrow keys arrive as escape sequences that can end in q/Q
        keys = ESCAPE_SEQUENCE.sub(b"", data)
        if any(key in QUIT_KEYS for key in keys):
            logger.info("quit key pressed")
            return True
        return False

    def wait_for_tick(self) -> bool:
        """
        Block until the next whole second or a quit key.

        Returns True when the user asked to quit. Other keys are swallowed
        and the wait carries on towards the same deadline.
        """
        now = self.now()
        deadline = now + seconds_until_next_tick(now)
        while True:
            timeout = deadline - self.now()
            if timeout <= 0:
                return False
            ready, _, _ = select.select([self.input_fd], [], [], timeout)
            if ready and self.quit_requested():
                return True

    def run(self):
        """Main clock loop"""
        while True:
            self.paint()
            if self.wait_for_tick():
                return


def run_clock(config: DisplayConfig, stdin=None, stdout=None):
    """Set up the terminal and run the clock until the user quits"""
    with TerminalSession(stdin, stdout) as session:
        display = ClockDisplay(
            config,
            input_fd=session.stdin.fileno(),
            output=session.stdout,
            size=session.size,
        )
        try:
            display.run()
        except KeyboardInterrupt:
            logger.info("interrupted")
        except QuitSignal as e:
            logger.info("received %s", e)


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """
    Log warnings to stderr, and everything to a file when asked.

    With a log file the screen belongs to the clock, so stderr only gets
    errors. --verbose turns stderr up to debug, which main() allows only
    when there is no log file and stderr is not the clock's terminal.
    """
    stream = RichHandler(console=Console(stderr=True), show_path=False)
    handlers = [stream]

    if log_file:
        file = logging.FileHandler(log_file)
        file.setLevel(logging.DEBUG)
        file.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        handlers.append(file)
        stream.setLevel(logging.ERROR)
    elif verbose:
        stream.setLevel(logging.DEBUG)
    else:
        stream.setLevel(logging.WARNING)

    logging.basicConfig(
        level=logging.DEBUG if verbose or log_file else logging.WARNING,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Terminal clock drawn with seven-segment digits")
    parser.add_argument("-24", "--24-hour", dest="use_24_hour", action="store_true",
                        help="Use 24-hour time instead of 12-hour")
    parser.add_argument("-s", "--seconds", action="store_true", help="Show seconds")
    parser.add_argument("-c", "--colour", "--color", dest="colour", choices=sorted(COLOURS),
                        metavar="NAME", help=f"Display colour ({', '.join(sorted(COLOURS))})")
    parser.add_argument("--log-file", help="Write a debug log to this file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log debug messages to stderr (redirect it away from the terminal)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose and not args.log_file and sys.stderr.isatty():
        parser.error("--verbose would draw over the clock; use --log-file or redirect stderr")
    setup_logging(args.verbose, args.log_file)
    colorama.init()

    config = DisplayConfig.from_args(args)
    logger.debug("starting with %s", config)

    console = Console(stderr=True)
    try:
        run_clock(config)
    except TerminalError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except OSError as e:
        logger.debug("terminal write failed", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        return 1
    finally:
        colorama.deinit()

    return 0


if __name__ == "__main__":
    sys.exit(main())
