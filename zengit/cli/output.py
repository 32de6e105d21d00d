"""CLI output utilities and formatting."""

from datetime import datetime, timedelta, timezone

from colorama import Fore, Style

BANNER = f"""
{Fore.CYAN}{Style.BRIGHT}  _______ _ __   __ _(_) |_ {Style.RESET_ALL}
{Fore.CYAN}{Style.BRIGHT} |_  / _ \\ '_ \\ / _` | | __|{Style.RESET_ALL}
{Fore.CYAN}{Style.BRIGHT}  / /  __/ | | | (_| | | |_ {Style.RESET_ALL}
{Fore.CYAN}{Style.BRIGHT} /___\\___|_| |_|\\__, |_|\\__|{Style.RESET_ALL}
{Fore.CYAN}{Style.BRIGHT}                |___/       {Style.RESET_ALL}
{Fore.WHITE}{Style.BRIGHT} A Git engine in Python{Style.RESET_ALL}
"""


def success(message: str) -> str:
    """Format success message in green."""
    return f"{Fore.GREEN}✓ {message}{Style.RESET_ALL}"


def info(message: str) -> str:
    """Format info message in cyan."""
    return f"{Fore.CYAN}→ {message}{Style.RESET_ALL}"


def warning(message: str) -> str:
    """Format warning message in yellow."""
    return f"{Fore.YELLOW}⚠ {message}{Style.RESET_ALL}"


def error(message: str) -> str:
    """Format error message in red."""
    return f"{Fore.RED}✗ {message}{Style.RESET_ALL}"


def short(oid) -> str:
    return oid[:7] if oid else '-------'


def format_timestamp(timestamp: int, tz: str = '+0000') -> str:
    """Format a Unix timestamp in its own timezone, Git style."""
    try:
        sign = -1 if tz.startswith('-') else 1
        offset = timedelta(hours=int(tz[1:3]), minutes=int(tz[3:5])) * sign
        dt = datetime.fromtimestamp(int(timestamp), timezone(offset))
    except (ValueError, OverflowError, OSError):
        return "Unknown date"
    return f"{dt.strftime('%a %b %d %H:%M:%S %Y')} {tz}"


def summary(message: str, width: int = 50) -> str:
    """First line of a message, shortened to ``width``."""
    first = message.split('\n')[0]
    if len(first) > width:
        return first[:width - 3] + "..."
    return first
