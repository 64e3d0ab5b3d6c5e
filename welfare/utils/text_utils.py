# Internal
from datetime import date
import html

# Project
from welfare.engine.constants.constants import LONG_DATE_FORMAT


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def format_long_date(day: date) -> str:
    return day.strftime(LONG_DATE_FORMAT)


def time_until_text(days: int) -> str:
    if days == 0:
        return "Today!"
    if days == 1:
        return "Tomorrow"

    return f"{days} days"


def escape(text: str) -> str:
    return html.escape(text or "", quote=True)
