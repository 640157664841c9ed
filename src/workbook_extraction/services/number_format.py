"""Displayed-text rendering for cell values.

Reproduces what a spreadsheet viewer shows for a value under its
number-format code. Covers General, fixed/grouped decimals, percentages,
scaling commas, scientific notation, literal text, the text section and
date/time codes (including Thai Buddhist-era ``bbbb`` years). Fractions fall
back to General.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal, localcontext

from openpyxl.styles.numbers import is_date_format
from openpyxl.utils.datetime import from_excel

from workbook_extraction.excel_document import CellValue, ValueKind

GENERAL = "General"

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
DAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

_EXCEL_EPOCH = datetime(1899, 12, 30)
_CURRENCY_RE = re.compile(r"\[\$([^\]\-]*)(?:-[^\]]*)?\]")
_ELAPSED_RE = re.compile(r"\[(h+|m+|s+)\]", re.IGNORECASE)
_BRACKET_RE = re.compile(r"\[[^\]]*\]")
_PLACEHOLDERS = "0#?"
_DATE_LETTERS = "ymdhsbe"


def format_display_text(value: CellValue, number_format: str | None) -> str | None:
    """Return the text a viewer would display, or None for an empty cell."""
    fmt = number_format or GENERAL
    if value.kind is ValueKind.EMPTY:
        return None
    if value.kind is ValueKind.BOOLEAN:
        return "TRUE" if value.value else "FALSE"
    if value.kind is ValueKind.ERROR:
        return str(value.value)
    if value.kind is ValueKind.STRING:
        return format_text(value.value, fmt)
    if value.kind is ValueKind.DATE:
        return format_temporal(value.value, fmt)
    return format_number(value.value, fmt)


def split_sections(fmt: str) -> list[str]:
    """Split a format code on ``;`` outside quotes, escapes and brackets."""
    sections: list[str] = []
    current: list[str] = []
    in_quote = False
    in_bracket = False
    escaped = False
    for ch in fmt:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\" and not in_quote:
            escaped = True
            current.append(ch)
            continue
        if ch == '"':
            in_quote = not in_quote
        elif ch == "[" and not in_quote:
            in_bracket = True
        elif ch == "]" and not in_quote:
            in_bracket = False
        elif ch == ";" and not in_quote and not in_bracket:
            sections.append("".join(current))
            current = []
            continue
        current.append(ch)
    sections.append("".join(current))
    return sections


def _clean_section(section: str) -> str:
    # currency tags keep their symbol, elapsed-time tags keep their letters
    section = _CURRENCY_RE.sub(lambda m: f'"{m.group(1)}"' if m.group(1) else "", section)
    section = _ELAPSED_RE.sub(lambda m: m.group(1), section)
    return _BRACKET_RE.sub("", section)


def _is_general(section: str) -> bool:
    return section.strip().lower() in ("", "general")


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def format_general(number: int | float) -> str:
    """Render a number the way the General format does."""
    if number == 0:
        return "0"
    magnitude = abs(number)
    if float(number).is_integer() and magnitude < 1e11:
        return str(int(number))
    if magnitude >= 1e11 or magnitude < 1e-9:
        return _general_scientific(number)
    if magnitude < 1e-4:
        # plain decimals while nine places still show every significant digit
        fixed = f"{number:.9f}".rstrip("0").rstrip(".")
        scientific = _general_scientific(number)
        return fixed if float(fixed) == float(scientific) else scientific
    return f"{number:.10G}"


def _general_scientific(number: int | float) -> str:
    mantissa, exponent = f"{number:.5E}".split("E")
    mantissa = mantissa.rstrip("0").rstrip(".")
    return f"{mantissa}E{exponent}"


def _select_section(number: int | float, sections: list[str]) -> tuple[str, bool]:
    """Pick the section for a number; the flag says a minus sign is needed."""
    numeric = sections[:3]
    if number < 0 and len(numeric) >= 2:
        return numeric[1], False
    if number == 0 and len(numeric) >= 3:
        return numeric[2], False
    return numeric[0], number < 0


def _tokenize(section: str) -> list[tuple[str, str]]:
    """Split a numeric/text section into literal, number and text tokens."""
    tokens: list[tuple[str, str]] = []
    has_number = False
    i = 0
    n = len(section)
    while i < n:
        ch = section[i]
        if ch == '"':
            end = section.find('"', i + 1)
            end = n if end == -1 else end
            tokens.append(("lit", section[i + 1 : end]))
            i = end + 1
            continue
        if ch == "\\":
            tokens.append(("lit", section[i + 1 : i + 2]))
            i += 2
            continue
        if ch == "_":
            tokens.append(("lit", " "))
            i += 2
            continue
        if ch == "*":
            i += 2
            continue
        if ch == "@":
            tokens.append(("text", ch))
            i += 1
            continue
        starts_number = ch in _PLACEHOLDERS or (
            ch == "." and i + 1 < n and section[i + 1] in _PLACEHOLDERS
        )
        if starts_number and not has_number:
            j = i
            while j < n and section[j] in "0#?.,":
                j += 1
            if j + 1 < n and section[j] in "Ee" and section[j + 1] in "+-":
                j += 2
                while j < n and section[j] in _PLACEHOLDERS:
                    j += 1
            tokens.append(("num", section[i:j]))
            has_number = True
            i = j
            continue
        tokens.append(("lit", ch))
        i += 1
    return tokens


def _trim_optional_zeros(frac: str, min_digits: int) -> str:
    return frac[:min_digits] + frac[min_digits:].rstrip("0")


def _round_half_up(value: float, decimals: int) -> str:
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the decimals
        ctx.prec = max(28, exact.adjusted() + decimals + 2)
        rounded = exact.quantize(
            Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP
        )
    return f"{rounded:f}"


def _render_number_pattern(magnitude: float, pattern: str) -> str:
    mantissa_pat, exp_sign, exp_pat = pattern, "", ""
    for marker in ("E+", "E-", "e+", "e-"):
        if marker in pattern:
            mantissa_pat, exp_pat = pattern.split(marker, 1)
            exp_sign = marker[1]
            break

    int_pat, point, dec_pat = mantissa_pat.partition(".")
    if point:
        stripped = dec_pat.rstrip(",")
        scale = len(dec_pat) - len(stripped)
        dec_pat = stripped
    else:
        stripped = int_pat.rstrip(",")
        scale = len(int_pat) - len(stripped)
        int_pat = stripped

    grouping = "," in int_pat
    decimals = sum(1 for c in dec_pat if c in _PLACEHOLDERS)
    min_decimals = len(dec_pat.replace(",", "").rstrip("#?"))
    min_int = int_pat.count("0")
    magnitude = magnitude / (1000**scale)

    if exp_sign:
        mantissa, exponent = f"{magnitude:.{decimals}E}".split("E")
        int_part, _, frac = mantissa.partition(".")
        frac = _trim_optional_zeros(frac, min_decimals)
        exp_value = int(exponent)
        sign = "-" if exp_value < 0 else ("+" if exp_sign == "+" else "")
        exp_digits = max(1, exp_pat.count("0"))
        body = int_part + ("." + frac if point else "")
        return f"{body}E{sign}{abs(exp_value):0{exp_digits}d}"

    text = _round_half_up(magnitude, decimals)
    int_str, _, frac = text.partition(".")
    frac = _trim_optional_zeros(frac, min_decimals)
    if int_str == "0" and min_int == 0:
        int_str = ""
    elif len(int_str) < min_int:
        int_str = int_str.zfill(min_int)
    if grouping and int_str:
        int_str = f"{int(int_str):,}"
    return int_str + ("." + frac if point else "")


def _render_tokens(tokens: list[tuple[str, str]], magnitude: float, text: str = "") -> str:
    parts: list[str] = []
    for kind, token in tokens:
        if kind == "num":
            parts.append(_render_number_pattern(magnitude, token))
        elif kind == "text":
            parts.append(text)
        else:
            parts.append(token)
    return "".join(parts)


def format_number(number: int | float, fmt: str) -> str:
    """Render a number under an Excel number-format code."""
    if _is_general(fmt):
        return format_general(number)

    section, signed = _select_section(number, split_sections(fmt))
    section = _clean_section(section)
    sign = "-" if signed else ""

    if _is_general(section):
        return sign + format_general(abs(number))

    if is_date_format(section):
        try:
            return format_temporal(from_excel(number), section)
        except (ValueError, OverflowError):
            return format_general(number)

    tokens = _tokenize(section)
    if any(kind == "lit" and token == "/" for kind, token in tokens) and any(
        kind == "num" for kind, _ in tokens
    ):
        # fractions are not rendered
        return format_general(number)

    has_number = any(kind == "num" for kind, _ in tokens)
    if not has_number and any(kind == "text" for kind, _ in tokens):
        return format_general(number)

    magnitude = float(abs(number))
    percent = sum(token.count("%") for kind, token in tokens if kind == "lit")
    magnitude *= 100**percent
    if not has_number:
        return _render_tokens(tokens, magnitude)
    return sign + _render_tokens(tokens, magnitude)


def format_text(text: str, fmt: str) -> str:
    """Render a string, applying the text (``@``) section when present."""
    sections = split_sections(fmt)
    if len(sections) >= 4:
        section = sections[3]
    else:
        section = next((s for s in sections if "@" in s), None)
        if section is None:
            return text
    return _render_tokens(_tokenize(_clean_section(section)), 0.0, text)


# ---------------------------------------------------------------------------
# Dates and times
# ---------------------------------------------------------------------------


def _to_datetime(value: datetime | date | time | timedelta) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, time):
        return datetime.combine(_EXCEL_EPOCH.date(), value)
    return _EXCEL_EPOCH + value


def _tokenize_temporal(section: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    i = 0
    n = len(section)
    while i < n:
        ch = section[i]
        lower = ch.lower()
        if ch == '"':
            end = section.find('"', i + 1)
            end = n if end == -1 else end
            tokens.append(("lit", section[i + 1 : end]))
            i = end + 1
            continue
        if ch == "\\":
            tokens.append(("lit", section[i + 1 : i + 2]))
            i += 2
            continue
        if ch == "_":
            tokens.append(("lit", " "))
            i += 2
            continue
        if ch == "*":
            i += 2
            continue
        if section[i : i + 5].upper() == "AM/PM":
            tokens.append(("ampm", section[i : i + 5]))
            i += 5
            continue
        if section[i : i + 3].upper() == "A/P":
            tokens.append(("ampm", section[i : i + 3]))
            i += 3
            continue
        if ch == "." and tokens and tokens[-1][0] == "s" and i + 1 < n and section[i + 1] == "0":
            j = i + 1
            while j < n and section[j] == "0":
                j += 1
            tokens.append(("frac", section[i + 1 : j]))
            i = j
            continue
        if lower in _DATE_LETTERS:
            j = i
            while j < n and section[j].lower() == lower:
                j += 1
            tokens.append((lower, section[i:j]))
            i = j
            continue
        tokens.append(("lit", ch))
        i += 1

    # m after h or before s means minutes
    resolved: list[tuple[str, str]] = []
    for idx, (kind, token) in enumerate(tokens):
        if kind == "m" and len(token) <= 2:
            prev = next((k for k, _ in reversed(tokens[:idx]) if k != "lit"), None)
            following = next((k for k, _ in tokens[idx + 1 :] if k != "lit"), None)
            if prev == "h" or following == "s":
                kind = "min"
        resolved.append((kind, token))
    return resolved


def format_temporal(value: datetime | date | time | timedelta, fmt: str) -> str:
    """Render a date, time or duration under an Excel format code."""
    moment = _to_datetime(value)
    section = split_sections(fmt)[0]
    elapsed = bool(_ELAPSED_RE.search(section))
    section = _clean_section(section)

    if _is_general(section) or not is_date_format(section):
        if isinstance(value, time):
            return value.isoformat()
        if moment.time() == time():
            return moment.strftime("%Y-%m-%d")
        return moment.strftime("%Y-%m-%d %H:%M:%S")

    tokens = _tokenize_temporal(section)
    twelve_hour = any(kind == "ampm" for kind, _ in tokens)
    elapsed_hours = int((moment - _EXCEL_EPOCH).total_seconds() // 3600)

    parts: list[str] = []
    for kind, token in tokens:
        size = len(token)
        if kind == "y":
            parts.append(f"{moment.year % 100:02d}" if size <= 2 else f"{moment.year:04d}")
        elif kind == "b":
            year = moment.year + 543
            parts.append(f"{year % 100:02d}" if size <= 2 else str(year))
        elif kind == "e":
            parts.append(str(moment.year))
        elif kind == "m":
            if size == 1:
                parts.append(str(moment.month))
            elif size == 2:
                parts.append(f"{moment.month:02d}")
            elif size == 3:
                parts.append(MONTH_NAMES[moment.month - 1][:3])
            elif size == 5:
                parts.append(MONTH_NAMES[moment.month - 1][0])
            else:
                parts.append(MONTH_NAMES[moment.month - 1])
        elif kind == "d":
            if size == 1:
                parts.append(str(moment.day))
            elif size == 2:
                parts.append(f"{moment.day:02d}")
            elif size == 3:
                parts.append(DAY_NAMES[moment.weekday()][:3])
            else:
                parts.append(DAY_NAMES[moment.weekday()])
        elif kind == "h":
            hour = moment.hour
            if elapsed:
                hour = elapsed_hours
            elif twelve_hour:
                hour = hour % 12 or 12
            parts.append(f"{hour:0{min(size, 2)}d}")
        elif kind == "min":
            parts.append(f"{moment.minute:0{size}d}")
        elif kind == "s":
            parts.append(f"{moment.second:0{min(size, 2)}d}")
        elif kind == "frac":
            fraction = f"{moment.microsecond / 1_000_000:.{size}f}"
            parts.append(fraction[1:])
        elif kind == "ampm":
            marker = "AM" if moment.hour < 12 else "PM"
            if size == 3:
                marker = marker[0]
            parts.append(marker.lower() if token[0].islower() else marker)
        else:
            parts.append(token)
    return "".join(parts)
