"""
Holiday table for scan skip days

Gregorian dates of the Jewish and Israeli holidays on which enrichment scans
must not run (Hebrew years 5786-5787). Weekly rest days are handled by the
calendar gate, not listed here. Operators add one-off dates through the
EXTRA_SKIP_DATES setting.
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Holiday:
    day: date
    name_en: str
    name_he: str


def _h(iso: str, name_en: str, name_he: str) -> Holiday:
    return Holiday(date.fromisoformat(iso), name_en, name_he)


HOLIDAYS_5786: tuple[Holiday, ...] = (
    _h("2026-03-16", "Fast of Esther", "תענית אסתר"),
    _h("2026-03-17", "Purim", "פורים"),
    _h("2026-03-18", "Shushan Purim", "שושן פורים"),
    _h("2026-04-02", "Erev Pesach", "ערב פסח"),
    _h("2026-04-03", "Pesach Day 1", "פסח - יום א׳"),
    _h("2026-04-04", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2026-04-05", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2026-04-06", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2026-04-07", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2026-04-08", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2026-04-09", "Pesach Day 7", "פסח - יום ז׳"),
    _h("2026-04-22", "Yom HaShoah", "יום השואה"),
    _h("2026-04-29", "Yom HaZikaron", "יום הזיכרון"),
    _h("2026-04-30", "Yom HaAtzmaut", "יום העצמאות"),
    _h("2026-05-22", "Erev Shavuot", "ערב שבועות"),
    _h("2026-05-23", "Shavuot", "שבועות"),
    _h("2026-07-23", "Tisha B'Av", "תשעה באב"),
)

HOLIDAYS_5787: tuple[Holiday, ...] = (
    _h("2026-09-11", "Erev Rosh Hashana", "ערב ראש השנה"),
    _h("2026-09-12", "Rosh Hashana Day 1", "ראש השנה א׳"),
    _h("2026-09-13", "Rosh Hashana Day 2", "ראש השנה ב׳"),
    _h("2026-09-20", "Erev Yom Kippur", "ערב יום כיפור"),
    _h("2026-09-21", "Yom Kippur", "יום כיפור"),
    _h("2026-09-25", "Erev Sukkot", "ערב סוכות"),
    _h("2026-09-26", "Sukkot Day 1", "סוכות - יום א׳"),
    _h("2026-09-27", "Sukkot Chol HaMoed", "סוכות - חול המועד"),
    _h("2026-09-28", "Sukkot Chol HaMoed", "סוכות - חול המועד"),
    _h("2026-09-29", "Sukkot Chol HaMoed", "סוכות - חול המועד"),
    _h("2026-09-30", "Sukkot Chol HaMoed", "סוכות - חול המועד"),
    _h("2026-10-01", "Hoshana Raba", "הושענא רבה"),
    _h("2026-10-02", "Shemini Atzeret", "שמיני עצרת"),
    _h("2026-10-03", "Simchat Torah", "שמחת תורה"),
    # Hanukkah is not a skip period.
    _h("2027-03-04", "Fast of Esther", "תענית אסתר"),
    _h("2027-03-05", "Purim", "פורים"),
    _h("2027-03-06", "Shushan Purim", "שושן פורים"),
    _h("2027-03-22", "Erev Pesach", "ערב פסח"),
    _h("2027-03-23", "Pesach Day 1", "פסח - יום א׳"),
    _h("2027-03-24", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2027-03-25", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2027-03-26", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2027-03-27", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2027-03-28", "Pesach Chol HaMoed", "פסח - חול המועד"),
    _h("2027-03-29", "Pesach Day 7", "פסח - יום ז׳"),
    _h("2027-04-11", "Yom HaShoah", "יום השואה"),
    _h("2027-04-18", "Yom HaZikaron", "יום הזיכרון"),
    _h("2027-04-19", "Yom HaAtzmaut", "יום העצמאות"),
    _h("2027-05-11", "Erev Shavuot", "ערב שבועות"),
    _h("2027-05-12", "Shavuot", "שבועות"),
    _h("2027-07-12", "Tisha B'Av", "תשעה באב"),
)

ALL_HOLIDAYS: tuple[Holiday, ...] = HOLIDAYS_5786 + HOLIDAYS_5787

HOLIDAYS_BY_DATE: dict[date, Holiday] = {h.day: h for h in ALL_HOLIDAYS}
