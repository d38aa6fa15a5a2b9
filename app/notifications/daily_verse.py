"""Date-keyed selection of the verse pushed by the daily broadcast."""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar
from zoneinfo import ZoneInfo

from app.notifications.contracts import NotificationPayload

T = TypeVar("T")

DAILY_VERSE_TITLE = "Verse of the Day"
DAILY_VERSE_TAG = "daily-verse"


@dataclass(frozen=True)
class DailyVerse:
  reference: str
  text: str


DAILY_VERSES: tuple[DailyVerse, ...] = (
  DailyVerse("Psalm 119:105", "Your word is a lamp for my feet, a light on my path."),
  DailyVerse("Jeremiah 29:11", "For I know the plans I have for you, declares the Lord, plans to prosper you and not to harm you, to give you hope and a future."),
  DailyVerse("Philippians 4:13", "I can do all this through him who gives me strength."),
  DailyVerse("Romans 8:28", "And we know that in all things God works for the good of those who love him, who have been called according to his purpose."),
  DailyVerse("Proverbs 3:5-6", "Trust in the Lord with all your heart and lean not on your own understanding; in all your ways submit to him, and he will make your paths straight."),
  DailyVerse("Isaiah 40:31", "But those who hope in the Lord will renew their strength. They will soar on wings like eagles; they will run and not grow weary, they will walk and not be faint."),
  DailyVerse("Matthew 6:26", "Look at the birds of the air; they do not sow or reap or store away in barns, and yet your heavenly Father feeds them. Are you not much more valuable than they?"),
  DailyVerse("2 Corinthians 5:17", "Therefore, if anyone is in Christ, the new creation has come: The old has gone, the new is here!"),
  DailyVerse("Psalm 23:1", "The Lord is my shepherd, I lack nothing."),
  DailyVerse("John 3:16", "For God so loved the world that he gave his one and only Son, that whoever believes in him shall not perish but have eternal life."),
  DailyVerse("Psalm 46:10", "Be still, and know that I am God; I will be exalted among the nations, I will be exalted in the earth."),
  DailyVerse("Matthew 11:28", "Come to me, all you who are weary and burdened, and I will give you rest."),
  DailyVerse("1 Corinthians 10:13", "No temptation has overtaken you except what is common to mankind. And God is faithful; he will not let you be tempted beyond what you can bear."),
  DailyVerse("Ephesians 2:8-9", "For it is by grace you have been saved, through faith—and this is not from yourselves, it is the gift of God—not by works, so that no one can boast."),
  DailyVerse("Psalm 37:4", "Take delight in the Lord, and he will give you the desires of your heart."),
  DailyVerse("Romans 12:2", "Do not conform to the pattern of this world, but be transformed by the renewing of your mind."),
  DailyVerse("Galatians 5:22-23", "But the fruit of the Spirit is love, joy, peace, forbearance, kindness, goodness, faithfulness, gentleness and self-control."),
  DailyVerse("Psalm 139:14", "I praise you because I am fearfully and wonderfully made; your works are wonderful, I know that full well."),
  DailyVerse("Joshua 1:9", "Have I not commanded you? Be strong and courageous. Do not be afraid; do not be discouraged, for the Lord your God will be with you wherever you go."),
  DailyVerse("1 Peter 5:7", "Cast all your anxiety on him because he cares for you."),
  DailyVerse("Psalm 121:1-2", "I lift up my eyes to the mountains—where does my help come from? My help comes from the Lord, the Maker of heaven and earth."),
  DailyVerse("Colossians 3:23", "Whatever you do, work at it with all your heart, as working for the Lord, not for human masters."),
  DailyVerse("Hebrews 11:1", "Now faith is confidence in what we hope for and assurance about what we do not see."),
  DailyVerse("1 John 4:19", "We love because he first loved us."),
  DailyVerse("Psalm 27:1", "The Lord is my light and my salvation—whom shall I fear? The Lord is the stronghold of my life—of whom shall I be afraid?"),
  DailyVerse("Proverbs 16:3", "Commit to the Lord whatever you do, and he will establish your plans."),
  DailyVerse("Isaiah 26:3", "You will keep in perfect peace those whose minds are steadfast, because they trust in you."),
  DailyVerse("Matthew 5:16", "In the same way, let your light shine before others, that they may see your good deeds and glorify your Father in heaven."),
  DailyVerse("Revelation 21:4", "He will wipe every tear from their eyes. There will be no more death or mourning or crying or pain, for the old order of things has passed away."),
  DailyVerse("Psalm 90:12", "Teach us to number our days, that we may gain a heart of wisdom."),
)


def select_daily_item(items: Sequence[T], today: datetime.date) -> T:
  """Pick the item for `today` by day-of-year modulo the list length.

  The same date always yields the same item, and the rotation walks the whole list
  before repeating within a year. Jan 1 is day 1.
  """
  if not items:
    raise ValueError("Daily rotation requires at least one item.")
  return items[today.timetuple().tm_yday % len(items)]


def today_in(tz_name: str) -> datetime.date:
  """Return the current calendar date in the given time zone."""
  return datetime.datetime.now(ZoneInfo(tz_name)).date()


def build_daily_verse_payload(verse: DailyVerse) -> NotificationPayload:
  return NotificationPayload.create(title=DAILY_VERSE_TITLE, body=f'"{verse.text}" - {verse.reference}', url="/", tag=DAILY_VERSE_TAG)
