# renderers/messages.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from domain.models import MatchMatrix, Participant

INTRO_SUFFIX = "Report your results here using the command /{shortname} or /result"

RE_INTRO = re.compile(r"^(.*) Report your results here using the command /([^ ]+) or /result")
RE_MENTION = re.compile(r"<@!?(\d+)>")
RE_COLON_TOKEN = re.compile(r":[A-Za-z0-9_+\-]+:")

LEGEND = (
    ":cloud: match available\n"
    ":full_moon: match won 2-0\n"
    ":waning_gibbous_moon: match won 2-1\n"
    ":waxing_crescent_moon: match lost 1-2\n"
    ":new_moon: match lost 0-2\n"
    ":black_small_square: cannot play yourself"
)


def mentions(participants: Iterable[Participant]) -> str:
    return "".join(f"{p.mention} " for p in participants)


def intro_text(participants: Sequence[Participant], shortname: str) -> str:
    return mentions(participants) + " " + INTRO_SUFFIX.format(shortname=shortname)


@dataclass(frozen=True)
class IntroMatch:
    user_ids: list[int]
    shortname: str


def match_intro(text: str) -> IntroMatch | None:
    m = RE_INTRO.match(text or "")
    if not m:
        return None
    ids = [int(x) for x in RE_MENTION.findall(m.group(1))]
    return IntroMatch(user_ids=ids, shortname=m.group(2))


def has_colon_token(text: str) -> bool:
    return RE_COLON_TOKEN.search(text or "") is not None


def report_line(reporter_id: int, player: Participant, score: str, opponent: Participant) -> str:
    return f"<@{int(reporter_id)}> reports {player.name} {score} {opponent.name}"


@dataclass
class FindAMatch:
    text: str
    mention_ids: set[int] = field(default_factory=set)


def find_a_match(user_id: int, matrices: Iterable[MatchMatrix]) -> FindAMatch:
    """
    One line per matrix the player is in, listing opponents they still have to play.
    Opponents who turned findable off are named instead of pinged.
    """
    out = FindAMatch(text=f"<@{int(user_id)}> is trying to find a match to play, is anyone available?")
    for matrix in matrices:
        if matrix.participant(user_id) is None:
            continue
        opponents = matrix.unplayed_opponents(user_id)
        if not opponents:
            out.text += f"\n{matrix.shortname}: All matches complete!"
            continue

        parts: list[str] = []
        for o in opponents:
            if o.user_id in matrix.suppressed:
                parts.append(f"{o.name} ")
            else:
                parts.append(f"{o.mention} ")
                out.mention_ids.add(o.user_id)
        out.text += f"\n{matrix.shortname}: " + "".join(parts)
    return out
