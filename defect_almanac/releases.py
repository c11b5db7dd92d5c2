"""
Release timeline: tracker versions ordered by date and indexed from 1.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional

from .config import DEFAULT_RELEASE_FRACTION
from .exceptions import ConfigurationError, DataSourceError


@dataclass(frozen=True)
class Release:
    """A tracker version. Unreleased versions share index len(released) + 1."""
    index: int
    name: str
    tag: str
    release_id: str = ''
    date: Optional[date] = None
    released: bool = True


class ReleaseNameAdapter:
    """Derive the git tag of a release from its tracker name"""

    def __init__(self, prefix: str = '', suffix: str = ''):
        self.prefix = prefix
        self.suffix = suffix

    def tag_name(self, tracker_name: str) -> str:
        return f'{self.prefix}{tracker_name}{self.suffix}'


class Timeline:
    """
    Ordered releases of one project.

    `subset` holds the first `release_fraction` of the released versions and
    bounds every later analysis step.
    """

    def __init__(self, released: Iterable[Release], unreleased: Iterable[Release] = (),
                 release_fraction: float = DEFAULT_RELEASE_FRACTION):
        if not 0 < release_fraction <= 1:
            raise ConfigurationError(
                'Release fraction must be in (0, 1]', {'release_fraction': str(release_fraction)}
            )
        self.released = tuple(released)
        self.unreleased = tuple(unreleased)
        self.release_fraction = release_fraction
        self.subset = self.released[:math.floor(len(self.released) * release_fraction)]
        self._by_name = {r.name: r for r in self.released + self.unreleased}

    @classmethod
    def from_dates(cls, dated: Iterable[tuple], undated: Iterable[str] = (),
                   release_fraction: float = DEFAULT_RELEASE_FRACTION,
                   adapter: Optional[ReleaseNameAdapter] = None,
                   ids: Optional[dict] = None) -> 'Timeline':
        """
        Build a timeline from (name, date) pairs plus unreleased names.

        Released versions are indexed 1..n by date; ties keep input order.
        """
        adapter = adapter or ReleaseNameAdapter()
        ids = ids or {}
        ordered = sorted(dated, key=lambda pair: pair[1])
        released = [
            Release(index=i, name=name, tag=adapter.tag_name(name),
                    release_id=ids.get(name, ''), date=day)
            for i, (name, day) in enumerate(ordered, 1)
        ]
        next_index = len(released) + 1
        unreleased = [
            Release(index=next_index, name=name, tag=adapter.tag_name(name),
                    release_id=ids.get(name, ''), released=False)
            for name in undated
        ]
        return cls(released, unreleased, release_fraction)

    @property
    def release_count(self) -> int:
        return len(self.released)

    @property
    def last_analyzed(self) -> Optional[Release]:
        return self.subset[-1] if self.subset else None

    @property
    def first_unreleased(self) -> Optional[Release]:
        return self.unreleased[0] if self.unreleased else None

    def by_name(self, name: str) -> Optional[Release]:
        return self._by_name.get(name)

    def by_index(self, index: int) -> Optional[Release]:
        """Released version `index`, or the first unreleased one past the end"""
        if 1 <= index <= self.release_count:
            return self.released[index - 1]
        if index > self.release_count:
            return self.first_unreleased
        return None

    def release_for_date(self, day: date) -> Optional[Release]:
        """First release dated on or after `day`, else the first unreleased version"""
        for release in self.released:
            if release.date >= day:
                return release
        return self.first_unreleased

    def window(self, release: Release) -> tuple:
        """(after, until) dates of the commits that belong to `release`"""
        previous = self.by_index(release.index - 1) if release.index > 1 else None
        return (previous.date if previous else None), release.date


def build_timeline(versions: list[dict], adapter: ReleaseNameAdapter,
                   tag_date: Callable[[str], Optional[date]],
                   release_fraction: float = DEFAULT_RELEASE_FRACTION) -> Timeline:
    """
    Build a timeline from the tracker's version feed.

    Released versions without a tracker date take the date of their git tag;
    when the tag cannot be found they are treated as unreleased.
    """
    dated = []
    undated = []

    for version in versions:
        name = version.get('name', '')
        if version.get('released', False):
            if 'releaseDate' in version:
                try:
                    day = date.fromisoformat(version['releaseDate'])
                except (TypeError, ValueError) as e:
                    raise DataSourceError(
                        'Malformed release date', {'version': name, 'value': str(version['releaseDate'])}
                    ) from e
            else:
                day = tag_date(adapter.tag_name(name))
            if day is not None:
                dated.append((name, day))
                continue
        undated.append(name)

    ids = {v.get('name', ''): str(v.get('id', '')) for v in versions}
    timeline = Timeline.from_dates(dated, undated, release_fraction, adapter, ids)

    print(f"  Retrieved {timeline.release_count} released, {len(timeline.unreleased)} unreleased versions", flush=True)
    print(f"  Analysis limited to the first {len(timeline.subset)} releases", flush=True)
    return timeline
