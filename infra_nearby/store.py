"""The store that owns the loaded dataset and the reference point."""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import NoReturn

from infra_nearby.error import InvalidReferenceError, LoadError
from infra_nearby.feature import FeatureCollection
from infra_nearby.geometry import Coordinate
from infra_nearby.normalize import RawDataset, normalize
from infra_nearby.proximity import DEFAULT_RADIUS_KM, filter_nearby
from infra_nearby.style import DEFAULT_STYLES, CollectionStyle


__docformat__ = "google"
__all__ = (
    "FeatureStore",
    "View",
    "feature_count",
)


View = tuple[FeatureCollection, ...]
"""An immutable sequence of collections, as returned by the store."""

_DEFAULT_LOGGER = logging.getLogger(__name__)
_DEFAULT_LOGGER.addHandler(logging.NullHandler())


@dataclass(kw_only=True, slots=True, frozen=True)
class _Snapshot:
    """Everything readers can observe, swapped as a whole."""

    complete: View
    nearby: View
    reference: Coordinate | None


class FeatureStore:
    """
    Owner of the dataset and the reference point.

    The store holds two views of the dataset: the *complete* view with every feature
    that survived normalization, and the *nearby* view with those features whose
    representative point is within ``radius_km`` of the reference point. Until a
    reference point is known, both views are the same.

    Both ``load()`` and ``set_reference()`` recompute the nearby view from scratch by
    filtering the complete view, before publishing both views at once. Readers therefore
    always see a consistent pair of views. The store does not synchronize writers, so
    calling ``load()`` and ``set_reference()`` from different threads needs a lock on
    the caller's side. Throttling reference updates (f.e. while the map is panned) is
    also left to the caller.

    Args:
        radius_km: The radius of the proximity rule, in kilometers.
        styles: Styles to attach to collections at load time, keyed by label.
        logger: The logger to use for all logging output related to this store.
    """

    __slots__ = (
        "_logger",
        "_radius_km",
        "_snapshot",
        "_styles",
    )

    def __init__(
        self,
        radius_km: float = DEFAULT_RADIUS_KM,
        styles: Mapping[str, CollectionStyle] = DEFAULT_STYLES,
        logger: logging.Logger = _DEFAULT_LOGGER,
    ) -> None:
        if not math.isfinite(radius_km) or radius_km < 0.0:
            msg = "'radius_km' must be finite >= 0"
            raise ValueError(msg)

        self._radius_km = radius_km
        self._styles = styles
        self._logger = logger
        self._snapshot = _Snapshot(complete=(), nearby=(), reference=None)

    @property
    def radius_km(self) -> float:
        """The radius of the proximity rule, in kilometers."""
        return self._radius_km

    @property
    def reference(self) -> Coordinate | None:
        """The current reference point, or ``None`` if no location is known yet."""
        return self._snapshot.reference

    @property
    def complete_view(self) -> View:
        """Every collection of the last successful load, with all normalized features."""
        return self._snapshot.complete

    @property
    def nearby_view(self) -> View:
        """The complete view, filtered by the reference point, or the complete view itself."""
        return self._snapshot.nearby

    def load(self, raw: RawDataset | None) -> View:
        """
        Replace the dataset.

        The previous dataset is replaced as a whole. If a reference point is known,
        the nearby view is recomputed; otherwise it is the new complete view.

        Malformed collections and features do not make a load fail; they end up as
        empty collections, or are left out of their collection, respectively.

        Args:
            raw: the raw collections, in rendering order

        Returns:
            the new complete view

        Raises:
            LoadError: if ``raw`` is ``None`` or not a sequence of collections at all.
                       The previous views are retained.
        """
        if raw is None:
            self._fail_load("raw dataset is unavailable")

        if isinstance(raw, str | bytes) or not isinstance(raw, Sequence | Mapping):
            self._fail_load(f"expected a sequence of collections, got {type(raw).__name__}")

        try:
            complete = tuple(normalize(raw, styles=self._styles, logger=self._logger))
        except (TypeError, ValueError) as err:
            self._fail_load(f"malformed raw dataset: {err}", err=err)

        reference = self._snapshot.reference
        nearby = self._nearby(complete, reference)

        self._snapshot = _Snapshot(complete=complete, nearby=nearby, reference=reference)

        self._logger.info(
            f"loaded {len(complete)} collections with {feature_count(complete)} features"
        )

        return complete

    def set_reference(self, reference: Coordinate | None) -> View:
        """
        Update the reference point, and recompute the nearby view.

        Args:
            reference: the new reference point, or ``None`` if the location became unknown,
                       in which case the nearby view is the complete view again

        Returns:
            the new nearby view

        Raises:
            InvalidReferenceError: if the coordinate is not finite or out of range.
                                   The previous reference point and views are retained.
        """
        if reference is not None and not reference.is_valid:
            self._logger.warning(f"rejected reference point {reference!r}")
            raise InvalidReferenceError(lat=reference.lat, lon=reference.lon)

        complete = self._snapshot.complete
        nearby = self._nearby(complete, reference)

        self._snapshot = _Snapshot(complete=complete, nearby=nearby, reference=reference)

        return nearby

    def set_reference_latlon(self, lat: float, lon: float) -> View:
        """
        Same as ``set_reference()``, taking latitude first like location providers do.

        Raises:
            InvalidReferenceError: if the coordinate is not finite or out of range
        """
        try:
            coordinate = Coordinate(lon=float(lon), lat=float(lat))
        except (TypeError, ValueError, OverflowError) as err:
            raise InvalidReferenceError(lat=lat, lon=lon) from err
        return self.set_reference(coordinate)

    def _nearby(self, complete: View, reference: Coordinate | None) -> View:
        if reference is None:
            return complete

        nearby = tuple(filter_nearby(complete, reference, self._radius_km, logger=self._logger))

        self._logger.info(
            f"{feature_count(nearby)} features within {self._radius_km}km"
            f" of ({reference.lat:.4f}, {reference.lon:.4f})"
        )

        return nearby

    def _fail_load(self, cause: str, err: BaseException | None = None) -> NoReturn:
        self._logger.error(f"load failed: {cause}")
        raise LoadError(cause=cause) from err

    def __repr__(self) -> str:
        snapshot = self._snapshot
        return (
            f"{type(self).__name__}("
            f"complete={feature_count(snapshot.complete)}, "
            f"nearby={feature_count(snapshot.nearby)}, "
            f"reference={snapshot.reference!r})"
        )


def feature_count(view: Iterable[FeatureCollection]) -> int:
    """The total number of features across collections."""
    return sum(len(collection) for collection in view)
