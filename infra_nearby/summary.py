"""Human-readable summaries of tapped features."""

from dataclasses import dataclass

from infra_nearby.feature import AttributeValue, Feature


__docformat__ = "google"
__all__ = (
    "FeatureSummary",
    "summarize",
)


_NA = "N/A"


@dataclass(kw_only=True, slots=True, frozen=True)
class FeatureSummary:
    """
    What to show when a feature was tapped.

    Attributes:
        kind: ``"bridge"``, ``"kilometer_post"``, ``"highway"``, or ``"generic"``
        title: a headline, f.e. the bridge name
        lines: detail lines, in display order
    """

    kind: str
    title: str
    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        """The detail lines joined by newlines."""
        return "\n".join(self.lines)


def summarize(feature: Feature) -> FeatureSummary:
    """
    Summarize a feature based on the well-known attributes of the public works layers.

    Which summary is produced depends on the first of these keys that has a value:
    ``BR_NAME`` (bridge inventory), ``KM_POST`` (kilometer posts), ``SITE_NAME``
    (highways). Any other feature gets a generic summary naming its geometry type.
    """
    if feature.attribute("BR_NAME") is not None:
        return _bridge(feature)
    if feature.attribute("KM_POST") is not None:
        return _kilometer_post(feature)
    if feature.attribute("SITE_NAME") is not None:
        return _highway(feature)
    return FeatureSummary(
        kind="generic",
        title="Infrastructure Feature",
        lines=(f"Type: {feature.type}",),
    )


def _bridge(feature: Feature) -> FeatureSummary:
    a = feature.attributes.get
    name = _text(a("BR_NAME"))
    built = feature.attribute("Actual_Year", "YR_CONST")
    return FeatureSummary(
        kind="bridge",
        title=name,
        lines=(
            f"Bridge: {name}",
            f"Location: {_text(a('BRGY'))}, {_text(a('MUNICIPAL'))}, {_text(a('PROVINCE'))}",
            f"Road: {_text(a('ROAD_NAME'))}",
            f"Length: {_text(a('BR_LENGTH'))}m | Width: {_text(a('BR_WIDTH'))}m",
            f"Type: {_text(a('BR_TYPE1'))} {_text(a('BR_TYPE2'))}",
            f"Built: {_text(built)}",
            f"Condition: {_text(a('CONDITION'))}",
            f"Load Limit: {_text(a('LOAD_LIMIT'))} tons",
            f"Lanes: {_text(a('NUM_LANES'))} | Spans: {_text(a('NUM_SPAN'))}",
            f"Issues: {_text(feature.attribute('REMARKS', default='None'))}",
            f"DEO: {_text(a('DEO'))}",
            f"Bridge ID: {_text(a('BRIDGE_ID'))}",
        ),
    )


def _kilometer_post(feature: Feature) -> FeatureSummary:
    a = feature.attributes.get
    post = _text(a("KM_POST"))
    return FeatureSummary(
        kind="kilometer_post",
        title=post,
        lines=(
            f"Kilometer Post: {post}",
            f"Road: {_text(a('ROAD_NAME'))}",
            f"Island: {_text(a('ISLAND'))}",
            f"Region: {_text(a('REGION'))}",
            f"Province: {_text(a('PROVINCE'))}",
            f"DEO: {_text(a('DEO'))}",
            f"District: {_text(a('CONG_DIST'))}",
        ),
    )


def _highway(feature: Feature) -> FeatureSummary:
    site = _text(feature.attributes.get("SITE_NAME"))
    nautical = feature.attribute("NAUTICAL", default="Highway")
    return FeatureSummary(
        kind="highway",
        title=site,
        lines=(
            f"Route: {site}",
            f"Length: {_length_km(feature.attributes.get('Shape__Length'))}",
            f"Route Number: {_text(feature.attribute('ROUTE_NO', default=_NA))}",
            f"Region: {_text(feature.attribute('SUPER_REGI', default=_NA))}",
            f"Type: {_text(nautical)} Route",
            f"Island Group: {_text(feature.attribute('ISLAND', default=_NA))}",
        ),
    )


def _length_km(meters: AttributeValue) -> str:
    if isinstance(meters, int | float) and not isinstance(meters, bool):
        return f"{meters / 1000:.1f}km"
    return _NA


def _text(value: AttributeValue) -> str:
    if value is None or value == "":
        return _NA
    return str(value)
