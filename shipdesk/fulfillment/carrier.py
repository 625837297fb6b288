from urllib.parse import quote

from shipdesk.schemas.fulfillment import NormalizedCarrier

OTHER = "other"

CARRIER_CODES = {
    "dhl": "dhl",
    "ups": "ups",
    "fedex": "fedex",
    "usps": "usps",
    "canada-post": "canadaPost",
    "royal-mail": "royalMail",
    "australia-post": "australiaPost",
    "deutsche-post": "deutschePost",
    "la-poste": "laPoste",
    "japan-post": "japanPost",
    "china-post": "chinaPost",
    "tnt": "tnt",
    "aramex": "aramex",
    "other": OTHER,
    "custom": OTHER,
}

TRACKING_URL_TEMPLATES = {
    "fedex": "https://www.fedex.com/apps/fedextrack/?action=track&trackingnumber={trackingNumber}",
    "ups": "https://www.ups.com/track?track=yes&trackNums={trackingNumber}",
    "usps": "https://tools.usps.com/go/TrackConfirmAction?tLabels={trackingNumber}",
    "dhl": "https://www.logistics.dhl/global-en/home/tracking/tracking-parcel.html?submit=1&tracking-id={trackingNumber}",
    "canadaPost": "https://www.canadapost-postescanada.ca/track-reperage/en#/search?searchFor={trackingNumber}",
    "royalMail": "https://www.royalmail.com/track-your-item#/tracking-results/{trackingNumber}",
}

# Same character set encodeURIComponent leaves alone
_URL_SAFE = "-_.!~*'()"


def canonical_code(carrier: str | None) -> str:
    if not carrier:
        return OTHER
    return CARRIER_CODES.get(carrier.strip().lower(), OTHER)


def display_name(code: str, custom_name: str | None = None) -> str:
    custom_name = (custom_name or "").strip()
    if code == OTHER and custom_name:
        return custom_name
    return code[:1].upper() + code[1:]


def tracking_url(code: str, tracking_number: str) -> str | None:
    template = TRACKING_URL_TEMPLATES.get(code)
    if template is None or not tracking_number:
        return None
    return template.replace("{trackingNumber}", quote(tracking_number, safe=_URL_SAFE))


def normalize_carrier(
    carrier: str | None,
    tracking_number: str,
    custom_name: str | None = None,
    explicit_url: str | None = None
) -> NormalizedCarrier:
    """
    Map a free-form carrier name to its canonical code and display name.

    An explicit tracking URL always wins over a generated one; blank URLs
    count as missing. Unknown carriers fall back to "other" and never fail.
    """
    code = canonical_code(carrier)
    url = (explicit_url or "").strip() or tracking_url(code, tracking_number)

    return NormalizedCarrier(
        code=code,
        display_name=display_name(code, custom_name),
        tracking_url=url
    )
