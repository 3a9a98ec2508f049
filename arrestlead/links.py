"""
Contact search links for Arrest Lead notifications.
"""

from typing import Dict
from urllib.parse import quote, urlencode

from arrestlead.model import ArrestRecord


def _query(record: ArrestRecord) -> str:
    address = record.get("address") or {}
    parts = [record.get("full_name", ""), address.get("city", ""), address.get("state", "")]
    return " ".join(p for p in parts if p)


def google_search_url(record: ArrestRecord) -> str:
    """Google web search for the person's name and city."""
    if not record.get("full_name"):
        return ""
    return "https://www.google.com/search?q=" + quote(_query(record))


def facebook_search_url(record: ArrestRecord) -> str:
    """Facebook people search for the person's name and city."""
    if not record.get("full_name"):
        return ""
    return "https://www.facebook.com/search/people/?q=" + quote(_query(record))


def truepeoplesearch_url(record: ArrestRecord) -> str:
    """TruePeopleSearch lookup by first name, last name and city."""
    last_name = record.get("last_name", "")
    if not last_name:
        return ""

    address = record.get("address") or {}
    params = {}
    if record.get("first_name"):
        params["firstname"] = record["first_name"]
    params["lastname"] = last_name
    if address.get("city"):
        city = address["city"]
        if address.get("state"):
            city += f", {address['state']}"
        params["citystatezip"] = city
    return "https://www.truepeoplesearch.com/results?" + urlencode(params, quote_via=quote)


def search_links(record: ArrestRecord) -> Dict[str, str]:
    """
    Build all contact search links for a record.

    Args:
        record: Arrest record

    Returns:
        Link name to URL, omitting links that need missing fields
    """
    links = {
        "google": google_search_url(record),
        "facebook": facebook_search_url(record),
        "truepeoplesearch": truepeoplesearch_url(record),
    }
    return {name: url for name, url in links.items() if url}
