from typing import Dict, List, Optional
import re


# City -> airports serving it, most used first
CITY_AIRPORTS: Dict[str, List[str]] = {
    "new york": ["JFK", "EWR", "LGA"],
    "los angeles": ["LAX", "BUR", "ONT"],
    "san francisco": ["SFO", "OAK", "SJC"],
    "chicago": ["ORD", "MDW"],
    "washington": ["DCA", "IAD", "BWI"],
    "miami": ["MIA", "FLL"],
    "boston": ["BOS"],
    "seattle": ["SEA"],
    "denver": ["DEN"],
    "atlanta": ["ATL"],
    "dallas": ["DFW", "DAL"],
    "houston": ["IAH", "HOU"],
    "paris": ["CDG", "ORY"],
    "london": ["LHR", "LGW", "STN", "LTN"],
    "tokyo": ["HND", "NRT"],
    "rome": ["FCO", "CIA"],
    "milan": ["MXP", "LIN"],
    "bangkok": ["BKK", "DMK"],
}

# Region -> primary hubs searched for "cheapest to <region>" queries
REGION_AIRPORTS: Dict[str, List[str]] = {
    "europe": ["CDG", "LHR", "AMS", "FRA", "MAD", "BCN", "FCO", "MXP", "VIE", "ZRH",
               "CPH", "DUB", "BRU", "ATH", "LIS"],
    "asia": ["HND", "ICN", "SIN", "BKK", "HKG", "TPE", "KUL", "PVG", "DEL", "BOM",
             "DXB", "DOH", "MNL", "CGK", "HAN"],
    "southeast asia": ["BKK", "SIN", "KUL", "CGK", "MNL", "HAN", "SGN", "PNH", "RGN", "DPS"],
    "latin america": ["GRU", "GIG", "MEX", "BOG", "LIM", "SCL", "EZE", "PTY", "UIO", "CUN",
                      "MDE", "BSB", "GDL", "MVD", "SJO"],
    "south america": ["GRU", "EZE", "BOG", "LIM", "SCL", "GIG", "UIO", "MVD"],
    "mediterranean": ["FCO", "ATH", "BCN", "MAD", "LIS", "IST", "TLV", "VCE", "NAP", "NCE"],
    "caribbean": ["SJU", "CUN", "PUJ", "MBJ", "NAS", "AUA"],
    "mexico": ["MEX", "CUN", "GDL", "MTY", "TIJ"],
    "middle east": ["DXB", "DOH", "AUH", "TLV", "CAI"],
}

ALIASES: Dict[str, str] = {
    "nyc": "new york",
    "ny": "new york",
    "new york city": "new york",
    "la": "los angeles",
    "sf": "san francisco",
    "bay area": "san francisco",
    "dc": "washington",
    "washington dc": "washington",
    "heathrow": "london",
    "gatwick": "london",
    "stansted": "london",
    "luton": "london",
    "latam": "latin america",
    "central america": "latin america",
    "the caribbean": "caribbean",
    "the mediterranean": "mediterranean",
    "the middle east": "middle east",
}

_CODE = re.compile(r"^[A-Za-z]{3}$")


class AirportResolver:
    """Resolve city and region names to airport codes.

    Three-letter inputs are treated as IATA codes unless they name a known
    alias (e.g. "nyc"). Unknown names resolve to an empty list.
    """

    def __init__(self, cities: Optional[Dict[str, List[str]]] = None,
                 regions: Optional[Dict[str, List[str]]] = None,
                 aliases: Optional[Dict[str, str]] = None):
        self.cities = cities if cities is not None else CITY_AIRPORTS
        self.regions = regions if regions is not None else REGION_AIRPORTS
        self.aliases = aliases if aliases is not None else ALIASES

    def _key(self, value: str) -> str:
        key = re.sub(r"\s+", " ", value.strip().lower())
        return self.aliases.get(key, key)

    def is_region(self, value: str) -> bool:
        return self._key(value) in self.regions

    def resolve(self, value: str) -> List[str]:
        if not value or not str(value).strip():
            return []
        key = self._key(str(value))
        if key in self.regions:
            return list(self.regions[key])
        if key in self.cities:
            return list(self.cities[key])
        if _CODE.match(str(value).strip()):
            return [str(value).strip().upper()]
        return []

    def resolve_many(self, values: List[str]) -> List[str]:
        """Resolve each value and concatenate, dropping duplicates but keeping order."""
        seen = set()
        codes: List[str] = []
        for value in values:
            for code in self.resolve(value):
                if code not in seen:
                    seen.add(code)
                    codes.append(code)
        return codes
