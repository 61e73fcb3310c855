"""
Area code resolution for Sri Lankan delivery locations.

Maps a free-text location to a Pronto zone:
exact (case-sensitive) table lookup, then case-insensitive substring
match against representative towns (city -> greater city -> outstation),
then OUTSTATION as the default.
"""

from typing import Dict, Tuple

from shipsync.fsm.states import ZoneCode


PRONTO_AREA_CODES: Dict[str, ZoneCode] = {
    # CITY - Colombo core areas
    "Colombo": ZoneCode.CITY,
    **{f"Colombo {n:02d}": ZoneCode.CITY for n in range(1, 16)},
    
    # GREATER CITY - suburbs
    "Dehiwala": ZoneCode.GREATER_CITY,
    "Mount Lavinia": ZoneCode.GREATER_CITY,
    "Moratuwa": ZoneCode.GREATER_CITY,
    "Kaduwela": ZoneCode.GREATER_CITY,
    "Maharagama": ZoneCode.GREATER_CITY,
    "Kesbewa": ZoneCode.GREATER_CITY,
    "Homagama": ZoneCode.GREATER_CITY,
    "Padukka": ZoneCode.GREATER_CITY,
    "Seethawaka": ZoneCode.GREATER_CITY,
    "Gampaha": ZoneCode.GREATER_CITY,
    "Negombo": ZoneCode.GREATER_CITY,
    "Wattala": ZoneCode.GREATER_CITY,
    "Katana": ZoneCode.GREATER_CITY,
    "Divulapitiya": ZoneCode.GREATER_CITY,
    "Mirigama": ZoneCode.GREATER_CITY,
    "Minuwangoda": ZoneCode.GREATER_CITY,
    "Attanagalla": ZoneCode.GREATER_CITY,
    "Biyagama": ZoneCode.GREATER_CITY,
    "Dompe": ZoneCode.GREATER_CITY,
    "Ja-Ela": ZoneCode.GREATER_CITY,
    "Kelaniya": ZoneCode.GREATER_CITY,
    "Mahara": ZoneCode.GREATER_CITY,
    "Peliyagoda": ZoneCode.GREATER_CITY,
    "Kalutara": ZoneCode.GREATER_CITY,
    "Beruwala": ZoneCode.GREATER_CITY,
    "Dodangoda": ZoneCode.GREATER_CITY,
    "Horana": ZoneCode.GREATER_CITY,
    "Ingiriya": ZoneCode.GREATER_CITY,
    "Mathugama": ZoneCode.GREATER_CITY,
    "Panadura": ZoneCode.GREATER_CITY,
    "Walallavita": ZoneCode.GREATER_CITY,
    
    # OUTSTATION - regional towns
    "Kandy": ZoneCode.OUTSTATION,
    "Matale": ZoneCode.OUTSTATION,
    "Nuwara Eliya": ZoneCode.OUTSTATION,
    "Galle": ZoneCode.OUTSTATION,
    "Matara": ZoneCode.OUTSTATION,
    "Hambantota": ZoneCode.OUTSTATION,
    "Jaffna": ZoneCode.OUTSTATION,
    "Kilinochchi": ZoneCode.OUTSTATION,
    "Mullaitivu": ZoneCode.OUTSTATION,
    "Vavuniya": ZoneCode.OUTSTATION,
    "Mannar": ZoneCode.OUTSTATION,
    "Batticaloa": ZoneCode.OUTSTATION,
    "Ampara": ZoneCode.OUTSTATION,
    "Trincomalee": ZoneCode.OUTSTATION,
    "Kurunegala": ZoneCode.OUTSTATION,
    "Puttalam": ZoneCode.OUTSTATION,
    "Anuradhapura": ZoneCode.OUTSTATION,
    "Polonnaruwa": ZoneCode.OUTSTATION,
    "Badulla": ZoneCode.OUTSTATION,
    "Monaragala": ZoneCode.OUTSTATION,
    "Ratnapura": ZoneCode.OUTSTATION,
    "Kegalle": ZoneCode.OUTSTATION,
    
    # HIGH SECURITY - restricted zones
    "High Security Zone": ZoneCode.HIGH_SECURITY,
    "Military Area": ZoneCode.HIGH_SECURITY,
    "Restricted Zone": ZoneCode.HIGH_SECURITY,
    
    # SPECIAL AREA - remote or custom zones
    "Special Area": ZoneCode.SPECIAL_AREA,
    "Remote Area": ZoneCode.SPECIAL_AREA,
    "Custom Zone": ZoneCode.SPECIAL_AREA,
}

# Checked in this order when the exact lookup misses
PARTIAL_MATCHES: Tuple[Tuple[ZoneCode, Tuple[str, ...]], ...] = (
    (ZoneCode.CITY, ("colombo",)),
    (ZoneCode.GREATER_CITY, ("dehiwala", "mount lavinia", "moratuwa", "gampaha", "negombo", "kalutara")),
    (ZoneCode.OUTSTATION, ("kandy", "galle", "matara", "jaffna", "kurunegala", "anuradhapura")),
)

DEFAULT_ZONE = ZoneCode.OUTSTATION


def resolve_area_code(location: str) -> ZoneCode:
    """Resolve a delivery location to its Pronto zone. Never fails."""
    normalized = location.strip()
    
    zone = PRONTO_AREA_CODES.get(normalized)
    if zone is not None:
        return zone
    
    lowered = normalized.lower()
    for zone, towns in PARTIAL_MATCHES:
        if any(town in lowered for town in towns):
            return zone
    
    return DEFAULT_ZONE
